"""
Member templates and derived configuration objects.

Both are built from the effective spec (after merge.effective_spec()):

- The MemberTemplate is what the platform (re)creates a role's members
  from. Its revision identifies the role-level digests, so a member running
  the current template can be recognized without comparing manifests.
- The derived configuration object is written by the controller every
  cycle and mounted by members. It is never read back, so any drift in it
  is simply overwritten on the next cycle.
"""

import json
from typing import Any, Mapping

import yaml

from rollout_core.fingerprint import (
    resource_digests,
    satellite_digests,
    template_revision,
)
from rollout_core.spec import DesiredSpec
from rollout_protocols import ContentHash, MemberTemplate, Role

# Keys of the derived configuration object
CONFIG_KEYS = {
    Role.KAFKA: "server.properties",
    Role.ZOOKEEPER: "zookeeper.properties",
}
LOGGING_KEY = "log4j.properties"
METRICS_KEY = "metrics-config.yml"


def derived_config_name(cluster: str, role: Role) -> str:
    """Name of a role's derived configuration object (e.g. "my-cluster-kafka-config")."""
    return f"{cluster}-{role.value}-config"


def desired_hashes(spec: DesiredSpec, role: Role) -> ContentHash:
    """
    Digests a member of the role should record once it runs the desired spec.

    Role resource digests plus the satellite digests. The satellite entries
    never cause a restart; they are recorded so a satellite-only change is
    visible on the members after it has been applied.
    """
    return {**resource_digests(spec, role), **satellite_digests(spec)}


def build_template(spec: DesiredSpec, role: Role) -> MemberTemplate:
    """
    Build the member template of a role.

    Args:
        spec: Effective desired spec.
        role: Role to build the template for.

    Returns:
        MemberTemplate whose revision changes exactly when one of the role's
        resource digests changes.
    """
    role_spec = spec.role(role)
    hashes = desired_hashes(spec, role)
    return MemberTemplate(
        role=role,
        revision=template_revision(resource_digests(spec, role)),
        content_hash=hashes,
        image=role_spec.image,
        labels=dict(role_spec.labels),
        annotations=dict(role_spec.annotations),
        env=dict(role_spec.env),
        resources=role_spec.resources.to_dict(),
        readiness_probe=role_spec.readiness_probe.to_dict(),
        liveness_probe=role_spec.liveness_probe.to_dict(),
        jvm_options=dict(role_spec.jvm_options),
        config_name=derived_config_name(spec.name, role),
        storage_size=role_spec.storage.size,
        storage_class=role_spec.storage.storage_class,
        auxiliary_volumes=role_spec.storage.auxiliary_volumes,
    )


def _property_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def render_properties(config: Mapping[str, Any]) -> str:
    """Render an opaque config map as Java properties, in map order."""
    return "".join(f"{key}={_property_value(value)}\n" for key, value in config.items())


def derived_config_data(spec: DesiredSpec, role: Role) -> dict[str, str]:
    """
    Build the content of a role's derived configuration object.

    Args:
        spec: Effective desired spec.
        role: Role to render.

    Returns:
        Mapping of file name to file content.
    """
    role_spec = spec.role(role)
    data = {CONFIG_KEYS[role]: render_properties(role_spec.config)}

    if role_spec.logging is not None and role_spec.logging.content is not None:
        content = role_spec.logging.content
        if isinstance(content, Mapping):
            content = render_properties(content)
        data[LOGGING_KEY] = str(content)

    if role_spec.metrics is not None and role_spec.metrics.content is not None:
        content = role_spec.metrics.content
        if not isinstance(content, str):
            content = yaml.safe_dump(content, sort_keys=True)
        data[METRICS_KEY] = content

    return data
