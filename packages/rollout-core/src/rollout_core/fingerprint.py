"""
Content digests for change detection.

Every cluster-wide resource that can affect a member (broker config,
logging, metrics, probes, JVM options, resource requirements, image,
member metadata) gets one digest per role. Digests are computed from the
structure of the desired value, never from individual keys, so opaque
configuration maps work without interpretation.

Digest format: first 16 hex chars of SHA-256 over canonical JSON (sorted
keys, compact separators). Key order of a configuration map therefore does
not matter, values and nesting do.
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Mapping

from rollout_core.spec import DesiredSpec, RoleSpec
from rollout_protocols import ContentHash, Role

# Resource names with a digest on every role, in classification order
ROLE_RESOURCES = (
    "config",
    "logging",
    "metrics",
    "readiness_probe",
    "liveness_probe",
    "jvm_options",
    "resources",
    "image",
    "template",
)

EXTRA_PREFIX = "extra."
SATELLITE_PREFIX = "satellite."


def _canonical(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _canonical(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def digest(value: Any) -> str:
    """
    Compute the digest of an arbitrary configuration structure.

    Args:
        value: str/number/bool/None, a mapping, a sequence, an enum or a
            dataclass, nested arbitrarily.

    Returns:
        16 hex character digest. None (absent) has a digest of its own.
    """
    payload = json.dumps(
        _canonical(value), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def role_digests(role_spec: RoleSpec) -> ContentHash:
    """
    Compute the per-resource digests of one (effective) role spec.

    Args:
        role_spec: Role spec after merge.effective_spec().

    Returns:
        Mapping of resource name to digest. Includes one "extra.<key>"
        entry per pass-through section.
    """
    logging_content = role_spec.logging.content if role_spec.logging else None
    metrics_content = role_spec.metrics.content if role_spec.metrics else None

    digests: ContentHash = {
        "config": digest(role_spec.config),
        "logging": digest(logging_content),
        "metrics": digest(metrics_content),
        "readiness_probe": digest(role_spec.readiness_probe),
        "liveness_probe": digest(role_spec.liveness_probe),
        "jvm_options": digest(role_spec.jvm_options),
        "resources": digest(role_spec.resources),
        "image": digest(role_spec.image),
        "template": digest(
            {
                "labels": role_spec.labels,
                "annotations": role_spec.annotations,
                "env": role_spec.env,
            }
        ),
    }
    for key, value in role_spec.extra.items():
        digests[f"{EXTRA_PREFIX}{key}"] = digest(value)
    return digests


def resource_digests(spec: DesiredSpec, role: Role) -> ContentHash:
    """Per-resource digests of a role of an effective spec."""
    return role_digests(spec.role(role))


def satellite_digests(spec: DesiredSpec) -> ContentHash:
    """One "satellite.<name>" digest per satellite config map."""
    return {
        f"{SATELLITE_PREFIX}{name}": digest(config)
        for name, config in spec.satellites.items()
    }


def template_revision(digests: ContentHash) -> str:
    """Revision identifying a member template built from these digests."""
    return digest(sorted(digests.items()))


def spec_fingerprint(spec: DesiredSpec) -> str:
    """
    Fingerprint of the spec content, excluding metadata and strategy.

    Must be called on the spec as loaded (before merge.effective_spec()),
    otherwise resource labels leak into the role sections.
    """
    return digest(
        {
            "namespace": spec.namespace,
            "kafka": spec.kafka,
            "zookeeper": spec.zookeeper,
            "satellites": spec.satellites,
        }
    )


def metadata_fingerprint(spec: DesiredSpec) -> str:
    """Fingerprint of the resource metadata labels."""
    return digest(spec.labels)
