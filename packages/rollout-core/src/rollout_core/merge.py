"""
Template merge.

Role templates (labels, annotations, env, probe overrides) and the
resource-level metadata labels are layered onto each role by a single
explicit merge function. Everything downstream of the merge (fingerprints,
member templates, change classification) only ever sees the effective
spec, so no other code needs to know where a value came from.
"""

from dataclasses import replace

from rollout_core.spec import DesiredSpec, RoleSpec


def _merge_role(role: RoleSpec, resource_labels: dict[str, str]) -> RoleSpec:
    template = role.template
    labels = {**resource_labels, **role.labels}
    annotations = dict(role.annotations)
    env = dict(role.env)
    readiness = role.readiness_probe
    liveness = role.liveness_probe

    if template is not None:
        labels.update(template.labels)
        annotations.update(template.annotations)
        env.update(template.env)
        if template.readiness_probe is not None:
            readiness = template.readiness_probe
        if template.liveness_probe is not None:
            liveness = template.liveness_probe

    return replace(
        role,
        labels=labels,
        annotations=annotations,
        env=env,
        readiness_probe=readiness,
        liveness_probe=liveness,
        template=None,
    )


def effective_spec(spec: DesiredSpec) -> DesiredSpec:
    """
    Produce the effective spec with all overrides applied.

    Precedence (later wins): resource metadata labels, role settings, role
    template. The returned spec carries no templates, so merging it again
    returns an equal spec.

    Args:
        spec: Desired spec as loaded from the source.

    Returns:
        A new DesiredSpec; the input is not modified.
    """
    resource_labels = dict(spec.labels)
    return replace(
        spec,
        kafka=_merge_role(spec.kafka, resource_labels),
        zookeeper=_merge_role(spec.zookeeper, resource_labels),
    )
