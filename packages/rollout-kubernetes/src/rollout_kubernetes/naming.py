"""
Kubernetes object naming and labelling conventions.

Members are pods named "<cluster>-<role>-<ordinal>". Each member has a main
data volume claim "data-<member>" and optional auxiliary claims
"data-<n>-<member>" (n >= 1). Derived configuration objects are config maps
named "<cluster>-<role>-config".
"""

import re

from rollout_protocols import MemberId, Role

API_GROUP = "kafka.rollout.dev"
API_VERSION = "v1beta1"
PLURAL = "kafkaclusters"

LABEL_CLUSTER = "rollout.dev/cluster"
LABEL_ROLE = "rollout.dev/role"
LABEL_LEADER = "rollout.dev/leader"
ANNOTATION_REVISION = "rollout.dev/revision"
HASH_ANNOTATION_PREFIX = "rollout.dev/hash."
MANAGED_BY = ("app.kubernetes.io/managed-by", "rollout-operator")

_ORDINAL = re.compile(r"-(\d+)$")


def data_volume_name(member: MemberId) -> str:
    return f"data-{member.name}"


def auxiliary_volume_names(member: MemberId, count: int) -> list[str]:
    return [f"data-{n}-{member.name}" for n in range(1, count + 1)]


def parse_ordinal(pod_name: str) -> int | None:
    """Ordinal suffix of a pod name, None if it has none."""
    match = _ORDINAL.search(pod_name)
    return int(match.group(1)) if match else None


def selector(cluster: str, role: Role) -> str:
    """Label selector matching the pods of one role of a cluster."""
    return f"{LABEL_CLUSTER}={cluster},{LABEL_ROLE}={role.value}"


def member_labels(cluster: str, role: Role) -> dict[str, str]:
    """Labels every object owned by a role carries."""
    return {
        LABEL_CLUSTER: cluster,
        LABEL_ROLE: role.value,
        MANAGED_BY[0]: MANAGED_BY[1],
    }


def hash_annotations(hashes: dict[str, str]) -> dict[str, str]:
    """Content digests as pod annotations (one per resource)."""
    return {f"{HASH_ANNOTATION_PREFIX}{name}": value for name, value in hashes.items()}


def hashes_from_annotations(annotations: dict[str, str]) -> dict[str, str]:
    """Inverse of hash_annotations(); other annotations are ignored."""
    return {
        key[len(HASH_ANNOTATION_PREFIX):]: value
        for key, value in annotations.items()
        if key.startswith(HASH_ANNOTATION_PREFIX)
    }
