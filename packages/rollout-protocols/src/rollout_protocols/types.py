"""
Generic types for the rollout protocol system.

This module defines the data structures shared between the reconcile core
and any state-store backend: member identities, observed role state,
replication units, member templates and the status record.

These types are plain dataclasses. Anything observed from the platform is
frozen, since an observation is a snapshot that is refreshed every cycle
and never patched in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


ContentHash = dict[str, str]
"""Per-resource digests, keyed by resource name (e.g. "config", "logging")."""


class Role(str, Enum):
    """
    Member classes of a managed cluster.

    KAFKA: Primary data-serving role (brokers)
    ZOOKEEPER: Coordination/quorum role
    """

    KAFKA = "kafka"
    """Primary data role."""

    ZOOKEEPER = "zookeeper"
    """Coordination role."""

    @property
    def is_coordination(self) -> bool:
        """True for the quorum-based coordination role."""
        return self is Role.ZOOKEEPER


def member_name(cluster: str, role: Role, ordinal: int) -> str:
    """
    Build the stable, ordinal-suffixed name of a member.

    Args:
        cluster: Name of the managed cluster resource.
        role: Role the member belongs to.
        ordinal: Zero-based ordinal of the member within its role.

    Returns:
        Name in the format "<cluster>-<role>-<ordinal>", e.g. "my-cluster-kafka-2".
    """
    return f"{cluster}-{role.value}-{ordinal}"


@dataclass(frozen=True, order=True)
class MemberId:
    """
    Stable identity of one member.

    Identities survive restarts: a restarted member comes back with the
    same name and ordinal. Ordering sorts by cluster, role, then ordinal.

    Attributes:
        cluster: Name of the managed cluster resource.
        role: Role the member belongs to.
        ordinal: Zero-based ordinal within the role.
    """

    cluster: str
    role: Role
    ordinal: int

    @property
    def name(self) -> str:
        """Stable member name (e.g. "my-cluster-zookeeper-0")."""
        return member_name(self.cluster, self.role, self.ordinal)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Member:
    """
    Observed state of a single member.

    Attributes:
        id: Stable member identity.
        ready: Whether the member currently reports ready.
        content_hash: Per-resource digests recorded at the last successful
            apply. Empty if nothing has been recorded yet.
        pending: The member exists but is not scheduled/running yet.
        terminating: The member is shutting down.
        revision: Template revision the running instance was created from,
            or None if unknown.
        leader: True if the member currently leads its ensemble (only
            meaningful for the coordination role).
    """

    id: MemberId
    ready: bool
    content_hash: ContentHash = field(default_factory=dict)
    pending: bool = False
    terminating: bool = False
    revision: str | None = None
    leader: bool = False

    @property
    def available(self) -> bool:
        """Ready and not on its way out."""
        return self.ready and not self.terminating


@dataclass(frozen=True)
class ReplicationUnit:
    """
    A unit of replication served by data-role members (e.g. a partition).

    Attributes:
        id: Unit identifier (e.g. "orders-3").
        replicas: Names of the members holding a replica of this unit.
        min_isr: Minimum in-sync replicas for this unit. None means the
            role-wide default applies.
    """

    id: str
    replicas: tuple[str, ...]
    min_isr: int | None = None


@dataclass(frozen=True)
class ObservedState:
    """
    Snapshot of one role's members, refreshed every reconcile cycle.

    Attributes:
        role: Role this snapshot describes.
        members: Members ordered by ordinal.
        replication_units: Units of replication served by the members.
            Only populated for the data role, and only when known.
    """

    role: Role
    members: tuple[Member, ...] = ()
    replication_units: tuple[ReplicationUnit, ...] = ()

    @property
    def ordinals(self) -> list[int]:
        """Ordinals of all observed members, ascending."""
        return sorted(m.id.ordinal for m in self.members)

    @property
    def ready_count(self) -> int:
        """Number of members currently available."""
        return sum(1 for m in self.members if m.available)

    def get(self, member: MemberId) -> Member | None:
        """Return the observed member with the given identity, if any."""
        for m in self.members:
            if m.id == member:
                return m
        return None


@dataclass(frozen=True)
class MemberTemplate:
    """
    Template the platform creates and recreates a role's members from.

    Updating the template never restarts anything by itself: members pick it
    up only when they are (re)created.

    Attributes:
        role: Role this template is for.
        revision: Digest identifying the template content.
        content_hash: Per-resource digests stamped on members created from
            this template.
        image: Container image, None for the platform default.
        labels: Member metadata labels.
        annotations: Member metadata annotations.
        env: Container environment variables.
        resources: Resource requirements ({"requests": {...}, "limits": {...}}).
        readiness_probe: Readiness probe parameters.
        liveness_probe: Liveness probe parameters.
        jvm_options: JVM options passed through to the container.
        config_name: Name of the derived configuration object mounted by members.
        storage_size: Requested size of each data volume (e.g. "100Gi").
        storage_class: Storage class of new volumes, None for the default.
        auxiliary_volumes: Number of extra data volumes per member.
    """

    role: Role
    revision: str
    content_hash: ContentHash = field(default_factory=dict)
    image: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    resources: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    readiness_probe: Mapping[str, int] = field(default_factory=dict)
    liveness_probe: Mapping[str, int] = field(default_factory=dict)
    jvm_options: Mapping[str, Any] = field(default_factory=dict)
    config_name: str = ""
    storage_size: str = "10Gi"
    storage_class: str | None = None
    auxiliary_volumes: int = 0


@dataclass(frozen=True)
class Condition:
    """
    One entry of the status conditions list.

    Attributes:
        type: Condition type (e.g. "Ready", "RollingUpdate").
        status: "True", "False" or "Unknown".
        reason: Machine-readable CamelCase reason.
        message: Human-readable detail.
        last_transition_time: When the status last changed.
    """

    type: str
    status: str
    reason: str
    message: str = ""
    last_transition_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the status subresource representation."""
        d: dict[str, Any] = {
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
        }
        if self.message:
            d["message"] = self.message
        if self.last_transition_time is not None:
            d["lastTransitionTime"] = self.last_transition_time.strftime(
                "%Y-%m-%dT%H:%M:%SZ"
            )
        return d


@dataclass(frozen=True)
class StatusRecord:
    """
    Status exposed on the desired-state resource.

    Attributes:
        observed_generation: Monotonic counter of converged spec generations.
        replicas: Last observed member count (data role).
        conditions: Ordered conditions, terminal "Ready" last.
        spec_fingerprint: Fingerprint of the last converged spec content.
        metadata_fingerprint: Fingerprint of the last converged metadata.
    """

    observed_generation: int = 0
    replicas: int = 0
    conditions: tuple[Condition, ...] = ()
    spec_fingerprint: str | None = None
    metadata_fingerprint: str | None = None

    def condition(self, type_: str) -> Condition | None:
        """Return the condition of the given type, if present."""
        for c in self.conditions:
            if c.type == type_:
                return c
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the status subresource representation."""
        d: dict[str, Any] = {
            "observedGeneration": self.observed_generation,
            "replicas": self.replicas,
            "conditions": [c.to_dict() for c in self.conditions],
        }
        if self.spec_fingerprint is not None:
            d["specFingerprint"] = self.spec_fingerprint
        if self.metadata_fingerprint is not None:
            d["metadataFingerprint"] = self.metadata_fingerprint
        return d
