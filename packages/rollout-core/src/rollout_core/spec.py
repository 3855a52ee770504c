"""
Desired-spec model.

A DesiredSpec is an immutable snapshot of the target configuration of one
managed cluster for one reconcile cycle. It is built by a spec source
(e.g. from a Kubernetes custom resource) and replaced wholesale every
cycle; nothing in the core ever mutates one. Derived variants are made with
dataclasses.replace().

Configuration maps (broker config, JVM options, satellite configs) are
opaque ordered mappings from string keys to str/number/bool/nested-map
values. The core never interprets individual keys except
"min.insync.replicas", which feeds the quorum safety gate.

Example:
    spec = DesiredSpec(
        name="my-cluster",
        kafka=RoleSpec(replicas=3, config={"min.insync.replicas": 2}),
        zookeeper=RoleSpec(replicas=3),
    )
    spec.role(Role.KAFKA).replicas  # 3
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from rollout_protocols import Role


class DeploymentStrategy(str, Enum):
    """
    How changed members are replaced.

    ROLLING_UPDATE: One member at a time, gated on quorum safety
    RECREATE: All affected members replaced together (accepts downtime)
    """

    ROLLING_UPDATE = "RollingUpdate"
    RECREATE = "Recreate"


@dataclass(frozen=True)
class ProbeSpec:
    """
    Readiness or liveness probe parameters.

    Attributes:
        initial_delay_seconds: Delay before the first probe.
        timeout_seconds: Probe timeout.
        period_seconds: Interval between probes.
        success_threshold: Consecutive successes to be considered healthy.
        failure_threshold: Consecutive failures to be considered unhealthy.
    """

    initial_delay_seconds: int = 15
    timeout_seconds: int = 5
    period_seconds: int = 10
    success_threshold: int = 1
    failure_threshold: int = 3

    def to_dict(self) -> dict[str, int]:
        """Convert to the platform's probe field names."""
        return {
            "initialDelaySeconds": self.initial_delay_seconds,
            "timeoutSeconds": self.timeout_seconds,
            "periodSeconds": self.period_seconds,
            "successThreshold": self.success_threshold,
            "failureThreshold": self.failure_threshold,
        }


@dataclass(frozen=True)
class ResourceRequirements:
    """Container resource requests and limits (e.g. {"cpu": "200m"})."""

    requests: Mapping[str, str] = field(default_factory=dict)
    limits: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, dict[str, str]]:
        d: dict[str, dict[str, str]] = {}
        if self.requests:
            d["requests"] = dict(self.requests)
        if self.limits:
            d["limits"] = dict(self.limits)
        return d


@dataclass(frozen=True)
class ConfigRef:
    """Reference to a key of an external configuration object."""

    name: str
    key: str


@dataclass(frozen=True)
class ExternalConfig:
    """
    Logging or metrics configuration of a role.

    Either inline (content only) or external (ref plus the content resolved
    from the referenced object when the spec was loaded). Only the content
    takes part in change detection, so a change to the referenced object is
    a change to the spec even though the resource itself did not change.

    Attributes:
        ref: Referenced configuration object key, None for inline config.
        content: Resolved configuration content (text or parsed structure).
    """

    ref: ConfigRef | None = None
    content: Any = None


@dataclass(frozen=True)
class StoragePolicy:
    """
    Persistent storage of a role's members.

    Attributes:
        size: Requested size of each volume (e.g. "100Gi").
        delete_claim: Delete the main data volume when a member is removed.
            When False the volume is retained.
        auxiliary_volumes: Number of extra data volumes per member.
            They are always released when a member is removed.
        storage_class: Storage class name, None for the platform default.
    """

    size: str = "10Gi"
    delete_claim: bool = False
    auxiliary_volumes: int = 0
    storage_class: str | None = None


@dataclass(frozen=True)
class RoleTemplate:
    """
    Overrides layered onto a role's base settings.

    Merged into the RoleSpec by merge.effective_spec(); nothing else reads
    a RoleTemplate directly.

    Attributes:
        labels: Extra member labels.
        annotations: Extra member annotations.
        env: Container environment variables.
        readiness_probe: Replaces the role's readiness probe when set.
        liveness_probe: Replaces the role's liveness probe when set.
    """

    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    readiness_probe: ProbeSpec | None = None
    liveness_probe: ProbeSpec | None = None


@dataclass(frozen=True)
class RoleSpec:
    """
    Desired configuration of one role.

    Attributes:
        replicas: Desired member count (zero allowed).
        config: Opaque role configuration map.
        resources: Container resource requests/limits.
        readiness_probe: Readiness probe parameters.
        liveness_probe: Liveness probe parameters.
        jvm_options: Opaque JVM options map.
        logging: Logging configuration, None for the built-in default.
        metrics: Metrics exporter configuration, None when disabled.
        storage: Persistent storage policy.
        image: Container image, None for the platform default.
        template: Overrides merged in by merge.effective_spec().
        labels: Member labels (filled by the merge).
        annotations: Member annotations (filled by the merge).
        env: Container environment (filled by the merge).
        extra: Pass-through sections without a known restart rule.
    """

    replicas: int = 3
    config: Mapping[str, Any] = field(default_factory=dict)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    readiness_probe: ProbeSpec = field(default_factory=ProbeSpec)
    liveness_probe: ProbeSpec = field(default_factory=ProbeSpec)
    jvm_options: Mapping[str, Any] = field(default_factory=dict)
    logging: ExternalConfig | None = None
    metrics: ExternalConfig | None = None
    storage: StoragePolicy = field(default_factory=StoragePolicy)
    image: str | None = None
    template: RoleTemplate | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    annotations: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.replicas < 0:
            raise ValueError(f"replicas must be >= 0, got {self.replicas}")

    @property
    def min_in_sync_replicas(self) -> int:
        """Configured "min.insync.replicas" (defaults to 1)."""
        value = self.config.get("min.insync.replicas", 1)
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            return 1


@dataclass(frozen=True)
class DesiredSpec:
    """
    Target configuration of one managed cluster for one reconcile cycle.

    Attributes:
        name: Cluster resource name; member names derive from it.
        namespace: Namespace of the cluster resource.
        kafka: Primary data role (brokers).
        zookeeper: Coordination role.
        strategy: How changed members are replaced.
        labels: Resource metadata labels, propagated to member metadata.
        satellites: Opaque config maps of satellite components (e.g.
            mirroring producer/consumer settings). Never restarts the
            cluster's own members.
        generation: Resource metadata generation, informational only.
    """

    name: str
    kafka: RoleSpec = field(default_factory=RoleSpec)
    zookeeper: RoleSpec = field(default_factory=RoleSpec)
    namespace: str = "default"
    strategy: DeploymentStrategy = DeploymentStrategy.ROLLING_UPDATE
    labels: Mapping[str, str] = field(default_factory=dict)
    satellites: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    generation: int = 0

    def role(self, role: Role) -> RoleSpec:
        """Return the RoleSpec of a role."""
        if role is Role.KAFKA:
            return self.kafka
        return self.zookeeper
