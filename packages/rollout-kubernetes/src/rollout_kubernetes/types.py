"""
Kubernetes-specific Pydantic types.

This module provides Pydantic models for parsing:
- Core API objects the store reads (pods, config maps)
- The KafkaCluster custom resource (desired spec and status)

These are API types for external data validation. Internal types
(DesiredSpec, Member, StatusRecord) are dataclasses in rollout_core and
rollout_protocols.

Notes:
- Kubernetes uses camelCase field names; models declare snake_case fields
  with camelCase aliases and accept either
- Unknown fields are ignored, the API returns far more than is needed here
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class KubeModel(BaseModel):
    """Base model accepting camelCase aliases and ignoring unknown fields."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Core API Types
# =============================================================================


class ObjectMeta(KubeModel):
    """Subset of metadata shared by all objects."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    generation: int = 0
    resource_version: str = Field(default="", alias="resourceVersion")
    deletion_timestamp: str | None = Field(default=None, alias="deletionTimestamp")


class PodCondition(KubeModel):
    type: str
    status: str


class PodStatus(KubeModel):
    """
    Pod status.

    phase is "Pending" until the pod is scheduled and its containers start.
    """

    phase: str = "Pending"
    conditions: list[PodCondition] = Field(default_factory=list)


class Pod(KubeModel):
    """A pod as returned by GET /api/v1/namespaces/{ns}/pods."""

    metadata: ObjectMeta
    status: PodStatus = Field(default_factory=PodStatus)

    @property
    def ready(self) -> bool:
        return any(
            c.type == "Ready" and c.status == "True" for c in self.status.conditions
        )

    @property
    def pending(self) -> bool:
        return self.status.phase == "Pending"

    @property
    def terminating(self) -> bool:
        return self.metadata.deletion_timestamp is not None


class PodList(KubeModel):
    items: list[Pod] = Field(default_factory=list)


class ConfigMap(KubeModel):
    metadata: ObjectMeta
    data: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# KafkaCluster Custom Resource
# =============================================================================
# Example:
# apiVersion: kafka.rollout.dev/v1beta1
# kind: KafkaCluster
# metadata: {name: my-cluster, labels: {team: data}}
# spec:
#   strategy: RollingUpdate
#   kafka:
#     replicas: 3
#     config: {min.insync.replicas: 2}
#     readinessProbe: {initialDelaySeconds: 15, timeoutSeconds: 5}
#     logging: {type: external, valueFrom: {configMapKeyRef: {name: kafka-log, key: log4j.properties}}}
#     metrics: {type: inline, content: {lowercaseOutputName: true}}
#     storage: {size: 100Gi, deleteClaim: false}
#   zookeeper: {replicas: 3}


class ConfigMapKeyRef(KubeModel):
    name: str
    key: str


class ValueFrom(KubeModel):
    config_map_key_ref: ConfigMapKeyRef = Field(alias="configMapKeyRef")


class ExternalConfigModel(KubeModel):
    """
    Logging or metrics configuration.

    type "inline" carries the content directly (loggers map for logging, the
    exporter config for metrics); type "external" references a config map key.
    """

    type: str = "inline"
    content: Any = None
    loggers: dict[str, str] | None = None
    value_from: ValueFrom | None = Field(default=None, alias="valueFrom")


class ProbeModel(KubeModel):
    initial_delay_seconds: int = Field(default=15, alias="initialDelaySeconds")
    timeout_seconds: int = Field(default=5, alias="timeoutSeconds")
    period_seconds: int = Field(default=10, alias="periodSeconds")
    success_threshold: int = Field(default=1, alias="successThreshold")
    failure_threshold: int = Field(default=3, alias="failureThreshold")


class ResourcesModel(KubeModel):
    requests: dict[str, str] = Field(default_factory=dict)
    limits: dict[str, str] = Field(default_factory=dict)


class StorageModel(KubeModel):
    size: str = "10Gi"
    delete_claim: bool = Field(default=False, alias="deleteClaim")
    auxiliary_volumes: int = Field(default=0, alias="auxiliaryVolumes")
    storage_class: str | None = Field(default=None, alias="class")


class PodTemplateModel(KubeModel):
    """Role template overrides."""

    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)
    readiness_probe: ProbeModel | None = Field(default=None, alias="readinessProbe")
    liveness_probe: ProbeModel | None = Field(default=None, alias="livenessProbe")


class RoleModel(KubeModel):
    """
    One role section of the spec.

    Sections without a known field (e.g. "rack", "tls") are kept in
    model_extra and passed through.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    replicas: int = 3
    image: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    resources: ResourcesModel = Field(default_factory=ResourcesModel)
    readiness_probe: ProbeModel = Field(default_factory=ProbeModel, alias="readinessProbe")
    liveness_probe: ProbeModel = Field(default_factory=ProbeModel, alias="livenessProbe")
    jvm_options: dict[str, Any] = Field(default_factory=dict, alias="jvmOptions")
    logging: ExternalConfigModel | None = None
    metrics: ExternalConfigModel | None = None
    storage: StorageModel = Field(default_factory=StorageModel)
    template: PodTemplateModel | None = None


class KafkaClusterSpecModel(KubeModel):
    kafka: RoleModel = Field(default_factory=RoleModel)
    zookeeper: RoleModel = Field(default_factory=RoleModel)
    strategy: str = "RollingUpdate"
    satellites: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ConditionModel(KubeModel):
    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: str | None = Field(default=None, alias="lastTransitionTime")


class KafkaClusterStatusModel(KubeModel):
    observed_generation: int = Field(default=0, alias="observedGeneration")
    replicas: int = 0
    conditions: list[ConditionModel] = Field(default_factory=list)
    spec_fingerprint: str | None = Field(default=None, alias="specFingerprint")
    metadata_fingerprint: str | None = Field(default=None, alias="metadataFingerprint")


class KafkaClusterResource(KubeModel):
    """A KafkaCluster custom resource."""

    metadata: ObjectMeta
    spec: KafkaClusterSpecModel = Field(default_factory=KafkaClusterSpecModel)
    status: KafkaClusterStatusModel | None = None


class KafkaClusterList(KubeModel):
    items: list[KafkaClusterResource] = Field(default_factory=list)
