"""
Desired-spec source backed by KafkaCluster custom resources.

KafkaClusterSource implements DesiredSpecSourceProtocol: every poll lists
the KafkaCluster resources of the namespace and converts each into a
DesiredSpec. External logging and metrics configuration is resolved at read
time, so an edit to a referenced config map shows up as a content change of
the spec even though the resource itself did not change.

Metrics configuration is parsed as YAML, so edits that only change
formatting or key order do not roll the cluster.
"""

import logging
from typing import Any, Callable

import yaml

from rollout_core.spec import (
    ConfigRef,
    DeploymentStrategy,
    DesiredSpec,
    ExternalConfig,
    ProbeSpec,
    ResourceRequirements,
    RoleSpec,
    RoleTemplate,
    StoragePolicy,
)
from rollout_kubernetes.kube_client import KubeClient
from rollout_kubernetes.types import (
    ExternalConfigModel,
    KafkaClusterResource,
    ProbeModel,
    RoleModel,
)

logger = logging.getLogger(__name__)


def _probe(model: ProbeModel) -> ProbeSpec:
    return ProbeSpec(
        initial_delay_seconds=model.initial_delay_seconds,
        timeout_seconds=model.timeout_seconds,
        period_seconds=model.period_seconds,
        success_threshold=model.success_threshold,
        failure_threshold=model.failure_threshold,
    )


def parse_metrics(content: Any) -> Any:
    """Parse metrics exporter configuration text into a structure."""
    if isinstance(content, str):
        return yaml.safe_load(content)
    return content


class KafkaClusterSource:
    """
    Loads desired specs from KafkaCluster resources.

    Attributes:
        client: Namespaced Kubernetes API client.

    Example:
        source = KafkaClusterSource(KubeClient(http, "kafka"))
        for spec in await source.list_specs():
            print(spec.name, spec.kafka.replicas)
    """

    def __init__(self, client: KubeClient) -> None:
        self.client = client

    async def list_specs(self) -> list[DesiredSpec]:
        """
        Load every KafkaCluster of the namespace.

        Resources whose referenced configuration cannot be resolved, or
        with an unknown strategy or malformed metrics YAML, are skipped
        (and logged) for this poll; the others are still returned.

        Raises:
            httpx.HTTPStatusError: If listing the resources fails.
        """
        resources = await self.client.list_kafka_clusters()
        specs = []
        for resource in resources:
            try:
                specs.append(await self.to_spec(resource))
            except (LookupError, ValueError, yaml.YAMLError) as e:
                logger.warning(
                    "Skipping KafkaCluster %s: %s", resource.metadata.name, e
                )
        return specs

    async def to_spec(self, resource: KafkaClusterResource) -> DesiredSpec:
        """Convert a KafkaCluster resource into a DesiredSpec."""
        spec = resource.spec
        return DesiredSpec(
            name=resource.metadata.name,
            namespace=resource.metadata.namespace or self.client.namespace,
            generation=resource.metadata.generation,
            labels=dict(resource.metadata.labels),
            kafka=await self._role(spec.kafka),
            zookeeper=await self._role(spec.zookeeper),
            strategy=DeploymentStrategy(spec.strategy),
            satellites={k: dict(v) for k, v in spec.satellites.items()},
        )

    async def _role(self, model: RoleModel) -> RoleSpec:
        template = None
        if model.template is not None:
            t = model.template
            template = RoleTemplate(
                labels=dict(t.labels),
                annotations=dict(t.annotations),
                env=dict(t.env),
                readiness_probe=_probe(t.readiness_probe) if t.readiness_probe else None,
                liveness_probe=_probe(t.liveness_probe) if t.liveness_probe else None,
            )
        return RoleSpec(
            replicas=model.replicas,
            image=model.image,
            config=dict(model.config),
            resources=ResourceRequirements(
                requests=dict(model.resources.requests),
                limits=dict(model.resources.limits),
            ),
            readiness_probe=_probe(model.readiness_probe),
            liveness_probe=_probe(model.liveness_probe),
            jvm_options=dict(model.jvm_options),
            logging=await self._external(model.logging),
            metrics=await self._external(model.metrics, parse=parse_metrics),
            storage=StoragePolicy(
                size=model.storage.size,
                delete_claim=model.storage.delete_claim,
                auxiliary_volumes=model.storage.auxiliary_volumes,
                storage_class=model.storage.storage_class,
            ),
            template=template,
            extra=dict(model.model_extra or {}),
        )

    async def _external(
        self,
        model: ExternalConfigModel | None,
        parse: Callable[[Any], Any] | None = None,
    ) -> ExternalConfig | None:
        if model is None:
            return None

        if model.type == "external" and model.value_from is not None:
            ref = model.value_from.config_map_key_ref
            config_map = await self.client.get_configmap(ref.name)
            if config_map is None or ref.key not in config_map.data:
                raise LookupError(f"config map key {ref.name}/{ref.key} not found")
            content: Any = config_map.data[ref.key]
            if parse is not None:
                content = parse(content)
            return ExternalConfig(ref=ConfigRef(ref.name, ref.key), content=content)

        content = model.loggers if model.loggers is not None else model.content
        if parse is not None:
            content = parse(content)
        return ExternalConfig(content=content)
