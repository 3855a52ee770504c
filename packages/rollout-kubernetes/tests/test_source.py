"""
Tests for the KafkaCluster spec source.

These tests verify KafkaClusterSource:
- Converts KafkaCluster resources into DesiredSpecs
- Resolves external logging/metrics references from config maps
- Parses metrics YAML so formatting-only edits do not change the spec
- Skips resources that cannot be converted, keeping the others
"""

import pytest

from rollout_core.fingerprint import spec_fingerprint
from rollout_core.spec import ConfigRef, DeploymentStrategy, ProbeSpec
from rollout_kubernetes.source import KafkaClusterSource, parse_metrics
from rollout_protocols import DesiredSpecSourceProtocol


def cluster(name: str, spec: dict, labels: dict | None = None) -> dict:
    return {
        "metadata": {
            "name": name,
            "namespace": "kafka",
            "generation": 3,
            "labels": labels or {},
        },
        "spec": spec,
    }


FULL_SPEC = {
    "strategy": "RollingUpdate",
    "kafka": {
        "replicas": 3,
        "image": "quay.io/strimzi/kafka:0.41.0-kafka-3.7.0",
        "config": {"min.insync.replicas": 2, "auto.create.topics.enable": False},
        "resources": {"limits": {"memory": "8Gi"}},
        "readinessProbe": {"initialDelaySeconds": 30, "timeoutSeconds": 10},
        "jvmOptions": {"-Xmx": "4g"},
        "logging": {
            "type": "external",
            "valueFrom": {
                "configMapKeyRef": {"name": "kafka-logging", "key": "log4j.properties"}
            },
        },
        "metrics": {"type": "inline", "content": "lowercaseOutputName: true\nrules: []\n"},
        "storage": {"size": "100Gi", "deleteClaim": True, "auxiliaryVolumes": 1},
        "template": {"labels": {"tier": "brokers"}, "env": {"TZ": "UTC"}},
        "rack": {"topologyKey": "topology.kubernetes.io/zone"},
    },
    "zookeeper": {
        "replicas": 3,
        "logging": {"type": "inline", "loggers": {"zookeeper.root.logger": "INFO"}},
    },
    "satellites": {"mirror-producer": {"acks": "all"}},
}


@pytest.fixture
def source(client) -> KafkaClusterSource:
    return KafkaClusterSource(client)


class TestProtocolCompliance:
    def test_is_spec_source(self, source):
        assert isinstance(source, DesiredSpecSourceProtocol)


class TestListSpecs:
    """Tests for converting resources."""

    @pytest.mark.asyncio
    async def test_full_resource(self, api, source):
        api.configmaps["kafka-logging"] = {
            "metadata": {"name": "kafka-logging"},
            "data": {"log4j.properties": "log4j.rootLogger=INFO, stdout\n"},
        }
        api.clusters["my-cluster"] = cluster("my-cluster", FULL_SPEC, {"team": "data"})

        [spec] = await source.list_specs()

        assert spec.name == "my-cluster"
        assert spec.namespace == "kafka"
        assert spec.generation == 3
        assert spec.labels == {"team": "data"}
        assert spec.strategy is DeploymentStrategy.ROLLING_UPDATE
        assert spec.satellites == {"mirror-producer": {"acks": "all"}}

        kafka = spec.kafka
        assert kafka.replicas == 3
        assert kafka.min_in_sync_replicas == 2
        assert kafka.resources.limits == {"memory": "8Gi"}
        assert kafka.readiness_probe == ProbeSpec(initial_delay_seconds=30, timeout_seconds=10)
        assert kafka.liveness_probe == ProbeSpec()
        assert kafka.jvm_options == {"-Xmx": "4g"}
        assert kafka.logging.ref == ConfigRef("kafka-logging", "log4j.properties")
        assert kafka.logging.content == "log4j.rootLogger=INFO, stdout\n"
        assert kafka.metrics.content == {"lowercaseOutputName": True, "rules": []}
        assert kafka.storage.delete_claim is True
        assert kafka.storage.auxiliary_volumes == 1
        assert kafka.template.labels == {"tier": "brokers"}
        assert kafka.template.env == {"TZ": "UTC"}
        assert kafka.extra == {"rack": {"topologyKey": "topology.kubernetes.io/zone"}}

        assert spec.zookeeper.logging.ref is None
        assert spec.zookeeper.logging.content == {"zookeeper.root.logger": "INFO"}

    @pytest.mark.asyncio
    async def test_referenced_config_change_changes_spec(self, api, source):
        api.configmaps["kafka-logging"] = {
            "metadata": {"name": "kafka-logging"},
            "data": {"log4j.properties": "log4j.rootLogger=INFO\n"},
        }
        api.clusters["my-cluster"] = cluster("my-cluster", FULL_SPEC)
        [before] = await source.list_specs()

        api.configmaps["kafka-logging"]["data"]["log4j.properties"] = "log4j.rootLogger=DEBUG\n"
        [after] = await source.list_specs()

        assert spec_fingerprint(before) != spec_fingerprint(after)

    @pytest.mark.asyncio
    async def test_unresolvable_resource_skipped(self, api, source):
        api.clusters["broken"] = cluster("broken", FULL_SPEC)
        api.clusters["simple"] = cluster("simple", {"kafka": {"replicas": 1}})

        specs = await source.list_specs()

        assert [s.name for s in specs] == ["simple"]
        assert specs[0].zookeeper.replicas == 3

    @pytest.mark.asyncio
    async def test_unknown_strategy_skipped(self, api, source):
        api.clusters["odd"] = cluster("odd", {"strategy": "BlueGreen"})
        assert await source.list_specs() == []

    @pytest.mark.asyncio
    async def test_malformed_metrics_skipped(self, api, source):
        api.clusters["odd"] = cluster(
            "odd", {"kafka": {"metrics": {"type": "inline", "content": "rules: [\n"}}}
        )
        assert await source.list_specs() == []


class TestParseMetrics:
    """Tests for metrics parsing."""

    def test_formatting_does_not_matter(self):
        assert parse_metrics("a: 1\nb: [x, y]\n") == parse_metrics("b:\n  - x\n  - y\na: 1\n")

    def test_structures_pass_through(self):
        assert parse_metrics({"a": 1}) == {"a": 1}
        assert parse_metrics(None) is None
