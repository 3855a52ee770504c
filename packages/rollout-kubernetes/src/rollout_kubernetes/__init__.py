"""
Kubernetes backend for the Kafka rollout operator.

Provides the platform side of the rollout-protocols interfaces:
- KubernetesClusterStore: ClusterStateStoreProtocol over member pods,
  volume claims, config maps, events and the KafkaCluster status
- KafkaClusterSource: DesiredSpecSourceProtocol over KafkaCluster resources
- KubeClient: Thin httpx-based API client used by both
"""

from rollout_kubernetes.factory import create_kubernetes_backend
from rollout_kubernetes.kube_client import KubeClient
from rollout_kubernetes.source import KafkaClusterSource
from rollout_kubernetes.store import KubernetesClusterStore

__all__ = [
    "KafkaClusterSource",
    "KubeClient",
    "KubernetesClusterStore",
    "create_kubernetes_backend",
]
