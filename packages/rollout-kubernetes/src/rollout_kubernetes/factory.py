"""
Factory function for creating the Kubernetes backend.

This module provides a factory function for CLI integration, allowing the
rollout-core CLI to create the spec source and per-cluster stores without
direct imports from rollout-kubernetes.
"""

from pathlib import Path
from typing import Callable

import httpx

from rollout_core.config import OperatorSettings
from rollout_core.spec import DesiredSpec
from rollout_kubernetes.kube_client import KubeClient
from rollout_kubernetes.source import KafkaClusterSource
from rollout_kubernetes.store import KubernetesClusterStore


def create_kubernetes_backend(
    settings: OperatorSettings,
    http: httpx.AsyncClient | None = None,
) -> tuple[
    KafkaClusterSource,
    Callable[[DesiredSpec], KubernetesClusterStore],
    httpx.AsyncClient,
]:
    """
    Create a KafkaCluster source and a store factory sharing one HTTP client.

    Args:
        settings: Operator settings (API server, credentials, namespace).
        http: Optional pre-configured httpx client for the API server.
            If None, a new client is created with the service account
            token and CA bundle when they exist, and a 30s timeout.

    Returns:
        Tuple of (source, store_factory, http). The caller closes http.

    Example:
        source, store_factory, http = create_kubernetes_backend(settings)
        loop = ReconcileLoop(source, store_factory, settings)
        await loop.run()
    """
    if http is None:
        headers = {}
        token = Path(settings.token_path)
        if token.exists():
            headers["Authorization"] = f"Bearer {token.read_text().strip()}"

        ca = Path(settings.ca_path)
        verify: bool | str = str(ca) if settings.verify_tls and ca.exists() else settings.verify_tls

        http = httpx.AsyncClient(
            base_url=settings.api_server,
            headers=headers,
            verify=verify,
            timeout=settings.operation_timeout_seconds,
        )

    client = KubeClient(http=http, namespace=settings.namespace)
    source = KafkaClusterSource(client)

    def store_factory(spec: DesiredSpec) -> KubernetesClusterStore:
        namespaced = client
        if spec.namespace != client.namespace:
            namespaced = KubeClient(http=http, namespace=spec.namespace)
        return KubernetesClusterStore(
            namespaced, spec.name, poll_interval=settings.ready_poll_seconds
        )

    return source, store_factory, http
