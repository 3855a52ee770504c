"""
Kubernetes API client for the objects the operator owns.

This module provides the KubeClient class for the handful of API calls the
state store and the spec source need: pods, persistent volume claims,
config maps, events and the KafkaCluster custom resource with its status
subresource.

KubeClient receives an injected httpx.AsyncClient with base_url set to the
API server (and authentication configured). All methods are async and fail
loudly on HTTP errors, except where a status code is part of the normal
protocol (404 on a lookup or delete, 409 on a create that already exists).

API reference: https://kubernetes.io/docs/reference/kubernetes-api/
"""

from dataclasses import dataclass
from typing import Any

import httpx

from rollout_kubernetes.naming import API_GROUP, API_VERSION, PLURAL
from rollout_kubernetes.types import (
    ConfigMap,
    KafkaClusterList,
    KafkaClusterResource,
    Pod,
    PodList,
)

MERGE_PATCH = {"Content-Type": "application/merge-patch+json"}


@dataclass
class KubeClient:
    """
    Namespaced Kubernetes API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the API server.
        namespace: Namespace all calls are scoped to.

    Example:
        async with httpx.AsyncClient(base_url="https://kubernetes.default.svc") as http:
            client = KubeClient(http=http, namespace="kafka")
            pods = await client.list_pods("rollout.dev/cluster=my-cluster")
            for pod in pods:
                print(f"{pod.metadata.name}: ready={pod.ready}")
    """

    http: httpx.AsyncClient
    namespace: str = "default"

    @property
    def _core(self) -> str:
        return f"/api/v1/namespaces/{self.namespace}"

    @property
    def _custom(self) -> str:
        return f"/apis/{API_GROUP}/{API_VERSION}/namespaces/{self.namespace}/{PLURAL}"

    # -------------------------------------------------------------------------
    # Pods
    # -------------------------------------------------------------------------

    async def list_pods(self, label_selector: str) -> list[Pod]:
        """
        List pods matching a label selector.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx responses).
            pydantic.ValidationError: On malformed response data.
        """
        response = await self.http.get(
            f"{self._core}/pods", params={"labelSelector": label_selector}
        )
        response.raise_for_status()
        return PodList.model_validate(response.json()).items

    async def get_pod(self, name: str) -> Pod | None:
        """Get a pod by name, None if it does not exist."""
        response = await self.http.get(f"{self._core}/pods/{name}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return Pod.model_validate(response.json())

    async def create_pod(self, manifest: dict[str, Any]) -> bool:
        """
        Create a pod.

        Returns:
            True if created, False if a pod with that name already exists.
        """
        response = await self.http.post(f"{self._core}/pods", json=manifest)
        if response.status_code == 409:
            return False
        response.raise_for_status()
        return True

    async def delete_pod(self, name: str) -> bool:
        """Delete a pod. Returns False if it did not exist."""
        response = await self.http.delete(f"{self._core}/pods/{name}")
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    async def patch_pod_annotations(
        self, name: str, annotations: dict[str, str | None]
    ) -> None:
        """
        Merge-patch pod annotations. A None value removes the annotation.

        Raises:
            httpx.HTTPStatusError: On HTTP errors, including 404.
        """
        response = await self.http.patch(
            f"{self._core}/pods/{name}",
            json={"metadata": {"annotations": annotations}},
            headers=MERGE_PATCH,
        )
        response.raise_for_status()

    # -------------------------------------------------------------------------
    # Persistent volume claims
    # -------------------------------------------------------------------------

    async def create_pvc(self, manifest: dict[str, Any]) -> bool:
        """Create a claim. Returns False if it already exists (retained data)."""
        response = await self.http.post(
            f"{self._core}/persistentvolumeclaims", json=manifest
        )
        if response.status_code == 409:
            return False
        response.raise_for_status()
        return True

    async def delete_pvc(self, name: str) -> bool:
        """Delete a claim. Returns False if it did not exist."""
        response = await self.http.delete(f"{self._core}/persistentvolumeclaims/{name}")
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    # -------------------------------------------------------------------------
    # Config maps
    # -------------------------------------------------------------------------

    async def get_configmap(self, name: str) -> ConfigMap | None:
        """Get a config map by name, None if it does not exist."""
        response = await self.http.get(f"{self._core}/configmaps/{name}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return ConfigMap.model_validate(response.json())

    async def apply_configmap(
        self, name: str, data: dict[str, str], labels: dict[str, str]
    ) -> None:
        """
        Create or replace a config map's data.

        Replaces the data wholesale, so keys edited or added by anyone else
        are overwritten.
        """
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "labels": labels},
            "data": data,
        }
        response = await self.http.put(f"{self._core}/configmaps/{name}", json=body)
        if response.status_code == 404:
            response = await self.http.post(f"{self._core}/configmaps", json=body)
        response.raise_for_status()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def create_event(self, manifest: dict[str, Any]) -> None:
        response = await self.http.post(f"{self._core}/events", json=manifest)
        response.raise_for_status()

    # -------------------------------------------------------------------------
    # KafkaCluster custom resources
    # -------------------------------------------------------------------------

    async def list_kafka_clusters(self) -> list[KafkaClusterResource]:
        """
        List KafkaCluster resources in the namespace.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx responses).
            pydantic.ValidationError: On malformed resources.
        """
        response = await self.http.get(self._custom)
        response.raise_for_status()
        return KafkaClusterList.model_validate(response.json()).items

    async def get_kafka_cluster(self, name: str) -> KafkaClusterResource | None:
        response = await self.http.get(f"{self._custom}/{name}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return KafkaClusterResource.model_validate(response.json())

    async def patch_kafka_cluster_status(self, name: str, status: dict[str, Any]) -> None:
        """
        Merge-patch the status subresource of a KafkaCluster.

        Note:
            Lists are replaced by a merge patch, so the conditions list is
            always written whole.
        """
        response = await self.http.patch(
            f"{self._custom}/{name}/status",
            json={"status": status},
            headers=MERGE_PATCH,
        )
        response.raise_for_status()
