"""
Shared fixtures for the Kubernetes backend tests.

FakeApiServer is an httpx transport that keeps pods, volume claims, config
maps, events and KafkaCluster resources in memory and answers the subset of
the Kubernetes API that KubeClient uses (GET/POST/PUT/DELETE and JSON merge
patch).
"""

import json

import httpx
import pytest
from httpx import Request, Response

from rollout_kubernetes.kube_client import KubeClient

NAMESPACE = "kafka"

READY_STATUS = {
    "phase": "Running",
    "conditions": [{"type": "Ready", "status": "True"}],
}


def merge_patch(target: dict, patch: dict) -> None:
    """Apply an RFC 7386 JSON merge patch in place."""
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_patch(target[key], value)
        else:
            target[key] = value


def matches(obj: dict, selector: str | None) -> bool:
    if not selector:
        return True
    labels = obj.get("metadata", {}).get("labels", {})
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeApiServer(httpx.AsyncBaseTransport):
    """In-memory Kubernetes API server."""

    def __init__(self):
        self.pods: dict[str, dict] = {}
        self.pvcs: dict[str, dict] = {}
        self.configmaps: dict[str, dict] = {}
        self.clusters: dict[str, dict] = {}
        self.events: list[dict] = []
        self.requests: list[tuple[str, str]] = []
        self.fail_status: int | None = None
        self.auto_ready = False

    def mark_ready(self, name: str) -> None:
        self.pods[name]["status"] = dict(READY_STATUS)

    async def handle_async_request(self, request: Request) -> Response:
        self.requests.append((request.method, request.url.path))
        if self.fail_status is not None:
            return Response(status_code=self.fail_status, request=request)

        parts = request.url.path.strip("/").split("/")
        if parts[0] == "api":
            kind = parts[4]
            name = parts[5] if len(parts) > 5 else None
            if kind == "events":
                self.events.append(json.loads(request.content))
                return Response(status_code=201, json={}, request=request)
            objects = {
                "pods": self.pods,
                "persistentvolumeclaims": self.pvcs,
                "configmaps": self.configmaps,
            }[kind]
        else:
            kind = parts[5]
            name = parts[6] if len(parts) > 6 else None
            objects = self.clusters

        if request.method == "GET":
            if name is None:
                selector = request.url.params.get("labelSelector")
                items = [o for o in objects.values() if matches(o, selector)]
                return Response(status_code=200, json={"items": items}, request=request)
            if name not in objects:
                return Response(status_code=404, request=request)
            return Response(status_code=200, json=objects[name], request=request)

        if request.method == "POST":
            body = json.loads(request.content)
            new_name = body["metadata"]["name"]
            if new_name in objects:
                return Response(status_code=409, request=request)
            if kind == "pods" and self.auto_ready:
                body["status"] = dict(READY_STATUS)
            objects[new_name] = body
            return Response(status_code=201, json=body, request=request)

        if name not in objects:
            return Response(status_code=404, request=request)

        if request.method == "PUT":
            objects[name] = json.loads(request.content)
            return Response(status_code=200, json=objects[name], request=request)
        if request.method == "DELETE":
            objects.pop(name)
            return Response(status_code=200, json={}, request=request)
        if request.method == "PATCH":
            merge_patch(objects[name], json.loads(request.content))
            return Response(status_code=200, json=objects[name], request=request)

        return Response(status_code=405, request=request)


@pytest.fixture
def api() -> FakeApiServer:
    return FakeApiServer()


@pytest.fixture
def client(api: FakeApiServer) -> KubeClient:
    http = httpx.AsyncClient(transport=api, base_url="https://kube.test")
    return KubeClient(http=http, namespace=NAMESPACE)
