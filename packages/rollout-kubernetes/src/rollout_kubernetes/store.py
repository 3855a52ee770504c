"""
Kubernetes-backed cluster state store.

KubernetesClusterStore implements ClusterStateStoreProtocol for one
KafkaCluster resource by managing member pods directly (no StatefulSet):

- Members are the pods labelled with the cluster and role. Readiness,
  pending and terminating state come from the pod status.
- Content digests and the template revision live in pod annotations.
- Role templates are kept in memory; the reconciler publishes them at the
  start of every cycle, before any pod is (re)created.
- A terminated member is recreated from the current template once its old
  pod is gone. Recreation happens while waiting for the member to become
  ready. The recreated pod carries the digests of the old one until the
  coordinator records the new digests.

Every httpx error is translated into TransientStoreError, so any API
failure aborts the reconcile cycle and is retried.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Mapping, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from rollout_core.exceptions import TransientStoreError
from rollout_kubernetes.kube_client import KubeClient
from rollout_kubernetes.manifests import event_manifest, pod_manifest, pvc_manifest
from rollout_kubernetes.naming import (
    ANNOTATION_REVISION,
    LABEL_LEADER,
    auxiliary_volume_names,
    data_volume_name,
    hash_annotations,
    hashes_from_annotations,
    member_labels,
    parse_ordinal,
    selector,
)
from rollout_kubernetes.types import ConditionModel, Pod
from rollout_protocols import (
    Condition,
    ContentHash,
    Member,
    MemberId,
    MemberTemplate,
    ObservedState,
    Role,
    StatusRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def translate(operation: str, aw: Awaitable[T]) -> T:
    """
    Await an API call, translating httpx failures into TransientStoreError.

    Args:
        operation: Store operation name for the error.
        aw: The API call.
    """
    try:
        return await aw
    except httpx.HTTPStatusError as e:
        raise TransientStoreError(
            operation,
            f"HTTP {e.response.status_code} from {e.request.method} {e.request.url.path}",
        ) from e
    except httpx.TransportError as e:
        raise TransientStoreError(operation, f"{type(e).__name__}: {e}") from e


_TIMESTAMP = TypeAdapter(datetime)


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an RFC 3339 timestamp (fractional seconds and offsets allowed).

    Timestamps without an offset are taken as UTC and the result is
    normalized to UTC. An unparsable value is logged and treated as unknown.
    """
    if not value:
        return None
    try:
        when = _TIMESTAMP.validate_python(value)
    except ValidationError:
        logger.warning("Ignoring unparsable timestamp %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _condition_from_model(model: ConditionModel) -> Condition:
    when = parse_timestamp(model.last_transition_time)
    return Condition(
        type=model.type,
        status=model.status,
        reason=model.reason,
        message=model.message,
        last_transition_time=when,
    )


class KubernetesClusterStore:
    """
    ClusterStateStoreProtocol implementation for one KafkaCluster.

    Attributes:
        client: Namespaced Kubernetes API client.
        cluster: Name of the KafkaCluster resource.
        poll_interval: Seconds between readiness polls in wait_ready().

    Example:
        store = KubernetesClusterStore(KubeClient(http, "kafka"), "my-cluster")
        observed = await store.list_members(Role.ZOOKEEPER)
    """

    def __init__(
        self, client: KubeClient, cluster: str, poll_interval: float = 2.0
    ) -> None:
        self.client = client
        self.cluster = cluster
        self.poll_interval = poll_interval
        self._templates: dict[Role, MemberTemplate] = {}
        # Members deleted for a restart, with the digests to carry over
        self._recreating: dict[MemberId, ContentHash] = {}

    @property
    def namespace(self) -> str:
        return self.client.namespace

    def _member_from_pod(self, role: Role, pod: Pod) -> Member | None:
        ordinal = parse_ordinal(pod.metadata.name)
        if ordinal is None:
            return None
        annotations = pod.metadata.annotations
        return Member(
            id=MemberId(self.cluster, role, ordinal),
            ready=pod.ready,
            content_hash=hashes_from_annotations(annotations),
            pending=pod.pending,
            terminating=pod.terminating,
            revision=annotations.get(ANNOTATION_REVISION),
            leader=pod.metadata.labels.get(LABEL_LEADER) == "true",
        )

    async def list_members(self, role: Role) -> ObservedState:
        pods = await translate(
            "list_members", self.client.list_pods(selector(self.cluster, role))
        )
        members = {}
        for pod in pods:
            member = self._member_from_pod(role, pod)
            if member is not None:
                members[member.id] = member

        # Deleted for a restart and not yet recreated: still a member
        for member_id, hashes in self._recreating.items():
            if member_id.role is role and member_id not in members:
                members[member_id] = Member(
                    id=member_id, ready=False, content_hash=dict(hashes), pending=True
                )

        ordered = tuple(members[k] for k in sorted(members))
        return ObservedState(role=role, members=ordered)

    async def get_content_hash(self, member: MemberId) -> ContentHash:
        pod = await translate("get_content_hash", self.client.get_pod(member.name))
        if pod is None:
            return dict(self._recreating.get(member, {}))
        return hashes_from_annotations(pod.metadata.annotations)

    async def set_content_hash(self, member: MemberId, hashes: ContentHash) -> None:
        current = await self.get_content_hash(member)
        patch: dict[str, str | None] = dict(hash_annotations(hashes))
        for stale in hash_annotations({k: "" for k in current if k not in hashes}):
            patch[stale] = None
        await translate(
            "set_content_hash",
            self.client.patch_pod_annotations(member.name, patch),
        )

    async def request_termination(self, member: MemberId) -> None:
        hashes = await self.get_content_hash(member)
        self._recreating[member] = hashes
        await translate("request_termination", self.client.delete_pod(member.name))
        logger.info("Deleted pod %s for restart", member.name)

    def _template(self, role: Role) -> MemberTemplate:
        template = self._templates.get(role)
        if template is None:
            raise TransientStoreError(
                "create_member", f"no template published for role {role.value}"
            )
        return template

    async def _create_pod(self, member: MemberId, hashes: ContentHash) -> bool:
        template = self._template(member.role)
        manifest = pod_manifest(member, template, self.namespace, hashes)
        return await translate("create_member", self.client.create_pod(manifest))

    async def create_member(self, role: Role, ordinal: int) -> MemberId:
        member = MemberId(self.cluster, role, ordinal)
        template = self._template(role)
        claims = [data_volume_name(member)] + auxiliary_volume_names(
            member, template.auxiliary_volumes
        )
        for claim in claims:
            created = await translate(
                "create_member",
                self.client.create_pvc(pvc_manifest(claim, member, template, self.namespace)),
            )
            if not created:
                logger.info("Reusing retained volume claim %s", claim)
        await self._create_pod(member, {})
        return member

    async def delete_member(self, role: Role, ordinal: int) -> None:
        member = MemberId(self.cluster, role, ordinal)
        self._recreating.pop(member, None)
        await translate("delete_member", self.client.delete_pod(member.name))

    async def release_storage(self, role: Role, ordinal: int, *, keep_data: bool) -> None:
        member = MemberId(self.cluster, role, ordinal)
        template = self._templates.get(role)
        aux = template.auxiliary_volumes if template else 0
        claims = auxiliary_volume_names(member, aux)
        if not keep_data:
            claims.insert(0, data_volume_name(member))
        for claim in claims:
            await translate("release_storage", self.client.delete_pvc(claim))

    async def wait_ready(self, member: MemberId, timeout: float) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            pod = await translate("wait_ready", self.client.get_pod(member.name))
            if pod is None and member in self._recreating:
                if await self._create_pod(member, self._recreating[member]):
                    self._recreating.pop(member)
            elif pod is not None and pod.ready and not pod.terminating:
                return True

            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(self.poll_interval, remaining))

    async def update_template(self, role: Role, template: MemberTemplate) -> None:
        self._templates[role] = template

    async def apply_derived_config(self, role: Role, data: Mapping[str, str]) -> None:
        template = self._templates.get(role)
        name = template.config_name if template else f"{self.cluster}-{role.value}-config"
        await translate(
            "apply_derived_config",
            self.client.apply_configmap(name, dict(data), member_labels(self.cluster, role)),
        )

    async def read_status(self) -> StatusRecord | None:
        resource = await translate(
            "read_status", self.client.get_kafka_cluster(self.cluster)
        )
        if resource is None or resource.status is None:
            return None
        status = resource.status
        return StatusRecord(
            observed_generation=status.observed_generation,
            replicas=status.replicas,
            conditions=tuple(_condition_from_model(c) for c in status.conditions),
            spec_fingerprint=status.spec_fingerprint,
            metadata_fingerprint=status.metadata_fingerprint,
        )

    async def write_status(self, record: StatusRecord) -> None:
        await translate(
            "write_status",
            self.client.patch_kafka_cluster_status(self.cluster, record.to_dict()),
        )

    async def record_event(self, member: MemberId, reason: str, message: str) -> None:
        await translate(
            "record_event",
            self.client.create_event(
                event_manifest(member, reason, message, self.namespace)
            ),
        )
