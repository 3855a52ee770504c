"""
In-memory simulated cluster state store.

SimulatedClusterStore implements ClusterStateStoreProtocol without any
platform. It is deterministic: a terminated member is recreated from the
current template immediately, and becomes ready the first time someone
waits for it unless the schedulability hook rejects it, in which case it
stays pending until it is terminated again.

It records what happened so tests and the demo can assert on it:
restarts per member, terminations in order, the highest number of
simultaneously unavailable members per role, volumes, events and status
writes. Transient failures can be injected per operation.

Example:
    store = SimulatedClusterStore("my-cluster")
    ctx = ReconcileContext(cluster="my-cluster")
    await ClusterReconciler(store, ctx).reconcile(spec)
    store.restart_count(MemberId("my-cluster", Role.KAFKA, 0))  # 0
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Mapping

from rollout_core.exceptions import TransientStoreError
from rollout_protocols import (
    ContentHash,
    Member,
    MemberId,
    MemberTemplate,
    ObservedState,
    ReplicationUnit,
    Role,
    StatusRecord,
)

SchedulableHook = Callable[[MemberId, MemberTemplate | None], bool]


def _always_schedulable(member: MemberId, template: MemberTemplate | None) -> bool:
    return True


@dataclass
class SimulatedMember:
    """
    Mutable state of one simulated member.

    Attributes:
        id: Member identity.
        template: Template the running instance was created from.
        ready: Reports ready.
        pending: Created but not schedulable.
        content_hash: Digests recorded via set_content_hash().
    """

    id: MemberId
    template: MemberTemplate | None = None
    ready: bool = False
    pending: bool = False
    content_hash: ContentHash = field(default_factory=dict)

    def to_member(self, leader: bool = False) -> Member:
        return Member(
            id=self.id,
            ready=self.ready,
            content_hash=dict(self.content_hash),
            pending=self.pending,
            revision=self.template.revision if self.template else None,
            leader=leader,
        )


class SimulatedClusterStore:
    """
    Deterministic in-memory ClusterStateStoreProtocol implementation.

    Attributes:
        cluster: Name of the simulated cluster.
        schedulable: Hook deciding whether a member created from a template
            can be scheduled. Unschedulable members stay pending.
        leader_ordinal: Ordinal of the coordination leader, None for no
            leader.
        replication_units: Units reported for the data role.
    """

    def __init__(
        self,
        cluster: str,
        *,
        schedulable: SchedulableHook | None = None,
        leader_ordinal: int | None = 0,
        replication_units: tuple[ReplicationUnit, ...] = (),
    ) -> None:
        self.cluster = cluster
        self.schedulable = schedulable or _always_schedulable
        self.leader_ordinal = leader_ordinal
        self.replication_units = replication_units

        self.members: dict[Role, dict[int, SimulatedMember]] = {r: {} for r in Role}
        self.templates: dict[Role, MemberTemplate] = {}
        self.derived_config: dict[Role, dict[str, str]] = {}
        self.volumes: set[str] = set()
        self.status: StatusRecord | None = None
        self.status_writes = 0
        self.events: list[tuple[MemberId, str, str]] = []
        self.terminations: list[MemberId] = []
        self.restarts: Counter[MemberId] = Counter()
        self.max_unavailable: dict[Role, int] = {r: 0 for r in Role}
        self._failures: Counter[str] = Counter()

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next `times` calls of an operation raise TransientStoreError."""
        self._failures[operation] += times

    def restart_count(self, member: MemberId) -> int:
        return self.restarts[member]

    def tamper_derived_config(self, role: Role, key: str, value: str) -> None:
        """Edit a derived configuration object behind the controller's back."""
        self.derived_config.setdefault(role, {})[key] = value

    def set_ready(self, member: MemberId, ready: bool) -> None:
        """Flip a member's readiness (e.g. to simulate a crashed member)."""
        self.members[member.role][member.ordinal].ready = ready

    def _check(self, operation: str) -> None:
        if self._failures[operation] > 0:
            self._failures[operation] -= 1
            raise TransientStoreError(operation, "injected failure")

    def _get(self, member: MemberId) -> SimulatedMember:
        try:
            return self.members[member.role][member.ordinal]
        except KeyError:
            raise TransientStoreError("lookup", f"member {member} does not exist")

    def _volume_names(self, member: MemberId) -> list[str]:
        template = self.templates.get(member.role)
        aux = template.auxiliary_volumes if template else 0
        return [f"data-{member.name}"] + [
            f"data-{n}-{member.name}" for n in range(1, aux + 1)
        ]

    def _start(self, sim: SimulatedMember) -> None:
        sim.template = self.templates.get(sim.id.role)
        sim.ready = False
        sim.pending = not self.schedulable(sim.id, sim.template)

    # -------------------------------------------------------------------------
    # ClusterStateStoreProtocol
    # -------------------------------------------------------------------------

    async def list_members(self, role: Role) -> ObservedState:
        self._check("list_members")
        members = []
        for ordinal in sorted(self.members[role]):
            sim = self.members[role][ordinal]
            leader = (
                role.is_coordination
                and ordinal == self.leader_ordinal
                and sim.ready
            )
            members.append(sim.to_member(leader=leader))
        units = self.replication_units if role is Role.KAFKA else ()
        return ObservedState(role=role, members=tuple(members), replication_units=units)

    async def get_content_hash(self, member: MemberId) -> ContentHash:
        self._check("get_content_hash")
        return dict(self._get(member).content_hash)

    async def set_content_hash(self, member: MemberId, hashes: ContentHash) -> None:
        self._check("set_content_hash")
        self._get(member).content_hash = dict(hashes)

    async def request_termination(self, member: MemberId) -> None:
        self._check("request_termination")
        sim = self._get(member)
        role_members = self.members[member.role].values()
        unavailable = sum(1 for m in role_members if not m.ready or m.id == member)
        self.max_unavailable[member.role] = max(
            self.max_unavailable[member.role], unavailable
        )
        self.terminations.append(member)
        self.restarts[member] += 1
        self._start(sim)

    async def create_member(self, role: Role, ordinal: int) -> MemberId:
        self._check("create_member")
        member = MemberId(self.cluster, role, ordinal)
        sim = SimulatedMember(id=member)
        self._start(sim)
        self.members[role][ordinal] = sim
        self.volumes.update(self._volume_names(member))
        return member

    async def delete_member(self, role: Role, ordinal: int) -> None:
        self._check("delete_member")
        self.members[role].pop(ordinal, None)

    async def release_storage(self, role: Role, ordinal: int, *, keep_data: bool) -> None:
        self._check("release_storage")
        member = MemberId(self.cluster, role, ordinal)
        main, *auxiliary = self._volume_names(member)
        self.volumes.difference_update(auxiliary)
        if not keep_data:
            self.volumes.discard(main)

    async def wait_ready(self, member: MemberId, timeout: float) -> bool:
        self._check("wait_ready")
        sim = self.members[member.role].get(member.ordinal)
        if sim is None:
            return False
        if sim.pending and self.schedulable(member, sim.template):
            sim.pending = False
        if not sim.pending:
            sim.ready = True
        await asyncio.sleep(0)
        return sim.ready

    async def update_template(self, role: Role, template: MemberTemplate) -> None:
        self._check("update_template")
        self.templates[role] = template

    async def apply_derived_config(self, role: Role, data: Mapping[str, str]) -> None:
        self._check("apply_derived_config")
        self.derived_config[role] = dict(data)

    async def read_status(self) -> StatusRecord | None:
        self._check("read_status")
        return self.status

    async def write_status(self, record: StatusRecord) -> None:
        self._check("write_status")
        self.status = record
        self.status_writes += 1

    async def record_event(self, member: MemberId, reason: str, message: str) -> None:
        self._check("record_event")
        self.events.append((member, reason, message))
