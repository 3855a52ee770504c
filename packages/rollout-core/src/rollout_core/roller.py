"""
Rolling update coordinator.

Restarts the members of one role that the ChangeClassifier flagged, one at
a time, without ever sacrificing quorum or availability:

    Idle -> Planning -> RestartingMember(i) -> AwaitingReady(i)
         -> (RestartingMember(i+1) | Done | Stuck | Superseded)

Per member:
1. Re-observe the role and ask the QuorumSafetyGate (skipped when the
   member already runs the current template revision, e.g. it was created
   by scale-up or recreated before a controller crash)
2. Request termination; the platform recreates it from the current template
3. Wait (bounded) for it to report ready
4. Record the desired digests on it

Digests are only recorded after step 3, so a crash at any point leaves the
member flagged for the next cycle. Under the Recreate strategy the members
flagged RequiresRecreate are terminated together instead, bypassing the
gate (the strategy accepts downtime).

A denied gate or a readiness timeout ends the role's roll as Stuck; the
next cycle re-plans from fresh observations. There is no force-skip.
"""

from rollout_core.context import ReconcileContext
from rollout_core.quorum import QuorumSafetyGate
from rollout_core.types import (
    DecisionKind,
    RollDecision,
    RollPlan,
    RollResult,
    RollState,
)
from rollout_protocols import (
    ClusterStateStoreProtocol,
    ContentHash,
    Member,
    MemberId,
    ObservedState,
)


def order_members(members: list[Member]) -> list[Member]:
    """
    Order members for restart.

    Not-ready members first (restarting them costs nothing), then by
    ordinal, with the coordination leader last so leadership moves once.
    """
    return sorted(members, key=lambda m: (m.leader, m.available, m.id.ordinal))


class RollingUpdateCoordinator:
    """
    Executes the rolling update of one role within one reconcile cycle.

    Attributes:
        store: State store of the cluster.
        gate: Quorum safety gate consulted before every rolling termination.
        ctx: Reconcile context (timeouts, logger, superseded event).

    Example:
        coordinator = RollingUpdateCoordinator(store, QuorumSafetyGate(), ctx)
        result = await coordinator.run(observed, decisions, hashes, revision)
        if result.state is RollState.STUCK:
            print(f"blocked on {result.stuck_member}: {result.reason}")
    """

    def __init__(
        self,
        store: ClusterStateStoreProtocol,
        gate: QuorumSafetyGate,
        ctx: ReconcileContext,
    ) -> None:
        self.store = store
        self.gate = gate
        self.ctx = ctx

    def plan(
        self, observed: ObservedState, decisions: dict[MemberId, RollDecision]
    ) -> RollPlan:
        """
        Compute the restart plan of a role.

        Args:
            observed: Current members of the role.
            decisions: Merged decision per member from the classifier.

        Returns:
            RollPlan with the members that need a restart, in restart order.
        """
        flagged = [
            m
            for m in observed.members
            if decisions.get(m.id, RollDecision()).requires_restart
        ]
        ordered = order_members(flagged)
        return RollPlan(
            role=observed.role,
            members=tuple(m.id for m in ordered),
            decisions={m.id: decisions[m.id] for m in ordered},
        )

    async def run(
        self,
        observed: ObservedState,
        decisions: dict[MemberId, RollDecision],
        desired: ContentHash,
        revision: str,
    ) -> RollResult:
        """
        Plan and execute the roll of one role.

        Args:
            observed: Members of the role at the start of the roll.
            decisions: Merged decision per member.
            desired: Digests to record on each member once it is ready.
            revision: Current template revision of the role.

        Returns:
            RollResult in state DONE, STUCK or SUPERSEDED.

        Raises:
            TransientStoreError: If a store operation fails. No digests are
                recorded for the member being restarted.
        """
        result = RollResult(role=observed.role)
        result.enter(RollState.PLANNING)
        plan = self.plan(observed, decisions)
        result.plan = plan

        await self._refresh_hashes(observed, decisions, desired)

        if plan.is_empty:
            result.enter(RollState.DONE)
            return result

        self.ctx.log.info(
            "%s roll planned: %s",
            plan.role.value,
            ", ".join(str(m) for m in plan.members),
        )

        recreate = [
            m
            for m in plan.members
            if plan.decisions[m].kind is DecisionKind.REQUIRES_RECREATE
        ]
        if recreate:
            if not await self._recreate(recreate, plan, desired, revision, result):
                return result

        for member_id in plan.members:
            if member_id in result.committed:
                continue
            if self.ctx.superseded.is_set():
                result.enter(RollState.SUPERSEDED)
                result.reason = "a newer desired spec arrived"
                self.ctx.log.info("%s roll superseded before %s", plan.role.value, member_id)
                return result
            if not await self._restart_one(member_id, plan, desired, revision, result):
                return result

        result.enter(RollState.DONE)
        self.ctx.log.info(
            "%s roll done: %d restarted, %d committed",
            plan.role.value,
            len(result.restarted),
            len(result.committed),
        )
        return result

    async def _restart_one(
        self,
        member_id: MemberId,
        plan: RollPlan,
        desired: ContentHash,
        revision: str,
        result: RollResult,
    ) -> bool:
        result.enter(RollState.RESTARTING_MEMBER)
        observed = await self.ctx.bounded(
            "list_members", self.store.list_members(member_id.role)
        )
        member = observed.get(member_id)
        if member is None:
            self.ctx.log.info("%s no longer exists, skipping", member_id)
            return True

        terminated = False
        if member.revision == revision:
            self.ctx.log.info(
                "%s already runs revision %s, awaiting ready", member_id, revision
            )
        else:
            verdict = self.gate.can_restart(member, observed)
            if not verdict:
                self._stuck(result, member_id, verdict.reason)
                return False
            self.ctx.log.info(
                "Restarting %s (%s; %s)", member_id, plan.decisions[member_id].reason, verdict.reason
            )
            await self.ctx.bounded(
                "request_termination", self.store.request_termination(member_id)
            )
            terminated = True

        return await self._await_and_commit(member_id, desired, result, terminated)

    async def _recreate(
        self,
        members: list[MemberId],
        plan: RollPlan,
        desired: ContentHash,
        revision: str,
        result: RollResult,
    ) -> bool:
        result.enter(RollState.RESTARTING_MEMBER)
        observed = await self.ctx.bounded(
            "list_members", self.store.list_members(plan.role)
        )
        terminated: set[MemberId] = set()
        for member_id in members:
            member = observed.get(member_id)
            if member is None or member.revision == revision:
                continue
            self.ctx.log.info("Recreating %s (%s)", member_id, plan.decisions[member_id].reason)
            await self.ctx.bounded(
                "request_termination", self.store.request_termination(member_id)
            )
            terminated.add(member_id)

        for member_id in members:
            if observed.get(member_id) is None:
                continue
            if not await self._await_and_commit(
                member_id, desired, result, member_id in terminated
            ):
                return False
        return True

    async def _await_and_commit(
        self,
        member_id: MemberId,
        desired: ContentHash,
        result: RollResult,
        terminated: bool,
    ) -> bool:
        result.enter(RollState.AWAITING_READY)
        timeout = self.ctx.ready_timeout
        if not await self.store.wait_ready(member_id, timeout):
            self._stuck(result, member_id, f"{member_id} not ready after {timeout:g}s")
            return False

        await self.ctx.bounded(
            "set_content_hash", self.store.set_content_hash(member_id, dict(desired))
        )
        if terminated:
            result.restarted.append(member_id)
        result.committed.append(member_id)
        return True

    async def _refresh_hashes(
        self,
        observed: ObservedState,
        decisions: dict[MemberId, RollDecision],
        desired: ContentHash,
    ) -> None:
        """Record desired digests on ready members whose changes need no restart."""
        for member in observed.members:
            decision = decisions.get(member.id, RollDecision())
            if decision.requires_restart or not member.available:
                continue
            if member.content_hash != desired:
                await self.ctx.bounded(
                    "set_content_hash",
                    self.store.set_content_hash(member.id, dict(desired)),
                )

    def _stuck(self, result: RollResult, member_id: MemberId, reason: str) -> None:
        result.enter(RollState.STUCK)
        result.stuck_member = member_id
        result.reason = reason
        self.ctx.log.warning("%s roll stuck at %s: %s", member_id.role.value, member_id, reason)
