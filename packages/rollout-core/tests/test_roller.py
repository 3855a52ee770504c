"""
Tests for the rolling update coordinator.

These tests drive full reconcile cycles against SimulatedClusterStore and
verify that rolling updates:
- Never take two members of a three-member ensemble down at once
- Restart the ensemble leader last
- Stop at an unschedulable member without restarting the others again
- Stop between members when a newer desired spec arrives
- Record content digests only after a member is confirmed ready
"""

from dataclasses import replace

import pytest

from rollout_core.context import ReconcileContext
from rollout_core.exceptions import ReconcileAbortedError
from rollout_core.quorum import QuorumSafetyGate
from rollout_core.reconcile import ClusterReconciler
from rollout_core.roller import RollingUpdateCoordinator, order_members
from rollout_core.simulation import SimulatedClusterStore
from rollout_core.spec import DesiredSpec, ProbeSpec, ResourceRequirements, RoleSpec
from rollout_core.types import DecisionKind, RollDecision, RollState
from rollout_protocols import Member, MemberId, ObservedState, Role

CLUSTER = "my-cluster"


def kafka(ordinal: int) -> MemberId:
    return MemberId(CLUSTER, Role.KAFKA, ordinal)


def zookeeper(ordinal: int) -> MemberId:
    return MemberId(CLUSTER, Role.ZOOKEEPER, ordinal)


def cluster_spec() -> DesiredSpec:
    return DesiredSpec(
        name=CLUSTER,
        kafka=RoleSpec(replicas=3, config={"min.insync.replicas": 2}),
        zookeeper=RoleSpec(replicas=3),
    )


class ObservingStore(SimulatedClusterStore):
    """Simulated store calling a hook every time a member reports ready."""

    def __init__(self, cluster: str, **kwargs):
        super().__init__(cluster, **kwargs)
        self.on_ready = None

    async def wait_ready(self, member: MemberId, timeout: float) -> bool:
        ready = await super().wait_ready(member, timeout)
        if ready and self.on_ready is not None:
            self.on_ready(member)
        return ready


async def bootstrap(store: SimulatedClusterStore, spec: DesiredSpec) -> ClusterReconciler:
    reconciler = ClusterReconciler(store, ReconcileContext(cluster=CLUSTER))
    outcome = await reconciler.reconcile(spec)
    assert outcome.converged
    return reconciler


class TestOrdering:
    """Tests for restart ordering."""

    def test_not_ready_first_leader_last(self):
        ordered = order_members(
            [
                Member(id=zookeeper(0), ready=True, leader=True),
                Member(id=zookeeper(1), ready=True),
                Member(id=zookeeper(2), ready=False),
            ]
        )
        assert [m.id.ordinal for m in ordered] == [2, 1, 0]

    def test_plan_only_contains_flagged_members(self):
        observed = ObservedState(
            role=Role.KAFKA,
            members=tuple(Member(id=kafka(i), ready=True) for i in range(3)),
        )
        decisions = {
            kafka(0): RollDecision(),
            kafka(1): RollDecision(DecisionKind.REQUIRES_ROLLING_RESTART, "kafka config changed"),
            kafka(2): RollDecision(DecisionKind.REQUIRES_ROLLING_RESTART, "kafka config changed"),
        }
        coordinator = RollingUpdateCoordinator(
            SimulatedClusterStore(CLUSTER), QuorumSafetyGate(), ReconcileContext(cluster=CLUSTER)
        )
        plan = coordinator.plan(observed, decisions)
        assert plan.members == (kafka(1), kafka(2))
        assert len(plan) == 2
        assert not plan.is_empty


class TestRollingUpdate:
    """End-to-end rolling updates on the simulated store."""

    @pytest.mark.asyncio
    async def test_bootstrap_restarts_nothing(self):
        store = SimulatedClusterStore(CLUSTER)
        await bootstrap(store, cluster_spec())

        assert store.terminations == []
        assert len(store.members[Role.KAFKA]) == 3
        assert len(store.members[Role.ZOOKEEPER]) == 3

    @pytest.mark.asyncio
    async def test_ensemble_never_loses_two_members(self):
        store = SimulatedClusterStore(CLUSTER)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)

        changed = replace(spec, zookeeper=RoleSpec(replicas=3, config={"tickTime": 3000}))
        outcome = await reconciler.reconcile(changed)

        assert outcome.converged
        assert store.max_unavailable[Role.ZOOKEEPER] == 1
        assert sorted(outcome.role(Role.ZOOKEEPER).roll.restarted) == [
            zookeeper(0),
            zookeeper(1),
            zookeeper(2),
        ]

    @pytest.mark.asyncio
    async def test_leader_restarted_last(self):
        store = SimulatedClusterStore(CLUSTER, leader_ordinal=1)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)

        changed = replace(spec, zookeeper=RoleSpec(replicas=3, jvm_options={"-Xmx": "1g"}))
        await reconciler.reconcile(changed)

        assert store.terminations == [zookeeper(0), zookeeper(2), zookeeper(1)]

    @pytest.mark.asyncio
    async def test_each_broker_restarted_once(self):
        store = SimulatedClusterStore(CLUSTER)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)

        changed = replace(
            spec,
            kafka=replace(spec.kafka, readiness_probe=ProbeSpec(initial_delay_seconds=30)),
        )
        outcome = await reconciler.reconcile(changed)

        assert outcome.converged
        assert [store.restart_count(kafka(i)) for i in range(3)] == [1, 1, 1]
        assert [store.restart_count(zookeeper(i)) for i in range(3)] == [0, 0, 0]
        assert store.max_unavailable[Role.KAFKA] == 1

        roll = outcome.role(Role.KAFKA).roll
        assert roll.transitions[0] is RollState.PLANNING
        assert roll.transitions[-1] is RollState.DONE
        assert roll.transitions.count(RollState.AWAITING_READY) == 3


class TestUnschedulableMember:
    """A resource change one broker cannot be scheduled with."""

    @staticmethod
    def schedulable(member: MemberId, template) -> bool:
        huge = template is not None and template.resources.get("limits", {}).get(
            "memory"
        ) == "512Gi"
        return not (huge and member.role is Role.KAFKA and member.ordinal == 2)

    @pytest.mark.asyncio
    async def test_two_restart_third_stuck_without_restart_loop(self):
        store = SimulatedClusterStore(CLUSTER, schedulable=self.schedulable)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)

        raised = replace(
            spec,
            kafka=replace(spec.kafka, resources=ResourceRequirements(limits={"memory": "512Gi"})),
        )
        outcome = await reconciler.reconcile(raised)

        roll = outcome.role(Role.KAFKA).roll
        assert roll.state is RollState.STUCK
        assert roll.stuck_member == kafka(2)
        assert roll.restarted == [kafka(0), kafka(1)]
        assert store.members[Role.KAFKA][2].pending
        assert not outcome.converged

        # Next cycle: the two healthy brokers are left alone
        outcome = await reconciler.reconcile(raised)
        assert outcome.role(Role.KAFKA).roll.state is RollState.STUCK
        assert [store.restart_count(kafka(i)) for i in range(3)] == [1, 1, 1]
        assert reconciler.reporter.current.observed_generation == 1
        assert reconciler.reporter.current.condition("Ready").reason == "RollingUpdateStuck"

    @pytest.mark.asyncio
    async def test_recovers_after_fix(self):
        store = SimulatedClusterStore(CLUSTER, schedulable=self.schedulable)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)

        raised = replace(
            spec,
            kafka=replace(spec.kafka, resources=ResourceRequirements(limits={"memory": "512Gi"})),
        )
        await reconciler.reconcile(raised)

        fixed = replace(
            spec,
            kafka=replace(spec.kafka, resources=ResourceRequirements(limits={"memory": "16Gi"})),
        )
        outcome = await reconciler.reconcile(fixed)

        assert outcome.converged
        # The pending broker goes first, it costs no availability
        assert store.terminations[-3:] == [kafka(2), kafka(0), kafka(1)]
        assert reconciler.reporter.current.observed_generation == 2
        assert reconciler.reporter.current.condition("Ready").status == "True"


class TestSupersede:
    """A newer desired spec arriving mid-roll."""

    @pytest.mark.asyncio
    async def test_roll_stops_between_members(self):
        store = ObservingStore(CLUSTER)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)
        ctx = reconciler.ctx
        store.on_ready = lambda member: ctx.superseded.set()

        changed = replace(
            spec,
            kafka=replace(spec.kafka, readiness_probe=ProbeSpec(initial_delay_seconds=30)),
        )
        outcome = await reconciler.reconcile(changed)

        assert outcome.superseded
        assert not outcome.converged
        assert outcome.role(Role.KAFKA).roll.state is RollState.SUPERSEDED
        assert outcome.restarted == [kafka(0)]
        assert reconciler.reporter.current.observed_generation == 1
        assert reconciler.reporter.current.condition("RollingUpdate").reason == "InProgress"

        # The next cycle picks up where the superseded one stopped
        store.on_ready = None
        ctx.superseded.clear()
        outcome = await reconciler.reconcile(changed)
        assert outcome.converged
        assert outcome.restarted == [kafka(1), kafka(2)]
        assert store.restart_count(kafka(0)) == 1


class TestTransientFailure:
    """Store failures in the middle of a roll."""

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_old_digests(self):
        store = SimulatedClusterStore(CLUSTER)
        spec = cluster_spec()
        reconciler = await bootstrap(store, spec)
        old_hash = dict(store.members[Role.KAFKA][0].content_hash)

        changed = replace(
            spec,
            kafka=replace(spec.kafka, readiness_probe=ProbeSpec(initial_delay_seconds=30)),
        )
        store.fail_next("set_content_hash")
        with pytest.raises(ReconcileAbortedError) as exc_info:
            await reconciler.reconcile(changed)

        assert exc_info.value.cause.operation == "set_content_hash"
        assert store.members[Role.KAFKA][0].content_hash == old_hash
        assert store.restart_count(kafka(0)) == 1

        # The retried cycle commits the already recreated member without a second restart
        outcome = await reconciler.reconcile(changed)
        assert outcome.converged
        assert [store.restart_count(kafka(i)) for i in range(3)] == [1, 1, 1]
        assert outcome.restarted == [kafka(1), kafka(2)]
