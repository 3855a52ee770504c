"""
Tests for status reporting.

These tests verify:
- The observedGeneration bump rule, including the Recreate label scenario
- Conditions are ordered most specific first with "Ready" last
- Committed generations never decrease and failed writes change nothing
- Aborted cycles are reported as Ready=False without failing themselves
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from rollout_core.context import ReconcileContext
from rollout_core.exceptions import TransientStoreError
from rollout_core.fingerprint import metadata_fingerprint, spec_fingerprint
from rollout_core.reconcile import ClusterReconciler
from rollout_core.simulation import SimulatedClusterStore
from rollout_core.spec import DeploymentStrategy, DesiredSpec, RoleSpec
from rollout_core.status import (
    READY,
    ROLLING_UPDATE,
    SCALING,
    StatusReporter,
    build_conditions,
    next_generation,
)
from rollout_core.types import (
    ReconcileOutcome,
    RoleOutcome,
    RollResult,
    RollState,
    ScaleResult,
)
from rollout_protocols import Condition, MemberId, Role, StatusRecord

CLUSTER = "my-cluster"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def cluster_spec(**kwargs) -> DesiredSpec:
    return DesiredSpec(
        name=CLUSTER,
        kafka=RoleSpec(replicas=3),
        zookeeper=RoleSpec(replicas=3),
        **kwargs,
    )


def role_outcome(
    role: Role,
    state: RollState = RollState.DONE,
    observed: int = 3,
    ready: int = 3,
    desired: int = 3,
    reason: str = "",
) -> RoleOutcome:
    return RoleOutcome(
        role=role,
        scale=ScaleResult(role=role, desired=desired),
        roll=RollResult(role=role, state=state, reason=reason),
        observed_count=observed,
        ready_count=ready,
    )


def outcome(*roles: RoleOutcome) -> ReconcileOutcome:
    if not roles:
        roles = (role_outcome(Role.ZOOKEEPER), role_outcome(Role.KAFKA))
    return ReconcileOutcome(cluster=CLUSTER, roles=list(roles))


class TestNextGeneration:
    """Tests for the bump rule."""

    def test_first_convergence_bumps(self):
        generation, spec_fp, meta_fp = next_generation(StatusRecord(), cluster_spec(), True)
        assert generation == 1
        assert spec_fp == spec_fingerprint(cluster_spec())
        assert meta_fp == metadata_fingerprint(cluster_spec())

    def test_not_converged_keeps_previous(self):
        previous = StatusRecord(observed_generation=4, spec_fingerprint="a", metadata_fingerprint="b")
        assert next_generation(previous, cluster_spec(), False) == (4, "a", "b")

    def test_unchanged_does_not_bump(self):
        spec = cluster_spec()
        generation, spec_fp, meta_fp = next_generation(StatusRecord(), spec, True)
        previous = StatusRecord(
            observed_generation=generation, spec_fingerprint=spec_fp, metadata_fingerprint=meta_fp
        )
        assert next_generation(previous, spec, True)[0] == 1

    def test_spec_change_bumps(self):
        spec = cluster_spec()
        previous = StatusRecord(
            observed_generation=3,
            spec_fingerprint=spec_fingerprint(spec),
            metadata_fingerprint=metadata_fingerprint(spec),
        )
        changed = replace(spec, kafka=RoleSpec(replicas=5))
        assert next_generation(previous, changed, True)[0] == 4

    @pytest.mark.parametrize(
        "strategy,expected",
        [(DeploymentStrategy.ROLLING_UPDATE, 2), (DeploymentStrategy.RECREATE, 1)],
    )
    def test_metadata_only_change(self, strategy, expected):
        spec = cluster_spec(labels={"team": "data"}, strategy=strategy)
        previous = StatusRecord(
            observed_generation=1,
            spec_fingerprint=spec_fingerprint(spec),
            metadata_fingerprint=metadata_fingerprint(spec),
        )
        relabelled = replace(spec, labels={"team": "platform"})
        generation, _, meta_fp = next_generation(previous, relabelled, True)
        assert generation == expected
        assert meta_fp == metadata_fingerprint(relabelled)


class TestBuildConditions:
    """Tests for condition construction."""

    def test_converged_has_only_ready(self):
        conditions = build_conditions(StatusRecord(), outcome(), NOW)
        assert [(c.type, c.status, c.reason) for c in conditions] == [(READY, "True", "Ready")]

    def test_stuck_roll(self):
        stuck = role_outcome(Role.KAFKA, RollState.STUCK, ready=2, reason="my-cluster-kafka-2 not ready after 300s")
        conditions = build_conditions(
            StatusRecord(), outcome(role_outcome(Role.ZOOKEEPER), stuck), NOW
        )
        assert [c.type for c in conditions] == [ROLLING_UPDATE, READY]
        assert conditions[0].reason == "Stuck"
        assert conditions[0].message == "kafka: my-cluster-kafka-2 not ready after 300s"
        assert conditions[-1].status == "False"
        assert conditions[-1].reason == "RollingUpdateStuck"

    def test_scaling_then_ready(self):
        scaling = role_outcome(Role.ZOOKEEPER, observed=2, ready=2, desired=3)
        conditions = build_conditions(
            StatusRecord(), outcome(scaling, role_outcome(Role.KAFKA)), NOW
        )
        assert [c.type for c in conditions] == [SCALING, READY]
        assert conditions[0].message == "zookeeper: 2 of 3 members"
        assert conditions[-1].reason == "Reconciling"

    def test_superseded_is_in_progress(self):
        result = outcome()
        result.superseded = True
        conditions = build_conditions(StatusRecord(), result, NOW)
        assert conditions[0].type == ROLLING_UPDATE
        assert conditions[0].reason == "InProgress"
        assert conditions[-1].type == READY

    def test_transition_time_kept_while_status_unchanged(self):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        previous = StatusRecord(conditions=(Condition(READY, "True", "Ready", "", earlier),))
        conditions = build_conditions(previous, outcome(), NOW)
        assert conditions[-1].last_transition_time == earlier

    def test_transition_time_moves_on_change(self):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        previous = StatusRecord(conditions=(Condition(READY, "False", "Reconciling", "", earlier),))
        conditions = build_conditions(previous, outcome(), NOW)
        assert conditions[-1].last_transition_time == NOW


class TestStatusReporter:
    """Tests for persisting status."""

    @pytest.mark.asyncio
    async def test_load_defaults_to_empty(self):
        reporter = StatusReporter(SimulatedClusterStore(CLUSTER), ReconcileContext(cluster=CLUSTER))
        assert await reporter.load() == StatusRecord()

    @pytest.mark.asyncio
    async def test_generation_never_decreases(self):
        store = SimulatedClusterStore(CLUSTER)
        reporter = StatusReporter(store, ReconcileContext(cluster=CLUSTER))
        await reporter.commit(StatusRecord(observed_generation=5))

        committed = await reporter.commit(StatusRecord(observed_generation=2))

        assert committed.observed_generation == 5
        assert store.status.observed_generation == 5

    @pytest.mark.asyncio
    async def test_failed_write_keeps_current(self):
        store = SimulatedClusterStore(CLUSTER)
        reporter = StatusReporter(store, ReconcileContext(cluster=CLUSTER))
        await reporter.commit(StatusRecord(observed_generation=1))

        store.fail_next("write_status")
        with pytest.raises(TransientStoreError):
            await reporter.commit(StatusRecord(observed_generation=2))

        assert reporter.current.observed_generation == 1
        assert store.status.observed_generation == 1

    @pytest.mark.asyncio
    async def test_next_record_reports_broker_count(self):
        reporter = StatusReporter(SimulatedClusterStore(CLUSTER), ReconcileContext(cluster=CLUSTER))
        await reporter.load()
        record = reporter.next_record(
            cluster_spec(),
            outcome(role_outcome(Role.ZOOKEEPER), role_outcome(Role.KAFKA, observed=3)),
            NOW,
        )
        assert record.replicas == 3
        assert record.observed_generation == 1
        assert record.conditions[-1].last_transition_time == NOW

    @pytest.mark.asyncio
    async def test_transient_failure_reported(self):
        store = SimulatedClusterStore(CLUSTER)
        reporter = StatusReporter(store, ReconcileContext(cluster=CLUSTER))
        await reporter.commit(
            StatusRecord(observed_generation=3, conditions=(Condition(READY, "True", "Ready"),))
        )

        await reporter.report_transient_failure(TransientStoreError("list_members", "HTTP 503"))

        ready = store.status.condition(READY)
        assert ready.status == "False"
        assert ready.reason == "TransientError"
        assert "HTTP 503" in ready.message
        assert store.status.observed_generation == 3

    @pytest.mark.asyncio
    async def test_transient_failure_before_load_keeps_generation(self):
        store = SimulatedClusterStore(CLUSTER)
        store.status = StatusRecord(observed_generation=5)
        reporter = StatusReporter(store, ReconcileContext(cluster=CLUSTER))

        await reporter.report_transient_failure(ValueError("bad pod"))

        assert store.status.observed_generation == 5
        assert store.status.condition(READY).status == "False"

    @pytest.mark.asyncio
    async def test_transient_failure_write_error_swallowed(self):
        store = SimulatedClusterStore(CLUSTER)
        reporter = StatusReporter(store, ReconcileContext(cluster=CLUSTER))
        store.fail_next("write_status")

        await reporter.report_transient_failure(TransientStoreError("list_members", "HTTP 503"))

        assert store.status is None


class TestGenerationScenarios:
    """observedGeneration across full reconcile cycles."""

    @pytest.mark.asyncio
    async def test_second_cycle_is_idempotent(self):
        store = SimulatedClusterStore(CLUSTER)
        reconciler = ClusterReconciler(store, ReconcileContext(cluster=CLUSTER))

        await reconciler.reconcile(cluster_spec())
        await reconciler.reconcile(cluster_spec())

        assert store.status.observed_generation == 1
        assert store.terminations == []
        assert store.status_writes == 2
        assert [c.type for c in store.status.conditions] == [READY]

    @pytest.mark.asyncio
    async def test_recreate_label_change_then_rolling_update(self):
        store = SimulatedClusterStore(CLUSTER)
        reconciler = ClusterReconciler(store, ReconcileContext(cluster=CLUSTER))
        spec = cluster_spec(labels={"team": "data"}, strategy=DeploymentStrategy.RECREATE)
        await reconciler.reconcile(spec)
        assert store.status.observed_generation == 1

        relabelled = replace(spec, labels={"team": "platform"})
        outcome = await reconciler.reconcile(relabelled)

        assert outcome.converged
        assert store.restart_count(MemberId(CLUSTER, Role.KAFKA, 0)) == 1
        assert store.restart_count(MemberId(CLUSTER, Role.ZOOKEEPER, 0)) == 1
        assert store.status.observed_generation == 1

        rolling = replace(
            relabelled,
            labels={"team": "platform", "tier": "gold"},
            strategy=DeploymentStrategy.ROLLING_UPDATE,
        )
        outcome = await reconciler.reconcile(rolling)

        assert outcome.converged
        assert store.status.observed_generation == 2
        assert store.max_unavailable[Role.ZOOKEEPER] == 3
