"""
Single-cycle reconciliation of one cluster.

One call to ClusterReconciler.reconcile() runs a full cycle:

1. Merge role templates into the effective spec
2. For each role (coordination first, then data):
   a. Publish the member template and the derived configuration object
   b. Reconcile the member count (ScaleManager)
   c. Classify changes per member (ChangeClassifier)
   d. Roll the flagged members (RollingUpdateCoordinator + QuorumSafetyGate)
3. Compute and persist the status (StatusReporter)

A stuck role does not stop the other role. A transient store failure aborts
the whole cycle with ReconcileAbortedError; the caller retries it from
scratch, which is safe because every step re-observes before acting.
"""

from rollout_core.classifier import ChangeClassifier
from rollout_core.context import ReconcileContext
from rollout_core.exceptions import ReconcileAbortedError, TransientStoreError
from rollout_core.merge import effective_spec
from rollout_core.quorum import QuorumSafetyGate
from rollout_core.roller import RollingUpdateCoordinator
from rollout_core.scale import ScaleManager
from rollout_core.spec import DesiredSpec
from rollout_core.status import StatusReporter
from rollout_core.templates import build_template, derived_config_data
from rollout_core.types import ReconcileOutcome, RoleOutcome, RollState
from rollout_protocols import ClusterStateStoreProtocol, Role

# Coordination first: brokers depend on a healthy ensemble
ROLE_ORDER = (Role.ZOOKEEPER, Role.KAFKA)


class ClusterReconciler:
    """
    Runs reconcile cycles for one cluster.

    Holds the cluster's store, context and status reporter across cycles;
    everything else is rebuilt from fresh observations each cycle.

    Example:
        ctx = ReconcileContext(cluster="my-cluster")
        reconciler = ClusterReconciler(store, ctx)
        outcome = await reconciler.reconcile(spec)
        print(outcome.converged, reconciler.reporter.current)
    """

    def __init__(
        self,
        store: ClusterStateStoreProtocol,
        ctx: ReconcileContext,
        reporter: StatusReporter | None = None,
    ) -> None:
        self.store = store
        self.ctx = ctx
        self.reporter = reporter or StatusReporter(store, ctx)
        self.scaler = ScaleManager(store, ctx)

    async def reconcile(self, spec: DesiredSpec) -> ReconcileOutcome:
        """
        Run one reconcile cycle.

        Args:
            spec: Desired spec as loaded from the source.

        Returns:
            ReconcileOutcome of the cycle (also reflected in the status).

        Raises:
            ReconcileAbortedError: On any transient store failure.
        """
        try:
            return await self._reconcile(spec)
        except TransientStoreError as e:
            self.ctx.log.warning("Cycle aborted: %s", e)
            raise ReconcileAbortedError(self.ctx.cluster, e) from e

    async def _reconcile(self, spec: DesiredSpec) -> ReconcileOutcome:
        if self.reporter.current is None:
            await self.reporter.load()

        effective = effective_spec(spec)
        classifier = ChangeClassifier(spec.strategy)
        outcome = ReconcileOutcome(cluster=spec.name)

        for role in ROLE_ORDER:
            if self.ctx.superseded.is_set():
                outcome.superseded = True
                break
            outcome.roles.append(await self._reconcile_role(effective, role, classifier))

        if any(r.roll.state is RollState.SUPERSEDED for r in outcome.roles):
            outcome.superseded = True

        record = self.reporter.next_record(spec, outcome)
        await self.reporter.commit(record)
        self.ctx.log.info(
            "Cycle complete: converged=%s observedGeneration=%d",
            outcome.converged,
            record.observed_generation,
        )
        return outcome

    async def _reconcile_role(
        self, spec: DesiredSpec, role: Role, classifier: ChangeClassifier
    ) -> RoleOutcome:
        role_spec = spec.role(role)
        template = build_template(spec, role)

        await self.ctx.bounded("update_template", self.store.update_template(role, template))
        await self.ctx.bounded(
            "apply_derived_config",
            self.store.apply_derived_config(role, derived_config_data(spec, role)),
        )

        observed = await self.ctx.bounded(
            "list_members", self.store.list_members(role)
        )
        scale = await self.scaler.reconcile_replicas(
            role,
            role_spec.replicas,
            observed,
            delete_claim=role_spec.storage.delete_claim,
        )
        if scale.changed:
            observed = await self.ctx.bounded(
                "list_members", self.store.list_members(role)
            )

        decisions = classifier.classify(observed, template.content_hash)
        coordinator = RollingUpdateCoordinator(
            self.store,
            QuorumSafetyGate(role_spec.min_in_sync_replicas),
            self.ctx,
        )
        roll = await coordinator.run(
            observed, decisions, template.content_hash, template.revision
        )

        final = await self.ctx.bounded(
            "list_members", self.store.list_members(role)
        )
        return RoleOutcome(
            role=role,
            scale=scale,
            roll=roll,
            observed_count=len(final.members),
            ready_count=final.ready_count,
        )
