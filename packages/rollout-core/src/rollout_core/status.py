"""
Status reporting.

StatusReporter owns the status subresource of one cluster: it is the only
place observedGeneration is computed.

observedGeneration bump rule, evaluated only on a converged cycle (every
role at its desired member count, all members ready, nothing left to roll):

    first convergence            -> +1
    spec content changed         -> +1
    metadata-only change         -> +1 under RollingUpdate, +0 under Recreate
    nothing changed              -> +0

A cycle that did not converge never changes the generation. The deployment
strategy is not part of either fingerprint, so switching strategy alone is
not a change.

Conditions are ordered most specific first ("RollingUpdate", "Scaling"),
with the terminal "Ready" condition always present and always last.
"""

from dataclasses import replace
from datetime import datetime, timezone

from rollout_core.context import ReconcileContext
from rollout_core.exceptions import TransientStoreError
from rollout_core.fingerprint import metadata_fingerprint, spec_fingerprint
from rollout_core.spec import DeploymentStrategy, DesiredSpec
from rollout_core.types import ReconcileOutcome, RollState
from rollout_protocols import (
    ClusterStateStoreProtocol,
    Condition,
    Role,
    StatusRecord,
)

READY = "Ready"
ROLLING_UPDATE = "RollingUpdate"
SCALING = "Scaling"


def next_generation(
    previous: StatusRecord, spec: DesiredSpec, converged: bool
) -> tuple[int, str | None, str | None]:
    """
    Apply the bump rule.

    Args:
        previous: Last committed status record.
        spec: Desired spec as loaded (before the template merge).
        converged: Whether the cycle converged.

    Returns:
        Tuple of (observed_generation, spec_fingerprint, metadata_fingerprint)
        for the next record.
    """
    if not converged:
        return (
            previous.observed_generation,
            previous.spec_fingerprint,
            previous.metadata_fingerprint,
        )

    spec_fp = spec_fingerprint(spec)
    meta_fp = metadata_fingerprint(spec)

    if previous.spec_fingerprint is None or spec_fp != previous.spec_fingerprint:
        bump = 1
    elif meta_fp != previous.metadata_fingerprint:
        bump = 1 if spec.strategy is DeploymentStrategy.ROLLING_UPDATE else 0
    else:
        bump = 0

    return previous.observed_generation + bump, spec_fp, meta_fp


def _transition_time(
    previous: StatusRecord, type_: str, status: str, now: datetime
) -> datetime:
    old = previous.condition(type_)
    if old is not None and old.status == status and old.last_transition_time:
        return old.last_transition_time
    return now


def build_conditions(
    previous: StatusRecord, outcome: ReconcileOutcome, now: datetime
) -> tuple[Condition, ...]:
    """Conditions for an outcome, most specific first, "Ready" last."""
    conditions: list[Condition] = []

    stuck = [r.roll for r in outcome.roles if r.roll.state is RollState.STUCK]
    superseded = outcome.superseded or any(
        r.roll.state is RollState.SUPERSEDED for r in outcome.roles
    )
    if stuck:
        message = "; ".join(
            f"{r.role.value}: {r.reason}" for r in stuck
        )
        conditions.append(
            Condition(
                ROLLING_UPDATE,
                "True",
                "Stuck",
                message,
                _transition_time(previous, ROLLING_UPDATE, "True", now),
            )
        )
    elif superseded:
        conditions.append(
            Condition(
                ROLLING_UPDATE,
                "True",
                "InProgress",
                "superseded by a newer desired spec",
                _transition_time(previous, ROLLING_UPDATE, "True", now),
            )
        )

    scaling = [
        r
        for r in outcome.roles
        if r.scale.incomplete or r.observed_count != r.scale.desired
    ]
    if scaling:
        message = "; ".join(
            r.scale.incomplete
            or f"{r.role.value}: {r.observed_count} of {r.scale.desired} members"
            for r in scaling
        )
        conditions.append(
            Condition(
                SCALING,
                "True",
                "InProgress",
                message,
                _transition_time(previous, SCALING, "True", now),
            )
        )

    if outcome.converged:
        ready = Condition(
            READY, "True", "Ready", "", _transition_time(previous, READY, "True", now)
        )
    elif stuck:
        ready = Condition(
            READY,
            "False",
            "RollingUpdateStuck",
            conditions[0].message,
            _transition_time(previous, READY, "False", now),
        )
    else:
        ready = Condition(
            READY,
            "False",
            "Reconciling",
            "members are not yet at the desired state",
            _transition_time(previous, READY, "False", now),
        )
    conditions.append(ready)
    return tuple(conditions)


class StatusReporter:
    """
    Computes and persists the status of one cluster.

    The in-memory record is updated only after the store acknowledged the
    write, so a failed write is retried from the last persisted state.

    Example:
        reporter = StatusReporter(store, ctx)
        await reporter.load()
        record = reporter.next_record(spec, outcome)
        await reporter.commit(record)
    """

    def __init__(self, store: ClusterStateStoreProtocol, ctx: ReconcileContext) -> None:
        self.store = store
        self.ctx = ctx
        self.current: StatusRecord | None = None

    async def load(self) -> StatusRecord:
        """Read the persisted status; an empty record if none exists."""
        record = await self.ctx.bounded("read_status", self.store.read_status())
        self.current = record if record is not None else StatusRecord()
        return self.current

    def next_record(
        self,
        spec: DesiredSpec,
        outcome: ReconcileOutcome,
        now: datetime | None = None,
    ) -> StatusRecord:
        """
        Compute the status record for a finished cycle. Does not persist it.

        Args:
            spec: Desired spec as loaded (before the template merge).
            outcome: Outcome of the cycle.
            now: Timestamp for condition transitions (defaults to now, UTC).

        Returns:
            The next StatusRecord.
        """
        previous = self.current or StatusRecord()
        now = now or datetime.now(timezone.utc)

        generation, spec_fp, meta_fp = next_generation(
            previous, spec, outcome.converged
        )
        kafka = outcome.role(Role.KAFKA)
        return StatusRecord(
            observed_generation=generation,
            replicas=kafka.observed_count if kafka else previous.replicas,
            conditions=build_conditions(previous, outcome, now),
            spec_fingerprint=spec_fp,
            metadata_fingerprint=meta_fp,
        )

    async def commit(self, record: StatusRecord) -> StatusRecord:
        """
        Persist a status record.

        observedGeneration never decreases: a record carrying a lower
        generation than the last committed one is raised to it.

        Raises:
            TransientStoreError: If the write fails or times out. The
                in-memory record is left unchanged.
        """
        previous = self.current or StatusRecord()
        if record.observed_generation < previous.observed_generation:
            record = replace(record, observed_generation=previous.observed_generation)

        await self.ctx.bounded("write_status", self.store.write_status(record))
        self.current = record
        return record

    async def report_transient_failure(self, error: Exception) -> None:
        """
        Best-effort Ready=False status after an aborted cycle.

        The persisted status is read first if it was never loaded, so the
        record keeps its observedGeneration. Failures to read or write are
        logged and swallowed: the platform is already failing and the cycle
        will be retried.
        """
        if self.current is None:
            try:
                await self.load()
            except TransientStoreError as e:
                self.ctx.log.warning("Could not record transient failure status: %s", e)
                return
        previous = self.current
        now = datetime.now(timezone.utc)
        kept = tuple(c for c in previous.conditions if c.type != READY)
        record = replace(
            previous,
            conditions=kept
            + (
                Condition(
                    READY,
                    "False",
                    "TransientError",
                    str(error),
                    _transition_time(previous, READY, "False", now),
                ),
            ),
        )
        try:
            await self.commit(record)
        except TransientStoreError as e:
            self.ctx.log.warning("Could not record transient failure status: %s", e)
