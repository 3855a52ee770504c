"""
Shared data types for the reconcile core.

This module defines the transient values produced and consumed within one
reconcile cycle:
- DecisionKind / RollDecision: What a resource change requires
- RollPlan: Ordered members of one role to restart
- RollState / RollResult: Coordinator state machine and its outcome
- ScaleResult: What the scale manager changed
- RoleOutcome / ReconcileOutcome: Per-role and per-cycle results

Per project patterns:
- Use str enum for easy JSON serialization
- Plain dataclasses for internal types, nothing here is persisted
"""

from dataclasses import dataclass, field
from enum import Enum

from rollout_protocols import MemberId, Role


class DecisionKind(str, Enum):
    """
    Action a change requires, ordered by severity.

    NO_ACTION < REQUIRES_ROLLING_RESTART < REQUIRES_RECREATE
    """

    NO_ACTION = "NoAction"
    REQUIRES_ROLLING_RESTART = "RequiresRollingRestart"
    REQUIRES_RECREATE = "RequiresRecreate"

    @property
    def severity(self) -> int:
        """Numeric severity used when merging decisions."""
        return _SEVERITY[self]


_SEVERITY = {
    DecisionKind.NO_ACTION: 0,
    DecisionKind.REQUIRES_ROLLING_RESTART: 1,
    DecisionKind.REQUIRES_RECREATE: 2,
}


@dataclass(frozen=True)
class RollDecision:
    """
    Decision for one resource, or the merged decision for one member.

    Attributes:
        kind: Required action.
        reason: Why (e.g. "kafka readiness_probe changed"). Empty for NO_ACTION.
    """

    kind: DecisionKind = DecisionKind.NO_ACTION
    reason: str = ""

    @property
    def requires_restart(self) -> bool:
        return self.kind is not DecisionKind.NO_ACTION

    @classmethod
    def merge(cls, decisions: "list[RollDecision]") -> "RollDecision":
        """
        Merge decisions into the most severe one.

        Reasons of equally severe decisions are joined, so the merged
        decision names every resource that caused it.
        """
        if not decisions:
            return NO_ACTION
        worst = max(d.kind.severity for d in decisions)
        top = [d for d in decisions if d.kind.severity == worst]
        if top[0].kind is DecisionKind.NO_ACTION:
            return NO_ACTION
        reasons = [d.reason for d in top if d.reason]
        return cls(kind=top[0].kind, reason="; ".join(dict.fromkeys(reasons)))


NO_ACTION = RollDecision()


@dataclass(frozen=True)
class RollPlan:
    """
    Ordered members of one role to restart in this cycle.

    Attributes:
        role: Role the plan is for.
        members: Members in restart order.
        decisions: Merged decision per planned member.
    """

    role: Role
    members: tuple[MemberId, ...] = ()
    decisions: dict[MemberId, RollDecision] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def is_empty(self) -> bool:
        return not self.members


class RollState(str, Enum):
    """
    States of the rolling update coordinator.

    IDLE -> PLANNING -> RESTARTING_MEMBER -> AWAITING_READY
        -> (RESTARTING_MEMBER | DONE | STUCK | SUPERSEDED)
    """

    IDLE = "Idle"
    PLANNING = "Planning"
    RESTARTING_MEMBER = "RestartingMember"
    AWAITING_READY = "AwaitingReady"
    DONE = "Done"
    STUCK = "Stuck"
    SUPERSEDED = "Superseded"


@dataclass
class RollResult:
    """
    Outcome of one coordinator run for one role.

    Attributes:
        role: Role that was rolled.
        state: Terminal state (DONE, STUCK or SUPERSEDED).
        plan: The plan that was executed.
        restarted: Members terminated and confirmed ready this cycle.
        committed: Members whose content hash was written this cycle.
        stuck_member: Member that blocked the roll, if STUCK.
        reason: Why the roll is stuck or superseded.
        transitions: Every state entered, in order (for diagnostics).
    """

    role: Role
    state: RollState = RollState.IDLE
    plan: RollPlan | None = None
    restarted: list[MemberId] = field(default_factory=list)
    committed: list[MemberId] = field(default_factory=list)
    stuck_member: MemberId | None = None
    reason: str = ""
    transitions: list[RollState] = field(default_factory=list)

    def enter(self, state: RollState) -> None:
        """Move to a new state and record the transition."""
        self.state = state
        self.transitions.append(state)

    @property
    def done(self) -> bool:
        return self.state is RollState.DONE


@dataclass
class ScaleResult:
    """
    Outcome of replica reconciliation for one role.

    Attributes:
        role: Role that was scaled.
        desired: Desired member count.
        created: Members created this cycle.
        removed: Members removed this cycle.
        incomplete: Reason scaling did not finish this cycle, empty if it did.
    """

    role: Role
    desired: int
    created: list[MemberId] = field(default_factory=list)
    removed: list[MemberId] = field(default_factory=list)
    incomplete: str = ""

    @property
    def changed(self) -> bool:
        return bool(self.created or self.removed)


@dataclass
class RoleOutcome:
    """
    Everything that happened to one role in a cycle.

    Attributes:
        role: The role.
        scale: Replica reconciliation result.
        roll: Rolling update result.
        observed_count: Members observed at the end of the cycle.
        ready_count: Of those, how many were ready.
    """

    role: Role
    scale: ScaleResult
    roll: RollResult
    observed_count: int = 0
    ready_count: int = 0

    @property
    def converged(self) -> bool:
        """At desired count, all members ready, nothing left to roll."""
        return (
            not self.scale.incomplete
            and self.roll.done
            and self.observed_count == self.scale.desired
            and self.ready_count == self.observed_count
        )


@dataclass
class ReconcileOutcome:
    """
    Result of one reconcile cycle of one cluster.

    Attributes:
        cluster: Cluster name.
        roles: Per-role outcomes, in processing order.
        superseded: A newer desired spec arrived and ended the cycle early.
    """

    cluster: str
    roles: list[RoleOutcome] = field(default_factory=list)
    superseded: bool = False

    def role(self, role: Role) -> RoleOutcome | None:
        for outcome in self.roles:
            if outcome.role is role:
                return outcome
        return None

    @property
    def converged(self) -> bool:
        return (
            not self.superseded
            and len(self.roles) == len(Role)
            and all(r.converged for r in self.roles)
        )

    @property
    def restarted(self) -> list[MemberId]:
        """All members restarted this cycle, across roles."""
        return [m for r in self.roles for m in r.roll.restarted]
