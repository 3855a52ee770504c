"""
Quorum safety gate.

Decides, immediately before each individual rolling restart, whether taking
the candidate member down keeps the role available:

- Coordination role: an ensemble of N members needs ceil((N+1)/2) ready
  members to keep a quorum, so the ready members other than the candidate
  must reach that count. A single-member ensemble is always approved (there
  is nothing to preserve); an ensemble of two can never restart a ready
  member without losing quorum.
- Data role: no other member may be unavailable, and every replication unit
  the candidate serves must keep at least its minimum in-sync replica count
  among the remaining ready replicas.

A candidate that is not ready itself is always approved: restarting it
cannot reduce availability.
"""

from dataclasses import dataclass

from rollout_protocols import Member, ObservedState


def quorum_size(ensemble_size: int) -> int:
    """Members needed for a majority of the ensemble: ceil((N+1)/2)."""
    return ensemble_size // 2 + 1


@dataclass(frozen=True)
class GateVerdict:
    """
    Result of a gate check. Truthy when the restart is approved.

    Attributes:
        approved: Whether the candidate may be restarted now.
        reason: Why, for logs and status messages.
    """

    approved: bool
    reason: str

    def __bool__(self) -> bool:
        return self.approved


class QuorumSafetyGate:
    """
    Approves or denies single-member restarts.

    Attributes:
        min_in_sync_replicas: Role-wide minimum in-sync replicas for data
            role replication units without an override.
    """

    def __init__(self, min_in_sync_replicas: int = 1) -> None:
        self.min_in_sync_replicas = min_in_sync_replicas

    def can_restart(self, member: Member, observed: ObservedState) -> GateVerdict:
        """
        Check whether a member can be restarted without losing availability.

        Args:
            member: The restart candidate, as freshly observed.
            observed: Fresh observation of the candidate's role.

        Returns:
            GateVerdict, truthy when approved.
        """
        if not member.available:
            return GateVerdict(True, f"{member.id} is not ready")

        others = [m for m in observed.members if m.id != member.id]

        if member.id.role.is_coordination:
            return self._check_quorum(member, others, len(observed.members))
        return self._check_replication(member, others, observed)

    def _check_quorum(
        self, member: Member, others: list[Member], ensemble_size: int
    ) -> GateVerdict:
        if ensemble_size <= 1:
            return GateVerdict(True, "single-member ensemble")

        needed = quorum_size(ensemble_size)
        remaining = sum(1 for m in others if m.available)
        if remaining < needed:
            return GateVerdict(
                False,
                f"restarting {member.id} would leave {remaining} of {ensemble_size} "
                f"members ready, quorum needs {needed}",
            )
        return GateVerdict(True, f"{remaining} ready members remain, quorum needs {needed}")

    def _check_replication(
        self, member: Member, others: list[Member], observed: ObservedState
    ) -> GateVerdict:
        unavailable = [str(m.id) for m in others if not m.available]
        if unavailable:
            return GateVerdict(
                False,
                f"cannot restart {member.id} while {', '.join(unavailable)} "
                f"{'is' if len(unavailable) == 1 else 'are'} unavailable",
            )

        ready_names = {m.id.name for m in others if m.available}
        for unit in observed.replication_units:
            if member.id.name not in unit.replicas:
                continue
            min_isr = unit.min_isr if unit.min_isr is not None else self.min_in_sync_replicas
            remaining = sum(1 for name in unit.replicas if name in ready_names)
            if remaining < min_isr:
                return GateVerdict(
                    False,
                    f"restarting {member.id} would leave {unit.id} with {remaining} "
                    f"in-sync replicas, minimum is {min_isr}",
                )
        return GateVerdict(True, "all other members available")
