"""
Replica reconciliation.

Brings the member count of a role to the desired count:

- Scale up fills the lowest unused ordinals, each member with fresh storage.
  Existing members are never touched. Coordination members join the
  ensemble one at a time: each new member must report ready (bounded wait)
  before the next one is created.
- Gaps below the desired count are filled before anything is removed, so
  the survivors of a scale-down are exactly ordinals [0, desired).
- Scale down removes the highest ordinals first. Each removed member is
  deleted, its auxiliary volumes are released, its main data volume is
  released only if the role's retention policy allows it, and one
  termination event is recorded for it.

Scaling to zero is allowed.
"""

from rollout_core.context import ReconcileContext
from rollout_core.exceptions import TransientStoreError
from rollout_core.types import ScaleResult
from rollout_protocols import ClusterStateStoreProtocol, MemberId, ObservedState, Role

TERMINATION_EVENT_REASON = "Killing"


def ordinals_to_create(existing: list[int], desired_count: int) -> list[int]:
    """Unused ordinals below desired_count, lowest first."""
    taken = set(existing)
    return [ordinal for ordinal in range(desired_count) if ordinal not in taken]


def ordinals_to_remove(existing: list[int], desired_count: int) -> list[int]:
    """
    Ordinals at or above desired_count, highest first.

    Survivors are exactly [0, desired_count) once the gaps below
    desired_count have been filled by ordinals_to_create().
    """
    return sorted((o for o in existing if o >= desired_count), reverse=True)


class ScaleManager:
    """
    Reconciles the member count of a role.

    Attributes:
        store: State store of the cluster.
        ctx: Reconcile context.
    """

    def __init__(self, store: ClusterStateStoreProtocol, ctx: ReconcileContext) -> None:
        self.store = store
        self.ctx = ctx

    async def reconcile_replicas(
        self,
        role: Role,
        desired_count: int,
        observed: ObservedState,
        *,
        delete_claim: bool = False,
    ) -> ScaleResult:
        """
        Create or remove members until the role has desired_count members.

        Args:
            role: Role to scale.
            desired_count: Desired member count (zero allowed).
            observed: Current members of the role.
            delete_claim: Release the main data volume of removed members.

        Returns:
            ScaleResult listing created and removed members. `incomplete` is
            set when a coordination member did not become ready in time;
            the remaining members are created on a later cycle.

        Raises:
            TransientStoreError: If creating or deleting a member fails.
        """
        result = ScaleResult(role=role, desired=desired_count)
        existing = observed.ordinals

        to_create = ordinals_to_create(existing, desired_count)
        to_remove = ordinals_to_remove(existing, desired_count)

        if to_create:
            self.ctx.log.info(
                "Scaling %s up from %d to %d members",
                role.value,
                len(existing),
                desired_count,
            )
            await self._scale_up(role, to_create, result)
            if result.incomplete:
                return result
        if to_remove:
            self.ctx.log.info(
                "Scaling %s down from %d to %d members",
                role.value,
                len(existing) + len(result.created),
                desired_count,
            )
            await self._scale_down(role, to_remove, delete_claim, result)

        return result

    async def _scale_up(self, role: Role, ordinals: list[int], result: ScaleResult) -> None:
        for ordinal in ordinals:
            member = await self.ctx.bounded(
                "create_member", self.store.create_member(role, ordinal)
            )
            result.created.append(member)
            self.ctx.log.info("Created %s", member)

            if role.is_coordination:
                timeout = self.ctx.ready_timeout
                if not await self.store.wait_ready(member, timeout):
                    result.incomplete = (
                        f"{member} not ready after {timeout:g}s, "
                        f"{len(ordinals) - len(result.created)} member(s) left to add"
                    )
                    self.ctx.log.warning("Scale-up paused: %s", result.incomplete)
                    return

    async def _scale_down(
        self, role: Role, ordinals: list[int], delete_claim: bool, result: ScaleResult
    ) -> None:
        for ordinal in ordinals:
            member = MemberId(self.ctx.cluster, role, ordinal)
            await self.ctx.bounded("delete_member", self.store.delete_member(role, ordinal))
            await self.ctx.bounded(
                "release_storage",
                self.store.release_storage(role, ordinal, keep_data=not delete_claim),
            )
            result.removed.append(member)
            self.ctx.log.info(
                "Removed %s (data volume %s)",
                member,
                "released" if delete_claim else "retained",
            )
            await self._record_termination(member)

    async def _record_termination(self, member: MemberId) -> None:
        try:
            await self.ctx.bounded(
                "record_event",
                self.store.record_event(
                    member,
                    TERMINATION_EVENT_REASON,
                    f"Removed {member} during scale-down",
                ),
            )
        except TransientStoreError as e:
            self.ctx.log.warning("Could not record termination event for %s: %s", member, e)
