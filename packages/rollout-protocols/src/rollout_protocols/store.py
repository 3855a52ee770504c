"""
State-store protocol definition.

The ClusterStateStoreProtocol is the only way the reconcile core touches the
orchestration platform: members, their storage, per-member content hashes,
the role templates, the derived configuration objects and the status
subresource. Implementations include the in-memory simulated store and the
Kubernetes-backed store.

All methods are coroutines. A backend that cannot read or write raises
TransientStoreError (defined in rollout_core.exceptions) so the whole
reconcile cycle is retried.
"""

from typing import Mapping, Protocol, runtime_checkable

from rollout_protocols.types import (
    ContentHash,
    MemberId,
    MemberTemplate,
    ObservedState,
    Role,
    StatusRecord,
)


@runtime_checkable
class ClusterStateStoreProtocol(Protocol):
    """
    Protocol for accessing one managed cluster's platform objects.

    A store instance is bound to a single cluster. It is never shared
    between clusters, so different clusters can reconcile in parallel
    without any shared mutable state.
    """

    async def list_members(self, role: Role) -> ObservedState:
        """Observe all members of a role, ordered by ordinal."""
        ...

    async def get_content_hash(self, member: MemberId) -> ContentHash:
        """Return the per-resource digests recorded on a member."""
        ...

    async def set_content_hash(self, member: MemberId, hashes: ContentHash) -> None:
        """
        Record per-resource digests on a member.

        Called only after the member is confirmed ready, so a crash before
        this call leaves the old digests in place.
        """
        ...

    async def request_termination(self, member: MemberId) -> None:
        """Ask the platform to terminate a member; it is recreated from the current template."""
        ...

    async def create_member(self, role: Role, ordinal: int) -> MemberId:
        """Create a member (and fresh storage) at the given ordinal from the current template."""
        ...

    async def delete_member(self, role: Role, ordinal: int) -> None:
        """Permanently remove the member at the given ordinal."""
        ...

    async def release_storage(self, role: Role, ordinal: int, *, keep_data: bool) -> None:
        """
        Release a removed member's persistent volumes.

        Auxiliary volumes are always released. The main data volume is kept
        when keep_data is True.
        """
        ...

    async def wait_ready(self, member: MemberId, timeout: float) -> bool:
        """
        Wait until a member reports ready.

        Returns:
            True once the member is ready, False if the timeout elapsed.
            Never blocks past the timeout and never raises for it.
        """
        ...

    async def update_template(self, role: Role, template: MemberTemplate) -> None:
        """Replace the template members of a role are (re)created from."""
        ...

    async def apply_derived_config(self, role: Role, data: Mapping[str, str]) -> None:
        """Write the controller-owned derived configuration object of a role."""
        ...

    async def read_status(self) -> StatusRecord | None:
        """Read the status subresource, None if it has never been written."""
        ...

    async def write_status(self, record: StatusRecord) -> None:
        """Replace the status subresource."""
        ...

    async def record_event(self, member: MemberId, reason: str, message: str) -> None:
        """Emit a platform event about a member (best effort)."""
        ...
