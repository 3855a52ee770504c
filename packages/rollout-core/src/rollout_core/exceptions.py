"""
Exception classes for the reconcile core.

Only platform failures are exceptions. A quorum denial or a member that
does not become ready in time is a normal "stuck" outcome of a cycle and
is reported through status conditions instead.

Per project patterns:
- Inherit from a common base exception type
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class RolloutError(Exception):
    """Base class for all rollout operator errors."""


class TransientStoreError(RolloutError):
    """
    Raised when a read or write against the state store fails.

    Covers API errors, connection failures and store writes that were not
    acknowledged within the operation timeout. The reconcile cycle that hit
    it is aborted and retried from scratch.

    Attributes:
        operation: The store operation that failed (e.g. "list_members")
        detail: Description of the underlying failure
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"State store operation '{operation}' failed: {detail}")


class ReconcileAbortedError(RolloutError):
    """
    Raised when a reconcile cycle is aborted by a transient failure.

    Attributes:
        cluster: Name of the cluster whose cycle was aborted
        cause: The transient failure that aborted it
    """

    def __init__(self, cluster: str, cause: TransientStoreError) -> None:
        self.cluster = cluster
        self.cause = cause
        super().__init__(
            f"Reconcile of cluster '{cluster}' aborted: {cause}. "
            f"The cycle will be retried."
        )
