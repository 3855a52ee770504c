"""
Per-cluster reconcile context.

Everything a component needs besides its inputs travels in one explicit
ReconcileContext: the cluster name, the operator settings, a logger that
tags every line with the cluster, and the "superseded" event a newer
desired spec sets. There is no global logger or module state, so several
clusters can reconcile in one process without interfering.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from rollout_core.config import OperatorSettings
from rollout_core.exceptions import TransientStoreError

T = TypeVar("T")

logger = logging.getLogger("rollout_core.reconcile")


class ClusterLoggerAdapter(logging.LoggerAdapter):
    """Prefixes log messages with the cluster name."""

    def process(self, msg, kwargs):
        return f"[{self.extra['cluster']}] {msg}", kwargs


@dataclass
class ReconcileContext:
    """
    Context shared by the components reconciling one cluster.

    Attributes:
        cluster: Name of the managed cluster.
        settings: Operator settings (timeouts, intervals).
        log: Logger adapter tagging messages with the cluster name.
        superseded: Set when a newer desired spec arrives mid-cycle.
    """

    cluster: str
    settings: OperatorSettings = field(default_factory=OperatorSettings)
    log: logging.LoggerAdapter = field(init=False)
    superseded: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self) -> None:
        self.log = ClusterLoggerAdapter(logger, {"cluster": self.cluster})

    @property
    def ready_timeout(self) -> float:
        return self.settings.ready_timeout_seconds

    async def bounded(self, operation: str, aw: Awaitable[T]) -> T:
        """
        Await a store operation, bounded by the operation timeout.

        Args:
            operation: Operation name for the error (e.g. "write_status").
            aw: The store call to await.

        Returns:
            The operation's result.

        Raises:
            TransientStoreError: If the operation did not complete in time.
        """
        try:
            return await asyncio.wait_for(
                aw, timeout=self.settings.operation_timeout_seconds
            )
        except asyncio.TimeoutError:
            raise TransientStoreError(
                operation,
                f"not acknowledged within {self.settings.operation_timeout_seconds}s",
            )
