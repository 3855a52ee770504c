"""
ReconcileLoop daemon for continuous multi-cluster reconciliation.

This module implements the reconcile daemon that:
- Polls the desired-spec source at a configurable interval
- Runs one ClusterWorker task per managed cluster
- Hands newer specs to running workers (superseding an in-flight roll
  between members)
- Requeues aborted cycles with exponential backoff
- Stops workers of clusters that disappeared
- Handles graceful shutdown on SIGINT/SIGTERM

Each worker owns its store, context and status reporter, so clusters
reconcile in parallel with no shared mutable state, while the cycles of one
cluster never interleave.
"""

import asyncio
import functools
import logging
import signal
from typing import Callable

from rollout_core.config import OperatorSettings
from rollout_core.context import ReconcileContext
from rollout_core.exceptions import ReconcileAbortedError
from rollout_core.fingerprint import metadata_fingerprint, spec_fingerprint
from rollout_core.reconcile import ClusterReconciler
from rollout_core.retry import RetryConfig
from rollout_core.spec import DesiredSpec
from rollout_core.types import ReconcileOutcome
from rollout_protocols import ClusterStateStoreProtocol, DesiredSpecSourceProtocol

logger = logging.getLogger(__name__)

StoreFactory = Callable[[DesiredSpec], ClusterStateStoreProtocol]


def spec_identity(spec: DesiredSpec) -> tuple[str, str, str]:
    """What makes two specs of a cluster different for superseding purposes."""
    return spec_fingerprint(spec), metadata_fingerprint(spec), spec.strategy.value


class ClusterWorker:
    """
    Reconciles one cluster until stopped.

    Runs a cycle, then waits for the reconcile interval (or the requeue
    backoff after an aborted cycle), waking early when a changed spec is
    handed in via notify().

    Attributes:
        spec: Latest desired spec.
        reconciler: Cycle runner bound to this cluster's store.
        last_outcome: Outcome of the last completed cycle.
    """

    def __init__(
        self,
        spec: DesiredSpec,
        store: ClusterStateStoreProtocol,
        settings: OperatorSettings,
        retry: RetryConfig | None = None,
    ) -> None:
        self.spec = spec
        self.settings = settings
        self.retry = retry or settings.retry_config()
        self.ctx = ReconcileContext(cluster=spec.name, settings=settings)
        self.reconciler = ClusterReconciler(store, self.ctx)
        self.last_outcome: ReconcileOutcome | None = None
        self.failures = 0
        self._wakeup = asyncio.Event()
        self._stopped = asyncio.Event()
        self._running = False

    def notify(self, spec: DesiredSpec) -> None:
        """
        Hand a freshly loaded spec to the worker.

        A changed spec wakes the worker; if a cycle is in flight it is
        marked superseded and ends after the member currently restarting.
        """
        changed = spec_identity(spec) != spec_identity(self.spec)
        self.spec = spec
        if not changed:
            return
        if self._running:
            self.ctx.log.info("Desired spec changed, superseding in-flight cycle")
            self.ctx.superseded.set()
        self._wakeup.set()

    def stop(self) -> None:
        self._stopped.set()
        self._wakeup.set()

    async def run_cycle(self) -> float:
        """
        Run one cycle and return the delay before the next one.

        Aborted cycles are requeued with backoff after a best-effort
        Ready=False status write. Unexpected errors are handled the same
        way, so one bad cycle never ends the worker.
        """
        spec = self.spec
        self.ctx.superseded.clear()
        self._running = True
        try:
            self.last_outcome = await self.reconciler.reconcile(spec)
        except ReconcileAbortedError as e:
            self._running = False
            delay = self._next_delay()
            self.ctx.log.warning("%s Requeue in %.1fs", e, delay)
            await self._report_failure(e.cause)
            return delay
        except Exception as e:
            self._running = False
            delay = self._next_delay()
            self.ctx.log.exception("Reconcile cycle failed, requeue in %.1fs", delay)
            await self._report_failure(e)
            return delay
        self._running = False
        self.failures = 0

        if self.last_outcome.superseded:
            return 0.0
        return self.settings.reconcile_interval_seconds

    def _next_delay(self) -> float:
        delay = self.retry.next_delay(self.failures)
        self.failures += 1
        return delay

    async def _report_failure(self, error: Exception) -> None:
        try:
            await self.reconciler.reporter.report_transient_failure(error)
        except Exception as e:
            self.ctx.log.warning("Could not record failure status: %s", e)

    async def run(self) -> None:
        """Reconcile until stop() is called."""
        while not self._stopped.is_set():
            self._wakeup.clear()
            delay = await self.run_cycle()
            if self._stopped.is_set():
                break
            if delay <= 0:
                continue
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass  # Normal timeout, next cycle


class ReconcileLoop:
    """
    Long-running daemon reconciling every cluster the source reports.

    Example:
        source, store_factory, http = create_kubernetes_backend(settings)
        loop = ReconcileLoop(source, store_factory, settings)
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        source: DesiredSpecSourceProtocol,
        store_factory: StoreFactory,
        settings: OperatorSettings | None = None,
    ) -> None:
        """
        Initialize reconcile loop.

        Args:
            source: Provider of desired specs, polled every interval
            store_factory: Builds the state store of a newly seen cluster
            settings: Operator settings (intervals, timeouts, backoff)
        """
        self.source = source
        self.store_factory = store_factory
        self.settings = settings or OperatorSettings()
        self.workers: dict[str, ClusterWorker] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._shutdown = asyncio.Event()

    async def run(self) -> None:
        """
        Run the reconcile loop until shutdown signal.

        Registers SIGINT and SIGTERM handlers for graceful shutdown.
        """
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                sig,
                functools.partial(self._handle_signal, sig),
            )

        logger.info(
            "Reconcile loop starting (interval: %ss)",
            self.settings.reconcile_interval_seconds,
        )

        try:
            while not self._shutdown.is_set():
                await self.poll_once()

                try:
                    await asyncio.wait_for(
                        self._shutdown.wait(),
                        timeout=self.settings.reconcile_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    pass  # Normal timeout, continue loop
        finally:
            await self.stop_all()

        logger.info("Reconcile loop stopped")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal by setting shutdown event."""
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown.set()

    async def poll_once(self) -> None:
        """
        Load desired specs and start, update or stop workers accordingly.

        A failure to list specs is logged and leaves running workers alone.
        """
        try:
            specs = await self.source.list_specs()
        except Exception as e:
            logger.warning("Listing desired specs failed: %s", e)
            return

        seen = set()
        for spec in specs:
            seen.add(spec.name)
            worker = self.workers.get(spec.name)
            if worker is not None and self._tasks[spec.name].done():
                self._reap_worker(spec.name)
                worker = None
            if worker is None:
                self._start_worker(spec)
            else:
                worker.notify(spec)

        for name in list(self.workers):
            if name not in seen:
                await self._stop_worker(name)

    def _start_worker(self, spec: DesiredSpec) -> None:
        logger.info("Managing cluster %s", spec.name)
        worker = ClusterWorker(spec, self.store_factory(spec), self.settings)
        self.workers[spec.name] = worker
        self._tasks[spec.name] = asyncio.create_task(
            worker.run(), name=f"reconcile-{spec.name}"
        )

    def _reap_worker(self, name: str) -> None:
        """Forget a worker whose task ended on its own, logging why."""
        self.workers.pop(name)
        task = self._tasks.pop(name)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Worker for cluster %s died, restarting",
                name,
                exc_info=task.exception(),
            )
        else:
            logger.warning("Worker for cluster %s exited, restarting", name)

    async def _stop_worker(self, name: str) -> None:
        logger.info("Stopping worker for cluster %s", name)
        self.workers.pop(name).stop()
        task = self._tasks.pop(name)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def stop_all(self) -> None:
        """Stop every worker."""
        for name in list(self.workers):
            await self._stop_worker(name)
