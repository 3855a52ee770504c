"""Reconcile daemon CLI command.

This module provides the CLI command for running the operator:
- run: Reconcile every KafkaCluster resource of a namespace until stopped

Per project patterns:
- Use envvar parameter for environment variable fallback
- Uses factory pattern for backend creation (lazy platform imports)
- Wire up source, store factory and ReconcileLoop via factory
"""

import asyncio
import logging

import typer

from rollout_core.config import OperatorSettings
from rollout_core.loop import ReconcileLoop

run_app = typer.Typer(
    help="Run the operator reconcile loop",
    invoke_without_command=True,
)


def configure_logging(level: str) -> None:
    """Configure root logging for CLI commands."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


@run_app.callback()
def run_operator(
    namespace: str = typer.Option(
        None, "--namespace", "-n", envvar="ROLLOUT_NAMESPACE", help="Namespace to watch"
    ),
    api_server: str = typer.Option(
        None,
        "--api-server",
        envvar="ROLLOUT_API_SERVER",
        help="Kubernetes API server URL (e.g., https://kubernetes.default.svc)",
    ),
    interval: float = typer.Option(
        None,
        "--interval",
        "-i",
        envvar="ROLLOUT_RECONCILE_INTERVAL_SECONDS",
        help="Reconcile interval in seconds",
    ),
    ready_timeout: float = typer.Option(
        None,
        "--ready-timeout",
        envvar="ROLLOUT_READY_TIMEOUT_SECONDS",
        help="Seconds to wait for a restarted member to become ready",
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level", envvar="ROLLOUT_LOG_LEVEL", help="Log level"
    ),
) -> None:
    """
    Run the reconcile loop.

    Reconciles every KafkaCluster resource in the namespace at the given
    interval. Runs until interrupted with Ctrl+C.

    Environment variables:
        ROLLOUT_NAMESPACE: Namespace to watch
        ROLLOUT_API_SERVER: Kubernetes API server URL
        ROLLOUT_TOKEN_PATH / ROLLOUT_CA_PATH: Service account credentials
    """
    configure_logging(log_level)

    overrides = {
        "namespace": namespace,
        "api_server": api_server,
        "reconcile_interval_seconds": interval,
        "ready_timeout_seconds": ready_timeout,
        "log_level": log_level,
    }
    settings = OperatorSettings(**{k: v for k, v in overrides.items() if v is not None})

    print(f"Starting rollout operator in namespace: {settings.namespace}")
    print(f"  API server: {settings.api_server}")
    print(f"  Interval: {settings.reconcile_interval_seconds}s")
    print(f"  Ready timeout: {settings.ready_timeout_seconds}s")
    print()
    print("Press Ctrl+C to stop")
    print()

    async def _run() -> None:
        # Lazy import to avoid loading the platform backend unless needed
        from rollout_kubernetes.factory import create_kubernetes_backend

        source, store_factory, http = create_kubernetes_backend(settings)
        try:
            await ReconcileLoop(source, store_factory, settings).run()
        finally:
            await http.aclose()

    asyncio.run(_run())
