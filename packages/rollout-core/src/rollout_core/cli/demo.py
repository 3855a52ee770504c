"""Demo CLI command for showcasing rolling updates.

Runs scripted reconcile cycles against the in-memory simulated store, no
cluster needed:
1. Bootstrap a cluster from nothing
2. Change the broker readiness probe (rolling restart of the brokers only)
3. Tamper with a derived config object (no restart, overwritten)
4. Scale the ZooKeeper ensemble down (highest ordinals removed, events recorded)

Colored terminal output with Rich.
"""

import asyncio
import logging
from dataclasses import replace

import typer
from rich.console import Console
from rich.table import Table

from rollout_core.context import ReconcileContext
from rollout_core.reconcile import ClusterReconciler
from rollout_core.simulation import SimulatedClusterStore
from rollout_core.spec import DesiredSpec, ProbeSpec, RoleSpec
from rollout_core.types import ReconcileOutcome
from rollout_protocols import MemberId, Role

demo_app = typer.Typer(
    help="Run a simulated rolling update walkthrough",
    invoke_without_command=True,
)


def _members_table(store: SimulatedClusterStore) -> Table:
    table = Table(title="Members")
    table.add_column("Member", style="cyan")
    table.add_column("Ready", style="green")
    table.add_column("Revision", style="dim")
    table.add_column("Restarts", style="yellow")
    for role in (Role.ZOOKEEPER, Role.KAFKA):
        for ordinal in sorted(store.members[role]):
            sim = store.members[role][ordinal]
            member = MemberId(store.cluster, role, ordinal)
            table.add_row(
                member.name,
                "yes" if sim.ready else "[red]no[/red]",
                sim.template.revision if sim.template else "-",
                str(store.restart_count(member)),
            )
    return table


def _status_table(store: SimulatedClusterStore) -> Table:
    table = Table(title="Status")
    table.add_column("Condition", style="cyan")
    table.add_column("Status")
    table.add_column("Reason", style="yellow")
    table.add_column("Message", style="dim")
    if store.status is not None:
        for c in store.status.conditions:
            table.add_row(c.type, c.status, c.reason, c.message)
    return table


def _report(
    console: Console, store: SimulatedClusterStore, outcome: ReconcileOutcome
) -> None:
    restarted = ", ".join(str(m) for m in outcome.restarted) or "none"
    generation = store.status.observed_generation if store.status else 0
    console.print(
        f"converged=[bold]{outcome.converged}[/bold]  "
        f"observedGeneration=[bold]{generation}[/bold]  restarted: {restarted}"
    )
    console.print(_members_table(store))
    console.print(_status_table(store))
    console.print()


@demo_app.callback()
def demo(
    name: str = typer.Option("demo", "--name", help="Cluster name"),
    kafka_replicas: int = typer.Option(3, "--kafka", help="Broker count"),
    zookeeper_replicas: int = typer.Option(3, "--zookeeper", help="Ensemble size"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show reconcile logs"),
) -> None:
    """Walk through bootstrap, rolling restart, config drift and scale-down."""
    console = Console()
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    spec = DesiredSpec(
        name=name,
        kafka=RoleSpec(replicas=kafka_replicas, config={"min.insync.replicas": 2}),
        zookeeper=RoleSpec(replicas=zookeeper_replicas),
    )
    store = SimulatedClusterStore(name)
    reconciler = ClusterReconciler(store, ReconcileContext(cluster=name))

    async def _run() -> None:
        console.rule("[bold magenta]1. Bootstrap[/bold magenta]")
        _report(console, store, await reconciler.reconcile(spec))

        console.rule("[bold magenta]2. Broker readiness probe change[/bold magenta]")
        probed = replace(
            spec,
            kafka=replace(spec.kafka, readiness_probe=ProbeSpec(initial_delay_seconds=30)),
        )
        _report(console, store, await reconciler.reconcile(probed))

        console.rule("[bold magenta]3. Derived config drift[/bold magenta]")
        store.tamper_derived_config(Role.KAFKA, "server.properties", "tampered=true\n")
        _report(console, store, await reconciler.reconcile(probed))

        if zookeeper_replicas > 1:
            console.rule("[bold magenta]4. ZooKeeper scale-down[/bold magenta]")
            scaled = replace(
                probed,
                zookeeper=replace(probed.zookeeper, replicas=max(1, zookeeper_replicas - 2)),
            )
            _report(console, store, await reconciler.reconcile(scaled))
            for member, reason, message in store.events:
                console.print(f"[dim]event[/dim] {reason} {member}: {message}")

    asyncio.run(_run())

    console.print()
    console.rule("[bold green]Demo Complete[/bold green]")
    console.print()
