"""Rollout CLI - safe rolling updates for Kafka clusters."""

import typer

from rollout_core.cli.demo import demo_app
from rollout_core.cli.run import run_app

app = typer.Typer(
    name="rollout",
    help="Kafka/ZooKeeper cluster operator with quorum-safe rolling updates",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(run_app, name="run")
app.add_typer(demo_app, name="demo")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
