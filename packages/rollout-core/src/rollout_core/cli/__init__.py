"""Command-line interface for the rollout operator."""
