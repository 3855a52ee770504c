"""
Requeue backoff for aborted reconcile cycles.

When a cycle is aborted by a transient state-store failure, the cluster's
worker waits before retrying the whole cycle. The wait grows exponentially
with consecutive failures and carries random jitter, so many clusters hit
by the same API outage do not all retry at the same instant.

The attempt count resets after the first successful cycle.
"""

import random
from dataclasses import dataclass


@dataclass
class RetryConfig:
    """
    Configuration for requeue behavior after a failed cycle.

    Attributes:
        min_wait_seconds: Wait before the first retry (default 1.0)
        max_wait_seconds: Maximum wait between retries (default 60.0)
        exponential_base: Base for exponential calculation (default 2.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.5)

    Example:
        config = RetryConfig(min_wait_seconds=2.0)
        delay = config.next_delay(attempt=1)
        # ~4-6 seconds (4s base + jitter)
    """

    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.5

    def next_delay(self, attempt: int) -> float:
        """
        Calculate the requeue delay with exponential backoff + jitter.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)

        Args:
            attempt: Consecutive failures before this one (0 for the first retry)

        Returns:
            Delay in seconds. Never exceeds max_wait * (1 + jitter_fraction).
        """
        wait = min(
            self.max_wait_seconds,
            self.min_wait_seconds * (self.exponential_base**attempt),
        )

        jitter = random.uniform(0, wait * self.jitter_fraction)
        return wait + jitter
