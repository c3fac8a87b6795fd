"""
Retry policy configuration for file uploads.

Exponential backoff: the first wait is `initial_delay` and each later wait
doubles the previous one, capped at `max_delay`. An `initial_delay` above the
cap is used once; the next wait drops to the cap.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

DEFAULT_MAX_DELAY = 30.0


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Configuration for retry behavior when an upload fails.

    Examples:
        >>> policy = BackoffPolicy(max_retries=3, initial_delay=2.0)
        >>> backoff = policy.start()
        >>> [backoff.next_delay() for _ in range(6)]
        [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    """

    # Retries after the first attempt (total attempts = max_retries + 1)
    max_retries: int = 3

    # Delay before the first retry (seconds)
    initial_delay: float = 5.0

    # Upper bound for every delay after the first (seconds)
    max_delay: float = DEFAULT_MAX_DELAY

    # Growth factor applied after each wait
    multiplier: float = 2.0

    # Start every file from initial_delay instead of carrying the delay over
    reset_per_file: bool = False

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def start(self) -> Backoff:
        """Fresh delay state for a batch (or a file, with `reset_per_file`)."""
        return Backoff(self)

    def get_delay(self, attempt: int) -> float:
        """
        Delay before retry number `attempt` (0-indexed) from a fresh state.

        Implements: delay = min(initial_delay * multiplier^attempt, max_delay),
        except that retry 0 always waits initial_delay
        """
        if attempt == 0:
            return self.initial_delay
        delay = self.initial_delay * (self.multiplier**attempt)
        return min(delay, self.max_delay)


class Backoff:
    """Mutable delay state: returns the current delay and advances it."""

    def __init__(self, policy: BackoffPolicy):
        self.policy = policy
        self.current = policy.initial_delay

    def next_delay(self) -> float:
        delay = self.current
        self.current = min(self.current * self.policy.multiplier, self.policy.max_delay)
        return delay

    def reset(self) -> None:
        self.current = self.policy.initial_delay


@dataclass
class RetryState:
    """
    Retry history for one file, kept for logging and tests.
    """

    # File (remote name) being retried
    name: str

    # Total attempts so far
    total_attempts: int = 0

    # Failures encountered
    errors: list[dict[str, Any]] = field(default_factory=list)

    # Delays waited between attempts
    delays: list[float] = field(default_factory=list)

    succeeded: bool = False

    # Stopped by a shutdown request before attempts ran out
    cancelled: bool = False

    def record_attempt(self, error: str | None = None) -> None:
        self.total_attempts += 1
        if error is not None:
            self.errors.append(
                {
                    "attempt": self.total_attempts,
                    "message": error,
                    "timestamp": time.time(),
                }
            )

    def record_delay(self, delay: float) -> None:
        self.delays.append(delay)

    def mark_success(self) -> None:
        self.succeeded = True


DEFAULT_BACKOFF_POLICY = BackoffPolicy()
