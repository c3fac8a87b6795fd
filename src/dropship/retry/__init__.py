"""
Upload retry with exponential backoff.
"""

from dropship.retry.policy import (
    DEFAULT_BACKOFF_POLICY,
    DEFAULT_MAX_DELAY,
    Backoff,
    BackoffPolicy,
    RetryState,
)

__all__ = [
    "Backoff",
    "BackoffPolicy",
    "DEFAULT_BACKOFF_POLICY",
    "DEFAULT_MAX_DELAY",
    "RetryState",
]
