"""
Retry and backoff helpers.
"""

from caissier.resilience.retry import (
    RetryExhaustedError,
    RetryPolicy,
    compute_blockhash_delay,
    compute_poll_delay_ms,
)

__all__ = [
    "RetryExhaustedError",
    "RetryPolicy",
    "compute_blockhash_delay",
    "compute_poll_delay_ms",
]
