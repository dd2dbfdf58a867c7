"""
Bounded retry combinator.

One retry policy shape shared by the blockhash provider and the signature
poller: a maximum number of attempts, a backoff function of the attempts
made so far, and predicates deciding which errors and which results are
worth another attempt. Built on tenacity so sleeping and jitter stay
injectable for tests.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
)

from caissier.domain.exceptions.base import CaissierException

SleepFn = Callable[[float], Awaitable[Any]]
BackoffFn = Callable[[int], float]


class RetryExhaustedError(CaissierException):
    """All attempts were used without an acceptable result."""

    def __init__(
        self,
        attempts: int,
        last_exception: Optional[BaseException] = None,
        last_result: Any = None,
    ):
        """
        Initialize retry exhausted error.

        Args:
            attempts: Number of attempts made
            last_exception: Exception raised by the final attempt, if any
            last_result: Result of the final attempt when it did not raise
        """
        self.attempts = attempts
        self.last_exception = last_exception
        self.last_result = last_result
        reason = (
            f": {last_exception}" if last_exception is not None else ""
        )
        super().__init__(
            f"Gave up after {attempts} attempts{reason}",
            details={"attempts": attempts},
        )


def _any_error(e: BaseException) -> bool:
    return isinstance(e, Exception)


def _never(_: Any) -> bool:
    return False


@dataclass
class RetryPolicy:
    """
    Retry parameters for one kind of operation.

    backoff receives the number of attempts made so far (1 after the first
    failure) and returns the delay in seconds before the next attempt.
    """

    max_attempts: int
    backoff: BackoffFn
    retry_on_exception: Callable[[BaseException], bool] = _any_error
    retry_on_result: Callable[[Any], bool] = _never
    sleep: SleepFn = field(default=asyncio.sleep)
    before_sleep: Optional[Callable[[RetryCallState], None]] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def _wait(self, retry_state: RetryCallState) -> float:
        return max(0.0, self.backoff(retry_state.attempt_number))

    async def run(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Call fn until it returns an acceptable result.

        Exceptions rejected by retry_on_exception propagate unchanged.

        Raises:
            RetryExhaustedError: If max_attempts were used up
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=(
                retry_if_exception(self.retry_on_exception)
                | retry_if_result(self.retry_on_result)
            ),
            sleep=self.sleep,
            before_sleep=self.before_sleep,
        )

        try:
            return await retrying(fn, *args, **kwargs)
        except RetryError as e:
            last = e.last_attempt
            if last.failed:
                raise RetryExhaustedError(
                    attempts=last.attempt_number,
                    last_exception=last.exception(),
                ) from last.exception()
            raise RetryExhaustedError(
                attempts=last.attempt_number,
                last_result=last.result(),
            )


def compute_poll_delay_ms(
    attempts: int,
    initial_delay_ms: int = 1000,
    factor: float = 1.5,
    max_delay_ms: int = 10000,
    max_jitter_ms: int = 1000,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Capped exponential backoff with jitter for signature polling.

    delay = min(initial * factor^attempts + uniform(0, max_jitter), max_delay)

    Args:
        attempts: Attempts made so far
        initial_delay_ms: Base delay
        factor: Growth per attempt
        max_delay_ms: Ceiling
        max_jitter_ms: Upper bound of the uniform jitter
        rng: Random source (module random by default)

    Returns:
        Delay in milliseconds, never above max_delay_ms
    """
    source = rng or random
    jitter = source.uniform(0, max_jitter_ms) if max_jitter_ms > 0 else 0.0
    return min(initial_delay_ms * factor**attempts + jitter, max_delay_ms)


def compute_blockhash_delay(
    attempts: int,
    base_delay: float = 1.0,
    max_jitter: float = 1.0,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Exponential backoff for blockhash fetches, in seconds.

    The first retry waits base_delay (plus jitter), then doubles.
    """
    source = rng or random
    jitter = source.uniform(0, max_jitter) if max_jitter > 0 else 0.0
    return base_delay * 2 ** max(attempts - 1, 0) + jitter
