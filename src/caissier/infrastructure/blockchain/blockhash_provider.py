"""
Blockhash provider.

Fetches a fresh finalized blockhash with bounded retry, optionally serving
a cached one while it is provably still valid.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from caissier.domain.exceptions import BlockhashUnavailableError, RPCException
from caissier.infrastructure.blockchain.solana_rpc_client import SolanaRPCClient
from caissier.reporter import SystemReporter
from caissier.resilience import (
    RetryExhaustedError,
    RetryPolicy,
    compute_blockhash_delay,
)


@dataclass(frozen=True)
class LatestBlockhash:
    """A blockhash and the last block height at which it is accepted."""

    blockhash: str
    last_valid_block_height: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class _IncompleteBlockhash(Exception):
    """Node answered without a usable blockhash."""


class BlockhashProvider:
    """
    Source of recent blockhashes for transaction preparation.

    The cache is off by default. When on, an entry is served only while it
    is younger than cache_ttl and the current block height is still below
    its last_valid_block_height.
    """

    def __init__(
        self,
        rpc_client: SolanaRPCClient,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
        cache_enabled: bool = False,
        cache_ttl: float = 20.0,
        sleep=asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock=time.monotonic,
        reporter: Optional[SystemReporter] = None,
    ):
        self.rpc_client = rpc_client
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self.cache_enabled = cache_enabled
        self.cache_ttl = cache_ttl
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self.reporter = reporter or SystemReporter(name="caissier.blockhash")

        self._cached: Optional[LatestBlockhash] = None
        self._cached_at: float = 0.0

    async def get_latest_blockhash(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> LatestBlockhash:
        """
        Get a fresh finalized blockhash.

        Args:
            max_retries: Attempt limit (defaults to the configured value)
            base_delay: Backoff base in seconds (defaults to configured)

        Returns:
            LatestBlockhash

        Raises:
            BlockhashUnavailableError: If every attempt failed
        """
        if self.cache_enabled:
            cached = await self._valid_cached()
            if cached is not None:
                return cached

        attempts = self.max_retries if max_retries is None else max_retries
        delay_base = self.base_delay if base_delay is None else base_delay

        def log_retry(retry_state):
            self.reporter.warning(
                f"Blockhash fetch attempt {retry_state.attempt_number}/"
                f"{attempts} failed: {retry_state.outcome.exception()}",
                context="Blockhash",
            )

        policy = RetryPolicy(
            max_attempts=attempts,
            backoff=lambda n: compute_blockhash_delay(
                n,
                base_delay=delay_base,
                max_jitter=self.max_jitter,
                rng=self._rng,
            ),
            retry_on_exception=lambda e: isinstance(
                e, (RPCException, _IncompleteBlockhash)
            ),
            sleep=self._sleep,
            before_sleep=log_retry,
        )

        try:
            latest = await policy.run(self._fetch_once)
        except RetryExhaustedError as e:
            self.reporter.error(
                f"No blockhash after {e.attempts} attempts: {e.last_exception}",
                context="Blockhash",
            )
            raise BlockhashUnavailableError(
                f"Failed to get latest blockhash after {e.attempts} attempts",
                attempts=e.attempts,
                details={"last_error": str(e.last_exception)},
            ) from e.last_exception

        if self.cache_enabled:
            self._cached = latest
            self._cached_at = self._clock()

        return latest

    async def _fetch_once(self) -> LatestBlockhash:
        value = await self.rpc_client.get_latest_blockhash("finalized")
        blockhash = value.get("blockhash")
        height = value.get("lastValidBlockHeight")

        if not blockhash or height is None:
            raise _IncompleteBlockhash("Invalid blockhash received from RPC")

        return LatestBlockhash(
            blockhash=blockhash,
            last_valid_block_height=int(height),
        )

    async def _valid_cached(self) -> Optional[LatestBlockhash]:
        cached = self._cached
        if cached is None:
            return None

        if self._clock() - self._cached_at >= self.cache_ttl:
            self._cached = None
            return None

        try:
            height = await self.rpc_client.get_block_height("finalized")
        except RPCException as e:
            self.reporter.debug(
                f"Block height check failed, refetching: {e}",
                context="Blockhash",
            )
            return None

        if height >= cached.last_valid_block_height:
            self._cached = None
            return None

        return cached

    def invalidate(self) -> None:
        """Drop any cached blockhash."""
        self._cached = None
