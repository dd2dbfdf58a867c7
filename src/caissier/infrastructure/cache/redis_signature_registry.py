"""
Redis-backed processed-signature registry.

Shares the registry between worker processes. Registration is a single
SET NX, so two workers racing on one signature cannot both win.
"""

import json
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from caissier.domain.exceptions import RegistryError
from caissier.domain.services import ISignatureRegistry
from caissier.domain.value_objects import TransactionStatus


class RedisSignatureRegistry(ISignatureRegistry):
    """
    Redis implementation of the signature registry.

    Keys:
    - {prefix}:sig:{signature}       registration marker
    - {prefix}:terminal:{signature}  terminal status as JSON

    No TTL: entries live as long as the Redis data does.
    """

    def __init__(
        self,
        redis_client: Optional[aioredis.Redis] = None,
        redis_url: str = "redis://localhost:6379/0",
        password: Optional[str] = None,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        key_prefix: str = "caissier",
    ):
        """
        Initialize Redis signature registry.

        Args:
            redis_client: Optional Redis client. If None, one is created
                lazily from redis_url.
            redis_url: Redis connection URL
            password: Optional Redis password
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connect timeout in seconds
            key_prefix: Namespace for all keys
        """
        self.redis = redis_client
        self.redis_url = redis_url
        self.password = password
        self.socket_timeout = socket_timeout
        self.socket_connect_timeout = socket_connect_timeout
        self.key_prefix = key_prefix

    def _ensure_connection(self) -> aioredis.Redis:
        """Ensure Redis client exists."""
        if self.redis is None:
            self.redis = aioredis.from_url(
                self.redis_url,
                password=self.password,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_connect_timeout,
                decode_responses=True,
            )
        return self.redis

    def _sig_key(self, signature: str) -> str:
        return f"{self.key_prefix}:sig:{signature}"

    def _terminal_key(self, signature: str) -> str:
        return f"{self.key_prefix}:terminal:{signature}"

    async def register(self, signature: str) -> bool:
        client = self._ensure_connection()
        try:
            inserted = await client.set(self._sig_key(signature), "1", nx=True)
        except RedisError as e:
            raise RegistryError(
                f"Failed to register signature: {e}",
                details={"signature": signature},
            )
        return bool(inserted)

    async def contains(self, signature: str) -> bool:
        client = self._ensure_connection()
        try:
            return bool(await client.exists(self._sig_key(signature)))
        except RedisError as e:
            raise RegistryError(
                f"Failed to look up signature: {e}",
                details={"signature": signature},
            )

    async def record_terminal(
        self,
        signature: str,
        status: TransactionStatus,
    ) -> None:
        client = self._ensure_connection()
        try:
            await client.set(
                self._terminal_key(signature),
                json.dumps(status.to_record()),
                nx=True,
            )
        except RedisError as e:
            raise RegistryError(
                f"Failed to record terminal status: {e}",
                details={"signature": signature},
            )

    async def get_terminal(self, signature: str) -> Optional[TransactionStatus]:
        client = self._ensure_connection()
        try:
            raw = await client.get(self._terminal_key(signature))
        except RedisError as e:
            raise RegistryError(
                f"Failed to read terminal status: {e}",
                details={"signature": signature},
            )
        if raw is None:
            return None
        return TransactionStatus.from_record(json.loads(raw))

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        client = self._ensure_connection()
        try:
            return bool(await client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
