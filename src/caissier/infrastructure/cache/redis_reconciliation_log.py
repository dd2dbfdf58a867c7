"""
Redis-backed reconciliation log.
"""

import json
from typing import List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from caissier.domain.entities import ReconciliationEntry
from caissier.domain.exceptions import RegistryError
from caissier.domain.services import IReconciliationLog


class RedisReconciliationLog(IReconciliationLog):
    """
    Reconciliation entries as a JSON list under {prefix}:reconciliation.

    LPUSH keeps the newest entry at the head.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        key_prefix: str = "caissier",
    ):
        self.redis = redis_client
        self.key = f"{key_prefix}:reconciliation"

    async def record(self, entry: ReconciliationEntry) -> None:
        try:
            await self.redis.lpush(self.key, json.dumps(entry.to_dict()))
        except RedisError as e:
            raise RegistryError(
                f"Failed to record reconciliation entry: {e}",
                details={"signature": entry.signature},
            )

    async def pending(self, limit: int = 50) -> List[ReconciliationEntry]:
        if limit <= 0:
            return []
        try:
            raw_entries: Optional[list] = await self.redis.lrange(
                self.key, 0, limit - 1
            )
        except RedisError as e:
            raise RegistryError(f"Failed to read reconciliation log: {e}")
        return [ReconciliationEntry.from_dict(json.loads(raw)) for raw in raw_entries or []]
