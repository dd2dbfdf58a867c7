"""
Unit tests for signature registries and reconciliation logs.

Redis-backed stores are tested against an AsyncMock client.

Usage:
    pytest tests/unit/infrastructure/test_registries.py
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from caissier.domain.entities import ReconciliationEntry
from caissier.domain.entities.reconciliation_entry import ReconciliationReason
from caissier.domain.exceptions import RegistryError
from caissier.domain.value_objects import ConfirmationState, TransactionStatus
from caissier.infrastructure.cache import (
    InMemoryReconciliationLog,
    InMemorySignatureRegistry,
    RedisReconciliationLog,
    RedisSignatureRegistry,
)

SIGNATURE = "3AsdoALgZFuq2oUVWrDYhg2pNeaLJKPLf8hU2mQ6U8qJxeJ6hsrhKpPjPbm4MmhjR8mM1Tq5N7TV3WvS9pVJtQoV"


class TestInMemorySignatureRegistry:
    """Tests for the process-local registry."""

    async def test_first_registration_wins(self):
        """Test register returns True once per signature."""
        registry = InMemorySignatureRegistry()

        assert await registry.register(SIGNATURE) is True
        assert await registry.register(SIGNATURE) is False
        assert await registry.contains(SIGNATURE)
        assert len(registry) == 1

    async def test_concurrent_registration_is_atomic(self):
        """Test exactly one of many concurrent registrations succeeds."""
        registry = InMemorySignatureRegistry()

        results = await asyncio.gather(
            *[registry.register(SIGNATURE) for _ in range(50)]
        )

        assert results.count(True) == 1

    async def test_unknown_signature(self):
        """Test lookups for a signature never registered."""
        registry = InMemorySignatureRegistry()

        assert not await registry.contains(SIGNATURE)
        assert await registry.get_terminal(SIGNATURE) is None

    async def test_first_terminal_status_is_kept(self):
        """Test a recorded terminal status is never replaced."""
        registry = InMemorySignatureRegistry()
        confirmed = TransactionStatus.confirmed(SIGNATURE)
        failed = TransactionStatus.failed(SIGNATURE, "late failure")

        await registry.record_terminal(SIGNATURE, confirmed)
        await registry.record_terminal(SIGNATURE, failed)

        assert await registry.get_terminal(SIGNATURE) == confirmed


class TestRedisSignatureRegistry:
    """Tests for the Redis registry against a mocked client."""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.set.return_value = True
        client.get.return_value = None
        client.exists.return_value = 0
        client.ping.return_value = True
        return client

    @pytest.fixture
    def registry(self, redis_client):
        return RedisSignatureRegistry(redis_client=redis_client, key_prefix="test")

    async def test_register_uses_set_nx(self, registry, redis_client):
        """Test registration is a single SET NX."""
        assert await registry.register(SIGNATURE) is True

        redis_client.set.assert_awaited_once_with(
            f"test:sig:{SIGNATURE}", "1", nx=True
        )

    async def test_register_existing_returns_false(self, registry, redis_client):
        """Test SET NX returning None means already registered."""
        redis_client.set.return_value = None

        assert await registry.register(SIGNATURE) is False

    async def test_contains(self, registry, redis_client):
        """Test EXISTS on the registration key."""
        redis_client.exists.return_value = 1

        assert await registry.contains(SIGNATURE)
        redis_client.exists.assert_awaited_once_with(f"test:sig:{SIGNATURE}")

    async def test_record_terminal_stores_json_once(self, registry, redis_client):
        """Test terminal statuses are written with NX."""
        status = TransactionStatus.confirmed(SIGNATURE, warning="deferred")

        await registry.record_terminal(SIGNATURE, status)

        args, kwargs = redis_client.set.call_args
        assert args[0] == f"test:terminal:{SIGNATURE}"
        assert json.loads(args[1])["warning"] == "deferred"
        assert kwargs == {"nx": True}

    async def test_get_terminal_rebuilds_status(self, registry, redis_client):
        """Test a stored record becomes a TransactionStatus."""
        stored = TransactionStatus.failed(
            SIGNATURE,
            "Transaction failed on chain",
            state=ConfirmationState.REJECTED,
        )
        redis_client.get.return_value = json.dumps(stored.to_record())

        status = await registry.get_terminal(SIGNATURE)

        assert status == stored
        assert status.state == ConfirmationState.REJECTED

    async def test_get_terminal_missing(self, registry):
        """Test None when nothing was recorded."""
        assert await registry.get_terminal(SIGNATURE) is None

    async def test_redis_errors_become_registry_errors(self, registry, redis_client):
        """Test RedisError is wrapped in RegistryError."""
        redis_client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(RegistryError):
            await registry.register(SIGNATURE)

    async def test_ping(self, registry, redis_client):
        """Test ping reports connectivity and swallows Redis errors."""
        assert await registry.ping() is True

        redis_client.ping.side_effect = RedisConnectionError("refused")
        assert await registry.ping() is False

    async def test_close(self, registry, redis_client):
        """Test close releases the client."""
        await registry.close()

        redis_client.aclose.assert_awaited_once()


class TestReconciliationLogs:
    """Tests for reconciliation storage."""

    # ================================================================
    # In-memory
    # ================================================================

    async def test_in_memory_newest_first(self):
        """Test pending returns the most recent entries first."""
        log = InMemoryReconciliationLog()

        await log.record(ReconciliationEntry("sig-1", ReconciliationReason.TIMED_OUT))
        await log.record(
            ReconciliationEntry("sig-2", ReconciliationReason.DELEGATE_UNAVAILABLE)
        )

        entries = await log.pending()
        assert [entry.signature for entry in entries] == ["sig-2", "sig-1"]

    async def test_in_memory_bounded(self):
        """Test the log keeps at most max_entries."""
        log = InMemoryReconciliationLog(max_entries=2)

        for index in range(5):
            await log.record(
                ReconciliationEntry(f"sig-{index}", ReconciliationReason.CANCELLED)
            )

        entries = await log.pending(limit=10)
        assert [entry.signature for entry in entries] == ["sig-4", "sig-3"]

    # ================================================================
    # Redis
    # ================================================================

    async def test_redis_record_pushes_json(self):
        """Test entries are LPUSHed as JSON."""
        client = AsyncMock()
        log = RedisReconciliationLog(client, key_prefix="test")
        entry = ReconciliationEntry(
            SIGNATURE,
            ReconciliationReason.TEMPORARILY_APPROVED,
            order_id="order-1",
            detail="pending review",
        )

        await log.record(entry)

        key, raw = client.lpush.call_args.args
        assert key == "test:reconciliation"
        assert json.loads(raw)["reason"] == "temporarily_approved"

    async def test_redis_pending_reads_range(self):
        """Test pending maps LRANGE results back to entries."""
        entry = ReconciliationEntry(
            SIGNATURE, ReconciliationReason.DELEGATE_ERROR, detail="HTTP 500"
        )
        client = AsyncMock()
        client.lrange.return_value = [json.dumps(entry.to_dict())]
        log = RedisReconciliationLog(client, key_prefix="test")

        entries = await log.pending(limit=20)

        client.lrange.assert_awaited_once_with("test:reconciliation", 0, 19)
        assert entries == [entry]

    async def test_redis_failure_raises_registry_error(self):
        """Test RedisError on record is wrapped."""
        client = AsyncMock()
        client.lpush.side_effect = RedisConnectionError("refused")
        log = RedisReconciliationLog(client)

        with pytest.raises(RegistryError):
            await log.record(
                ReconciliationEntry(SIGNATURE, ReconciliationReason.TIMED_OUT)
            )
