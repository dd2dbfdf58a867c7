"""
Unit tests for BlockhashProvider and TransactionBuilder.

Usage:
    pytest tests/unit/infrastructure/test_blockhash_provider.py
"""

import pytest
from solders.pubkey import Pubkey

from caissier.domain.entities import PaymentTransaction
from caissier.domain.exceptions import (
    BlockhashUnavailableError,
    InvalidTransactionError,
)
from caissier.infrastructure.blockchain import (
    BlockhashProvider,
    TransactionBuilder,
)
from tests.helpers.fakes import (
    FEE_PAYER,
    VALID_BLOCKHASH,
    FakeRPCClient,
    memo_instruction,
    rpc_error,
)

OTHER_BLOCKHASH = "SysvarC1ock11111111111111111111111111111111"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def make_provider(sleep, rng, reporter):
    def _make(rpc, **kwargs):
        return BlockhashProvider(
            rpc_client=rpc,
            sleep=sleep,
            rng=rng,
            reporter=reporter,
            **kwargs,
        )

    return _make


class TestBlockhashProvider:
    """Tests for blockhash fetching with retry and caching."""

    # ================================================================
    # Fetching
    # ================================================================

    async def test_returns_blockhash_on_first_attempt(self, make_provider, sleep):
        """Test a healthy node answers without retries."""
        rpc = FakeRPCClient()
        provider = make_provider(rpc)

        latest = await provider.get_latest_blockhash()

        assert latest.blockhash == VALID_BLOCKHASH
        assert latest.last_valid_block_height == 200
        assert rpc.blockhash_calls == 1
        assert sleep.delays == []

    async def test_incomplete_answers_are_retried(self, make_provider, sleep):
        """Test missing fields count as a failed attempt."""
        rpc = FakeRPCClient(
            blockhashes=[
                {},
                {"blockhash": VALID_BLOCKHASH},
                {"blockhash": VALID_BLOCKHASH, "lastValidBlockHeight": 300},
            ]
        )
        provider = make_provider(rpc)

        latest = await provider.get_latest_blockhash()

        assert latest.last_valid_block_height == 300
        assert rpc.blockhash_calls == 3
        assert len(sleep.delays) == 2

    async def test_rpc_errors_are_retried(self, make_provider):
        """Test RPC failures are retried within the budget."""
        rpc = FakeRPCClient(
            blockhashes=[
                rpc_error(),
                {"blockhash": VALID_BLOCKHASH, "lastValidBlockHeight": 250},
            ]
        )
        provider = make_provider(rpc)

        latest = await provider.get_latest_blockhash()

        assert latest.last_valid_block_height == 250

    async def test_exhaustion_raises_unavailable(self, make_provider, sleep):
        """Test BlockhashUnavailableError after max_retries attempts."""
        rpc = FakeRPCClient(blockhashes=[rpc_error()])
        provider = make_provider(rpc)

        with pytest.raises(BlockhashUnavailableError) as exc_info:
            await provider.get_latest_blockhash()

        assert exc_info.value.attempts == 3
        assert "after 3 attempts" in str(exc_info.value)
        assert rpc.blockhash_calls == 3
        assert len(sleep.delays) == 2

    async def test_backoff_doubles_from_base_delay(self, make_provider, sleep):
        """Test delays are base, 2*base, 4*base without jitter."""
        rpc = FakeRPCClient(blockhashes=[{}])
        provider = make_provider(rpc, max_jitter=0.0)

        with pytest.raises(BlockhashUnavailableError):
            await provider.get_latest_blockhash(max_retries=4, base_delay=0.5)

        assert sleep.delays == pytest.approx([0.5, 1.0, 2.0])

    async def test_explicit_zero_retries_is_rejected(self, make_provider):
        """Test max_retries=0 is not silently replaced by the default."""
        rpc = FakeRPCClient()
        provider = make_provider(rpc)

        with pytest.raises(ValueError, match="max_attempts"):
            await provider.get_latest_blockhash(max_retries=0)

        assert rpc.blockhash_calls == 0

    # ================================================================
    # Cache
    # ================================================================

    async def test_cache_disabled_always_fetches(self, make_provider):
        """Test every call hits the network by default."""
        rpc = FakeRPCClient()
        provider = make_provider(rpc)

        await provider.get_latest_blockhash()
        await provider.get_latest_blockhash()

        assert rpc.blockhash_calls == 2
        assert rpc.block_height_calls == 0

    async def test_cache_serves_while_block_height_valid(self, make_provider):
        """Test a cached blockhash is reused below its validity height."""
        rpc = FakeRPCClient(block_height=150)
        provider = make_provider(rpc, cache_enabled=True, clock=FakeClock())

        first = await provider.get_latest_blockhash()
        second = await provider.get_latest_blockhash()

        assert second is first
        assert rpc.blockhash_calls == 1
        assert rpc.block_height_calls == 1

    async def test_cache_refetches_past_validity_height(self, make_provider):
        """Test a blockhash is never served once the chain passed it."""
        rpc = FakeRPCClient(
            blockhashes=[
                {"blockhash": VALID_BLOCKHASH, "lastValidBlockHeight": 200},
                {"blockhash": OTHER_BLOCKHASH, "lastValidBlockHeight": 400},
            ],
            block_height=200,
        )
        provider = make_provider(rpc, cache_enabled=True, clock=FakeClock())

        await provider.get_latest_blockhash()
        latest = await provider.get_latest_blockhash()

        assert latest.blockhash == OTHER_BLOCKHASH
        assert rpc.blockhash_calls == 2

    async def test_cache_expires_after_ttl(self, make_provider):
        """Test age alone invalidates the cache."""
        clock = FakeClock()
        rpc = FakeRPCClient(block_height=100)
        provider = make_provider(
            rpc, cache_enabled=True, cache_ttl=20.0, clock=clock
        )

        await provider.get_latest_blockhash()
        clock.now = 25.0
        await provider.get_latest_blockhash()

        assert rpc.blockhash_calls == 2
        assert rpc.block_height_calls == 0

    async def test_cache_refetches_when_height_unknown(self, make_provider):
        """Test a failed height check is treated as a miss."""
        rpc = FakeRPCClient(block_height=rpc_error())
        provider = make_provider(rpc, cache_enabled=True, clock=FakeClock())

        await provider.get_latest_blockhash()
        await provider.get_latest_blockhash()

        assert rpc.blockhash_calls == 2

    async def test_invalidate_drops_cache(self, make_provider):
        """Test invalidate forces a fresh fetch."""
        rpc = FakeRPCClient(block_height=100)
        provider = make_provider(rpc, cache_enabled=True, clock=FakeClock())

        await provider.get_latest_blockhash()
        provider.invalidate()
        await provider.get_latest_blockhash()

        assert rpc.blockhash_calls == 2


class TestTransactionBuilder:
    """Tests for preparing transactions for signing."""

    @pytest.fixture
    def builder(self, make_provider, reporter):
        return TransactionBuilder(make_provider(FakeRPCClient()), reporter=reporter)

    async def test_builds_from_instructions(self, builder):
        """Test a new transaction is stamped with blockhash and fee payer."""
        tx = await builder.prepare([memo_instruction()], FEE_PAYER)

        assert tx.recent_blockhash == VALID_BLOCKHASH
        assert tx.last_valid_block_height == 200
        assert tx.fee_payer == Pubkey.from_string(FEE_PAYER)
        assert len(tx.instructions) == 1
        assert tx.compile() is not None

    async def test_refreshes_existing_transaction_in_place(self, builder):
        """Test an existing draft keeps its instructions."""
        instruction = memo_instruction()
        draft = PaymentTransaction(
            instructions=[instruction],
            recent_blockhash=OTHER_BLOCKHASH,
        )

        tx = await builder.prepare(draft, Pubkey.from_string(FEE_PAYER))

        assert tx is draft
        assert tx.recent_blockhash == VALID_BLOCKHASH
        assert tx.instructions == [instruction]

    async def test_empty_instructions_are_invalid(self, builder):
        """Test a transaction without instructions is rejected."""
        with pytest.raises(InvalidTransactionError) as exc_info:
            await builder.prepare([], FEE_PAYER)

        assert exc_info.value.missing_fields == ["instructions"]

    async def test_invalid_fee_payer(self, builder):
        """Test a malformed fee payer address raises ValueError."""
        with pytest.raises(ValueError, match="Invalid fee payer"):
            await builder.prepare([memo_instruction()], "not-a-key")

    async def test_blockhash_failure_propagates(self, make_provider, reporter):
        """Test BlockhashUnavailableError reaches the caller."""
        provider = make_provider(FakeRPCClient(blockhashes=[rpc_error()]))
        builder = TransactionBuilder(provider, reporter=reporter)

        with pytest.raises(BlockhashUnavailableError):
            await builder.prepare([memo_instruction()], FEE_PAYER)

    def test_validate_names_every_missing_field(self):
        """Test validation reports all missing fields at once."""
        with pytest.raises(InvalidTransactionError) as exc_info:
            TransactionBuilder.validate_transaction(PaymentTransaction())

        assert exc_info.value.missing_fields == [
            "recent_blockhash",
            "fee_payer",
            "instructions",
        ]
