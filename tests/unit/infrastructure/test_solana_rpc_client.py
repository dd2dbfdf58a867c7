"""
Unit tests for SolanaRPCClient.

Runs the client against local aiohttp servers.

Usage:
    pytest tests/unit/infrastructure/test_solana_rpc_client.py
"""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from caissier.config import RpcConfig
from caissier.domain.exceptions import RPCException
from caissier.infrastructure.blockchain import (
    SolanaRPCClient,
    mask_api_key,
    mask_url,
)

UNREACHABLE = "http://127.0.0.1:1/"


@asynccontextmanager
async def rpc_server(handler):
    """Serve handler on POST / and yield its URL plus received payloads."""
    received = []

    async def recording(request):
        received.append(await request.json())
        return await handler(request)

    app = web.Application()
    app.router.add_post("/", recording)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/")), received
    finally:
        await server.close()


def result_handler(result):
    async def handler(request):
        return web.json_response({"jsonrpc": "2.0", "id": 1, "result": result})

    return handler


def status_handler(status):
    async def handler(request):
        return web.Response(status=status, text="unavailable")

    return handler


class TestSolanaRPCClient:
    """Tests for JSON-RPC calls and endpoint failover."""

    # ================================================================
    # Calls
    # ================================================================

    async def test_call_posts_jsonrpc_payload(self, reporter):
        """Test the request body follows JSON-RPC 2.0."""
        async with rpc_server(result_handler(42)) as (url, received):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                assert await client.call("getBlockHeight") == 42
            finally:
                await client.close()

        assert received == [
            {"jsonrpc": "2.0", "id": 1, "method": "getBlockHeight", "params": []}
        ]

    async def test_signature_statuses_request_history_search(self, reporter):
        """Test getSignatureStatuses asks for history search."""
        result = {"context": {"slot": 1}, "value": [None]}
        async with rpc_server(result_handler(result)) as (url, received):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                statuses = await client.get_signature_statuses(["SIG"])
            finally:
                await client.close()

        assert statuses == [None]
        assert received[0]["params"] == [
            ["SIG"],
            {"searchTransactionHistory": True},
        ]

    async def test_get_transaction_uses_finalized_json(self, reporter):
        """Test getTransaction parameters."""
        async with rpc_server(result_handler(None)) as (url, received):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                assert await client.get_transaction("SIG") is None
            finally:
                await client.close()

        assert received[0]["params"] == [
            "SIG",
            {
                "encoding": "json",
                "commitment": "finalized",
                "maxSupportedTransactionVersion": 0,
            },
        ]

    async def test_latest_blockhash_unwraps_value(self, reporter):
        """Test get_latest_blockhash returns the value member."""
        value = {"blockhash": "abc", "lastValidBlockHeight": 10}
        result = {"context": {"slot": 1}, "value": value}
        async with rpc_server(result_handler(result)) as (url, received):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                assert await client.get_latest_blockhash() == value
            finally:
                await client.close()

        assert received[0]["params"] == [{"commitment": "finalized"}]

    async def test_malformed_signature_status_entry_raises(self, reporter):
        """Test a status entry that is neither an object nor null."""
        result = {"context": {"slot": 1}, "value": ["garbage"]}
        async with rpc_server(result_handler(result)) as (url, _):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                with pytest.raises(RPCException, match="getSignatureStatuses entry"):
                    await client.get_signature_statuses(["SIG"])
            finally:
                await client.close()

    async def test_malformed_transaction_record_raises(self, reporter):
        """Test a getTransaction result that is not an object."""
        async with rpc_server(result_handler([1, 2])) as (url, _):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                with pytest.raises(RPCException, match="getTransaction"):
                    await client.get_transaction("SIG")
            finally:
                await client.close()

    # ================================================================
    # Errors
    # ================================================================

    async def test_jsonrpc_error_raises_without_fallback(self, reporter):
        """Test a JSON-RPC error object is an answer, not an outage."""

        async def error_handler(request):
            return web.json_response(
                {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "behind"}}
            )

        async with rpc_server(error_handler) as (primary, _):
            async with rpc_server(result_handler(1)) as (fallback, fallback_calls):
                client = SolanaRPCClient([primary, fallback], reporter=reporter)
                try:
                    with pytest.raises(RPCException):
                        await client.call("getBlockHeight")
                finally:
                    await client.close()

        assert fallback_calls == []

    async def test_malformed_json_raises(self, reporter):
        """Test a non-JSON body raises RPCException."""

        async def garbage(request):
            return web.Response(text="<html>oops</html>")

        async with rpc_server(garbage) as (url, _):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                with pytest.raises(RPCException):
                    await client.call("getBlockHeight")
            finally:
                await client.close()

    async def test_missing_result_raises(self, reporter):
        """Test a response without result is malformed."""

        async def empty(request):
            return web.json_response({"jsonrpc": "2.0", "id": 1})

        async with rpc_server(empty) as (url, _):
            client = SolanaRPCClient([url], reporter=reporter)
            try:
                with pytest.raises(RPCException):
                    await client.call("getBlockHeight")
            finally:
                await client.close()

    # ================================================================
    # Failover
    # ================================================================

    async def test_falls_back_on_server_error(self, reporter):
        """Test 5xx on the primary moves on to the fallback."""
        async with rpc_server(status_handler(503)) as (primary, primary_calls):
            async with rpc_server(result_handler(7)) as (fallback, _):
                client = SolanaRPCClient([primary, fallback], reporter=reporter)
                try:
                    assert await client.call("getBlockHeight") == 7
                finally:
                    await client.close()

        assert len(primary_calls) == 1

    async def test_falls_back_on_rate_limit(self, reporter):
        """Test 429 on the primary moves on to the fallback."""
        async with rpc_server(status_handler(429)) as (primary, _):
            async with rpc_server(result_handler(8)) as (fallback, _):
                client = SolanaRPCClient([primary, fallback], reporter=reporter)
                try:
                    assert await client.call("getBlockHeight") == 8
                finally:
                    await client.close()

    async def test_falls_back_on_connection_error(self, reporter):
        """Test an unreachable primary moves on to the fallback."""
        async with rpc_server(result_handler(9)) as (fallback, _):
            client = SolanaRPCClient([UNREACHABLE, fallback], reporter=reporter)
            try:
                assert await client.call("getBlockHeight") == 9
            finally:
                await client.close()

    async def test_all_endpoints_failing_raises(self, reporter):
        """Test RPCException when every endpoint is down."""
        async with rpc_server(status_handler(502)) as (primary, _):
            client = SolanaRPCClient([primary, UNREACHABLE], reporter=reporter)
            try:
                with pytest.raises(RPCException) as exc_info:
                    await client.call("getBlockHeight")
            finally:
                await client.close()

        assert len(exc_info.value.details["failures"]) == 2

    def test_requires_an_endpoint(self):
        """Test an empty endpoint list is rejected."""
        with pytest.raises(ValueError):
            SolanaRPCClient([])


class TestEndpointConfig:
    """Tests for endpoint ordering and key masking."""

    def test_helius_primary_alchemy_first_fallback(self):
        """Test keyed providers come before public endpoints."""
        config = RpcConfig(
            helius_api_key="helius-key-123456",
            alchemy_api_key="alchemy-key-654321",
            public_fallbacks=["https://api.mainnet-beta.solana.com"],
        )

        assert config.endpoints() == [
            "https://mainnet.helius-rpc.com/?api-key=helius-key-123456",
            "https://solana-mainnet.g.alchemy.com/v2/alchemy-key-654321",
            "https://api.mainnet-beta.solana.com",
        ]

    def test_public_primary_without_keys(self):
        """Test public mainnet is primary and not duplicated."""
        config = RpcConfig()

        endpoints = config.endpoints()
        assert endpoints[0] == "https://api.mainnet-beta.solana.com"
        assert len(endpoints) == len(set(endpoints))

    def test_explicit_primary_wins(self):
        """Test primary_url overrides provider keys."""
        config = RpcConfig(
            primary_url="http://localhost:8899",
            helius_api_key="helius-key-123456",
            public_fallbacks=[],
        )

        assert config.endpoints() == ["http://localhost:8899"]

    def test_mask_api_key(self):
        """Test only the first and last 4 characters survive."""
        assert mask_api_key("abcdefghijkl") == "abcd...ijkl"
        assert mask_api_key("short") is None
        assert mask_api_key(None) is None

    def test_mask_url(self):
        """Test provider URLs never log a full key."""
        masked = mask_url("https://mainnet.helius-rpc.com/?api-key=abcdefghijkl")
        assert masked == "https://mainnet.helius-rpc.com/?api-key=abcd...ijkl"

        masked = mask_url("https://solana-mainnet.g.alchemy.com/v2/abcdefghijkl")
        assert masked == "https://solana-mainnet.g.alchemy.com/v2/abcd...ijkl"
