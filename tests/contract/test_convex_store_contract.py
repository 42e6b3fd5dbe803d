"""
Contract tests for the Convex store helpers.

Verify the function paths and argument shapes sent to the Convex HTTP API.
"""

import json

import httpx
import pytest

from app.db.convex_client import (
    ConvexAuthError,
    ConvexClient,
    ConvexError,
    ConvexMutationError,
    ConvexQueryError,
)


def make_client(handler, captured):
    def recording(request: httpx.Request) -> httpx.Response:
        captured.append({
            "url": str(request.url),
            "auth": request.headers.get("authorization"),
            "body": json.loads(request.content),
        })
        return handler(request)

    client = ConvexClient(deployment_url="https://dca.convex.cloud/", deploy_key="prod:key")
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(recording), headers=client.headers)
    return client


def ok(value=None):
    return lambda request: httpx.Response(200, json={"status": "success", "value": value})


class TestConvexStoreContract:

    @pytest.mark.asyncio
    async def test_insert_attempt(self):
        captured = []
        client = make_client(ok("id_1"), captured)

        result = await client.insert_dca_attempt({"buyer_address": "0xabc", "success": True})

        assert result == "id_1"
        assert captured[0]["url"] == "https://dca.convex.cloud/api/mutation"
        assert captured[0]["auth"] == "Convex prod:key"
        assert captured[0]["body"] == {
            "path": "dcaAttempts:insert",
            "args": {"buyer_address": "0xabc", "success": True},
        }

    @pytest.mark.asyncio
    async def test_list_attempts_with_filters(self):
        captured = []
        client = make_client(ok([{"success": True}]), captured)

        rows = await client.list_dca_attempts(1700000000000, buyer_address="0xabc")

        assert rows == [{"success": True}]
        assert captured[0]["url"].endswith("/api/query")
        assert captured[0]["body"] == {
            "path": "dcaAttempts:listSince",
            "args": {"sinceMs": 1700000000000, "buyerAddress": "0xabc"},
        }

    @pytest.mark.asyncio
    async def test_list_attempts_null_is_empty(self):
        client = make_client(ok(None), [])

        assert await client.list_dca_attempts(0) == []

    @pytest.mark.asyncio
    async def test_increment_sends_decimal_strings(self):
        captured = []
        client = make_client(ok(), captured)

        await client.increment_pair_stats("0xsrc", "0xdst", volume_executed=10**24, purchase_count=1)

        assert captured[0]["body"] == {
            "path": "pairStats:increment",
            "args": {
                "sourceToken": "0xsrc",
                "destinationToken": "0xdst",
                "volumeRegistered": "0",
                "volumeExecuted": "1000000000000000000000000",
                "purchaseCount": 1,
            },
        }

    @pytest.mark.asyncio
    async def test_price_impact_upsert_path(self):
        captured = []
        client = make_client(ok(), captured)

        await client.upsert_price_impact({"tx_hash": "0xabc"})

        assert captured[0]["body"]["path"] == "priceImpactCache:upsertByTxHash"

    @pytest.mark.asyncio
    async def test_get_pair_stats(self):
        captured = []
        client = make_client(ok({"purchase_count": 2}), captured)

        row = await client.get_pair_stats("0xsrc", "0xdst")

        assert row == {"purchase_count": 2}
        assert captured[0]["body"] == {
            "path": "pairStats:get",
            "args": {"sourceToken": "0xsrc", "destinationToken": "0xdst"},
        }


class TestConvexErrors:

    @pytest.mark.asyncio
    async def test_function_error_raises_mutation_error(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"status": "error", "errorMessage": "validator failed"}),
            [],
        )

        with pytest.raises(ConvexMutationError, match="validator failed"):
            await client.insert_dca_attempt({})

    @pytest.mark.asyncio
    async def test_http_error_raises_query_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"), [])

        with pytest.raises(ConvexQueryError):
            await client.get_pair_stats("a", "b")

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        client = make_client(lambda request: httpx.Response(401, text="nope"), [])

        with pytest.raises(ConvexAuthError):
            await client.query("pairStats:get", {})

    def test_requires_deployment_url(self, monkeypatch):
        monkeypatch.setattr("app.db.convex_client.settings.convex_url", "")

        with pytest.raises(ConvexError):
            ConvexClient()
