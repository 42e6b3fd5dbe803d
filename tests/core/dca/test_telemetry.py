"""
Tests for AttemptRecorder and StatsAggregator

The store is an in-memory fake mirroring the server-side semantics of the
Convex functions: inserts append, upserts replace by key, increments add.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from app.core.dca import (
    AttemptRecorder,
    DCASession,
    ExecutionAttempt,
    ExecutionResult,
    SessionState,
    StatsAggregator,
)

BUYER = "0xAbCdEf0000000000000000000000000000000001"
USDC = "0xF1815bd50389c46847f0Bda824eC8da914045D14"
TOKEN = "0x1234567890AbCdEf1234567890aBcDeF12345678"


class InMemoryStore:
    """Store fake whose increment is atomic per call."""

    def __init__(self):
        self.attempts = []
        self.price_impacts = {}
        self.snapshots = []
        self.pairs = {}

    async def insert_dca_attempt(self, row):
        self.attempts.append(row)

    async def upsert_price_impact(self, row):
        self.price_impacts[row["tx_hash"]] = row

    async def upsert_price_snapshot(self, row):
        self.snapshots.append(row)

    async def increment_pair_stats(
        self, source_token, destination_token, *, volume_registered=0, volume_executed=0, purchase_count=0
    ):
        # Yield first so concurrent callers interleave before the update
        await asyncio.sleep(0)
        key = (source_token, destination_token)
        row = self.pairs.setdefault(
            key, {"volume_registered": 0, "volume_executed": 0, "purchase_count": 0}
        )
        row["volume_registered"] += volume_registered
        row["volume_executed"] += volume_executed
        row["purchase_count"] += purchase_count


@pytest.fixture
def store():
    return InMemoryStore()


def session(amount=100):
    return DCASession(BUYER, USDC, TOKEN, amount, 10)


def success(tx_hash="0xABC", impact=-0.4):
    return ExecutionResult(
        buyer_address=BUYER,
        destination_token=TOKEN,
        success=True,
        state=SessionState.SUCCEEDED,
        tx_hash=tx_hash,
        router="Relay",
        amount_out=95,
        price_impact=impact,
        slippage_percent=0.5,
    )


# =============================================================================
# AttemptRecorder
# =============================================================================


class TestAttemptRecorder:

    @pytest.mark.asyncio
    async def test_record_appends_row(self, store):
        attempt = ExecutionAttempt(BUYER, USDC, TOKEN, 100, success=True, transaction_hash="0xABC")

        result = await AttemptRecorder(store).record(attempt)

        assert result.success is True
        assert len(store.attempts) == 1
        assert store.attempts[0]["buyer_address"] == BUYER.lower()
        assert store.attempts[0]["transaction_hash"] == "0xabc"

    @pytest.mark.asyncio
    async def test_record_never_raises(self):
        failing = AsyncMock()
        failing.insert_dca_attempt.side_effect = RuntimeError("store unavailable")
        attempt = ExecutionAttempt(BUYER, USDC, TOKEN, 100, success=False)

        result = await AttemptRecorder(failing).record(attempt)

        assert result.success is False
        assert result.error == "store unavailable"


# =============================================================================
# StatsAggregator
# =============================================================================


class TestStatsAggregator:

    @pytest.mark.asyncio
    async def test_record_execution_updates_counters_and_impact(self, store):
        outcome = await StatsAggregator(store).record_execution(session(), success())

        assert outcome.success is True
        pair = store.pairs[(USDC.lower(), TOKEN.lower())]
        assert pair == {"volume_registered": 0, "volume_executed": 100, "purchase_count": 1}
        row = store.price_impacts["0xabc"]
        assert row["price_impact"] == -0.4
        assert row["amount_in"] == "100"
        assert row["amount_out"] == "95"
        assert row["buyer"] == BUYER.lower()

    @pytest.mark.asyncio
    async def test_price_impact_upsert_is_idempotent(self, store):
        stats = StatsAggregator(store)

        await stats.store_price_impact(
            tx_hash="0xABC", buyer=BUYER, source_token=USDC, destination_token=TOKEN, price_impact=-0.4,
        )
        await stats.store_price_impact(
            tx_hash="0xabc", buyer=BUYER, source_token=USDC, destination_token=TOKEN, price_impact=0.1,
        )

        assert len(store.price_impacts) == 1
        assert store.price_impacts["0xabc"]["price_impact"] == 0.1

    @pytest.mark.asyncio
    async def test_concurrent_executions_lose_no_updates(self, store):
        stats = StatsAggregator(store)
        n, amount = 25, 10**18

        await asyncio.gather(*(stats.increment_executed(USDC, TOKEN, amount) for _ in range(n)))

        pair = store.pairs[(USDC.lower(), TOKEN.lower())]
        assert pair["volume_executed"] == n * amount
        assert pair["purchase_count"] == n

    @pytest.mark.asyncio
    async def test_registration_never_touches_executed(self, store):
        stats = StatsAggregator(store)

        await stats.increment_registered(USDC, TOKEN, 500)

        pair = store.pairs[(USDC.lower(), TOKEN.lower())]
        assert pair == {"volume_registered": 500, "volume_executed": 0, "purchase_count": 0}

    @pytest.mark.asyncio
    async def test_failed_result_is_not_counted(self, store):
        failed = ExecutionResult(BUYER, TOKEN, False, SessionState.FAILED, error="boom")

        outcome = await StatsAggregator(store).record_execution(session(), failed)

        assert outcome.success is False
        assert store.pairs == {}

    @pytest.mark.asyncio
    async def test_store_errors_are_reported_not_raised(self):
        failing = AsyncMock()
        failing.increment_pair_stats.side_effect = RuntimeError("rpc failed")
        failing.upsert_price_impact.return_value = None

        outcome = await StatsAggregator(failing).record_execution(session(), success())

        assert outcome.success is False
        assert outcome.error == "rpc failed"
        # Impact row is still attempted
        failing.upsert_price_impact.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_price_snapshot(self, store):
        result = await StatsAggregator(store).store_price_snapshot(
            buyer=BUYER,
            source_token=USDC,
            destination_token=TOKEN,
            amount_in=100,
            expected_output=97,
            price_impact=-0.2,
        )

        assert result.success is True
        assert store.snapshots[0]["expected_output"] == "97"
        assert store.snapshots[0]["source_token"] == USDC.lower()
