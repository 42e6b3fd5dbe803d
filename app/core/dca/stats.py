"""
Stats Aggregator

Post-execution bookkeeping: atomic per-pair counters and the per-transaction
price impact cache used for ROI views. Registration-time counters and price
snapshots live here too but are only written by the registration flow.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .models import (
    DCASession,
    ExecutionResult,
    TelemetryWriteResult,
    normalize_address,
)

logger = logging.getLogger(__name__)


class StatsAggregator:
    """Best-effort writer of pair stats and price impact rows."""

    def __init__(self, convex_client: Any):
        self._convex = convex_client

    async def record_execution(self, session: DCASession, result: ExecutionResult) -> TelemetryWriteResult:
        """Bump executed counters and cache the impact of a successful run."""
        if not result.success:
            return TelemetryWriteResult(success=False, error="execution did not succeed")

        counters = await self.increment_executed(
            session.source_token,
            session.destination_token,
            session.amount_per_day,
        )
        if result.tx_hash is None:
            return counters

        cached = await self.store_price_impact(
            tx_hash=result.tx_hash,
            buyer=session.buyer_address,
            source_token=session.source_token,
            destination_token=session.destination_token,
            price_impact=result.price_impact,
            slippage_percent=result.slippage_percent,
            amount_in=session.amount_per_day,
            amount_out=result.amount_out,
        )
        if not counters.success:
            return counters
        return cached

    async def increment_executed(
        self,
        source_token: str,
        destination_token: str,
        amount: int,
    ) -> TelemetryWriteResult:
        """Single atomic increment of executed volume and purchase count."""
        try:
            await self._convex.increment_pair_stats(
                normalize_address(source_token),
                normalize_address(destination_token),
                volume_executed=amount,
                purchase_count=1,
            )
        except Exception as e:
            logger.error("[STATS] Failed to increment executed stats: %s", e)
            return TelemetryWriteResult(success=False, error=str(e))
        return TelemetryWriteResult(success=True)

    async def increment_registered(
        self,
        source_token: str,
        destination_token: str,
        amount: int,
    ) -> TelemetryWriteResult:
        """Registration-time volume; never touches executed counters."""
        try:
            await self._convex.increment_pair_stats(
                normalize_address(source_token),
                normalize_address(destination_token),
                volume_registered=amount,
            )
        except Exception as e:
            logger.error("[STATS] Failed to increment registered stats: %s", e)
            return TelemetryWriteResult(success=False, error=str(e))
        return TelemetryWriteResult(success=True)

    async def store_price_impact(
        self,
        *,
        tx_hash: str,
        buyer: str,
        source_token: str,
        destination_token: str,
        price_impact: Optional[float],
        slippage_percent: Optional[float] = None,
        amount_in: Optional[int] = None,
        amount_out: Optional[int] = None,
    ) -> TelemetryWriteResult:
        """Upsert keyed on the lower-cased tx hash."""
        row = {
            "tx_hash": normalize_address(tx_hash),
            "buyer": normalize_address(buyer),
            "source_token": normalize_address(source_token),
            "destination_token": normalize_address(destination_token),
            "price_impact": price_impact,
            "slippage_percent": slippage_percent,
            "amount_in": str(amount_in) if amount_in is not None else None,
            "amount_out": str(amount_out) if amount_out is not None else None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._convex.upsert_price_impact(row)
        except Exception as e:
            logger.error("Error storing price impact for %s: %s", tx_hash, e)
            return TelemetryWriteResult(success=False, error=str(e))
        return TelemetryWriteResult(success=True)

    async def store_price_snapshot(
        self,
        *,
        buyer: str,
        source_token: str,
        destination_token: str,
        amount_in: int,
        expected_output: int,
        price_impact: Optional[float],
    ) -> TelemetryWriteResult:
        """Registration-time reference price for later ROI comparison."""
        row = {
            "buyer": normalize_address(buyer),
            "source_token": normalize_address(source_token),
            "destination_token": normalize_address(destination_token),
            "amount_in": str(amount_in),
            "expected_output": str(expected_output),
            "price_impact": price_impact,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._convex.upsert_price_snapshot(row)
        except Exception as e:
            logger.error("Error storing price snapshot for %s: %s", buyer, e)
            return TelemetryWriteResult(success=False, error=str(e))
        return TelemetryWriteResult(success=True)
