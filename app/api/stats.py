"""
DCA Telemetry & Reporting Endpoints

Attempt log writes and analytics, the per-transaction price impact cache,
price impact previews for prospective registrations, and pair counters.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from app.cache import TTLCache
from app.config import settings
from app.core.dca import (
    AttemptRecorder,
    ExecutionAttempt,
    PairStats,
    QuoteParseError,
    QuoteRouter,
    QuoteStatus,
    StatsAggregator,
)
from app.core.dca.models import normalize_address
from app.core.dca.price_impact import format_price_impact, price_impact_severity
from app.db.convex_client import ConvexError, get_convex_client
from app.services.attempt_analytics import cutoff_ms, summarize_attempts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["DCA Stats"])


# =============================================================================
# Request Models
# =============================================================================


class StoreAttemptRequest(BaseModel):
    """Attempt row reported by an external executor."""
    buyer_address: Optional[str] = Field(None, alias="buyerAddress")
    source_token: Optional[str] = Field(None, alias="sourceToken")
    destination_token: Optional[str] = Field(None, alias="destinationToken")
    amount_per_day: Optional[int] = Field(None, alias="amountPerDay")
    success: Optional[bool] = None
    error_message: Optional[str] = Field(None, alias="errorMessage")
    retry_count: int = Field(0, alias="retryCount", ge=0)
    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    price_impact: Optional[float] = Field(None, alias="priceImpact")
    slippage_percent: Optional[float] = Field(None, alias="slippagePercent")
    router_used: Optional[str] = Field(None, alias="routerUsed")
    days_left: Optional[int] = Field(None, alias="daysLeft")

    class Config:
        populate_by_name = True


class StorePriceImpactRequest(BaseModel):
    """Price impact of one confirmed transaction."""
    tx_hash: Optional[str] = Field(None, alias="txHash")
    buyer: Optional[str] = None
    source_token: Optional[str] = Field(None, alias="sourceToken")
    destination_token: Optional[str] = Field(None, alias="destinationToken")
    price_impact: Optional[float] = Field(None, alias="priceImpact")
    slippage_percent: Optional[float] = Field(None, alias="slippagePercent")
    amount_in: Optional[int] = Field(None, alias="amountIn")
    amount_out: Optional[int] = Field(None, alias="amountOut")

    class Config:
        populate_by_name = True


class PriceImpactPreviewRequest(BaseModel):
    """Prospective daily purchase to price before registering it."""
    source_token: str = Field(..., alias="sourceToken")
    destination_token: str = Field(..., alias="destinationToken")
    amount_per_day: int = Field(..., alias="amountPerDay", gt=0, description="Base units")

    class Config:
        populate_by_name = True


class RegistrationStatsRequest(BaseModel):
    """Registration-time volume and reference price."""
    buyer: str
    source_token: str = Field(..., alias="sourceToken")
    destination_token: str = Field(..., alias="destinationToken")
    amount: int = Field(..., gt=0, description="Registered volume in base units")
    expected_output: Optional[int] = Field(None, alias="expectedOutput")
    price_impact: Optional[float] = Field(None, alias="priceImpact")

    class Config:
        populate_by_name = True


# =============================================================================
# Dependencies
# =============================================================================


_pair_stats_cache = TTLCache(default_ttl=settings.pair_stats_cache_ttl_seconds)


def get_store() -> Any:
    """Get the telemetry store, mapping missing configuration to a 500."""
    try:
        return get_convex_client()
    except ConvexError as e:
        logger.error("Telemetry store unavailable: %s", e)
        raise HTTPException(status_code=500, detail="Telemetry store not configured")


def get_attempt_recorder(store: Any = Depends(get_store)) -> AttemptRecorder:
    return AttemptRecorder(store)


def get_stats_aggregator(store: Any = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)


def get_quote_router() -> QuoteRouter:
    return QuoteRouter()


def get_pair_stats_cache() -> TTLCache:
    return _pair_stats_cache


# =============================================================================
# Attempt log
# =============================================================================


@router.post("/dca-attempts")
async def store_dca_attempt(
    request: StoreAttemptRequest,
    recorder: AttemptRecorder = Depends(get_attempt_recorder),
) -> Dict[str, Any]:
    """Append one attempt row to the log."""
    if (
        not request.buyer_address
        or not request.source_token
        or not request.destination_token
        or not request.amount_per_day
        or request.success is None
    ):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: buyerAddress, sourceToken, destinationToken, amountPerDay, success",
        )

    attempt = ExecutionAttempt(
        buyer_address=request.buyer_address,
        source_token=request.source_token,
        destination_token=request.destination_token,
        amount_per_day=request.amount_per_day,
        success=request.success,
        retry_count=request.retry_count,
        error_message=request.error_message,
        transaction_hash=request.transaction_hash,
        price_impact=request.price_impact,
        slippage_percent=request.slippage_percent,
        router_used=request.router_used,
        days_left=request.days_left,
    )
    result = await recorder.record(attempt)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)

    return {"success": True, "message": "DCA attempt tracked successfully"}


@router.get("/dca-attempts/stats")
async def get_dca_attempt_stats(
    password: Optional[str] = Query(None),
    buyer: Optional[str] = Query(None),
    token: Optional[str] = Query(None),
    days: int = Query(30),
    store: Any = Depends(get_store),
) -> Dict[str, Any]:
    """Success rates, error breakdown and recent history of the attempt log."""
    if not settings.visualizer_password or password != settings.visualizer_password:
        raise HTTPException(status_code=401, detail="Unauthorized")

    days_back = days if days > 0 else 30
    since = cutoff_ms(int(time.time() * 1000), days_back)
    try:
        attempts = await store.list_dca_attempts(
            since,
            buyer_address=normalize_address(buyer) if buyer else None,
            destination_token=normalize_address(token) if token else None,
        )
    except ConvexError as e:
        logger.error("[get-dca-attempt-stats] Query error: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    return summarize_attempts(attempts, days_back)


# =============================================================================
# Price impact
# =============================================================================


@router.post("/price-impact")
async def store_price_impact(
    request: StorePriceImpactRequest,
    stats: StatsAggregator = Depends(get_stats_aggregator),
) -> Dict[str, Any]:
    """Upsert the price impact row of one transaction."""
    if not request.tx_hash or not request.buyer or not request.source_token or not request.destination_token:
        raise HTTPException(status_code=400, detail="Missing required fields")

    result = await stats.store_price_impact(
        tx_hash=request.tx_hash,
        buyer=request.buyer,
        source_token=request.source_token,
        destination_token=request.destination_token,
        price_impact=request.price_impact,
        slippage_percent=request.slippage_percent,
        amount_in=request.amount_in,
        amount_out=request.amount_out,
    )
    if not result.success:
        raise HTTPException(status_code=500, detail="Failed to store price impact")
    return {"success": True}


@router.post("/price-impact/preview")
async def preview_price_impact(
    request: PriceImpactPreviewRequest,
    quote_router: QuoteRouter = Depends(get_quote_router),
) -> Dict[str, Any]:
    """Quote a prospective daily amount and describe its price impact."""
    if not settings.dca_contract_address:
        raise HTTPException(status_code=500, detail="CONTRACT_ADDRESS is not configured")

    try:
        result = await quote_router.get_quote(
            settings.dca_contract_address,
            request.source_token,
            request.destination_token,
            request.amount_per_day,
        )
    except (httpx.RequestError, QuoteParseError) as e:
        logger.error("Price impact preview failed: %s", e)
        return {"error": QuoteStatus.API_ERROR.value, "errorMessage": str(e)}

    if not result.ok:
        return {"error": result.status.value, "errorMessage": result.error_message}

    quote = result.quote
    return {
        "priceImpact": quote.price_impact_percent,
        "formattedPriceImpact": format_price_impact(quote.price_impact_percent),
        "severity": price_impact_severity(quote.price_impact_percent),
        "expectedOutput": str(quote.expected_output_amount),
        "minimumOutput": (
            str(quote.minimum_output_amount) if quote.minimum_output_amount is not None else None
        ),
        "slippagePercent": quote.slippage_tolerance_percent,
        "router": quote_router.name,
    }


# =============================================================================
# Pair stats
# =============================================================================


@router.get("/pair-stats")
async def get_pair_stats(
    source: str = Query(...),
    destination: str = Query(...),
    store: Any = Depends(get_store),
    cache: TTLCache = Depends(get_pair_stats_cache),
) -> Dict[str, Any]:
    """Counters of one token pair; zeros when the pair was never used."""
    source_token = normalize_address(source)
    destination_token = normalize_address(destination)
    cache_key = f"{source_token}-{destination_token}"

    entry = await cache.get_entry(cache_key)
    if entry is not None:
        return {**entry.value, "cached": True, "cacheAge": int(cache.age(entry))}

    try:
        row = await store.get_pair_stats(source_token, destination_token)
    except ConvexError as e:
        logger.error("[STATS] Error fetching stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch stats")

    stats = PairStats.from_row(row) if row else PairStats.empty(source_token, destination_token)
    data = stats.to_dict()
    await cache.set(cache_key, data)
    return data


@router.post("/pair-stats/registration")
async def record_registration(
    request: RegistrationStatsRequest,
    stats: StatsAggregator = Depends(get_stats_aggregator),
) -> Dict[str, Any]:
    """Add registered volume and, when priced, store the reference snapshot."""
    counters = await stats.increment_registered(
        request.source_token,
        request.destination_token,
        request.amount,
    )
    if not counters.success:
        raise HTTPException(status_code=500, detail="Failed to update registration stats")

    snapshot_stored = False
    if request.expected_output is not None:
        snapshot = await stats.store_price_snapshot(
            buyer=request.buyer,
            source_token=request.source_token,
            destination_token=request.destination_token,
            amount_in=request.amount,
            expected_output=request.expected_output,
            price_impact=request.price_impact,
        )
        snapshot_stored = snapshot.success

    return {"success": True, "snapshotStored": snapshot_stored}
