"""
DCA Execution Models

Typed records flowing through the execution pipeline: the live session read
from chain, the routed quote, per-session results and the persisted attempt
row. Chain and Relay payloads are parsed at the boundary here so the rest of
the pipeline never inspects raw dicts.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from app.config import NATIVE_TOKEN_ADDRESS


def normalize_address(address: str) -> str:
    """Lower-case an address for storage and comparison."""
    return address.lower()


def is_native_token(address: str) -> bool:
    return normalize_address(address) == NATIVE_TOKEN_ADDRESS


class QuoteStatus(str, Enum):
    """Outcome of a quote request that did not raise."""
    OK = "OK"
    NO_QUOTE = "NO_QUOTE"
    AMOUNT_NOT_SUPPORTED = "AMOUNT_NOT_SUPPORTED"
    API_ERROR = "API_ERROR"


class SessionState(str, Enum):
    """Per-session position in the execute/retry state machine."""
    PENDING = "pending"
    ATTEMPTING = "attempting"
    PENDING_RETRY = "pending_retry"
    RETRY_ATTEMPTING = "retry_attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DCASession:
    """One buyer's recurring purchase plan for one destination token."""
    buyer_address: str
    source_token: str
    destination_token: str
    amount_per_day: int
    days_left: int
    is_native_source: bool = False
    buy_time: Optional[int] = None  # HHMM slot, e.g. 915

    @property
    def is_active(self) -> bool:
        return self.days_left > 0

    @property
    def effective_source_token(self) -> str:
        """Token the aggregator should sell: the native sentinel or the ERC20."""
        if self.is_native_source:
            return NATIVE_TOKEN_ADDRESS
        return self.source_token

    @classmethod
    def from_chain(cls, buyer_address: str, config: Sequence[Any]) -> DCASession:
        """Build from the ``getDCAConfig`` struct.

        Field order: sourceToken, destinationToken, amount_per_day, days_left,
        isNativeETH, buy_time.
        """
        source, destination, amount_per_day, days_left, is_native, buy_time = config
        return cls(
            buyer_address=buyer_address,
            source_token=source,
            destination_token=destination,
            amount_per_day=int(amount_per_day),
            days_left=int(days_left),
            is_native_source=bool(is_native),
            buy_time=int(buy_time),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.buyer_address,
            "source_token": self.source_token,
            "destination_token": self.destination_token,
            "amount_per_day": str(self.amount_per_day),
            "days_left": str(self.days_left),
            "isNativeETH": self.is_native_source,
            "buy_time": self.buy_time,
        }


@dataclass(frozen=True)
class ExecutionStep:
    """One call the DCA contract performs inside ``runDCA``."""
    target: str
    call_data: str
    native_value: int = 0

    def as_abi_tuple(self) -> tuple:
        return (self.target, bytes.fromhex(self.call_data.removeprefix("0x")), self.native_value)


@dataclass
class Quote:
    """Executable swap plan returned by the aggregator."""
    expected_output_amount: int
    price_impact_percent: float
    execution_steps: List[ExecutionStep]
    slippage_tolerance_percent: Optional[float] = None
    minimum_output_amount: Optional[int] = None
    request_id: Optional[str] = None
    quote_details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.expected_output_amount <= 0:
            raise ValueError("Quote output amount must be positive")


@dataclass
class QuoteResult:
    """Either a usable quote or a soft (expected) reason there is none."""
    status: QuoteStatus
    quote: Optional[Quote] = None
    error_message: Optional[str] = None
    http_status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == QuoteStatus.OK and self.quote is not None

    @classmethod
    def success(cls, quote: Quote) -> QuoteResult:
        return cls(status=QuoteStatus.OK, quote=quote)

    @classmethod
    def no_quote(cls) -> QuoteResult:
        return cls(status=QuoteStatus.NO_QUOTE, error_message="Relay returned zero output")

    @classmethod
    def soft_error(cls, http_status: int, message: str) -> QuoteResult:
        status = QuoteStatus.AMOUNT_NOT_SUPPORTED if http_status == 400 else QuoteStatus.API_ERROR
        return cls(status=status, error_message=message, http_status=http_status)


@dataclass
class ExecutionResult:
    """Outcome of executing one session in one run (in-memory only)."""
    buyer_address: str
    destination_token: str
    success: bool
    state: SessionState = SessionState.PENDING
    tx_hash: Optional[str] = None
    router: Optional[str] = None
    amount_out: Optional[int] = None
    price_impact: Optional[float] = None
    slippage_percent: Optional[float] = None
    error: Optional[str] = None
    retried: bool = False
    skip_reason: Optional[QuoteStatus] = None
    # Live config the attempt ran against; absent when the read itself failed.
    session: Optional[DCASession] = field(default=None, repr=False, compare=False)

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buyer": self.buyer_address,
            "destinationToken": self.destination_token,
            "success": self.success,
            "state": self.state.value,
            "txHash": self.tx_hash,
            "router": self.router,
            "amountOut": str(self.amount_out) if self.amount_out is not None else None,
            "priceImpact": self.price_impact,
            "slippagePercent": self.slippage_percent,
            "error": self.error,
            "retried": self.retried,
            "skipReason": self.skip_reason.value if self.skip_reason else None,
        }


@dataclass(frozen=True)
class ExecutionAttempt:
    """Immutable audit record of one try at executing one session."""
    buyer_address: str
    source_token: str
    destination_token: str
    amount_per_day: int
    success: bool
    retry_count: int = 0
    error_message: Optional[str] = None
    transaction_hash: Optional[str] = None
    price_impact: Optional[float] = None
    slippage_percent: Optional[float] = None
    router_used: Optional[str] = None
    days_left: Optional[int] = None
    attempt_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        """Persisted shape: lower-cased addresses, amounts as strings."""
        return {
            "buyer_address": normalize_address(self.buyer_address),
            "source_token": normalize_address(self.source_token),
            "destination_token": normalize_address(self.destination_token),
            "amount_per_day": str(self.amount_per_day),
            "success": self.success,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "transaction_hash": normalize_address(self.transaction_hash) if self.transaction_hash else None,
            "price_impact": self.price_impact,
            "slippage_percent": self.slippage_percent,
            "router_used": self.router_used,
            "days_left": self.days_left,
            "attempt_timestamp": self.attempt_timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PairStats:
    """Aggregate counters for one (source, destination) token pair."""
    source_token: str
    destination_token: str
    volume_registered: int = 0
    volume_executed: int = 0
    purchase_count: int = 0

    @classmethod
    def empty(cls, source_token: str, destination_token: str) -> PairStats:
        return cls(
            source_token=normalize_address(source_token),
            destination_token=normalize_address(destination_token),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> PairStats:
        return cls(
            source_token=row["source_token"],
            destination_token=row["destination_token"],
            volume_registered=int(row.get("volume_registered") or 0),
            volume_executed=int(row.get("volume_executed") or 0),
            purchase_count=int(row.get("purchase_count") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_token": self.source_token,
            "destination_token": self.destination_token,
            "volume_registered": str(self.volume_registered),
            "volume_executed": str(self.volume_executed),
            "purchase_count": self.purchase_count,
        }


@dataclass
class TelemetryWriteResult:
    """Result of a best-effort telemetry write."""
    success: bool
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Aggregate view of one orchestrator run."""
    total_sessions: int = 0
    success_count: int = 0
    fail_count: int = 0
    skipped_count: int = 0
    per_router_usage: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_results(cls, results: Sequence[ExecutionResult]) -> RunSummary:
        routers = Counter(r.router for r in results if r.success and r.router)
        return cls(
            total_sessions=len(results),
            success_count=sum(1 for r in results if r.success),
            fail_count=sum(1 for r in results if not r.success and not r.skipped),
            skipped_count=sum(1 for r in results if r.skipped),
            per_router_usage=dict(routers),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSessions": self.total_sessions,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "skippedCount": self.skipped_count,
            "perRouterUsage": self.per_router_usage,
        }
