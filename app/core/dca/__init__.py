"""
DCA Execution Pipeline

Executes due on-chain DCA sessions: config read, Relay routing, runDCA
submission, single retry, and attempt/stats telemetry.
"""

from .models import (
    DCASession,
    ExecutionAttempt,
    ExecutionResult,
    ExecutionStep,
    PairStats,
    Quote,
    QuoteResult,
    QuoteStatus,
    RunSummary,
    SessionState,
    TelemetryWriteResult,
)
from .errors import (
    ConfigReadError,
    ConfirmationTimeoutError,
    DCAPipelineError,
    ExecutorNotConfiguredError,
    QuoteParseError,
    TransactionRevertedError,
)
from .config_fetcher import ConfigFetcher
from .quote_router import QuoteRouter
from .submitter import TransactionSubmitter
from .recorder import AttemptRecorder
from .stats import StatsAggregator
from .orchestrator import ExecutionOrchestrator
from .matcher import SessionMatcher
from .service import DCAPipeline, build_pipeline, get_dca_pipeline

__all__ = [
    # Models
    "DCASession",
    "ExecutionAttempt",
    "ExecutionResult",
    "ExecutionStep",
    "PairStats",
    "Quote",
    "QuoteResult",
    "QuoteStatus",
    "RunSummary",
    "SessionState",
    "TelemetryWriteResult",
    # Errors
    "ConfigReadError",
    "ConfirmationTimeoutError",
    "DCAPipelineError",
    "ExecutorNotConfiguredError",
    "QuoteParseError",
    "TransactionRevertedError",
    # Components
    "ConfigFetcher",
    "QuoteRouter",
    "TransactionSubmitter",
    "AttemptRecorder",
    "StatsAggregator",
    "ExecutionOrchestrator",
    "SessionMatcher",
    # Wiring
    "DCAPipeline",
    "build_pipeline",
    "get_dca_pipeline",
]
