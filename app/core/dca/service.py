"""
DCA Pipeline Wiring

Builds the execution pipeline from settings: chain client, Relay router,
Convex-backed telemetry. Shared by the cron endpoint and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from app.config import settings
from app.db.convex_client import get_convex_client
from app.providers.chain import ChainClient, get_chain_client

from .config_fetcher import ConfigFetcher
from .matcher import SessionMatcher
from .orchestrator import ExecutionOrchestrator
from .quote_router import QuoteRouter
from .recorder import AttemptRecorder
from .stats import StatsAggregator
from .submitter import TransactionSubmitter


@dataclass
class DCAPipeline:
    """Fully wired components for one process."""
    matcher: SessionMatcher
    orchestrator: ExecutionOrchestrator
    config_fetcher: ConfigFetcher
    quote_router: QuoteRouter
    recorder: AttemptRecorder
    stats: StatsAggregator


def build_pipeline(
    chain: Optional[ChainClient] = None,
    convex_client: Optional[Any] = None,
    quote_router: Optional[QuoteRouter] = None,
) -> DCAPipeline:
    """Wire the pipeline; unspecified collaborators come from settings."""
    chain = chain or get_chain_client()
    convex = convex_client or get_convex_client()
    router = quote_router or QuoteRouter()

    config_fetcher = ConfigFetcher(chain.contract)
    recorder = AttemptRecorder(convex)
    stats = StatsAggregator(convex)
    orchestrator = ExecutionOrchestrator(
        contract_address=chain.contract_address,
        config_fetcher=config_fetcher,
        quote_router=router,
        submitter=TransactionSubmitter(chain),
        recorder=recorder,
        stats=stats,
        retry_delay_s=settings.dca_retry_delay_seconds,
    )
    return DCAPipeline(
        matcher=SessionMatcher(config_fetcher),
        orchestrator=orchestrator,
        config_fetcher=config_fetcher,
        quote_router=router,
        recorder=recorder,
        stats=stats,
    )


_pipeline: Optional[DCAPipeline] = None


def get_dca_pipeline() -> DCAPipeline:
    """Get the singleton pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline
