"""
DCA Execution Orchestrator

Drives one scheduler run over the due sessions:

    Pending -> Attempting -> Succeeded
                          -> PendingRetry -> RetryAttempting -> Succeeded | Failed

Sessions are executed strictly in the given order, one at a time; the
executor account's nonce depends on it. Each attempt re-reads the live
config, re-quotes and re-submits; nothing from a failed attempt is reused
because prices and on-chain state move between attempts. A session whose
retry also fails is marked failed and the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import structlog

from app.config import settings

from .config_fetcher import ConfigFetcher
from .models import (
    DCASession,
    ExecutionAttempt,
    ExecutionResult,
    RunSummary,
    SessionState,
)
from .quote_router import QuoteRouter
from .recorder import AttemptRecorder
from .stats import StatsAggregator
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)
_slog = structlog.stdlib.get_logger("dca.orchestrator")

MAX_RETRIES = 1


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class ExecutionOrchestrator:
    """
    Executes due DCA sessions.

    Responsibilities:
    1. Re-read each session's live config
    2. Route the swap through the quote router
    3. Submit runDCA and wait for confirmation
    4. Retry a failed session once after a fixed delay
    5. Record every attempt and update stats after successes
    """

    def __init__(
        self,
        *,
        contract_address: str,
        config_fetcher: ConfigFetcher,
        quote_router: QuoteRouter,
        submitter: TransactionSubmitter,
        recorder: AttemptRecorder,
        stats: StatsAggregator,
        retry_delay_s: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._contract_address = contract_address
        self._configs = config_fetcher
        self._router = quote_router
        self._submitter = submitter
        self._recorder = recorder
        self._stats = stats
        self._retry_delay_s = settings.dca_retry_delay_seconds if retry_delay_s is None else retry_delay_s
        self._sleep = sleep
        self.last_summary: Optional[RunSummary] = None

    async def run(self, sessions: Sequence[DCASession]) -> List[ExecutionResult]:
        """Execute ``sessions`` sequentially and return one result per session."""
        _start = time.perf_counter()
        _slog.info("dca_run_started", total_sessions=len(sessions))

        results: List[ExecutionResult] = []
        for session in sessions:
            results.append(await self.run_session(session))

        summary = RunSummary.from_results(results)
        self.last_summary = summary
        _slog.info(
            "dca_run_completed",
            total_sessions=summary.total_sessions,
            success_count=summary.success_count,
            fail_count=summary.fail_count,
            skipped_count=summary.skipped_count,
            per_router_usage=summary.per_router_usage,
            duration_ms=round((time.perf_counter() - _start) * 1000, 1),
        )
        return results

    async def run_session(self, session: DCASession) -> ExecutionResult:
        """Attempt one session with at most one delayed retry."""
        log = _slog.bind(buyer=session.buyer_address, destination_token=session.destination_token)
        retry_count = 0

        log.info("dca_attempt_started", state=SessionState.ATTEMPTING.value)
        try:
            result = await self.attempt_one(session)
        except Exception as exc:
            log.warning("dca_attempt_failed", retry_count=0, error=_error_message(exc))
            await self._record_attempt(session, retry_count=0, error=exc)

            log.info("dca_retry_scheduled", state=SessionState.PENDING_RETRY.value, delay_s=self._retry_delay_s)
            await self._sleep(self._retry_delay_s)

            retry_count = MAX_RETRIES
            log.info("dca_attempt_started", state=SessionState.RETRY_ATTEMPTING.value)
            try:
                result = await self.attempt_one(session)
            except Exception as retry_exc:
                message = _error_message(retry_exc)
                log.error("dca_session_failed", retry_count=retry_count, error=message)
                await self._record_attempt(session, retry_count=retry_count, error=retry_exc)
                return ExecutionResult(
                    buyer_address=session.buyer_address,
                    destination_token=session.destination_token,
                    success=False,
                    state=SessionState.FAILED,
                    error=message,
                    retried=True,
                )
            result.retried = True

        if result.skipped:
            result.state = SessionState.SKIPPED
            log.warning("dca_session_skipped", reason=result.skip_reason.value, error=result.error)
            return result

        result.state = SessionState.SUCCEEDED
        log.info(
            "dca_session_succeeded",
            retry_count=retry_count,
            tx_hash=result.tx_hash,
            router=result.router,
            amount_out=str(result.amount_out),
            price_impact=result.price_impact,
        )
        live = result.session or session
        await self._record_attempt(live, retry_count=retry_count, result=result)
        await self._update_stats(live, result)
        return result

    async def attempt_one(self, session: DCASession) -> ExecutionResult:
        """One fresh try: read config, quote, submit.

        Hard failures raise. A quote the aggregator declines (400, non-2xx,
        zero output) returns a skipped result instead.
        """
        live = await self._configs.fetch_config(session.buyer_address, session.destination_token)
        source = live.effective_source_token

        quote_result = await self._router.get_quote(
            self._contract_address,
            source,
            live.destination_token,
            live.amount_per_day,
        )
        if not quote_result.ok:
            return ExecutionResult(
                buyer_address=live.buyer_address,
                destination_token=live.destination_token,
                success=False,
                error=quote_result.error_message,
                skip_reason=quote_result.status,
                session=live,
            )

        quote = quote_result.quote
        tx_hash = await self._submitter.submit(
            live.buyer_address,
            live.destination_token,
            quote.execution_steps,
        )

        return ExecutionResult(
            buyer_address=live.buyer_address,
            destination_token=live.destination_token,
            success=True,
            tx_hash=tx_hash,
            router=self._router.name,
            amount_out=quote.expected_output_amount,
            price_impact=quote.price_impact_percent,
            slippage_percent=quote.slippage_tolerance_percent,
            session=live,
        )

    async def _record_attempt(
        self,
        session: DCASession,
        *,
        retry_count: int,
        result: Optional[ExecutionResult] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        attempt = ExecutionAttempt(
            buyer_address=session.buyer_address,
            source_token=session.source_token,
            destination_token=session.destination_token,
            amount_per_day=session.amount_per_day,
            success=error is None and result is not None and result.success,
            retry_count=retry_count,
            error_message=_error_message(error) if error is not None else None,
            transaction_hash=result.tx_hash if result else None,
            price_impact=result.price_impact if result else None,
            slippage_percent=result.slippage_percent if result else None,
            router_used=result.router if result else None,
            days_left=session.days_left,
        )
        try:
            await self._recorder.record(attempt)
        except Exception:
            logger.exception("Attempt recorder raised for %s", session.buyer_address)

    async def _update_stats(self, session: DCASession, result: ExecutionResult) -> None:
        try:
            outcome = await self._stats.record_execution(session, result)
        except Exception:
            logger.exception("Stats update raised for %s", result.tx_hash)
            return
        if not outcome.success:
            logger.warning("Stats update failed for %s: %s", result.tx_hash, outcome.error)
