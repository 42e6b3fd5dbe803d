"""Persists execution attempts to the DCA attempt log."""

from __future__ import annotations

import logging
from typing import Any

from .models import ExecutionAttempt, TelemetryWriteResult

logger = logging.getLogger(__name__)


class AttemptRecorder:
    """Appends one row per attempt. Never raises; failures are logged."""

    def __init__(self, convex_client: Any):
        self._convex = convex_client

    async def record(self, attempt: ExecutionAttempt) -> TelemetryWriteResult:
        try:
            await self._convex.insert_dca_attempt(attempt.to_row())
        except Exception as e:
            logger.error("[DCA Attempt Tracking] Failed to store attempt: %s", e)
            return TelemetryWriteResult(success=False, error=str(e))

        logger.info(
            "[DCA Attempt Tracking] Stored %s for %s -> %s (retry=%d)",
            "SUCCESS" if attempt.success else "FAILURE",
            attempt.buyer_address,
            attempt.destination_token,
            attempt.retry_count,
        )
        return TelemetryWriteResult(success=True)
