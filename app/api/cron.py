"""
DCA Cron Endpoint

Entry point for the external scheduler. Every 15 minutes it calls
``GET /api/check-buyers``; sessions due in the current slot are executed
sequentially and the per-session outcomes are returned.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import settings
from app.core.dca import DCAPipeline, get_dca_pipeline
from app.core.dca.matcher import current_time_slot
from app.db.convex_client import ConvexError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["DCA Cron"])


def verify_schedule_id(
    upstash_schedule_id: str = Header(None, alias="upstash-schedule-id"),
) -> bool:
    """Reject calls that do not carry the configured scheduler id."""
    if not settings.cron_schedule_id or upstash_schedule_id != settings.cron_schedule_id:
        logger.warning("[CRON] Unauthorized check-buyers call")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return True


def get_pipeline() -> DCAPipeline:
    """Get the DCA pipeline, mapping missing configuration to a 500."""
    try:
        return get_dca_pipeline()
    except (ValueError, ConvexError) as e:
        logger.error("[CRON] DCA pipeline unavailable: %s", e)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/check-buyers")
async def check_buyers(
    _: bool = Depends(verify_schedule_id),
    pipeline: DCAPipeline = Depends(get_pipeline),
) -> Dict[str, Any]:
    """Match due sessions and execute them.

    Individual execution failures are reported per session; only failure
    to read the session list is an endpoint error.
    """
    slot = current_time_slot()
    try:
        sessions = await pipeline.matcher.match_due_sessions()
    except Exception as e:
        logger.exception("[CRON] Failed to match DCA sessions for slot %s", slot)
        raise HTTPException(status_code=500, detail="Internal Server Error") from e

    logger.info("[CRON] %d session(s) due at %s", len(sessions), slot)
    try:
        results = await pipeline.orchestrator.run(sessions)
    except Exception as e:
        logger.exception("[CRON] DCA run aborted")
        raise HTTPException(status_code=500, detail="Internal Server Error") from e
    summary = pipeline.orchestrator.last_summary

    return {
        "slot": slot,
        "matched": [s.to_dict() for s in sessions],
        "results": [r.to_dict() for r in results],
        "summary": summary.to_dict() if summary else None,
    }
