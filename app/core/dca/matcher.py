"""
Session Matcher

Finds the sessions whose ``buy_time`` falls in the current UTC time slot.
Contract buy times are stored as HHMM integers rounded to the slot width.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.config import settings

from .config_fetcher import ConfigFetcher
from .models import DCASession

logger = logging.getLogger(__name__)


def current_time_slot(now: Optional[datetime] = None, slot_minutes: Optional[int] = None) -> str:
    """``"HH:MM"`` in UTC with minutes floored to the slot width."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    width = slot_minutes or settings.time_slot_minutes
    minute = (now.minute // width) * width
    return f"{now.hour:02d}:{minute:02d}"


def slot_to_int(slot: str) -> int:
    """``"09:15"`` -> ``915``."""
    return int(slot.replace(":", ""))


class SessionMatcher:
    """Selects due sessions from on-chain registrations."""

    def __init__(self, config_fetcher: ConfigFetcher):
        self._configs = config_fetcher

    async def match_due_sessions(self, now: Optional[datetime] = None) -> List[DCASession]:
        slot = current_time_slot(now)
        slot_int = slot_to_int(slot)

        buyers = await self._configs.registered_buyers()
        if not buyers:
            logger.info("[CRON] No registered buyers found")
            return []

        logger.info("[CRON] Checking for sessions scheduled at %s (%d)", slot, slot_int)
        matched: List[DCASession] = []
        for buyer in buyers:
            for destination in await self._configs.destination_tokens(buyer):
                session = await self._configs.find_active_session(buyer, destination)
                if session is None or session.buy_time != slot_int:
                    continue
                logger.info("[CRON] Matched DCA session: %s -> %s at %s", buyer, destination, slot)
                matched.append(session)

        return matched
