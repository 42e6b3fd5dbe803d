"""Tests for time-slot matching and price impact presentation."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from app.core.dca import DCASession, SessionMatcher
from app.core.dca.matcher import current_time_slot, slot_to_int
from app.core.dca.price_impact import describe_impact, format_price_impact, price_impact_severity

BUYER_A = "0x000000000000000000000000000000000000000a"
BUYER_B = "0x000000000000000000000000000000000000000b"
TOKEN_X = "0x1234567890abcdef1234567890abcdef12345678"
TOKEN_Y = "0xf1815bd50389c46847f0bda824ec8da914045d14"


# =============================================================================
# Time slots
# =============================================================================


class TestTimeSlot:

    def test_minutes_floor_to_slot(self):
        now = datetime(2024, 5, 1, 9, 29, 59, tzinfo=timezone.utc)

        assert current_time_slot(now) == "09:15"

    def test_slot_boundary(self):
        now = datetime(2024, 5, 1, 23, 45, 0, tzinfo=timezone.utc)

        assert current_time_slot(now) == "23:45"

    def test_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        now = datetime(2024, 5, 1, 11, 5, tzinfo=plus_two)

        assert current_time_slot(now) == "09:00"

    def test_custom_slot_width(self):
        now = datetime(2024, 5, 1, 9, 29, tzinfo=timezone.utc)

        assert current_time_slot(now, slot_minutes=30) == "09:00"

    def test_slot_to_int(self):
        assert slot_to_int("09:15") == 915
        assert slot_to_int("00:00") == 0
        assert slot_to_int("23:45") == 2345


# =============================================================================
# Session matching
# =============================================================================


def session(buyer, token, buy_time):
    return DCASession(buyer, "0x0000000000000000000000000000000000000000", token, 100, 5, True, buy_time)


class TestSessionMatcher:

    @pytest.mark.asyncio
    async def test_matches_sessions_in_current_slot(self):
        configs = {
            (BUYER_A, TOKEN_X): session(BUYER_A, TOKEN_X, 915),
            (BUYER_A, TOKEN_Y): session(BUYER_A, TOKEN_Y, 1000),
            (BUYER_B, TOKEN_X): session(BUYER_B, TOKEN_X, 915),
        }
        fetcher = AsyncMock()
        fetcher.registered_buyers.return_value = [BUYER_A, BUYER_B]
        fetcher.destination_tokens.side_effect = lambda buyer: (
            [TOKEN_X, TOKEN_Y] if buyer == BUYER_A else [TOKEN_X]
        )
        fetcher.find_active_session.side_effect = lambda buyer, token: configs[(buyer, token)]

        now = datetime(2024, 5, 1, 9, 20, tzinfo=timezone.utc)
        matched = await SessionMatcher(fetcher).match_due_sessions(now)

        assert [(s.buyer_address, s.destination_token) for s in matched] == [
            (BUYER_A, TOKEN_X),
            (BUYER_B, TOKEN_X),
        ]

    @pytest.mark.asyncio
    async def test_inactive_sessions_are_ignored(self):
        fetcher = AsyncMock()
        fetcher.registered_buyers.return_value = [BUYER_A]
        fetcher.destination_tokens.return_value = [TOKEN_X]
        fetcher.find_active_session.return_value = None

        now = datetime(2024, 5, 1, 9, 20, tzinfo=timezone.utc)

        assert await SessionMatcher(fetcher).match_due_sessions(now) == []

    @pytest.mark.asyncio
    async def test_no_registered_buyers(self):
        fetcher = AsyncMock()
        fetcher.registered_buyers.return_value = []

        assert await SessionMatcher(fetcher).match_due_sessions() == []
        fetcher.destination_tokens.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buyer_list_failure_propagates(self):
        fetcher = AsyncMock()
        fetcher.registered_buyers.side_effect = ConnectionError("rpc down")

        with pytest.raises(ConnectionError):
            await SessionMatcher(fetcher).match_due_sessions()


# =============================================================================
# Price impact presentation
# =============================================================================


class TestPriceImpactFormatting:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "N/A"),
            (0, "+<0.01%"),
            (0.005, "+<0.01%"),
            (-0.005, "-<0.01%"),
            (1.234, "+1.23%"),
            (-0.41, "-0.41%"),
            (-12.5, "-12.50%"),
        ],
    )
    def test_format(self, value, expected):
        assert format_price_impact(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0.5, "low"),
            (-0.99, "low"),
            (1, "medium"),
            (-2.5, "medium"),
            (3, "high"),
            (-4.9, "high"),
            (5, "extreme"),
            (-20, "extreme"),
        ],
    )
    def test_severity_uses_magnitude(self, value, expected):
        assert price_impact_severity(value) == expected

    def test_describe(self):
        assert describe_impact(0.3) == "PROFITABLE"
        assert describe_impact(-0.3) == "UNFAVORABLE"
        assert describe_impact(0) == "NEUTRAL"
