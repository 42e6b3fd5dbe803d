"""Tests for attempt log analytics."""

from app.services.attempt_analytics import cutoff_ms, summarize_attempts

A = "0xaaaa"
B = "0xbbbb"
X = "0xtokenx"
Y = "0xtokeny"
SRC = "0x0000000000000000000000000000000000000000"


def row(buyer, dest, success, ts, retry=0, error=None, impact=None, router=None, tx=None):
    return {
        "buyer_address": buyer,
        "source_token": SRC,
        "destination_token": dest,
        "amount_per_day": "100",
        "success": success,
        "error_message": error,
        "retry_count": retry,
        "transaction_hash": tx,
        "price_impact": impact,
        "router_used": router,
        "attempt_timestamp": ts,
    }


# Newest first, as the store returns them
ATTEMPTS = [
    row(A, X, True, "2024-05-03T09:15:04+00:00", retry=1, impact=-0.2, router="Relay", tx="0x3"),
    row(A, X, False, "2024-05-03T09:15:00+00:00", error="nonce too low"),
    row(B, Y, False, "2024-05-02T10:00:05+00:00", retry=1, error="execution reverted"),
    row(B, Y, False, "2024-05-02T10:00:00+00:00", error="execution reverted"),
    row(A, X, True, "2024-05-01T09:15:00+00:00", impact=-0.6, router="Relay", tx="0x1"),
]


class TestOverview:

    def test_counts_and_rates(self):
        overview = summarize_attempts(ATTEMPTS, 30)["overview"]

        assert overview["totalAttempts"] == 5
        assert overview["successfulAttempts"] == 2
        assert overview["failedAttempts"] == 3
        assert overview["successRate"] == 40.0
        assert overview["retriedAttempts"] == 2
        assert overview["retriedSuccess"] == 1
        assert overview["retriedFailed"] == 1
        assert overview["retrySuccessRate"] == 50.0
        assert overview["daysAnalyzed"] == 30

    def test_empty_log(self):
        summary = summarize_attempts([], 7)

        assert summary["overview"]["successRate"] == 0.0
        assert summary["overview"]["retrySuccessRate"] == 0.0
        assert summary["buyerTokenStats"] == []
        assert summary["topErrors"] == []
        assert summary["routerStats"] == {}
        assert summary["recentAttempts"] == []


class TestBreakdowns:

    def test_buyer_token_stats(self):
        stats = summarize_attempts(ATTEMPTS, 30)["buyerTokenStats"]

        a_x = next(s for s in stats if s["buyer"] == A)
        assert a_x["totalAttempts"] == 3
        assert a_x["successful"] == 2
        assert a_x["failed"] == 1
        assert a_x["successRate"] == 66.67
        assert a_x["lastAttempt"] == "2024-05-03T09:15:04+00:00"
        assert a_x["avgPriceImpact"] == -0.4
        # Sorted by attempt volume
        assert stats[0]["buyer"] == A

        b_y = next(s for s in stats if s["buyer"] == B)
        assert b_y["avgPriceImpact"] is None

    def test_daily_timeline_is_chronological(self):
        timeline = summarize_attempts(ATTEMPTS, 30)["dailyTimeline"]

        assert [d["date"] for d in timeline] == ["2024-05-01", "2024-05-02", "2024-05-03"]
        assert timeline[1] == {"date": "2024-05-02", "total": 2, "successful": 0, "failed": 2, "successRate": 0.0}

    def test_top_errors(self):
        errors = summarize_attempts(ATTEMPTS, 30)["topErrors"]

        assert errors[0] == {
            "message": "execution reverted",
            "count": 2,
            "affectedBuyers": 1,
            "lastOccurrence": "2024-05-02T10:00:05+00:00",
        }
        assert errors[1]["message"] == "nonce too low"

    def test_top_errors_capped_at_ten(self):
        attempts = [row(A, X, False, "2024-05-01T00:00:00+00:00", error=f"err-{i}") for i in range(15)]

        assert len(summarize_attempts(attempts, 30)["topErrors"]) == 10

    def test_router_stats_count_successes_only(self):
        summary = summarize_attempts(ATTEMPTS + [row(B, Y, False, "2024-04-30T00:00:00+00:00", router="Relay")], 30)

        assert summary["routerStats"] == {"Relay": 2}

    def test_recent_attempts_limited_to_fifty(self):
        attempts = [row(A, X, True, f"2024-05-01T00:{i % 60:02d}:00+00:00") for i in range(60)]

        recent = summarize_attempts(attempts, 30)["recentAttempts"]

        assert len(recent) == 50
        assert recent[0]["timestamp"] == attempts[0]["attempt_timestamp"]


def test_cutoff_defaults_to_thirty_days():
    day_ms = 24 * 60 * 60 * 1000

    assert cutoff_ms(100 * day_ms, 7) == 93 * day_ms
    assert cutoff_ms(100 * day_ms, 0) == 70 * day_ms
    assert cutoff_ms(100 * day_ms, None) == 70 * day_ms
