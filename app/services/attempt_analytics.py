"""Aggregations over the persisted DCA attempt log."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Optional

TOP_ERRORS_LIMIT = 10
RECENT_ATTEMPTS_LIMIT = 50


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _buyer_token_stats(attempts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    groups: Dict[tuple, Dict[str, Any]] = {}
    impacts: Dict[tuple, List[float]] = defaultdict(list)

    for attempt in attempts:
        key = (attempt["buyer_address"], attempt["destination_token"])
        stat = groups.get(key)
        if stat is None:
            stat = groups[key] = {
                "buyer": attempt["buyer_address"],
                "sourceToken": attempt["source_token"],
                "destinationToken": attempt["destination_token"],
                "totalAttempts": 0,
                "successful": 0,
                "failed": 0,
                "successRate": 0.0,
                # Rows arrive newest first.
                "lastAttempt": attempt["attempt_timestamp"],
                "avgPriceImpact": None,
            }
        stat["totalAttempts"] += 1
        if attempt["success"]:
            stat["successful"] += 1
            if attempt.get("price_impact") is not None:
                impacts[key].append(float(attempt["price_impact"]))
        else:
            stat["failed"] += 1

    for key, stat in groups.items():
        stat["successRate"] = _rate(stat["successful"], stat["totalAttempts"])
        if impacts[key]:
            stat["avgPriceImpact"] = round(sum(impacts[key]) / len(impacts[key]), 4)

    return sorted(groups.values(), key=lambda s: s["totalAttempts"], reverse=True)


def _daily_timeline(attempts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    days: Dict[str, Dict[str, Any]] = {}
    for attempt in attempts:
        date = attempt["attempt_timestamp"].split("T")[0]
        day = days.setdefault(date, {"date": date, "total": 0, "successful": 0, "failed": 0})
        day["total"] += 1
        day["successful" if attempt["success"] else "failed"] += 1

    for day in days.values():
        day["successRate"] = _rate(day["successful"], day["total"])
    return sorted(days.values(), key=lambda d: d["date"])


def _top_errors(attempts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    errors: Dict[str, Dict[str, Any]] = {}
    for attempt in attempts:
        message = attempt.get("error_message")
        if attempt["success"] or not message:
            continue
        stat = errors.setdefault(
            message,
            {"message": message, "count": 0, "buyers": set(), "lastOccurrence": attempt["attempt_timestamp"]},
        )
        stat["count"] += 1
        stat["buyers"].add(attempt["buyer_address"])

    ranked = sorted(errors.values(), key=lambda e: e["count"], reverse=True)[:TOP_ERRORS_LIMIT]
    return [
        {
            "message": e["message"],
            "count": e["count"],
            "affectedBuyers": len(e["buyers"]),
            "lastOccurrence": e["lastOccurrence"],
        }
        for e in ranked
    ]


def _recent(attempt: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "buyer": attempt["buyer_address"],
        "sourceToken": attempt["source_token"],
        "destinationToken": attempt["destination_token"],
        "success": attempt["success"],
        "errorMessage": attempt.get("error_message"),
        "timestamp": attempt["attempt_timestamp"],
        "retryCount": attempt.get("retry_count", 0),
        "txHash": attempt.get("transaction_hash"),
        "priceImpact": attempt.get("price_impact"),
        "router": attempt.get("router_used"),
    }


def summarize_attempts(attempts: List[Dict[str, Any]], days_analyzed: int) -> Dict[str, Any]:
    """Build the attempt analytics payload from rows ordered newest first."""
    total = len(attempts)
    successful = sum(1 for a in attempts if a["success"])
    retried = [a for a in attempts if (a.get("retry_count") or 0) > 0]
    retried_success = sum(1 for a in retried if a["success"])

    routers: Counter = Counter(a["router_used"] for a in attempts if a["success"] and a.get("router_used"))

    return {
        "overview": {
            "totalAttempts": total,
            "successfulAttempts": successful,
            "failedAttempts": total - successful,
            "successRate": _rate(successful, total),
            "retriedAttempts": len(retried),
            "retriedSuccess": retried_success,
            "retriedFailed": len(retried) - retried_success,
            "retrySuccessRate": _rate(retried_success, len(retried)),
            "daysAnalyzed": days_analyzed,
        },
        "buyerTokenStats": _buyer_token_stats(attempts),
        "dailyTimeline": _daily_timeline(attempts),
        "topErrors": _top_errors(attempts),
        "routerStats": dict(routers),
        "recentAttempts": [_recent(a) for a in attempts[:RECENT_ATTEMPTS_LIMIT]],
    }


def cutoff_ms(now_ms: int, days: Optional[int]) -> int:
    """Epoch millis ``days`` before ``now_ms``; non-positive days fall back to 30."""
    window = days if days and days > 0 else 30
    return now_ms - window * 24 * 60 * 60 * 1000
