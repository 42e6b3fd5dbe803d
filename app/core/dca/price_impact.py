"""Display helpers for signed price impact percentages."""

from __future__ import annotations

from typing import Optional


def format_price_impact(price_impact: Optional[float]) -> str:
    if price_impact is None:
        return "N/A"

    sign = "+" if price_impact >= 0 else "-"
    magnitude = abs(price_impact)
    if magnitude < 0.01:
        return f"{sign}<0.01%"
    return f"{sign}{magnitude:.2f}%"


def price_impact_severity(price_impact: float) -> str:
    """Bucket by magnitude: low < 1% <= medium < 3% <= high < 5% <= extreme."""
    value = abs(price_impact)
    if value < 1:
        return "low"
    if value < 3:
        return "medium"
    if value < 5:
        return "high"
    return "extreme"


def describe_impact(price_impact: float) -> str:
    if price_impact > 0:
        return "PROFITABLE"
    if price_impact < 0:
        return "UNFAVORABLE"
    return "NEUTRAL"
