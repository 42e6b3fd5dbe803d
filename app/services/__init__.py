"""Service layer helpers"""

from .attempt_analytics import cutoff_ms, summarize_attempts

__all__ = [
    "cutoff_ms",
    "summarize_attempts",
]
