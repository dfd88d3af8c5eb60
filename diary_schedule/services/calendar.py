from __future__ import annotations

from datetime import date


def day_of_week(day: date) -> int:
    """Return 1 = Monday ... 7 = Sunday for the given lesson date."""
    return day.isoweekday()
