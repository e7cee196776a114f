"""Derived metrics computed from the ledger fold: level, streaks, recency."""

import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple


def quiz_score(metadata: Optional[Dict[str, Any]]) -> Optional[float]:
    """Score percentage carried in award metadata, or None if absent or unreadable.

    Numbers and numeric strings are both accepted.
    """
    try:
        score = float(metadata["score"])
    except (KeyError, TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def compute_level(total_points: int, base_points: int) -> Tuple[int, int]:
    """Level and points still needed for the next one.

    Level n starts at (n - 1)^2 * base points.
    """
    total_points = max(total_points, 0)
    level = math.isqrt(total_points // base_points) + 1
    return level, (level ** 2) * base_points - total_points


def compute_streaks(active_days: Iterable[date], today: date) -> Tuple[int, int]:
    """Current and longest runs of consecutive active days.

    The current streak survives until the end of the day after the last
    activity, so a learner who has not studied yet today keeps yesterday's run.
    """
    days = sorted(set(active_days))
    if not days:
        return 0, 0

    longest = run = 1
    for previous, day in zip(days, days[1:]):
        run = run + 1 if day - previous == timedelta(days=1) else 1
        longest = max(longest, run)

    current = run if today - days[-1] <= timedelta(days=1) else 0
    return current, longest


def recent_daily_points(points_by_day: Dict[date, int], today: date, days: int) -> List[Tuple[date, int]]:
    """Points per day for the last ``days`` days, oldest first, zero-filled."""
    start = today - timedelta(days=days - 1)
    return [
        (start + timedelta(days=offset), points_by_day.get(start + timedelta(days=offset), 0))
        for offset in range(days)
    ]


def is_recently_active(last_activity_at: Optional[datetime], now: datetime, window_days: int) -> bool:
    if last_activity_at is None:
        return False
    return now - last_activity_at <= timedelta(days=window_days)
