"""Streak computation over observed log history.

Only observed days count: a day without any entry ends the walk, it is never
assumed to be a miss (or a success).
"""
import logging
from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable, List

from models.tracking import LogEntry

logger = logging.getLogger(__name__)

MISS_STATUSES: FrozenSet[str] = frozenset({"missed", "skipped", "failed"})
WIN_STATUSES: FrozenSet[str] = frozenset({"completed"})


def collapse_by_day(entries: Iterable[LogEntry]) -> Dict[date, str]:
    """One status per calendar day. Entries come most recent first, so the first seen wins."""
    by_day: Dict[date, str] = {}
    for entry in entries:
        if entry.day is None:
            continue
        if entry.day not in by_day:
            by_day[entry.day] = (entry.status or "").strip().lower()
    return by_day


def streak_length(entries: Iterable[LogEntry], statuses: FrozenSet[str]) -> int:
    by_day = collapse_by_day(entries)
    if not by_day:
        return 0

    cursor = max(by_day)
    streak = 0
    while by_day.get(cursor) in statuses:
        streak += 1
        cursor = cursor - timedelta(days=1)
        if cursor not in by_day:
            break
    return streak


def missed_streak(entries: Iterable[LogEntry]) -> int:
    return streak_length(entries, MISS_STATUSES)


def completed_streak(entries: Iterable[LogEntry]) -> int:
    return streak_length(entries, WIN_STATUSES)


class StreakAnalyzer:
    """Reads recent history from a HistorySource and computes run lengths."""

    def __init__(self, history, limit: int = 30):
        self.history = history
        self.limit = limit

    def _entries(self, user_id: str, item_id: str) -> List[LogEntry]:
        try:
            return list(self.history.recent_log_entries(user_id, item_id, self.limit))
        except Exception as e:
            logger.error(f"History lookup failed for {item_id}: {e}", exc_info=True)
            return []

    def missed_streak(self, user_id: str, item_id: str) -> int:
        return missed_streak(self._entries(user_id, item_id))

    def completed_streak(self, user_id: str, item_id: str) -> int:
        return completed_streak(self._entries(user_id, item_id))
