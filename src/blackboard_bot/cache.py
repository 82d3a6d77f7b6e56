"""
Per-client data cache.

Entries are stored as JSON-compatible values so the whole cache can travel
inside a session snapshot. Readers always get a deep copy back, never the
stored object itself.
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from blackboard_bot.models import CacheEntry, utcnow

logger = logging.getLogger(__name__)

COURSES_KEY = "courses"
SCORES_KEY = "assignments.scores.{course_id}"

# How long the course list is reused before Blackboard is asked again
COURSES_MAX_AGE = timedelta(days=1)

# Score snapshots only exist to detect grade changes, so they live much longer
SCORES_MAX_AGE = timedelta(days=180)


class DataCache:
    """Keyed store of CacheEntry objects with per-read max ages."""

    def __init__(self, entries: Optional[Dict[str, CacheEntry]] = None):
        self._entries: Dict[str, CacheEntry] = dict(entries or {})

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, max_age: timedelta, now: Optional[datetime] = None) -> Optional[Any]:
        """
        Return a copy of the value under ``key`` if it is younger than ``max_age``.

        Stale entries are left in place; they are simply not returned.
        """
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(max_age, now):
            return None
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, now: Optional[datetime] = None) -> None:
        self._entries[key] = CacheEntry(value=copy.deepcopy(value), updated_at=now or utcnow())

    def invalidate(self, key: Optional[str] = None) -> bool:
        """
        Drop one entry, or every entry when no key is given.

        Returns:
            bool: True if anything was removed
        """
        if key is None:
            removed = bool(self._entries)
            self._entries.clear()
            return removed
        return self._entries.pop(key, None) is not None

    def load(self, entries: Dict[str, CacheEntry]) -> None:
        """Merge entries from a snapshot over the current ones."""
        for key, entry in entries.items():
            self._entries[key] = CacheEntry.model_validate(entry)

    def export(self) -> Dict[str, CacheEntry]:
        return {key: entry.model_copy(deep=True) for key, entry in self._entries.items()}
