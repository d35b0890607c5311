"""
Calendar caching for the care schedule.

Caches the raw reminder/task rows behind a month grid. The grid itself is
rebuilt on every request because it depends on "today".
"""

from __future__ import annotations
from cachetools import TTLCache
from typing import Callable, Any, Iterable
from functools import wraps
import threading

# Cache configuration constants
CALENDAR_CACHE_TTL_SECONDS = 300  # 5 minutes
CALENDAR_CACHE_MAX_ENTRIES = 1000

# Key format: "calendar:{user_id}:{year}:{month}"
_calendar_cache = TTLCache(maxsize=CALENDAR_CACHE_MAX_ENTRIES, ttl=CALENDAR_CACHE_TTL_SECONDS)
_cache_lock = threading.Lock()


def _key(user_id: str, year: int, month: int) -> str:
    return f"calendar:{user_id}:{year}:{month}"


def cache_calendar_data(func: Callable) -> Callable:
    """
    Decorator to cache a user's calendar window rows for 5 minutes.

    Cache key includes user_id, year, and month to ensure proper isolation.
    Exceptions are not cached.

    Usage:
        @cache_calendar_data
        def fetch_month_rows(user_id, year, month):
            ...
    """
    @wraps(func)
    def wrapper(user_id: str, year: int, month: int) -> Any:
        cache_key = _key(user_id, year, month)

        with _cache_lock:
            if cache_key in _calendar_cache:
                return _calendar_cache[cache_key]

        result = func(user_id, year, month)

        with _cache_lock:
            _calendar_cache[cache_key] = result

        return result

    return wrapper


def invalidate_user_calendar_cache(user_id: str) -> None:
    """
    Invalidate all calendar cache entries for a specific user.

    Called after any write that changes what the calendar shows:
    rule created/updated/deleted, task completed, task materialized.
    """
    prefix = f"calendar:{user_id}:"
    with _cache_lock:
        for key in [k for k in _calendar_cache.keys() if k.startswith(prefix)]:
            del _calendar_cache[key]


def invalidate_users_calendar_cache(user_ids: Iterable[str]) -> None:
    """Invalidate several users at once (used by the daily job)."""
    for user_id in set(user_ids):
        invalidate_user_calendar_cache(user_id)


def clear_all_calendar_cache() -> None:
    """Clear the entire calendar cache (tests, maintenance)."""
    with _cache_lock:
        _calendar_cache.clear()
