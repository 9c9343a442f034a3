"""Cache staleness policy for spacemap."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Staleness(BaseModel):
    """Staleness verdict for a cached scan."""

    is_stale: bool = Field(False, description="Whether the cache is past its max age")
    age_days: Optional[int] = Field(None, description="Whole days since the cache was written")
    age_description: str = Field("No cache", description="Human-readable cache age")
    message: str = Field("", description="Warning text when stale")


def cache_age_days(cache_time: datetime, now: Optional[datetime] = None) -> float:
    """Fractional days between ``cache_time`` and now."""
    now = now or datetime.now()
    return (now - cache_time).total_seconds() / 86400


def is_stale(
    cache_time: Optional[datetime],
    max_age_days: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether a cache written at ``cache_time`` should be flagged as stale.

    A threshold of 0 (or less) disables the check, and a missing cache is
    never stale.
    """
    if max_age_days <= 0 or cache_time is None:
        return False
    return cache_age_days(cache_time, now) >= max_age_days


def format_age(when: datetime, now: Optional[datetime] = None) -> str:
    """Short relative age, e.g. 'just now', '5 min ago', '3h ago'."""
    seconds = ((now or datetime.now()) - when).total_seconds()
    if seconds < 90:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)} min ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return when.strftime("%Y-%m-%d %H:%M")


def stale_message(cache_time: datetime, now: Optional[datetime] = None) -> str:
    """Banner text for a stale cache."""
    days = int(cache_age_days(cache_time, now))
    if days == 1:
        return "Cache is 1 day old - consider rescanning for fresh data."
    return f"Cache is {days} days old - consider rescanning for fresh data."


def check_staleness(
    cache_time: Optional[datetime],
    max_age_days: int,
    now: Optional[datetime] = None,
) -> Staleness:
    """Evaluate the policy and bundle the verdict with display text."""
    if cache_time is None:
        return Staleness()

    stale = is_stale(cache_time, max_age_days, now)
    return Staleness(
        is_stale=stale,
        age_days=int(cache_age_days(cache_time, now)),
        age_description=format_age(cache_time, now),
        message=stale_message(cache_time, now) if stale else "",
    )
