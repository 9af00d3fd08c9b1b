"""
Time utilities for Cineflix.
Provides consistent UTC datetime handling and TMDB release-date parsing.
"""
from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.
    Replacement for deprecated datetime.utcnow().
    """
    return datetime.now(timezone.utc)


def current_year() -> int:
    return utc_now().year


def parse_release_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a TMDB release date ("YYYY-MM-DD").
    TMDB sends "" for unreleased or unknown titles, so anything that is not
    a valid ISO date yields None instead of raising.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def release_sort_key(value: Optional[str]) -> date:
    """Sort key that places undated titles before every dated one."""
    return parse_release_date(value) or date.min
