"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def utc_after(seconds: float) -> datetime:
    """Return the timezone-aware UTC instant `seconds` from now."""
    return utc_now() + timedelta(seconds=seconds)
