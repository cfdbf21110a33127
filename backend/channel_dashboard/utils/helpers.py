"""General-purpose utility helpers."""
from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current UTC calendar date, used as the reporting 'today'."""
    return utc_now().date()


def truncate(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to max_length with suffix."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
