"""Date helpers for the ingestion window."""

from datetime import date, datetime, timedelta, timezone
from typing import Union


def format_calendar_date(value: Union[date, datetime]) -> str:
    """Format a date as YYYY-M-D without zero padding (e.g. 2024-3-7)."""
    return f"{value.year}-{value.month}-{value.day}"


def ingestion_window_date(run_started: datetime, lookback_hours: int = 24) -> str:
    """Calendar date (UTC) of the start of the ingestion window.

    Naive datetimes are taken to be UTC.
    """
    if run_started.tzinfo is None:
        run_started = run_started.replace(tzinfo=timezone.utc)
    window_start = run_started.astimezone(timezone.utc) - timedelta(hours=lookback_hours)
    return format_calendar_date(window_start)
