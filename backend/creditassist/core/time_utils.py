from datetime import datetime
from typing import Optional
import pytz

UTC = pytz.utc

def get_utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)

def resolve_timezone(tz_name: Optional[str]):
    """
    Look up a visitor supplied IANA zone name ("America/New_York").
    Unknown or empty names fall back to UTC.
    """
    if not tz_name:
        return UTC
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        return UTC

def to_visitor_time(dt: datetime, tz_name: Optional[str]) -> datetime:
    if dt.tzinfo is None:
        # Assume UTC if naive
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(resolve_timezone(tz_name))

def visitor_date_label(tz_name: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Date label in the visitor's zone, used in report titles and file names.
    Format: MM-DD-YYYY (e.g. 11-27-2025).
    """
    now = now or get_utc_now()
    return to_visitor_time(now, tz_name).strftime("%m-%d-%Y")
