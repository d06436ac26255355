"""Time utilities."""
from datetime import datetime, timedelta, timezone
from typing import Optional


def now_iso() -> str:
    """Get current time as ISO 8601 string with Z suffix."""
    return to_iso(datetime.now(timezone.utc))


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def utc_today(now: Optional[datetime] = None) -> str:
    """Calendar day (YYYY-MM-DD, UTC) used as the quota bucket."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date().isoformat()


def next_utc_midnight_iso(now: Optional[datetime] = None) -> str:
    """Quota reset time: midnight UTC of the next day."""
    now = now or datetime.now(timezone.utc)
    tomorrow = now.astimezone(timezone.utc).date() + timedelta(days=1)
    midnight = datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=timezone.utc)
    return midnight.isoformat().replace('+00:00', '.000Z')
