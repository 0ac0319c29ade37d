"""Shared utility functions."""
import uuid
from datetime import datetime, timezone


def gen_id(prefix: str = "") -> str:
    """Generate a short prefixed ID."""
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def ms_to_datetime(ms: int, tz=timezone.utc) -> datetime:
    """Convert epoch milliseconds to an aware datetime in ``tz``."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).astimezone(tz)


def datetime_to_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
