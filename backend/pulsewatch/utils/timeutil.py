"""Timestamp helpers shared by ingestion, evaluation and the API."""

import re
from datetime import UTC, datetime

RANGE_PATTERN = re.compile(r"^(\d+)([mhd])$")
RANGE_UNIT_SECONDS = {"m": 60, "h": 3600, "d": 86400}


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_unix_seconds(timestamp: int | float) -> datetime:
    return datetime.fromtimestamp(timestamp, UTC)


def now_seconds() -> int:
    return int(datetime.now(UTC).timestamp())


def parse_range(value: str | None) -> int | None:
    """Parse a history range such as '30m', '24h' or '7d' into seconds."""
    if not value:
        return None
    match = RANGE_PATTERN.match(value.strip())
    if not match:
        return None
    amount, unit = match.groups()
    return int(amount) * RANGE_UNIT_SECONDS[unit]
