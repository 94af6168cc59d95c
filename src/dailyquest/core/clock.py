# src/dailyquest/core/clock.py

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def parse_timestamp(raw: str | None) -> datetime | None:
    """
    Parse an ISO-8601 instant ("2024-05-01T08:00:00.000Z" and friends).

    Naive values are treated as UTC. Returns None for empty or malformed input.
    """
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(str(raw).strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc_iso(dt: datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with milliseconds and a Z suffix."""
    s = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return s.replace("+00:00", "Z")


def parse_date(raw: str | None) -> date | None:
    """Parse a YYYY-MM-DD date; tolerates full timestamps by taking the date part."""
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw).strip()[:10])
    except ValueError:
        return None


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Map a configured IANA name to a tzinfo; None means system local."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to system local time.", name)
        return None


class SystemClock:
    """Wall clock. Calendar days are computed in `tz` (system local by default)."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        if self._tz is not None:
            return self._tz
        local = datetime.now().astimezone().tzinfo
        return local if local is not None else timezone.utc

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def local_date(self, timestamp: str | None) -> date | None:
        dt = parse_timestamp(timestamp)
        if dt is None:
            return None
        return dt.astimezone(self.tz).date()
