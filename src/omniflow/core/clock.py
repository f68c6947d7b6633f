# src/omniflow/core/clock.py

from __future__ import annotations

import logging
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> tzinfo:
    """Map a tz database name to tzinfo; unknown names fall back to UTC."""
    if not name or not name.strip():
        return UTC
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return UTC


class SystemClock:
    """Wall clock in a fixed timezone. All timestamps produced by the core are aware."""

    def __init__(self, tz: tzinfo | str | None = None) -> None:
        self.tz = tz if isinstance(tz, tzinfo) else resolve_timezone(tz)

    def now(self) -> datetime:
        return datetime.now(self.tz)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO-8601 value read back from a collection; naive values are treated as UTC."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        try:
            dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def format_timestamp(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None
