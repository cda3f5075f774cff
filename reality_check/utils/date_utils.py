"""
Date helpers shared by provider mapping, caching and conversation bookkeeping
"""

import re
import time
from datetime import date, datetime, timezone
from typing import Any, Optional, Union


def safe_parse_date(raw: Any) -> Optional[datetime]:
    """
    Parse provider date values into a timezone-aware datetime.

    Supports ISO strings (with ``Z`` suffix), datetime/date objects,
    ``YYYY`` and ``YYYY-MM`` strings.

    Returns:
        Timezone-aware datetime or None if parsing fails
    """
    if raw is None:
        return None

    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return raw.replace(tzinfo=timezone.utc)
        return raw

    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)

    if not isinstance(raw, str):
        return None

    raw = raw.strip()
    if not raw:
        return None

    raw = raw.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(raw)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (ValueError, AttributeError):
        pass

    m = re.match(r"^(\d{4})$", raw)
    if m:
        return datetime(int(m.group(1)), 1, 1, tzinfo=timezone.utc)

    m = re.match(r"^(\d{4})-(\d{1,2})$", raw)
    if m:
        try:
            return datetime(int(m.group(1)), int(m.group(2)), 1, tzinfo=timezone.utc)
        except ValueError:
            return None

    return None


def iso_or_none(dt: Optional[Union[datetime, date]]) -> Optional[str]:
    """Convert datetime/date to an ISO string, handling None safely."""
    if dt is None:
        return None
    if isinstance(dt, datetime):
        return dt.isoformat()
    if isinstance(dt, date):
        return datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc).isoformat()
    parsed = safe_parse_date(dt)
    return parsed.isoformat() if parsed else None


def get_current_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Wall-clock epoch milliseconds."""
    return int(time.time() * 1000)
