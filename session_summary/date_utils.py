"""Timestamp helpers shared by the report and the history log."""
from __future__ import annotations

import re
from datetime import datetime, timezone

_FRACTION_PATTERN = re.compile(r"\.\d+")


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def utc_timestamp(now: datetime | None = None) -> str:
    return format_datetime_utc(now or datetime.now(timezone.utc))


def parse_iso_ts(value: str | None) -> datetime | None:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        # Sub-second digits are dropped; fromisoformat on 3.10 only accepts 3 or 6 of them.
        parsed = datetime.fromisoformat(_FRACTION_PATTERN.sub("", raw, count=1).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def wall_clock_ms(first_ts: str | None, last_ts: str | None) -> int:
    """Whole-second span between two transcript timestamps, in milliseconds."""
    first = parse_iso_ts(first_ts)
    last = parse_iso_ts(last_ts)
    if first is None or last is None:
        return 0
    first = first.replace(microsecond=0)
    last = last.replace(microsecond=0)
    return max(0, int((last - first).total_seconds()) * 1000)
