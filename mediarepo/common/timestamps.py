# mediarepo/common/timestamps.py
"""
Helpers for the 14-digit ``YYYYMMDDHHMMSS`` timestamps used for archive names,
stored-file timestamps and the thumbnail epoch. All values are UTC.

Fixed-width digit strings compare correctly as plain strings, so callers
compare them directly.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone

_TS_FORMAT = "%Y%m%d%H%M%S"
_TS_RE = re.compile(r"^\d{14}$")


def is_timestamp(value: str) -> bool:
    return bool(value) and bool(_TS_RE.match(value))


def to_timestamp(value: datetime | float | int) -> str:
    """Convert a datetime or a POSIX time (e.g. an mtime) to a 14-digit timestamp."""
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(_TS_FORMAT)


def from_timestamp(value: str) -> datetime:
    if not is_timestamp(value):
        raise ValueError(f"not a 14-digit timestamp: {value!r}")
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def now_timestamp() -> str:
    return to_timestamp(datetime.now(timezone.utc))
