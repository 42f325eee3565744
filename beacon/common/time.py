"""Clock helpers used for persistence defaults and signatures."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def epoch_seconds(moment: dt.datetime) -> int:
    """Return whole Unix seconds for an aware datetime."""
    return int(moment.timestamp())


def epoch_millis(moment: dt.datetime) -> int:
    """Return whole Unix milliseconds for an aware datetime."""
    return int(moment.timestamp() * 1000)
