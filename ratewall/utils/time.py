"""Time helpers."""
from __future__ import annotations

import time
from datetime import UTC, datetime


def now_ms() -> float:
    """Wall clock in milliseconds since the epoch."""

    return time.time() * 1000


def iso_timestamp(ms: float | None = None) -> str:
    """Format an epoch millisecond value as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if ms is None:
        ms = now_ms()
    moment = datetime.fromtimestamp(ms / 1000, tz=UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def format_window(window_ms: int) -> str:
    """Render a window length for humans, e.g. ``10000`` -> ``10s``."""

    return f"{window_ms / 1000:g}s"
