"""Utility helpers."""
from .ip import client_ip, normalize_ip  # noqa: F401
from .time import format_window, iso_timestamp, now_ms  # noqa: F401
