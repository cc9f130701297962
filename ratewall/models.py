"""Records held in the ban, whitelist and runtime configuration tables."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 25
DEFAULT_WINDOW_MS = 10_000


@dataclass(frozen=True)
class BanRecord:
    banned_at: str
    reason: str
    by: str = "rateLimiter"

    def to_dict(self) -> Dict[str, Any]:
        return {"bannedAt": self.banned_at, "reason": self.reason, "by": self.by}

    @classmethod
    def from_dict(cls, raw: Any) -> "BanRecord":
        data = raw if isinstance(raw, dict) else {}
        return cls(
            banned_at=str(data.get("bannedAt") or ""),
            reason=str(data.get("reason") or "unknown"),
            by=str(data.get("by") or "unknown"),
        )


@dataclass(frozen=True)
class WhitelistRecord:
    added_at: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"addedAt": self.added_at, "reason": self.reason}

    @classmethod
    def from_dict(cls, raw: Any) -> "WhitelistRecord":
        data = raw if isinstance(raw, dict) else {}
        return cls(added_at=str(data.get("addedAt") or ""), reason=str(data.get("reason") or ""))


def _positive_int(value: Any, name: str, default: int) -> int:
    # Fractions are rejected rather than truncated so 0.5 can never become 0.
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value != int(value)
        or int(value) < 1
    ):
        LOGGER.warning("invalid rate limit field, using default", extra={"detail": f"{name}={value!r}"})
        return default
    return int(value)


@dataclass(frozen=True)
class RuntimeConfig:
    """Rate limit parameters read on every request."""

    enabled: bool = True
    max_requests: int = DEFAULT_MAX_REQUESTS
    window_ms: int = DEFAULT_WINDOW_MS
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "enabled": self.enabled,
            "maxRequests": self.max_requests,
            "windowMs": self.window_ms,
        }
        if self.message:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, raw: Any, defaults: Optional["RuntimeConfig"] = None) -> "RuntimeConfig":
        """Build a config, falling back to ``defaults`` field by field."""

        base = defaults or cls()
        data = raw if isinstance(raw, dict) else {}
        enabled = data.get("enabled", base.enabled)
        if not isinstance(enabled, bool):
            LOGGER.warning("invalid rate limit field, using default", extra={"detail": f"enabled={enabled!r}"})
            enabled = base.enabled
        max_requests = base.max_requests
        if "maxRequests" in data:
            max_requests = _positive_int(data["maxRequests"], "maxRequests", base.max_requests)
        window_ms = base.window_ms
        if "windowMs" in data:
            window_ms = _positive_int(data["windowMs"], "windowMs", base.window_ms)
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            message = None
        return cls(enabled=enabled, max_requests=max_requests, window_ms=window_ms, message=message)
