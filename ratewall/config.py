"""Application settings and environment loading utilities."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


def _positive_number(value: Optional[str], name: str, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        number = float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric environment variable: {name}={value!r}") from exc
    if not math.isfinite(number) or number <= 0:
        raise RuntimeError(f"Environment variable must be positive: {name}={value!r}")
    return number


def _positive_integer(value: Optional[str], name: str, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        number = int(value.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer environment variable: {name}={value!r}") from exc
    if number < 1:
        raise RuntimeError(f"Environment variable must be a positive integer: {name}={value!r}")
    return number


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _split_ips(value: Optional[str]) -> Tuple[str, ...]:
    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    admin_key: Optional[str] = None
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    operator_ips: Tuple[str, ...] = field(default_factory=tuple)
    sweep_interval_seconds: float = 60.0
    watch_interval_seconds: float = 2.0
    trust_forwarded_for: bool = False
    default_max_requests: int = 25
    default_window_ms: int = 10_000

    @property
    def banned_path(self) -> Path:
        return self.data_dir / "banned-ips.json"

    @property
    def whitelist_path(self) -> Path:
        return self.data_dir / "whitelist-ips.json"

    @property
    def config_path(self) -> Path:
        return self.data_dir / "rate-limit.json"

    @property
    def audit_log_path(self) -> Path:
        return self.log_dir / "request-logs.log"

    @classmethod
    def from_env(cls) -> "Settings":
        max_requests = _positive_integer(
            os.getenv("RATEWALL_MAX_REQUESTS"), "RATEWALL_MAX_REQUESTS", 25
        )
        window_ms = _positive_integer(os.getenv("RATEWALL_WINDOW_MS"), "RATEWALL_WINDOW_MS", 10_000)

        return cls(
            admin_key=os.getenv("ADMIN_KEY") or None,
            data_dir=Path(os.getenv("RATEWALL_DATA_DIR", "data")),
            log_dir=Path(os.getenv("RATEWALL_LOG_DIR", "logs")),
            operator_ips=_split_ips(os.getenv("RATEWALL_OPERATOR_IPS")),
            sweep_interval_seconds=_positive_number(
                os.getenv("RATEWALL_SWEEP_INTERVAL_SECONDS"), "RATEWALL_SWEEP_INTERVAL_SECONDS", 60.0
            ),
            watch_interval_seconds=_positive_number(
                os.getenv("RATEWALL_WATCH_INTERVAL_SECONDS"), "RATEWALL_WATCH_INTERVAL_SECONDS", 2.0
            ),
            trust_forwarded_for=_flag(os.getenv("RATEWALL_TRUST_FORWARDED_FOR")),
            default_max_requests=max_requests,
            default_window_ms=window_ms,
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings.from_env()
