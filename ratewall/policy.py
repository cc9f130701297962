"""Per-request admission decisions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ratewall.audit import BAN, BLOCKED_REQ, REQ, AuditLog
from ratewall.models import BanRecord, RuntimeConfig
from ratewall.rate_limit import SlidingWindow
from ratewall.store import AccessStore
from ratewall.utils import normalize_ip, now_ms

LOGGER = logging.getLogger(__name__)


class Outcome(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    BANNED = "banned"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    ip: str
    count: int = 0
    record: Optional[BanRecord] = None
    config: Optional[RuntimeConfig] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED


def ban_reason(config: RuntimeConfig) -> str:
    return f"exceeded_{config.max_requests}_per_{config.window_ms}ms"


class AdmissionPolicy:
    """Decides allow / blocked / banned for one request.

    Order: whitelist, ban list, ``enabled`` flag, sliding window. A banned IP
    stays blocked while limiting is disabled; only the counting and new bans
    are switched off. ``evaluate`` never awaits, so the check-and-ban sequence
    is atomic on the event loop.
    """

    def __init__(
        self,
        store: AccessStore,
        window: SlidingWindow,
        audit: AuditLog,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._store = store
        self._window = window
        self._audit = audit
        self._clock = clock

    def _peek(self, ip: str, config: RuntimeConfig) -> int:
        # Read-only: audit lines report the running count without recording.
        return self._window.count(ip, self._clock(), config.window_ms)

    def evaluate(self, ip: str, method: str, path: str) -> Decision:
        ip = normalize_ip(ip)
        config = self._store.config

        if self._store.is_whitelisted(ip):
            self._audit.write(REQ, ip, method=method, path=path, count=self._peek(ip, config), bypass="whitelist")
            return Decision(Outcome.ALLOWED, ip, config=config)

        record = self._store.ban_record(ip)
        if record is not None:
            self._audit.write(
                BLOCKED_REQ, ip, method=method, path=path, count=self._peek(ip, config), reason=record.reason
            )
            return Decision(Outcome.BLOCKED, ip, record=record, config=config)

        if not config.enabled:
            self._audit.write(REQ, ip, method=method, path=path, count=self._peek(ip, config), bypass="disabled")
            return Decision(Outcome.ALLOWED, ip, config=config)

        count = self._window.record(ip, self._clock(), config.window_ms)
        if count > config.max_requests:
            reason = ban_reason(config)
            record = self._store.ban(ip, reason)
            self._audit.write(BAN, ip, method=method, path=path, count=count, reason=reason)
            LOGGER.warning("rate limit exceeded, ip banned", extra={"client_ip": ip, "detail": reason})
            return Decision(Outcome.BANNED, ip, count=count, record=record, config=config)

        self._audit.write(REQ, ip, method=method, path=path, count=count)
        return Decision(Outcome.ALLOWED, ip, count=count, config=config)
