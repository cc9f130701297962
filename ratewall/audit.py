"""Append-only request audit trail."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from ratewall.logging_config import audit_handler
from ratewall.utils.time import iso_timestamp, now_ms

REQ = "REQ"
BLOCKED_REQ = "BLOCKED_REQ"
BAN = "BAN"
UNBAN = "UNBAN"


class AuditLog:
    """Writes ``[TAG] <iso8601> key=value ...`` lines to the audit file.

    The trail is never read back by the service. Write failures are reported
    through :meth:`logging.Handler.handleError` and never reach the caller.
    """

    def __init__(self, path: Optional[Path], clock: Callable[[], float] = now_ms) -> None:
        self._clock = clock
        # Not registered with the logging manager so nothing propagates to root.
        self._logger = logging.Logger("ratewall.audit", level=logging.INFO)
        self._path = path
        self._handler: Optional[logging.Handler] = None

    def open(self) -> None:
        if self._path is None or self._handler is not None:
            return
        self._handler = audit_handler(self._path)
        self._logger.addHandler(self._handler)

    def write(self, tag: str, ip: str, **fields: object) -> str:
        parts = [f"[{tag}]", iso_timestamp(self._clock()), f"ip={ip}"]
        parts.extend(f"{key}={value}" for key, value in fields.items() if value is not None)
        line = " ".join(parts)
        self._logger.info(line)
        return line

    def close(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
