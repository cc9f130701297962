"""Detects external edits to the backing files."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

LOGGER = logging.getLogger(__name__)

Stamp = Tuple[int, int]


class ChangeNotifier:
    """Polls modification stamps and calls ``on_change(name)`` for changed files.

    A vanished file is not reported, so deleting a table keeps the last state
    in memory until a readable file reappears.
    """

    def __init__(self, paths: Mapping[str, Path], on_change: Callable[[str], Awaitable[object]]) -> None:
        self._paths = dict(paths)
        self._on_change = on_change
        self._seen: Dict[str, Optional[Stamp]] = {}

    @staticmethod
    def _stamp(path: Path) -> Optional[Stamp]:
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.warning("cannot stat watched file", extra={"path": path, "detail": str(exc)})
            return None
        return stat.st_mtime_ns, stat.st_size

    def prime(self) -> None:
        """Record the current stamps without reporting anything."""

        self._seen = {name: self._stamp(path) for name, path in self._paths.items()}

    async def poll(self) -> List[str]:
        changed: List[str] = []
        for name, path in self._paths.items():
            stamp = self._stamp(path)
            if stamp is None or stamp == self._seen.get(name):
                continue
            self._seen[name] = stamp
            changed.append(name)
            LOGGER.info("backing file changed, reloading", extra={"table": name, "path": path})
            await self._on_change(name)
        return changed
