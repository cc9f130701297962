"""JSON-backed ban list, whitelist and runtime configuration."""
from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Set

import aiofiles

from ratewall.config import Settings
from ratewall.models import BanRecord, RuntimeConfig, WhitelistRecord
from ratewall.utils import iso_timestamp, normalize_ip, now_ms

LOGGER = logging.getLogger(__name__)

BANNED = "banned"
WHITELIST = "whitelist"
CONFIG = "config"
TABLES = (BANNED, WHITELIST, CONFIG)

LOOPBACK_IPS = ("127.0.0.1", "::1")


class AccessStore:
    """Process-wide owner of the persisted access-control tables.

    Mutations update memory immediately and queue a background write, so a
    request never waits on the disk. Writes to one table are serialised and
    always dump the latest in-memory state. Reads that fail keep whatever was
    loaded last; on first boot that is an empty table.

    Mutating methods must be called from inside the running event loop.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = now_ms) -> None:
        self._clock = clock
        self._paths: Dict[str, Path] = {
            BANNED: settings.banned_path,
            WHITELIST: settings.whitelist_path,
            CONFIG: settings.config_path,
        }
        self._seed_ips = tuple(
            dict.fromkeys(normalize_ip(ip) for ip in (*LOOPBACK_IPS, *settings.operator_ips))
        )
        self._default_config = RuntimeConfig(
            max_requests=settings.default_max_requests,
            window_ms=settings.default_window_ms,
        )
        self._banned: Dict[str, BanRecord] = {}
        self._whitelist: Dict[str, WhitelistRecord] = {}
        self.config: RuntimeConfig = self._default_config
        self._locks = {table: asyncio.Lock() for table in TABLES}
        self._revisions = {table: 0 for table in TABLES}
        self._pending: Set[asyncio.Task] = set()

    @property
    def paths(self) -> Mapping[str, Path]:
        return dict(self._paths)

    # lifecycle

    async def init(self) -> None:
        """Create missing backing files, then load every table."""

        for table, path in self._paths.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                LOGGER.info("creating backing file", extra={"table": table, "path": path})
                await self._write(table)
        await self.load_banned()
        await self.load_whitelist()
        await self.load_config()
        LOGGER.info(
            "access store ready",
            extra={"detail": f"banned={len(self._banned)} whitelisted={len(self._whitelist)}"},
        )

    async def reload(self, table: Optional[str] = None) -> None:
        """Re-read one table (or all of them) after pending writes land."""

        await self.flush()
        loaders = {
            BANNED: self.load_banned,
            WHITELIST: self.load_whitelist,
            CONFIG: self.load_config,
        }
        for name in (table,) if table else TABLES:
            await loaders[name]()

    async def flush(self) -> None:
        """Wait until every queued write has finished."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def shutdown(self) -> None:
        await self.flush()

    # loading

    async def _read_json(self, table: str) -> Optional[Dict[str, Any]]:
        path = self._paths[table]
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "failed to load table, keeping previous state",
                extra={"table": table, "path": path, "detail": str(exc)},
            )
            return None
        if not isinstance(data, dict):
            LOGGER.warning(
                "table is not a JSON object, keeping previous state",
                extra={"table": table, "path": path},
            )
            return None
        return data

    async def _load(self, table: str) -> Optional[Dict[str, Any]]:
        revision = self._revisions[table]
        data = await self._read_json(table)
        if data is not None and self._revisions[table] != revision:
            # Memory changed while reading; the queued write carries the newer state.
            LOGGER.debug("discarding stale read", extra={"table": table})
            return None
        return data

    async def load_banned(self) -> Dict[str, BanRecord]:
        data = await self._load(BANNED)
        if data is not None:
            self._banned = {normalize_ip(ip): BanRecord.from_dict(raw) for ip, raw in data.items()}
        return dict(self._banned)

    async def load_whitelist(self) -> Dict[str, WhitelistRecord]:
        data = await self._load(WHITELIST)
        if data is not None:
            self._whitelist = {
                normalize_ip(ip): WhitelistRecord.from_dict(raw) for ip, raw in data.items()
            }
        missing = [ip for ip in self._seed_ips if ip not in self._whitelist]
        if missing:
            for ip in missing:
                reason = "Loopback" if ip in LOOPBACK_IPS else "Owner/Admin"
                self._whitelist[ip] = WhitelistRecord(added_at=iso_timestamp(self._clock()), reason=reason)
            LOGGER.info("restored seeded whitelist entries", extra={"detail": ",".join(missing)})
            self._touch(WHITELIST)
        return dict(self._whitelist)

    async def load_config(self) -> RuntimeConfig:
        data = await self._load(CONFIG)
        if data is not None:
            self.config = RuntimeConfig.from_dict(data, self._default_config)
        return self.config

    # saving

    async def save_banned(self) -> bool:
        return await self._write(BANNED)

    async def save_whitelist(self) -> bool:
        return await self._write(WHITELIST)

    async def save_config(self) -> bool:
        return await self._write(CONFIG)

    def _document(self, table: str) -> Dict[str, Any]:
        if table == BANNED:
            return {ip: record.to_dict() for ip, record in self._banned.items()}
        if table == WHITELIST:
            return {ip: record.to_dict() for ip, record in self._whitelist.items()}
        return self.config.to_dict()

    async def _write(self, table: str) -> bool:
        path = self._paths[table]
        tmp = path.with_name(path.name + ".tmp")
        async with self._locks[table]:
            document = json.dumps(self._document(table), indent=2)
            try:
                async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                    await f.write(document)
                os.replace(tmp, path)
            except OSError as exc:
                LOGGER.warning(
                    "failed to save table",
                    extra={"table": table, "path": path, "detail": str(exc)},
                )
                return False
        return True

    def schedule_save(self, table: str) -> None:
        """Queue a write of ``table`` without waiting for it."""

        task = asyncio.get_running_loop().create_task(self._write(table))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _touch(self, table: str) -> None:
        self._revisions[table] += 1
        self.schedule_save(table)

    # queries and mutations

    def ban_record(self, ip: str) -> Optional[BanRecord]:
        return self._banned.get(normalize_ip(ip))

    def is_whitelisted(self, ip: str) -> bool:
        return normalize_ip(ip) in self._whitelist

    def banned_snapshot(self) -> Dict[str, Dict[str, Any]]:
        return self._document(BANNED)

    def whitelist_snapshot(self) -> Dict[str, Dict[str, Any]]:
        return self._document(WHITELIST)

    def ban(self, ip: str, reason: str, by: str = "rateLimiter") -> BanRecord:
        record = BanRecord(banned_at=iso_timestamp(self._clock()), reason=reason, by=by)
        self._banned[normalize_ip(ip)] = record
        self._touch(BANNED)
        return record

    def unban(self, ip: str) -> bool:
        if self._banned.pop(normalize_ip(ip), None) is None:
            return False
        self._touch(BANNED)
        return True

    def add_whitelist(self, ip: str, reason: str) -> WhitelistRecord:
        record = WhitelistRecord(added_at=iso_timestamp(self._clock()), reason=reason)
        self._whitelist[normalize_ip(ip)] = record
        self._touch(WHITELIST)
        return record
