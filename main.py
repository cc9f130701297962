"""FastAPI host that puts every request through the IP access gate."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI

from ratewall.admin import AdminError, admin_error_handler
from ratewall.admin import router as admin_router
from ratewall.audit import AuditLog
from ratewall.background import PeriodicTask
from ratewall.config import Settings, get_settings
from ratewall.gate import RequestGate
from ratewall.logging_config import configure_logging
from ratewall.policy import AdmissionPolicy
from ratewall.rate_limit import SlidingWindow
from ratewall.store import AccessStore
from ratewall.utils import now_ms
from ratewall.watcher import ChangeNotifier

LOGGER = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    clock: Callable[[], float] = now_ms,
) -> FastAPI:
    """Wire the store, window, policy and gate into a FastAPI application."""

    settings = settings or get_settings()
    store = AccessStore(settings, clock=clock)
    window = SlidingWindow()
    audit = AuditLog(settings.audit_log_path, clock=clock)
    policy = AdmissionPolicy(store, window, audit, clock=clock)
    notifier = ChangeNotifier(store.paths, store.reload)
    sweeper = PeriodicTask(
        "window-sweep",
        settings.sweep_interval_seconds,
        lambda: window.sweep(clock(), store.config.window_ms),
    )
    watcher = PeriodicTask("store-watch", settings.watch_interval_seconds, notifier.poll)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        audit.open()
        await store.init()
        notifier.prime()
        sweeper.start()
        watcher.start()
        if not settings.admin_key:
            LOGGER.warning("ADMIN_KEY is not set; admin endpoints are disabled")
        try:
            yield
        finally:
            await watcher.stop()
            await sweeper.stop()
            await store.shutdown()
            audit.close()

    app = FastAPI(title="Proxy API host", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.window = window
    app.state.audit = audit
    app.state.policy = policy

    app.middleware("http")(RequestGate(policy, trust_forwarded_for=settings.trust_forwarded_for))
    app.add_exception_handler(AdminError, admin_error_handler)  # type: ignore[arg-type]
    app.include_router(admin_router)

    @app.get("/api/health")
    async def health() -> dict:
        """Liveness probe; also the simplest route behind the gate."""

        return {"status": "ok"}

    return app


configure_logging()
app = create_app()
