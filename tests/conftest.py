from __future__ import annotations

import pytest

from ratewall.audit import AuditLog
from ratewall.config import Settings
from ratewall.policy import AdmissionPolicy
from ratewall.rate_limit import SlidingWindow
from ratewall.store import AccessStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_760_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        admin_key="secret",
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        operator_ips=("157.230.33.80",),
        sweep_interval_seconds=3600,
        watch_interval_seconds=3600,
    )


@pytest.fixture()
async def store(settings, clock):
    access_store = AccessStore(settings, clock=clock)
    await access_store.init()
    yield access_store
    await access_store.shutdown()


@pytest.fixture()
def window() -> SlidingWindow:
    return SlidingWindow()


@pytest.fixture()
def audit(settings, clock):
    log = AuditLog(settings.audit_log_path, clock=clock)
    log.open()
    yield log
    log.close()


@pytest.fixture()
def policy(store, window, audit, clock) -> AdmissionPolicy:
    return AdmissionPolicy(store, window, audit, clock=clock)
