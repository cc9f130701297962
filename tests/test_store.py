from __future__ import annotations

import json
import logging

from ratewall.models import RuntimeConfig
from ratewall.store import AccessStore


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


async def test_init_creates_backing_files_with_defaults(store, settings):
    await store.flush()

    assert read_json(settings.banned_path) == {}
    whitelist = read_json(settings.whitelist_path)
    assert {"127.0.0.1", "::1", "157.230.33.80"} <= set(whitelist)
    assert whitelist["157.230.33.80"]["reason"] == "Owner/Admin"
    assert read_json(settings.config_path) == {"enabled": True, "maxRequests": 25, "windowMs": 10000}
    assert store.config == RuntimeConfig()


async def test_ban_is_persisted_and_survives_restart(store, settings, clock):
    store.ban("198.51.100.9", "exceeded_25_per_10000ms")
    await store.flush()

    on_disk = read_json(settings.banned_path)
    assert on_disk["198.51.100.9"]["reason"] == "exceeded_25_per_10000ms"
    assert on_disk["198.51.100.9"]["by"] == "rateLimiter"

    restarted = AccessStore(settings, clock=clock)
    await restarted.init()
    record = restarted.ban_record("198.51.100.9")
    assert record is not None
    assert record.reason == "exceeded_25_per_10000ms"
    assert restarted.is_whitelisted("127.0.0.1")
    await restarted.shutdown()


async def test_unban_removes_record_from_memory_and_disk(store, settings):
    store.ban("198.51.100.9", "manual", by="operator")
    assert store.unban("198.51.100.9") is True
    assert store.unban("198.51.100.9") is False
    await store.flush()

    assert read_json(settings.banned_path) == {}


async def test_corrupt_file_on_first_boot_falls_back_to_empty(settings, clock, caplog):
    settings.data_dir.mkdir(parents=True)
    settings.banned_path.write_text("{not json", encoding="utf-8")
    store = AccessStore(settings, clock=clock)

    with caplog.at_level(logging.WARNING):
        await store.init()

    assert store.banned_snapshot() == {}
    assert "failed to load table" in caplog.text
    await store.shutdown()


async def test_bad_reload_keeps_previous_state(store, settings):
    store.ban("198.51.100.9", "exceeded_25_per_10000ms")
    await store.flush()
    settings.banned_path.write_text("[1, 2", encoding="utf-8")

    await store.reload("banned")

    assert store.ban_record("198.51.100.9") is not None


async def test_non_object_document_is_rejected(store, settings):
    store.ban("198.51.100.9", "exceeded_25_per_10000ms")
    await store.flush()
    settings.banned_path.write_text("[]", encoding="utf-8")

    await store.reload("banned")

    assert store.ban_record("198.51.100.9") is not None


async def test_external_edit_is_picked_up_on_reload(store, settings):
    settings.banned_path.write_text(
        json.dumps(
            {"::ffff:203.0.113.5": {"bannedAt": "2026-01-01T00:00:00.000Z", "reason": "abuse", "by": "operator"}}
        ),
        encoding="utf-8",
    )

    await store.reload()

    record = store.ban_record("203.0.113.5")
    assert record is not None
    assert record.reason == "abuse"
    assert record.by == "operator"


async def test_whitelist_seeds_are_restored_after_reload(store, settings):
    settings.whitelist_path.write_text(
        json.dumps({"192.0.2.10": {"addedAt": "2026-01-01T00:00:00.000Z", "reason": "partner"}}),
        encoding="utf-8",
    )

    await store.reload("whitelist")
    await store.flush()

    assert store.is_whitelisted("192.0.2.10")
    assert store.is_whitelisted("127.0.0.1")
    assert store.is_whitelisted("157.230.33.80")
    assert {"192.0.2.10", "127.0.0.1", "::1", "157.230.33.80"} <= set(read_json(settings.whitelist_path))


async def test_config_defaults_fill_missing_and_invalid_fields(store, settings):
    settings.config_path.write_text(
        json.dumps({"maxRequests": 5, "windowMs": -1, "message": "Slow down."}),
        encoding="utf-8",
    )

    config = await store.load_config()

    assert config.enabled is True
    assert config.max_requests == 5
    assert config.window_ms == 10_000
    assert config.message == "Slow down."


async def test_save_failure_is_logged_not_raised(settings, clock, caplog):
    settings.banned_path.mkdir(parents=True)
    store = AccessStore(settings, clock=clock)
    await store.init()

    with caplog.at_level(logging.WARNING):
        assert await store.save_banned() is False

    assert "failed to save table" in caplog.text
    await store.shutdown()


async def test_add_whitelist_is_persisted(store, settings):
    store.add_whitelist("::ffff:192.0.2.44", "monitoring")
    await store.flush()

    assert store.is_whitelisted("192.0.2.44")
    assert read_json(settings.whitelist_path)["192.0.2.44"]["reason"] == "monitoring"


async def test_save_config_rewrites_the_document(store, settings):
    settings.config_path.write_text("{}", encoding="utf-8")

    assert await store.save_config() is True

    assert read_json(settings.config_path) == {"enabled": True, "maxRequests": 25, "windowMs": 10000}


async def test_reload_waits_for_queued_writes(store, settings):
    store.ban("198.51.100.9", "exceeded_25_per_10000ms")

    await store.reload()

    assert store.ban_record("198.51.100.9") is not None
    assert "198.51.100.9" in read_json(settings.banned_path)


async def test_read_overlapping_a_mutation_keeps_memory(store, settings, monkeypatch):
    await store.flush()
    original_read = store._read_json

    async def read_then_ban(table):
        data = await original_read(table)
        store.ban("203.0.113.7", "exceeded_25_per_10000ms")
        return data

    monkeypatch.setattr(store, "_read_json", read_then_ban)
    await store.load_banned()
    monkeypatch.undo()
    await store.flush()

    assert store.ban_record("203.0.113.7") is not None
    assert "203.0.113.7" in read_json(settings.banned_path)


async def test_fractional_limits_in_config_file_fall_back_to_defaults(store, settings):
    settings.config_path.write_text(json.dumps({"maxRequests": 0.5, "windowMs": 0.9}), encoding="utf-8")

    config = await store.load_config()

    assert config.max_requests == 25
    assert config.window_ms == 10_000
