import asyncio
import json

import aiohttp

from kline_alert_bot import state_store
from kline_alert_bot.config import StateConfig
from kline_alert_bot.ledger import ALERT_COOLDOWN_MS, CooldownLedger
from kline_alert_bot.state_store import FileLedgerStore, JsonBinLedgerStore, MemoryLedgerStore, build_store


def test_keys_and_flags():
    assert CooldownLedger.key("BTCUSDT", "1h", "rsi-extreme-oversold") == "BTCUSDT-1h-rsi-extreme-oversold"
    assert CooldownLedger.key("BTCUSDT", "1h", "bullish-divergence", 123) == "BTCUSDT-1h-bullish-divergence-123"
    assert CooldownLedger.flag_key("BTCUSDT", "4h", "golden-pocket-bullish") == "BTCUSDT-4h-golden-pocket-bullish-active"


def test_timestamp_zero_counts_as_fired():
    ledger = CooldownLedger()
    assert ledger.can_fire("k", 0)
    ledger.stamp("k", 0)
    assert not ledger.can_fire("k", ALERT_COOLDOWN_MS)
    assert ledger.can_fire("k", ALERT_COOLDOWN_MS + 1)


def test_flags_are_not_timestamps():
    ledger = CooldownLedger({"k-active": True})
    assert ledger.flag("k-active")
    assert ledger.last_fired("k-active") is None
    assert not ledger.flag("missing")


def test_file_store_round_trip(tmp_path):
    path = tmp_path / "state.json"
    store = FileLedgerStore(str(path))

    async def _run():
        ledger = await store.load()
        assert len(ledger) == 0
        ledger.stamp("BTCUSDT-1h-x", 42)
        ledger.set_flag("BTCUSDT-1h-y-active", True)
        await store.save(ledger)
        return await store.load()

    loaded = asyncio.run(_run())
    assert loaded.last_fired("BTCUSDT-1h-x") == 42
    assert loaded.flag("BTCUSDT-1h-y-active")
    assert json.loads(path.read_text())["BTCUSDT-1h-x"] == 42


def test_file_store_corrupt_file_starts_fresh(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")
    ledger = asyncio.run(FileLedgerStore(str(path)).load())
    assert len(ledger) == 0


def test_memory_store_keeps_snapshot():
    store = MemoryLedgerStore()

    async def _run():
        ledger = await store.load()
        ledger.stamp("a", 1)
        await store.save(ledger)
        ledger.stamp("b", 2)  # after save: not persisted
        return await store.load()

    loaded = asyncio.run(_run())
    assert "a" in loaded and "b" not in loaded


def test_build_store_picks_backend(tmp_path):
    assert isinstance(build_store(StateConfig(jsonbin_api_key="k", jsonbin_bin_id="b")), JsonBinLedgerStore)
    assert isinstance(build_store(StateConfig(path=str(tmp_path / "s.json"))), FileLedgerStore)
    assert isinstance(build_store(StateConfig()), MemoryLedgerStore)


def test_jsonbin_store_skips_save_after_failed_load(monkeypatch):
    calls = []

    def unreachable(*args, **kwargs):
        calls.append(kwargs)
        raise aiohttp.ClientConnectionError("jsonbin down")

    monkeypatch.setattr(state_store.aiohttp, "ClientSession", unreachable)
    store = JsonBinLedgerStore("key", "bin")

    async def _run():
        ledger = await store.load()
        ledger.stamp("BTCUSDT-1h-x", 1)
        await store.save(ledger)

    asyncio.run(_run())
    assert store.load_failed
    assert len(calls) == 1  # the load only; nothing was PUT over the bin
