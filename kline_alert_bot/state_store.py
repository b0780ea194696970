from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import aiohttp

from .ledger import CooldownLedger

log = logging.getLogger("state")

JSONBIN_BASE = "https://api.jsonbin.io/v3/b"


class MemoryLedgerStore:
    """Keeps the ledger for the life of the process only."""

    def __init__(self, entries: Optional[Dict[str, Any]] = None) -> None:
        self._entries: Dict[str, Any] = dict(entries or {})

    async def load(self) -> CooldownLedger:
        return CooldownLedger(self._entries)

    async def save(self, ledger: CooldownLedger) -> None:
        self._entries = ledger.to_dict()


class FileLedgerStore:
    def __init__(self, path: str) -> None:
        self.path = path

    async def load(self) -> CooldownLedger:
        if not os.path.exists(self.path):
            log.info("state_file_missing path=%s starting_fresh=1", self.path)
            return CooldownLedger()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f) or {}
        except (OSError, ValueError) as e:
            log.warning("state_file_load_failed path=%s err=%s starting_fresh=1", self.path, e)
            return CooldownLedger()
        log.info("state_loaded path=%s keys=%d", self.path, len(raw))
        return CooldownLedger(raw)

    async def save(self, ledger: CooldownLedger) -> None:
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(ledger.to_dict(), f, sort_keys=True)
            os.replace(tmp, self.path)
            log.info("state_saved path=%s keys=%d", self.path, len(ledger))
        except OSError as e:
            log.warning("state_file_save_failed path=%s err=%s", self.path, e)


class JsonBinLedgerStore:
    def __init__(self, api_key: str, bin_id: str, *, timeout_s: int = 15) -> None:
        self.api_key = api_key
        self.bin_id = bin_id
        self.timeout_s = timeout_s
        # a failed load must not be followed by a save over the remote record
        self.load_failed = False

    def _headers(self) -> Dict[str, str]:
        return {"X-Master-Key": self.api_key}

    async def load(self) -> CooldownLedger:
        url = f"{JSONBIN_BASE}/{self.bin_id}/latest"
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, headers=self._headers()) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise RuntimeError(f"JSONBin load failed: {resp.status} {text[:200]}")
                    data = await resp.json(content_type=None)
        except Exception as e:
            log.warning("jsonbin_load_failed bin=%s err=%s starting_fresh=1", self.bin_id, e)
            self.load_failed = True
            return CooldownLedger()
        self.load_failed = False
        record = (data or {}).get("record") or {}
        log.info("state_loaded backend=jsonbin keys=%d", len(record))
        return CooldownLedger(record)

    async def save(self, ledger: CooldownLedger) -> None:
        url = f"{JSONBIN_BASE}/{self.bin_id}"
        if self.load_failed:
            log.warning("jsonbin_save_skipped bin=%s reason=load_failed keys=%d", self.bin_id, len(ledger))
            return
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.put(url, json=ledger.to_dict(), headers=self._headers()) as resp:
                    if resp.status >= 300:
                        text = await resp.text()
                        log.warning("jsonbin_save_bad_status status=%s body=%s", resp.status, text[:200])
                        return
            log.info("state_saved backend=jsonbin keys=%d", len(ledger))
        except Exception as e:
            log.warning("jsonbin_save_failed bin=%s err=%s", self.bin_id, e)


def build_store(cfg) -> Any:
    """Pick a ledger store from a StateConfig."""
    backend = (cfg.backend or "auto").lower()
    if backend == "jsonbin" or (backend == "auto" and cfg.jsonbin_api_key and cfg.jsonbin_bin_id):
        return JsonBinLedgerStore(cfg.jsonbin_api_key, cfg.jsonbin_bin_id, timeout_s=cfg.timeout_s)
    if backend == "file" or (backend == "auto" and cfg.path):
        return FileLedgerStore(cfg.path or "alert_state.json")
    if backend not in ("auto", "memory"):
        raise ValueError(f"Unsupported state backend: {cfg.backend}")
    log.warning("state_backend=memory cooldowns will not survive this process")
    return MemoryLedgerStore()
