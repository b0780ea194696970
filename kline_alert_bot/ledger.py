from __future__ import annotations

from typing import Any, Dict, Optional, Union

LedgerValue = Union[int, bool]

ALERT_COOLDOWN_MS = 3 * 60 * 60 * 1000


class CooldownLedger:
    """Flat string-keyed map of last-fired timestamps (ms) and entry flags.

    Loaded once per run, mutated by the evaluator, persisted once per run.
    A missing key means the alert never fired.
    """

    def __init__(self, entries: Optional[Dict[str, Any]] = None) -> None:
        self._entries: Dict[str, LedgerValue] = dict(entries or {})

    @staticmethod
    def key(symbol: str, timeframe: str, alert_type: str, discriminator: Optional[object] = None) -> str:
        base = f"{symbol}-{timeframe}-{alert_type}"
        return base if discriminator is None else f"{base}-{discriminator}"

    @staticmethod
    def flag_key(symbol: str, timeframe: str, alert_type: str) -> str:
        return CooldownLedger.key(symbol, timeframe, alert_type, "active")

    def get(self, key: str) -> Optional[LedgerValue]:
        return self._entries.get(key)

    def set(self, key: str, value: LedgerValue) -> None:
        self._entries[key] = value

    def last_fired(self, key: str) -> Optional[int]:
        v = self._entries.get(key)
        # bool is an int subclass; flags are never timestamps
        if v is None or isinstance(v, bool):
            return None
        return int(v)

    def can_fire(self, key: str, now_ms: int, cooldown_ms: int = ALERT_COOLDOWN_MS) -> bool:
        last = self.last_fired(key)
        return last is None or (now_ms - last) > cooldown_ms

    def stamp(self, key: str, now_ms: int) -> None:
        self._entries[key] = int(now_ms)

    def flag(self, key: str) -> bool:
        return self._entries.get(key) is True

    def set_flag(self, key: str, value: bool) -> None:
        self._entries[key] = bool(value)

    def to_dict(self) -> Dict[str, LedgerValue]:
        return dict(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
