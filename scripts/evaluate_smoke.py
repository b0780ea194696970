from __future__ import annotations

import math

from kline_alert_bot.bundle import compute_indicators
from kline_alert_bot.config import RulesConfig
from kline_alert_bot.evaluator import AlertEvaluator
from kline_alert_bot.ledger import CooldownLedger
from kline_alert_bot.models import Candle

HOUR_MS = 3_600_000


def candle(idx: int, close: float, spread: float = 0.6, qv: float = 1000.0) -> Candle:
    return Candle(
        time=idx * HOUR_MS,
        open=close,
        high=close + spread,
        low=close - spread,
        close=close,
        volume=1.0,
        quote_volume=qv,
    )


def swing_sequence(n: int = 400):
    """Slow sine swings on a gentle uptrend, enough to flip the trail and cross RSI."""
    return [candle(i, 100.0 + 0.02 * i + 8.0 * math.sin(2.0 * math.pi * i / 60.0)) for i in range(n)]


def main():
    candles = swing_sequence()
    ev = AlertEvaluator(RulesConfig(golden_pocket=True, kiwihunt=True))
    ledger = CooldownLedger()
    counts = {}
    for end in range(101, len(candles) + 1):
        bundle = compute_indicators(candles[:end])
        now_ms = candles[end - 1].time + HOUR_MS
        for event in ev.evaluate("SMOKEUSDT", "1h", bundle, ledger, now_ms):
            counts[event.type.value] = counts.get(event.type.value, 0) + 1
            print(f"bar={end - 1} {event.title}: {event.body}")
    print("totals:", counts)
    print("ledger_keys:", len(ledger))


if __name__ == "__main__":
    main()
