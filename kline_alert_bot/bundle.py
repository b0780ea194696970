from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import SignalThresholds
from .indicators import series_values, sma, to_series
from .models import Candle, Series, TrailPoint
from .oscillators import KiwiHunt, kiwihunt, rsi, stoch_rsi, wavetrend
from .trailing_stop import statistical_trailing_stop


@dataclass(frozen=True)
class IndicatorBundle:
    """Everything the evaluator reads for one (symbol, timeframe) pass."""
    candles: List[Candle]
    trail: List[TrailPoint]
    rsi: Series
    rsi_sma: Series
    stoch_k: Series
    stoch_d: Series
    price_sma50: Series
    price_sma100: Series
    wt1: Series
    wt2: Series
    kiwi: Optional[KiwiHunt] = None

    def check_aligned(self) -> None:
        n = len(self.candles)
        named = {
            "trail": self.trail,
            "rsi": self.rsi,
            "rsi_sma": self.rsi_sma,
            "stoch_k": self.stoch_k,
            "stoch_d": self.stoch_d,
            "price_sma50": self.price_sma50,
            "price_sma100": self.price_sma100,
            "wt1": self.wt1,
            "wt2": self.wt2,
        }
        if self.kiwi is not None:
            named.update(kiwi_q1=self.kiwi.q1, kiwi_trigger=self.kiwi.trigger, kiwi_q3=self.kiwi.q3)
        bad = [f"{name}={len(s)}" for name, s in named.items() if len(s) != n]
        if bad:
            raise ValueError(f"indicator bundle misaligned (candles={n}): " + ", ".join(bad))


def compute_indicators(candles: Sequence[Candle], thresholds: Optional[SignalThresholds] = None) -> IndicatorBundle:
    th = thresholds or SignalThresholds()
    candles = list(candles)

    rsi_series = rsi(candles, th.rsi_length)
    rsi_vals = series_values(rsi_series)
    stoch = stoch_rsi(candles, rsi_series=rsi_series)
    closes = [c.close for c in candles]
    wt = wavetrend(candles)

    bundle = IndicatorBundle(
        candles=candles,
        trail=statistical_trailing_stop(candles),
        rsi=rsi_series,
        rsi_sma=to_series(candles, sma(rsi_vals, th.rsi_sma_length)),
        stoch_k=stoch.k,
        stoch_d=stoch.d,
        price_sma50=to_series(candles, sma(closes, 50)),
        price_sma100=to_series(candles, sma(closes, 100)),
        wt1=wt.wt1,
        wt2=wt.wt2,
        kiwi=kiwihunt(candles),
    )
    bundle.check_aligned()
    return bundle
