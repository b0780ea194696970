from __future__ import annotations

from dataclasses import dataclass
import math
from typing import List, Optional, Sequence

from .indicators import align_to, ema, rolling_mean, sma, to_series
from .models import Candle, Point, Series

KIWIHUNT_MIN_BARS = 50
EOT_HIGHPASS_PERIOD = 100


@dataclass(frozen=True)
class StochRsi:
    stoch: Series
    k: Series
    d: Series


@dataclass(frozen=True)
class WaveTrend:
    wt1: Series
    wt2: Series


@dataclass(frozen=True)
class KiwiHunt:
    q1: Series
    trigger: Series
    q3: Series


def rsi(candles: Sequence[Candle], length: int = 14) -> Series:
    """Wilder RSI; the first value sits on bar ``length``."""
    values: List[Optional[float]] = [None] * len(candles)
    if length <= 0 or len(candles) <= length:
        return to_series(candles, values)

    gains = []
    losses = []
    for i in range(1, len(candles)):
        ch = candles[i].close - candles[i - 1].close
        gains.append(max(0.0, ch))
        losses.append(max(0.0, -ch))

    avg_gain = sum(gains[:length]) / length
    avg_loss = sum(losses[:length]) / length
    values[length] = _rsi_from(avg_gain, avg_loss)
    for i in range(length + 1, len(candles)):
        # gains[i - 1] is the change into bar i
        avg_gain = (avg_gain * (length - 1) + gains[i - 1]) / length
        avg_loss = (avg_loss * (length - 1) + losses[i - 1]) / length
        values[i] = _rsi_from(avg_gain, avg_loss)
    return to_series(candles, values)


def _rsi_from(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def stoch_rsi(
    candles: Sequence[Candle],
    rsi_length: int = 14,
    stoch_length: int = 14,
    k_smooth: int = 3,
    d_smooth: int = 3,
    *,
    rsi_series: Optional[Series] = None,
) -> StochRsi:
    rsi_points = [p for p in (rsi_series if rsi_series is not None else rsi(candles, rsi_length)) if p.value is not None]

    stoch_points: List[Point] = []
    for i in range(stoch_length - 1, len(rsi_points)):
        window = [p.value for p in rsi_points[i - stoch_length + 1:i + 1]]
        highest = max(window)
        lowest = min(window)
        current = rsi_points[i].value
        value = 0.0 if highest == lowest else (current - lowest) / (highest - lowest) * 100.0
        stoch_points.append(Point(rsi_points[i].time, value))

    k_points = rolling_mean(stoch_points, k_smooth)
    d_points = rolling_mean(k_points, d_smooth)
    return StochRsi(
        stoch=align_to(candles, stoch_points),
        k=align_to(candles, k_points),
        d=align_to(candles, d_points),
    )


def wavetrend(candles: Sequence[Candle], channel_len: int = 9, avg_len: int = 12, ma_len: int = 3) -> WaveTrend:
    if len(candles) < channel_len + avg_len + ma_len:
        empty = to_series(candles, [None] * len(candles))
        return WaveTrend(wt1=empty, wt2=list(empty))

    hlc3 = [c.hlc3 for c in candles]
    esa = ema(hlc3, channel_len)
    abs_diff = [abs(p - e) if e is not None else None for p, e in zip(hlc3, esa)]
    de = ema(abs_diff, channel_len)

    ci: List[Optional[float]] = []
    for p, e, d in zip(hlc3, esa, de):
        if e is None or d is None:
            ci.append(None)
        elif d == 0:
            ci.append(0.0)
        else:
            ci.append((p - e) / (0.015 * d))

    wt1 = ema(ci, avg_len)
    wt2 = sma(wt1, ma_len)
    return WaveTrend(wt1=to_series(candles, wt1), wt2=to_series(candles, wt2))


def is_bullish_cross(prev_a: float, prev_b: float, a: float, b: float) -> bool:
    return prev_a <= prev_b and a > b


def is_bearish_cross(prev_a: float, prev_b: float, a: float, b: float) -> bool:
    return prev_a >= prev_b and a < b


def eot_quotient(closes: Sequence[float], lp_period: int, k1: float, hp_period: int = EOT_HIGHPASS_PERIOD) -> List[float]:
    """Ehlers Early Onset Trend: high-pass, Super Smoother, peak AGC, quotient.

    Returned values are rescaled to ``q * 60 + 50``.
    """
    angle = 0.707 * 2.0 * math.pi / hp_period
    alpha1 = (math.cos(angle) + math.sin(angle) - 1.0) / math.cos(angle)
    hp_c0 = (1.0 - alpha1 / 2.0) ** 2
    hp_c1 = 2.0 * (1.0 - alpha1)
    hp_c2 = (1.0 - alpha1) ** 2

    a1 = math.exp(-1.414 * math.pi / lp_period)
    b1 = 2.0 * a1 * math.cos(1.414 * math.pi / lp_period)
    c2 = b1
    c3 = -a1 * a1
    c1 = 1.0 - c2 - c3

    n = len(closes)
    hp = [0.0] * n
    filt = [0.0] * n
    peak = 0.0
    out: List[float] = []
    for i in range(n):
        if i >= 2:
            hp[i] = hp_c0 * (closes[i] - 2.0 * closes[i - 1] + closes[i - 2]) + hp_c1 * hp[i - 1] - hp_c2 * hp[i - 2]
            filt[i] = c1 * (hp[i] + hp[i - 1]) / 2.0 + c2 * filt[i - 1] + c3 * filt[i - 2]
        peak = max(abs(filt[i]), 0.991 * peak)
        x = filt[i] / peak if peak != 0 else 0.0
        q = (x + k1) / (k1 * x + 1.0)
        out.append(q * 60.0 + 50.0)
    return out


def kiwihunt(
    candles: Sequence[Candle],
    fast_period: int = 6,
    slow_period: int = 27,
    fast_k: float = 0.0,
    slow_k: float = 0.8,
    trigger_len: int = 2,
) -> Optional[KiwiHunt]:
    if len(candles) < KIWIHUNT_MIN_BARS:
        return None
    closes = [c.close for c in candles]
    q1 = eot_quotient(closes, fast_period, fast_k)
    q3 = eot_quotient(closes, slow_period, slow_k)
    trigger = sma(q1, trigger_len)
    return KiwiHunt(
        q1=to_series(candles, q1),
        trigger=to_series(candles, trigger),
        q3=to_series(candles, q3),
    )
