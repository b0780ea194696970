from __future__ import annotations
from typing import Iterable, List, Optional, Sequence
import math

from .models import Candle, Point, Series


def ema_next(prev_ema: Optional[float], x: float, length: int) -> float:
    if length <= 1:
        return x
    alpha = 2.0 / (length + 1.0)
    return x if prev_ema is None else (alpha * x + (1.0 - alpha) * prev_ema)


def sma(values: Sequence[Optional[float]], length: int) -> List[Optional[float]]:
    """Trailing mean over the valid samples of each window.

    Bars before ``length - 1`` have no value, as do windows with no valid sample.
    """
    out: List[Optional[float]] = [None] * len(values)
    if length <= 0:
        return out
    for i in range(length - 1, len(values)):
        window = [v for v in values[i - length + 1:i + 1] if v is not None]
        if window:
            out[i] = sum(window) / len(window)
    return out


def sma_last(values: Sequence[float], length: int) -> float:
    """Mean of the last ``min(len, length)`` samples; 0.0 when there are none."""
    use = min(len(values), length)
    if use <= 0:
        return 0.0
    return sum(values[-use:]) / float(use)


def ema(values: Sequence[Optional[float]], length: int) -> List[Optional[float]]:
    out: List[Optional[float]] = []
    prev: Optional[float] = None
    for x in values:
        if x is not None:
            prev = ema_next(prev, x, length)
        # before the first valid input prev stays None; afterwards nulls hold it
        out.append(prev)
    return out


def stdev(values: Sequence[float], length: int) -> float:
    """Population standard deviation of the last ``min(len, length)`` samples."""
    use = min(len(values), length)
    if use < 1:
        return 0.0
    window = values[-use:]
    mean = sma_last(window, use)
    if math.isnan(mean):
        return 0.0
    variance = sum((v - mean) ** 2 for v in window) / use
    return math.sqrt(variance)


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def true_range_series(candles: Sequence[Candle], data_length: int = 1) -> List[Optional[float]]:
    """True range of the trailing ``data_length`` bars against the close
    ``data_length + 1`` bars back."""
    lookback = data_length + 1
    out: List[Optional[float]] = []
    for i in range(len(candles)):
        if i < lookback:
            out.append(None)
            continue
        window = candles[i - data_length + 1:i + 1]
        h = max(c.high for c in window)
        l = min(c.low for c in window)
        out.append(true_range(h, l, candles[i - lookback].close))
    return out


def log_true_range_series(candles: Sequence[Candle], data_length: int = 1) -> List[Optional[float]]:
    return [math.log(tr) if tr is not None and tr > 0 else None for tr in true_range_series(candles, data_length)]


def to_series(candles: Sequence[Candle], values: Sequence[Optional[float]]) -> Series:
    if len(values) != len(candles):
        raise ValueError(f"series misaligned: {len(values)} values for {len(candles)} candles")
    return [Point(c.time, v) for c, v in zip(candles, values)]


def series_values(series: Iterable[Point]) -> List[Optional[float]]:
    return [p.value for p in series]


def align_to(candles: Sequence[Candle], points: Iterable[Point]) -> Series:
    """Place points on the candle timeline by time; candles without a point get None."""
    by_time = {p.time: p.value for p in points}
    return [Point(c.time, by_time.get(c.time)) for c in candles]


def rolling_mean(points: Sequence[Point], length: int) -> List[Point]:
    """Full-window mean over an unpadded point list; result starts at the first full window."""
    out: List[Point] = []
    if length <= 0:
        return out
    for i in range(length - 1, len(points)):
        window = points[i - length + 1:i + 1]
        out.append(Point(points[i].time, sum(p.value for p in window) / float(length)))
    return out


def last_values(series: Sequence[Point], n: int = 2) -> Optional[List[float]]:
    """Values of the last ``n`` points, or None if there are fewer or any is missing."""
    if n <= 0 or len(series) < n:
        return None
    tail = [p.value for p in series[-n:]]
    if any(v is None for v in tail):
        return None
    return tail
