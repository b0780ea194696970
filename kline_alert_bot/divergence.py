from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import Candle, DivergenceHit, Pivot, Point, Series


@dataclass(frozen=True)
class DivergenceParams:
    lookback: int = 5
    range_min: int = 5
    range_max: int = 60
    pivot_match_max_bars: int = 3
    bullish_band: float = 45.0  # both oscillator pivots at or below
    bearish_band: float = 55.0  # both oscillator pivots at or above


DEFAULT_PARAMS = DivergenceParams()


def find_pivots(series: Sequence[Point], left_bars: int, right_bars: int, is_high: bool) -> List[Pivot]:
    """Local extrema with a non-strict left side and a strict right side.

    A left neighbour equal to the candidate does not disqualify it, a right
    neighbour equal to it does, so a plateau yields its last bar at most.
    """
    pivots: List[Pivot] = []
    if len(series) < left_bars + right_bars + 1:
        return pivots

    for i in range(left_bars, len(series) - right_bars):
        current = series[i].value
        if current is None:
            continue

        is_pivot = True
        for j in range(1, left_bars + 1):
            other = series[i - j].value
            if other is None or (other > current if is_high else other < current):
                is_pivot = False
                break
        if not is_pivot:
            continue

        for j in range(1, right_bars + 1):
            other = series[i + j].value
            if other is None or (other >= current if is_high else other <= current):
                is_pivot = False
                break

        if is_pivot:
            pivots.append(Pivot(index=i, value=current, time=series[i].time))
    return pivots


def find_closest_pivot(pivot: Pivot, candidates: Sequence[Pivot], max_bars_apart: int) -> Optional[Pivot]:
    closest: Optional[Pivot] = None
    smallest = None
    for cand in candidates:
        diff = abs(pivot.index - cand.index)
        if diff <= max_bars_apart and (smallest is None or diff < smallest):
            smallest = diff
            closest = cand
    return closest


def _price_series(candles: Sequence[Candle], field: str) -> Series:
    return [Point(c.time, getattr(c, field)) for c in candles]


def detect_bullish_divergence(
    candles: Sequence[Candle],
    osc: Series,
    params: DivergenceParams = DEFAULT_PARAMS,
) -> Optional[DivergenceHit]:
    """Lower low in price against a higher low in the oscillator, both lows oversold."""
    return _detect(candles, osc, params, bullish=True)


def detect_bearish_divergence(
    candles: Sequence[Candle],
    osc: Series,
    params: DivergenceParams = DEFAULT_PARAMS,
) -> Optional[DivergenceHit]:
    """Higher high in price against a lower high in the oscillator, both highs overbought."""
    return _detect(candles, osc, params, bullish=False)


def _detect(candles: Sequence[Candle], osc: Series, params: DivergenceParams, *, bullish: bool) -> Optional[DivergenceHit]:
    if len(osc) != len(candles):
        raise ValueError(f"oscillator misaligned: {len(osc)} points for {len(candles)} candles")
    if len(candles) < params.range_max:
        return None

    is_high = not bullish
    price_pivots = find_pivots(_price_series(candles, "high" if is_high else "low"), params.lookback, params.lookback, is_high)
    osc_pivots = find_pivots(osc, params.lookback, params.lookback, is_high)
    if len(price_pivots) < 2:
        return None

    recent = price_pivots[-1]
    osc_recent = find_closest_pivot(recent, osc_pivots, params.pivot_match_max_bars)
    for earlier in reversed(price_pivots[:-1]):
        if bullish and recent.value >= earlier.value:
            continue
        if not bullish and recent.value <= earlier.value:
            continue

        osc_earlier = find_closest_pivot(earlier, osc_pivots, params.pivot_match_max_bars)
        if osc_earlier is None or osc_recent is None or osc_earlier.time == osc_recent.time:
            continue

        if bullish:
            if osc_earlier.value > params.bullish_band or osc_recent.value > params.bullish_band:
                continue
            if osc_recent.value <= osc_earlier.value:
                continue
        else:
            if osc_earlier.value < params.bearish_band or osc_recent.value < params.bearish_band:
                continue
            if osc_recent.value >= osc_earlier.value:
                continue

        gap = recent.index - earlier.index
        if gap < params.range_min or gap > params.range_max:
            continue

        return DivergenceHit(pivot_time=osc_recent.time, value=osc_recent.value)
    return None
