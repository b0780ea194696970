from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .indicators import log_true_range_series, sma_last, stdev
from .models import Bias, Candle, TrailPoint, TrailState


def _untracked(c: Candle) -> TrailPoint:
    return TrailPoint(time=c.time, bias=None, delta=0.0, level=0.0)


def statistical_trailing_stop(
    candles: Sequence[Candle],
    data_length: int = 1,
    distribution_length: int = 10,
) -> List[TrailPoint]:
    """Volatility trailing stop driven by the log true range distribution.

    One forward pass; the level ratchets toward price until close crosses it,
    which flips the bias and resets the level on the other side of hlc3.
    """
    if len(candles) < distribution_length + data_length + 2:
        return [_untracked(c) for c in candles]

    log_trs = log_true_range_series(candles, data_length)
    out: List[TrailPoint] = []
    state: Optional[TrailState] = None

    for i, c in enumerate(candles):
        if i < distribution_length - 1:
            out.append(_untracked(c))
            continue

        window = [v for v in log_trs[i - distribution_length + 1:i + 1] if v is not None]
        if len(window) > 1:
            delta = math.exp(sma_last(window, distribution_length) + 2.0 * stdev(window, distribution_length))
        elif state is not None:
            delta = state.delta
        else:
            out.append(_untracked(c))
            continue

        hlc3 = c.hlc3
        if state is None:
            state = TrailState(bias=Bias.BEARISH, delta=delta, level=hlc3 + delta)
        state.delta = delta

        crossed = (
            (state.bias == Bias.BEARISH and c.close >= state.level)
            or (state.bias == Bias.BULLISH and c.close <= state.level)
        )
        if crossed:
            if state.bias == Bias.BEARISH:
                state.bias = Bias.BULLISH
                state.level = max(hlc3 - delta, 0.0)
            else:
                state.bias = Bias.BEARISH
                state.level = hlc3 + delta
        elif state.bias == Bias.BEARISH:
            state.level = min(state.level, hlc3 + delta)
        else:
            state.level = max(state.level, max(hlc3 - delta, 0.0))

        out.append(TrailPoint(time=c.time, bias=state.bias, delta=state.delta, level=state.level))
    return out
