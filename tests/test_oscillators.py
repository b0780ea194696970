import math

import pytest

from kline_alert_bot.models import Candle
from kline_alert_bot.oscillators import (
    KIWIHUNT_MIN_BARS,
    is_bearish_cross,
    is_bullish_cross,
    kiwihunt,
    rsi,
    stoch_rsi,
    wavetrend,
)


def _c(idx: int, close: float, spread: float = 0.0) -> Candle:
    return Candle(
        time=idx * 3_600_000,
        open=close,
        high=close + spread,
        low=close - spread,
        close=close,
        volume=1.0,
        quote_volume=close,
    )


def _zigzag(n: int):
    return [_c(i, 100.0 + 10.0 * math.sin(i / 3.0), 1.0) for i in range(n)]


def test_rsi_rising_prices_pin_to_100():
    candles = [_c(i, 100.0 + i) for i in range(40)]
    out = rsi(candles, 14)
    assert len(out) == len(candles)
    assert all(p.value is None for p in out[:14])
    assert all(p.value == 100.0 for p in out[14:])


def test_rsi_falling_prices_pin_to_0():
    candles = [_c(i, 200.0 - i) for i in range(40)]
    out = rsi(candles, 14)
    assert all(p.value == pytest.approx(0.0) for p in out[14:])


def test_rsi_first_value_uses_first_length_changes():
    closes = [10, 11, 10, 11, 12]
    candles = [_c(i, float(c)) for i, c in enumerate(closes)]
    out = rsi(candles, 2)
    # changes into bars 1, 2: +1, -1 -> avg gain 0.5, avg loss 0.5
    assert out[2].value == pytest.approx(50.0)
    # bar 3 change +1: gain (0.5 + 1) / 2, loss 0.5 / 2
    assert out[3].value == pytest.approx(100.0 - 100.0 / (1.0 + 0.75 / 0.25))


def test_rsi_short_input_is_all_none():
    candles = [_c(i, 100.0) for i in range(14)]
    out = rsi(candles, 14)
    assert len(out) == 14
    assert all(p.value is None for p in out)


def test_stoch_rsi_alignment_by_time():
    candles = [_c(i, 100.0 + i) for i in range(40)]
    out = stoch_rsi(candles)
    for series in (out.stoch, out.k, out.d):
        assert len(series) == len(candles)
        assert [p.time for p in series] == [c.time for c in candles]
    # rsi from bar 14, stoch from 27, %K from 29, %D from 31
    assert out.stoch[26].value is None and out.stoch[27].value == 0.0
    assert out.k[28].value is None and out.k[29].value == 0.0
    assert out.d[30].value is None and out.d[31].value == 0.0


def test_stoch_rsi_range_is_bounded():
    out = stoch_rsi(_zigzag(120))
    vals = [p.value for p in out.k if p.value is not None]
    assert vals
    assert all(0.0 <= v <= 100.0 for v in vals)


def test_wavetrend_short_history_is_empty_but_aligned():
    candles = [_c(i, 100.0) for i in range(10)]
    wt = wavetrend(candles)
    assert len(wt.wt1) == len(wt.wt2) == 10
    assert all(p.value is None for p in wt.wt1 + wt.wt2)


def test_wavetrend_flat_prices_stay_at_zero():
    candles = [_c(i, 100.0) for i in range(50)]
    wt = wavetrend(candles)
    assert all(p.value == 0.0 for p in wt.wt1)
    assert all(p.value == 0.0 for p in wt.wt2[2:])


def test_crosses():
    assert is_bullish_cross(-1.0, 0.0, 1.0, 0.0)
    assert is_bullish_cross(0.0, 0.0, 1.0, 0.0)
    assert not is_bullish_cross(1.0, 0.0, 2.0, 0.0)
    assert is_bearish_cross(1.0, 0.0, -1.0, 0.0)
    assert not is_bearish_cross(-1.0, 0.0, -2.0, 0.0)


def test_kiwihunt_unavailable_below_min_bars():
    assert kiwihunt([_c(i, 100.0) for i in range(KIWIHUNT_MIN_BARS - 1)]) is None


def test_kiwihunt_flat_prices_sit_on_quotient_offset():
    candles = [_c(i, 100.0) for i in range(KIWIHUNT_MIN_BARS)]
    k = kiwihunt(candles)
    assert k is not None
    assert len(k.q1) == len(k.trigger) == len(k.q3) == len(candles)
    assert all(p.value == pytest.approx(50.0) for p in k.q1)
    # k1 = 0.8 with zero input gives q = 0.8
    assert all(p.value == pytest.approx(98.0) for p in k.q3)
    assert k.trigger[0].value is None


def test_kiwihunt_lines_stay_in_band():
    k = kiwihunt(_zigzag(200))
    for series in (k.q1, k.q3):
        vals = [p.value for p in series]
        assert all(-10.0 - 1e-9 <= v <= 110.0 + 1e-9 for v in vals)
