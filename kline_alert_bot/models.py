from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional


@dataclass(frozen=True)
class Candle:
    time: int  # open time, ms since epoch
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float = 0.0

    @property
    def hlc3(self) -> float:
        return (self.high + self.low + self.close) / 3.0


@dataclass(frozen=True)
class Point:
    """One sample of a derived series, keyed by the candle time it belongs to."""
    time: int
    value: Optional[float]


Series = List[Point]


@dataclass(frozen=True)
class Pivot:
    index: int
    value: float
    time: int


class Bias(IntEnum):
    BEARISH = 0
    BULLISH = 1


@dataclass
class TrailState:
    bias: Bias
    delta: float
    level: float


@dataclass(frozen=True)
class TrailPoint:
    time: int
    bias: Optional[Bias]  # None = not yet tracked
    delta: float
    level: float


@dataclass(frozen=True)
class DivergenceHit:
    pivot_time: int
    value: float


class AlertType(str, Enum):
    LUXALGO_BULLISH_FLIP = "luxalgo-bullish-flip"
    LUXALGO_BEARISH_FLIP = "luxalgo-bearish-flip"
    RSI_EXTREME_OVERBOUGHT = "rsi-extreme-overbought"
    RSI_EXTREME_OVERSOLD = "rsi-extreme-oversold"
    RSI_SMA_BULLISH_CROSS = "rsi-sma-bullish-cross"
    RSI_SMA_BEARISH_CROSS = "rsi-sma-bearish-cross"
    BULLISH_DIVERGENCE = "bullish-divergence"
    BEARISH_DIVERGENCE = "bearish-divergence"
    WAVETREND_CONFLUENCE_BUY = "wavetrend-confluence-buy"
    HIGH_CONVICTION_BUY = "high-conviction-buy"
    GOLDEN_POCKET_BULLISH = "golden-pocket-bullish"
    GOLDEN_POCKET_BEARISH = "golden-pocket-bearish"
    KIWIHUNT_HUNT_BUY = "kiwihunt-hunt-buy"
    KIWIHUNT_HUNT_SELL = "kiwihunt-hunt-sell"
    KIWIHUNT_PULLBACK_BUY = "kiwihunt-pullback-buy"
    KIWIHUNT_CONTINUATION_BUY = "kiwihunt-continuation-buy"


@dataclass(frozen=True)
class SignalEvent:
    type: AlertType
    title: str
    body: str
    accent: str  # tailwind-style colour class, mapped per channel
    icon: Optional[str] = None
