from __future__ import annotations

import logging
from typing import List, Optional

from .bundle import IndicatorBundle
from .config import RulesConfig, SignalThresholds
from .divergence import DivergenceParams, detect_bearish_divergence, detect_bullish_divergence
from .indicators import last_values
from .ledger import CooldownLedger
from .models import AlertType, Bias, SignalEvent
from .oscillators import is_bearish_cross, is_bullish_cross

log = logging.getLogger("evaluator")

ACCENTS = {
    AlertType.LUXALGO_BULLISH_FLIP: "bg-green-500",
    AlertType.LUXALGO_BEARISH_FLIP: "bg-red-500",
    AlertType.RSI_EXTREME_OVERBOUGHT: "bg-red-600",
    AlertType.RSI_EXTREME_OVERSOLD: "bg-green-600",
    AlertType.RSI_SMA_BULLISH_CROSS: "bg-green-500",
    AlertType.RSI_SMA_BEARISH_CROSS: "bg-red-500",
    AlertType.BULLISH_DIVERGENCE: "bg-green-500",
    AlertType.BEARISH_DIVERGENCE: "bg-red-500",
    AlertType.WAVETREND_CONFLUENCE_BUY: "bg-sky-500",
    AlertType.HIGH_CONVICTION_BUY: "bg-cyan-500",
    AlertType.GOLDEN_POCKET_BULLISH: "bg-amber-500",
    AlertType.GOLDEN_POCKET_BEARISH: "bg-orange-500",
    AlertType.KIWIHUNT_HUNT_BUY: "bg-teal-500",
    AlertType.KIWIHUNT_HUNT_SELL: "bg-rose-500",
    AlertType.KIWIHUNT_PULLBACK_BUY: "bg-indigo-500",
    AlertType.KIWIHUNT_CONTINUATION_BUY: "bg-purple-500",
}

ICONS = {
    AlertType.LUXALGO_BULLISH_FLIP: "🟢",
    AlertType.LUXALGO_BEARISH_FLIP: "🔴",
    AlertType.WAVETREND_CONFLUENCE_BUY: "🌊",
    AlertType.HIGH_CONVICTION_BUY: "🚀",
    AlertType.GOLDEN_POCKET_BULLISH: "🏆",
    AlertType.GOLDEN_POCKET_BEARISH: "🏆",
    AlertType.KIWIHUNT_HUNT_BUY: "🥝",
    AlertType.KIWIHUNT_HUNT_SELL: "🥝",
}


class _Pass:
    """Ledger bookkeeping for one (symbol, timeframe) evaluation."""

    def __init__(self, symbol: str, timeframe: str, ledger: CooldownLedger, now_ms: int, cooldown_ms: int):
        self.symbol = symbol
        self.timeframe = timeframe
        self.ledger = ledger
        self.now_ms = now_ms
        self.cooldown_ms = cooldown_ms
        self.events: List[SignalEvent] = []

    def _key(self, alert_type: AlertType, discriminator: Optional[object]) -> str:
        return CooldownLedger.key(self.symbol, self.timeframe, alert_type.value, discriminator)

    def can_fire(self, alert_type: AlertType, discriminator: Optional[object] = None) -> bool:
        key = self._key(alert_type, discriminator)
        ok = self.ledger.can_fire(key, self.now_ms, self.cooldown_ms)
        if not ok:
            log.debug("cooldown_active key=%s", key)
        return ok

    def entered(self, alert_type: AlertType, condition: bool) -> bool:
        """Record whether the condition holds now; True only on a False->True edge."""
        key = CooldownLedger.flag_key(self.symbol, self.timeframe, alert_type.value)
        was = self.ledger.flag(key)
        self.ledger.set_flag(key, condition)
        return condition and not was

    def add(self, alert_type: AlertType, title: str, body: str, discriminator: Optional[object] = None) -> None:
        log.info("alert_prepared symbol=%s tf=%s type=%s title=%s body=%s", self.symbol, self.timeframe, alert_type.value, title, body)
        self.events.append(SignalEvent(
            type=alert_type,
            title=title,
            body=body,
            accent=ACCENTS.get(alert_type, "bg-gray-500"),
            icon=ICONS.get(alert_type),
        ))
        self.ledger.stamp(self._key(alert_type, discriminator), self.now_ms)


class AlertEvaluator:
    """Turns an indicator bundle into signal events, honouring per-key cooldowns."""

    def __init__(
        self,
        rules: Optional[RulesConfig] = None,
        thresholds: Optional[SignalThresholds] = None,
    ):
        self.rules = rules or RulesConfig()
        self.th = thresholds or SignalThresholds()
        self.div_params = DivergenceParams(
            bullish_band=self.th.divergence_bullish_band,
            bearish_band=self.th.divergence_bearish_band,
        )

    def evaluate(
        self,
        symbol: str,
        timeframe: str,
        bundle: IndicatorBundle,
        ledger: CooldownLedger,
        now_ms: int,
    ) -> List[SignalEvent]:
        p = _Pass(symbol, timeframe, ledger, now_ms, self.th.cooldown_ms)
        if not bundle.candles:
            return p.events

        if self.rules.trail_flip:
            self._trail_flip(p, bundle)
        if self.rules.rsi_extremes:
            self._rsi_extremes(p, bundle)
        if self.rules.rsi_sma_cross:
            self._rsi_sma_cross(p, bundle)
        if self.rules.divergence:
            self._divergence(p, bundle)
        if self.rules.wavetrend_confluence:
            self._wavetrend_confluence(p, bundle)
        if self.rules.high_conviction_buy:
            self._high_conviction_buy(p, bundle)
        if self.rules.golden_pocket:
            self._golden_pocket(p, bundle)
        if self.rules.kiwihunt:
            self._kiwihunt(p, bundle)
        return p.events

    # --- rules ---

    def _trail_flip(self, p: _Pass, b: IndicatorBundle) -> None:
        if len(b.trail) < 2:
            return
        prev, last = b.trail[-2], b.trail[-1]
        if prev.bias is None or last.bias is None:
            return
        close = b.candles[-1].close

        if prev.bias == Bias.BEARISH and last.bias == Bias.BULLISH and p.can_fire(AlertType.LUXALGO_BULLISH_FLIP):
            p.add(AlertType.LUXALGO_BULLISH_FLIP,
                  f"{p.symbol} Bot Buys ({p.timeframe})",
                  f"Trailing stop flipped to Bullish at ${close:.4f}")

        if prev.bias == Bias.BULLISH and last.bias == Bias.BEARISH and p.can_fire(AlertType.LUXALGO_BEARISH_FLIP):
            p.add(AlertType.LUXALGO_BEARISH_FLIP,
                  f"{p.symbol} Bot Sells ({p.timeframe})",
                  f"Trailing stop flipped to Bearish at ${close:.4f}")

    def _rsi_extremes(self, p: _Pass, b: IndicatorBundle) -> None:
        vals = last_values(b.rsi)
        if vals is None:
            return
        prev, last = vals
        ob, os_ = self.th.rsi_overbought, self.th.rsi_oversold

        if last > ob and prev <= ob and p.can_fire(AlertType.RSI_EXTREME_OVERBOUGHT):
            p.add(AlertType.RSI_EXTREME_OVERBOUGHT,
                  f"{p.symbol} Extreme Overbought ({p.timeframe})",
                  f"RSI is now {last:.2f}, crossing above {ob:g}.")

        if last < os_ and prev >= os_ and p.can_fire(AlertType.RSI_EXTREME_OVERSOLD):
            p.add(AlertType.RSI_EXTREME_OVERSOLD,
                  f"{p.symbol} Extreme Oversold ({p.timeframe})",
                  f"RSI is now {last:.2f}, crossing below {os_:g}.")

    def _rsi_sma_cross(self, p: _Pass, b: IndicatorBundle) -> None:
        rsi_vals = last_values(b.rsi)
        sma_vals = last_values(b.rsi_sma)
        if rsi_vals is None or sma_vals is None:
            return
        prev_rsi, last_rsi = rsi_vals
        prev_sma, last_sma = sma_vals
        n_rsi, n_sma = self.th.rsi_length, self.th.rsi_sma_length

        if is_bullish_cross(prev_rsi, prev_sma, last_rsi, last_sma) and p.can_fire(AlertType.RSI_SMA_BULLISH_CROSS):
            p.add(AlertType.RSI_SMA_BULLISH_CROSS,
                  f"{p.symbol} RSI/SMA Bullish Cross ({p.timeframe})",
                  f"RSI ({n_rsi}) has crossed above its SMA ({n_sma}). RSI is now {last_rsi:.2f}.")

        if is_bearish_cross(prev_rsi, prev_sma, last_rsi, last_sma) and p.can_fire(AlertType.RSI_SMA_BEARISH_CROSS):
            p.add(AlertType.RSI_SMA_BEARISH_CROSS,
                  f"{p.symbol} RSI/SMA Bearish Cross ({p.timeframe})",
                  f"RSI ({n_rsi}) has crossed below its SMA ({n_sma}). RSI is now {last_rsi:.2f}.")

    def _divergence(self, p: _Pass, b: IndicatorBundle) -> None:
        # keyed by pivot time so an older divergence's cooldown never hides a new one
        bull = detect_bullish_divergence(b.candles, b.rsi, self.div_params)
        if bull is not None and p.can_fire(AlertType.BULLISH_DIVERGENCE, bull.pivot_time):
            p.add(AlertType.BULLISH_DIVERGENCE,
                  f"{p.symbol} Bullish Divergence ({p.timeframe})",
                  f"A bullish divergence has been detected. RSI is at {bull.value:.2f}.",
                  discriminator=bull.pivot_time)

        bear = detect_bearish_divergence(b.candles, b.rsi, self.div_params)
        if bear is not None and p.can_fire(AlertType.BEARISH_DIVERGENCE, bear.pivot_time):
            p.add(AlertType.BEARISH_DIVERGENCE,
                  f"{p.symbol} Bearish Divergence ({p.timeframe})",
                  f"A bearish divergence has been detected. RSI is at {bear.value:.2f}.",
                  discriminator=bear.pivot_time)

    def _wavetrend_confluence(self, p: _Pass, b: IndicatorBundle) -> None:
        wt1 = last_values(b.wt1)
        wt2 = last_values(b.wt2)
        if wt1 is None or wt2 is None:
            return
        level = self.th.wavetrend_buy_level_for(p.timeframe)
        if is_bullish_cross(wt1[0], wt2[0], wt1[1], wt2[1]) and wt2[1] < level and p.can_fire(AlertType.WAVETREND_CONFLUENCE_BUY):
            p.add(AlertType.WAVETREND_CONFLUENCE_BUY,
                  f"{p.symbol} Cipher Buy Signal ({p.timeframe})",
                  f"Bullish cross detected while WaveTrend is oversold ({wt2[1]:.2f}).")

    def _high_conviction_buy(self, p: _Pass, b: IndicatorBundle) -> None:
        th = self.th
        if p.timeframe not in th.high_conviction_timeframes or len(b.candles) < th.high_conviction_min_candles:
            return
        stoch = last_values(b.stoch_k, 1)
        wt1 = last_values(b.wt1)
        wt2 = last_values(b.wt2)
        sma50 = last_values(b.price_sma50)
        sma100 = last_values(b.price_sma100)
        if stoch is None or wt1 is None or wt2 is None or sma50 is None or sma100 is None:
            return

        prev_k, last_k = b.candles[-2], b.candles[-1]
        prior = b.candles[-(th.volume_lookback + 1):-1]
        avg_volume = sum(c.quote_volume for c in prior) / len(prior) if len(prior) >= th.volume_lookback else 0.0

        if stoch[0] >= th.stoch_oversold or last_k.quote_volume <= avg_volume * th.volume_factor:
            return

        scenario = False
        if wt2[1] < th.hc_wt_deep_level and (last_k.close > sma50[1] or last_k.close > sma100[1]):
            scenario = True

        if is_bullish_cross(wt1[0], wt2[0], wt1[1], wt2[1]) and wt2[1] < th.hc_wt_cross_level:
            tapped = any(last_k.low <= s[1] < last_k.close for s in (sma50, sma100))
            reclaimed = any(prev_k.close < s[0] and last_k.close > s[1] for s in (sma50, sma100))
            if tapped or reclaimed:
                scenario = True

        if scenario and p.can_fire(AlertType.HIGH_CONVICTION_BUY):
            p.add(AlertType.HIGH_CONVICTION_BUY,
                  f"{p.symbol} High-Conviction Buy ({p.timeframe})",
                  "Multiple bullish confluence factors detected.")

    def _golden_pocket(self, p: _Pass, b: IndicatorBundle) -> None:
        th = self.th
        n = th.golden_pocket_lookback
        if len(b.candles) < n:
            return
        window = b.candles[-n:]
        hi_idx = max(range(n), key=lambda i: window[i].high)
        lo_idx = min(range(n), key=lambda i: window[i].low)
        hi, lo = window[hi_idx].high, window[lo_idx].low
        span = hi - lo
        close = window[-1].close

        bull_zone = bear_zone = False
        bottom = top = 0.0
        if span > 0 and lo_idx < hi_idx:
            # up leg: retrace down from the high
            bottom, top = hi - span * th.golden_pocket_high, hi - span * th.golden_pocket_low
            bull_zone = bottom <= close <= top
        elif span > 0 and hi_idx < lo_idx:
            bottom, top = lo + span * th.golden_pocket_low, lo + span * th.golden_pocket_high
            bear_zone = bottom <= close <= top

        if p.entered(AlertType.GOLDEN_POCKET_BULLISH, bull_zone) and p.can_fire(AlertType.GOLDEN_POCKET_BULLISH):
            p.add(AlertType.GOLDEN_POCKET_BULLISH,
                  f"{p.symbol} Golden Pocket Long Zone ({p.timeframe})",
                  f"Price ${close:.4f} entered the golden pocket ${bottom:.4f} - ${top:.4f} of the up leg.")

        if p.entered(AlertType.GOLDEN_POCKET_BEARISH, bear_zone) and p.can_fire(AlertType.GOLDEN_POCKET_BEARISH):
            p.add(AlertType.GOLDEN_POCKET_BEARISH,
                  f"{p.symbol} Golden Pocket Short Zone ({p.timeframe})",
                  f"Price ${close:.4f} entered the golden pocket ${bottom:.4f} - ${top:.4f} of the down leg.")

    def _kiwihunt(self, p: _Pass, b: IndicatorBundle) -> None:
        if b.kiwi is None:
            return
        q1 = last_values(b.kiwi.q1)
        trig = last_values(b.kiwi.trigger)
        q3 = last_values(b.kiwi.q3)
        if q1 is None or trig is None or q3 is None:
            return
        th = self.th

        if is_bullish_cross(q1[0], trig[0], q1[1], trig[1]) and q3[1] < th.kiwi_oversold and p.can_fire(AlertType.KIWIHUNT_HUNT_BUY):
            p.add(AlertType.KIWIHUNT_HUNT_BUY,
                  f"{p.symbol} KiwiHunt Buy ({p.timeframe})",
                  f"Fast line crossed above its trigger with the slow line oversold ({q3[1]:.2f}).")

        if is_bearish_cross(q1[0], trig[0], q1[1], trig[1]) and q3[1] > th.kiwi_overbought and p.can_fire(AlertType.KIWIHUNT_HUNT_SELL):
            p.add(AlertType.KIWIHUNT_HUNT_SELL,
                  f"{p.symbol} KiwiHunt Sell ({p.timeframe})",
                  f"Fast line crossed below its trigger with the slow line overbought ({q3[1]:.2f}).")

        trend_up = q3[1] >= th.kiwi_trend_level
        pullback = trend_up and q1[1] <= th.kiwi_oversold
        continuation = trend_up and q1[1] > trig[1] and q1[1] >= th.kiwi_trend_level

        if p.entered(AlertType.KIWIHUNT_PULLBACK_BUY, pullback) and p.can_fire(AlertType.KIWIHUNT_PULLBACK_BUY):
            p.add(AlertType.KIWIHUNT_PULLBACK_BUY,
                  f"{p.symbol} KiwiHunt Pullback ({p.timeframe})",
                  f"Pullback inside an uptrend: fast {q1[1]:.2f}, slow {q3[1]:.2f}.")

        if p.entered(AlertType.KIWIHUNT_CONTINUATION_BUY, continuation) and p.can_fire(AlertType.KIWIHUNT_CONTINUATION_BUY):
            p.add(AlertType.KIWIHUNT_CONTINUATION_BUY,
                  f"{p.symbol} KiwiHunt Continuation ({p.timeframe})",
                  f"Trend continuation: fast {q1[1]:.2f} back above trigger {trig[1]:.2f}.")
