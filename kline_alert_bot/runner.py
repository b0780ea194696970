from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from .bundle import compute_indicators
from .config import Config
from .evaluator import AlertEvaluator
from .ledger import CooldownLedger
from .models import Candle, SignalEvent
from .notifier.discord import DiscordNotifier
from .notifier.telegram import TelegramNotifier
from .providers.binance import BinanceProvider
from .state_store import build_store

log = logging.getLogger("runner")

FetchResult = Tuple[str, str, Optional[List[Candle]]]


class AlertRunner:
    """One evaluation run: load ledger, scan every pair, dispatch, persist."""

    def __init__(self, cfg: Config, *, provider=None, store=None, notifiers: Optional[Sequence] = None):
        self.cfg = cfg
        self.provider = provider or BinanceProvider(
            market=cfg.provider.market,
            rest_timeout_s=cfg.provider.rest_timeout_s,
        )
        self.store = store or build_store(cfg.state)
        if notifiers is None:
            notifiers = [
                DiscordNotifier(
                    enabled=cfg.discord.enabled,
                    url=cfg.discord.webhook_url,
                    footer=cfg.discord.footer,
                    timeout_s=cfg.discord.timeout_s,
                ),
            ]
            if cfg.telegram.enabled:
                notifiers.append(TelegramNotifier(
                    token=cfg.telegram.token,
                    chat_ids=cfg.telegram.chat_ids,
                    disable_web_page_preview=cfg.telegram.disable_web_page_preview,
                ))
        self.notifiers = list(notifiers)
        self.evaluator = AlertEvaluator(cfg.rules, cfg.thresholds)
        self._metrics: Dict[str, int] = {
            "pairs_evaluated": 0,
            "pairs_skipped": 0,
            "pairs_failed": 0,
            "alerts_fired": 0,
            "dispatch_failed": 0,
        }

    async def _fetch_all(self, pairs: List[Tuple[str, str]]) -> List[FetchResult]:
        sem = asyncio.Semaphore(max(1, int(self.cfg.provider.fetch_concurrency)))
        limit = int(self.cfg.provider.candles)

        async def _one(sym: str, tf: str) -> FetchResult:
            try:
                async with sem:
                    candles = await self.provider.fetch_klines(sym, tf, limit)
                return sym, tf, candles
            except Exception as e:
                log.warning("fetch_failed symbol=%s tf=%s err=%s", sym, tf, e)
                return sym, tf, None

        return await asyncio.gather(*[_one(sym, tf) for sym, tf in pairs])

    def evaluate_pair(self, symbol: str, timeframe: str, candles: List[Candle], ledger: CooldownLedger, now_ms: int) -> List[SignalEvent]:
        if len(candles) < int(self.cfg.provider.min_candles):
            log.info("skip_insufficient_klines symbol=%s tf=%s bars=%d need=%d", symbol, timeframe, len(candles), self.cfg.provider.min_candles)
            self._metrics["pairs_skipped"] += 1
            return []
        bundle = compute_indicators(candles, self.cfg.thresholds)
        events = self.evaluator.evaluate(symbol, timeframe, bundle, ledger, now_ms)
        self._metrics["pairs_evaluated"] += 1
        return events

    async def dispatch(self, event: SignalEvent) -> None:
        for notifier in self.notifiers:
            try:
                await notifier.send_event(event)
            except Exception as e:
                self._metrics["dispatch_failed"] += 1
                log.warning("dispatch_failed notifier=%s type=%s err=%s", type(notifier).__name__, event.type.value, e)

    async def run_once(
        self,
        *,
        now_ms: Optional[int] = None,
        symbols: Optional[List[str]] = None,
        timeframes: Optional[List[str]] = None,
        dry_run: bool = False,
    ) -> List[SignalEvent]:
        symbols = [s.upper() for s in (symbols or self.cfg.provider.symbols or [])]
        timeframes = list(timeframes or self.cfg.provider.timeframes or [])
        if not symbols or not timeframes:
            raise ValueError("No symbols/timeframes configured.")

        ledger = await self.store.load()
        now_ms = int(time.time() * 1000) if now_ms is None else int(now_ms)
        pairs = [(sym, tf) for sym in symbols for tf in timeframes]
        log.info("run_start symbols=%d timeframes=%s pairs=%d dry_run=%s", len(symbols), timeframes, len(pairs), dry_run)

        fired: List[SignalEvent] = []
        # evaluation stays sequential: each pair only touches its own ledger keys
        for sym, tf, candles in await self._fetch_all(pairs):
            if candles is None:
                self._metrics["pairs_failed"] += 1
                continue
            try:
                events = self.evaluate_pair(sym, tf, candles, ledger, now_ms)
            except Exception as e:
                self._metrics["pairs_failed"] += 1
                log.exception("evaluate_failed symbol=%s tf=%s err=%s", sym, tf, e)
                continue
            for event in events:
                self._metrics["alerts_fired"] += 1
                fired.append(event)
                if not dry_run:
                    await self.dispatch(event)

        if not dry_run:
            await self.store.save(ledger)
        log.info("run_done %s", " ".join(f"{k}={v}" for k, v in self._metrics.items()))
        return fired

    async def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()
