from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..models import Candle

log = logging.getLogger("binance")

ENDPOINTS: Dict[str, str] = {
    "futures": "https://fapi.binance.com/fapi/v1/klines",
    "spot": "https://api.binance.com/api/v3/klines",
}

# per-request kline cap of each market
MAX_LIMIT: Dict[str, int] = {"futures": 1500, "spot": 1000}

INTERVALS = frozenset({
    "1m", "3m", "5m", "15m", "30m",
    "1h", "2h", "4h", "6h", "8h", "12h",
    "1d", "3d", "1w", "1M",
})


def parse_kline_row(row: List[Any]) -> Candle:
    """Binance kline row -> Candle. Index 0 is open time, 1..5 OHLCV, 7 quote volume."""
    return Candle(
        time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
        quote_volume=float(row[7]) if len(row) > 7 else 0.0,
    )


class BinanceProvider:
    """REST kline source shared by every pair of one run."""

    def __init__(
        self,
        market: str = "futures",
        *,
        rest_timeout_s: int = 20,
        max_retries: int = 4,
        backoff_s: float = 0.8,
        conn_limit_per_host: int = 10,
    ):
        if market not in ENDPOINTS:
            raise ValueError(f"Unsupported Binance market: {market}")
        self.market = market
        self.rest_timeout_s = rest_timeout_s
        self.max_retries = max(1, int(max_retries))
        self.backoff_s = float(backoff_s)
        self.conn_limit_per_host = conn_limit_per_host
        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.rest_timeout_s),
                connector=aiohttp.TCPConnector(limit_per_host=self.conn_limit_per_host, ttl_dns_cache=300),
            )
        return self._session

    def _params(self, symbol: str, timeframe: str, limit: int) -> Dict[str, Any]:
        if timeframe not in INTERVALS:
            raise ValueError(f"Unsupported Binance interval: {timeframe}")
        cap = MAX_LIMIT[self.market]
        if limit > cap:
            log.info("kline_limit_capped symbol=%s tf=%s requested=%d cap=%d", symbol, timeframe, limit, cap)
        return {"symbol": symbol.upper(), "interval": timeframe, "limit": max(1, min(int(limit), cap))}

    async def _get_rows(self, params: Dict[str, Any]) -> List[List[Any]]:
        sess = await self._get_session()
        url = ENDPOINTS[self.market]
        delay = self.backoff_s
        err: Optional[BaseException] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                async with sess.get(url, params=params) as resp:
                    if resp.status in (418, 429):
                        retry_after = resp.headers.get("Retry-After", "")
                        wait = float(retry_after) if retry_after.isdigit() else delay
                        log.warning("klines_rate_limited status=%s symbol=%s tf=%s wait=%.1fs", resp.status, params["symbol"], params["interval"], wait)
                        err = RuntimeError(f"Binance klines rate limited: {resp.status}")
                        await asyncio.sleep(wait)
                        delay = min(delay * 2.0, 20.0)
                        continue
                    if resp.status != 200:
                        body = await resp.text()
                        raise RuntimeError(f"Binance klines failed: {resp.status} {body[:300]}")
                    return await resp.json(content_type=None)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                err = e
                if attempt == self.max_retries:
                    break
                log.warning("klines_retry attempt=%d/%d symbol=%s tf=%s err=%s", attempt, self.max_retries, params["symbol"], params["interval"], e)
                await asyncio.sleep(delay)
                delay = min(delay * 2.0, 20.0)

        raise err if err is not None else RuntimeError("Binance klines failed")

    async def fetch_klines(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        """Most recent `limit` candles, oldest first. The last one may still be forming."""
        params = self._params(symbol, timeframe, limit)
        rows = await self._get_rows(params)
        candles = [parse_kline_row(row) for row in rows or []]
        log.debug("klines_fetched symbol=%s tf=%s bars=%d", params["symbol"], timeframe, len(candles))
        return candles
