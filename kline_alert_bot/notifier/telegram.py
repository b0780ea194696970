from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import aiohttp

from ..formatters import format_telegram
from ..models import SignalEvent

log = logging.getLogger("telegram")

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Fans one alert out to every configured chat. Failures are logged per chat."""

    def __init__(self, token: str, chat_ids: List[str], *, disable_web_page_preview: bool = True, timeout_s: int = 15):
        self.token = (token or "").strip()
        self.chat_ids = [str(x).strip() for x in (chat_ids or []) if str(x).strip()]
        self.disable_web_page_preview = disable_web_page_preview
        self.timeout_s = timeout_s

    def configured(self) -> bool:
        return bool(self.token) and bool(self.chat_ids)

    def _payload(self, chat_id: str, text: str, parse_mode: str) -> Dict[str, Any]:
        return {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": self.disable_web_page_preview,
        }

    async def send(self, text: str, *, parse_mode: str = "HTML") -> int:
        """Returns how many chats accepted the message."""
        if not self.configured():
            return 0
        url = f"{TELEGRAM_API}/bot{self.token}/sendMessage"
        delivered = 0
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s)) as sess:
            for chat_id in self.chat_ids:
                try:
                    async with sess.post(url, json=self._payload(chat_id, text, parse_mode)) as resp:
                        if resp.status == 200:
                            delivered += 1
                            continue
                        body = await resp.text()
                        log.warning("telegram_bad_status chat_id=%s status=%s body=%s", chat_id, resp.status, body[:300])
                except (asyncio.TimeoutError, aiohttp.ClientError, OSError) as e:
                    log.warning("telegram_post_failed chat_id=%s err=%s", chat_id, e)
        return delivered

    async def send_event(self, event: SignalEvent) -> None:
        if not self.configured():
            return
        sent = await self.send(format_telegram(event))
        log.info("telegram_sent type=%s chats=%d/%d", event.type.value, sent, len(self.chat_ids))
