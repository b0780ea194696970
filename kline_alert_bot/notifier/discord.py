from __future__ import annotations

import logging
from typing import Dict, Optional

import aiohttp

from ..formatters import format_discord_embed
from ..models import SignalEvent

log = logging.getLogger("discord")

DISCORD_WEBHOOK_MARKER = "discord.com/api/webhooks"


class DiscordNotifier:
    def __init__(self, *, enabled: bool, url: str, footer: str = "", timeout_s: int = 10, headers: Optional[Dict[str, str]] = None):
        self.enabled = bool(enabled)
        self.url = url or ""
        self.footer = footer or ""
        self.timeout_s = int(timeout_s) if timeout_s is not None else 10
        self.headers = headers or {}

    def configured(self) -> bool:
        return self.enabled and DISCORD_WEBHOOK_MARKER in self.url

    async def send_event(self, event: SignalEvent) -> None:
        if not self.configured():
            return

        payload = format_discord_embed(event, footer=self.footer)
        log.debug("discord_payload title=%s payload=%s", event.title, payload)
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=payload, headers=self.headers) as resp:
                    if resp.status >= 300:
                        text = await resp.text()
                        log.warning("discord_bad_status status=%s title=%s body=%s", resp.status, event.title, text[:200])
                    else:
                        log.info("discord_sent status=%s title=%s", resp.status, event.title)
        except Exception as e:
            # Log but do not crash
            log.warning("discord_post_failed title=%s err=%s", event.title, e)
