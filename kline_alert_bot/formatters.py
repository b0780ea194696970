from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import SignalEvent

# tailwind accent class -> Discord embed colour (decimal)
DISCORD_COLORS: Dict[str, int] = {
    "bg-red-500": 15158332,
    "bg-red-600": 15158332,
    "bg-green-500": 3066993,
    "bg-green-600": 3066993,
    "bg-sky-500": 3581519,
    "bg-purple-500": 10181046,
    "bg-cyan-500": 1752220,
    "bg-blue-500": 3447003,
    "bg-amber-500": 16753920,
    "bg-amber-600": 16753920,
    "bg-fuchsia-500": 14550272,
    "bg-yellow-500": 15844367,
    "bg-slate-500": 6724016,
    "bg-indigo-500": 6373356,
    "bg-teal-500": 1356708,
    "bg-orange-500": 16753920,
    "bg-orange-600": 16753920,
    "bg-cyan-400": 2523880,
    "bg-sky-400": 5981938,
    "bg-rose-500": 15883392,
    "bg-gray-500": 10070709,
}
DEFAULT_DISCORD_COLOR = 10070709


def discord_color(accent: str) -> int:
    return DISCORD_COLORS.get(accent, DEFAULT_DISCORD_COLOR)


def _title(event: SignalEvent) -> str:
    return f"{event.icon} {event.title}" if event.icon else event.title


def _iso_utc(ts_ms: Optional[int]) -> str:
    dt = datetime.now(timezone.utc) if ts_ms is None else datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
    return dt.isoformat()


def format_discord_embed(event: SignalEvent, *, footer: str = "", ts_ms: Optional[int] = None) -> Dict[str, Any]:
    embed: Dict[str, Any] = {
        "title": _title(event),
        "description": event.body,
        "color": discord_color(event.accent),
        "timestamp": _iso_utc(ts_ms),
    }
    if footer:
        embed["footer"] = {"text": footer}
    return {"embeds": [embed]}


def format_telegram(event: SignalEvent) -> str:
    title = html.escape(_title(event), quote=False)
    body = html.escape(event.body, quote=False)
    return f"<b>{title}</b>\n{body}"
