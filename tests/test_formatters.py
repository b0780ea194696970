from kline_alert_bot.formatters import DEFAULT_DISCORD_COLOR, discord_color, format_discord_embed, format_telegram
from kline_alert_bot.models import AlertType, SignalEvent


def _event(**kw) -> SignalEvent:
    base = dict(
        type=AlertType.RSI_EXTREME_OVERSOLD,
        title="BTCUSDT RSI Oversold (1h)",
        body="RSI is at 21.40 & falling <fast>",
        accent="bg-green-500",
    )
    base.update(kw)
    return SignalEvent(**base)


def test_discord_colour_mapping():
    assert discord_color("bg-red-500") == 15158332
    assert discord_color("bg-green-600") == 3066993
    assert discord_color("bg-nonexistent") == DEFAULT_DISCORD_COLOR


def test_discord_embed_shape():
    payload = format_discord_embed(_event(icon="📉"), footer="Crypto RSI Scanner", ts_ms=0)
    embed = payload["embeds"][0]
    assert embed["title"] == "📉 BTCUSDT RSI Oversold (1h)"
    assert embed["color"] == 3066993
    assert embed["footer"] == {"text": "Crypto RSI Scanner"}
    assert embed["timestamp"].startswith("1970-01-01T00:00:00")


def test_discord_embed_without_footer():
    embed = format_discord_embed(_event(), ts_ms=0)["embeds"][0]
    assert "footer" not in embed
    assert embed["title"] == "BTCUSDT RSI Oversold (1h)"


def test_telegram_escapes_html():
    text = format_telegram(_event())
    assert text.startswith("<b>BTCUSDT RSI Oversold (1h)</b>\n")
    assert "&amp; falling &lt;fast&gt;" in text
