import pytest

from kline_alert_bot.config import RulesConfig, SignalThresholds, load_config


def _write(tmp_path, text: str) -> str:
    p = tmp_path / "config.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_defaults_from_empty_file(tmp_path, monkeypatch):
    env_keys = (
        "DISCORD_WEBHOOK_URL", "TELEGRAM_CHAT_IDS", "JSONBIN_API_KEY",
        "ALERT_KIWIHUNT_ENABLED", "ALERT_TRAIL_FLIP_ENABLED", "ALERT_LUXALGO_FLIP_ENABLED",
    )
    for key in env_keys:
        monkeypatch.delenv(key, raising=False)
    cfg = load_config(_write(tmp_path, ""))
    assert cfg.provider.symbols == []
    assert cfg.provider.timeframes == ["1h", "4h"]
    assert cfg.rules == RulesConfig()
    assert cfg.thresholds.wavetrend_buy_level_for("1h") == -53.0
    assert cfg.telegram.chat_ids == []


def test_yaml_sections_and_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.com/api/webhooks/1/abc")
    monkeypatch.setenv("ALERT_KIWIHUNT_ENABLED", "true")
    monkeypatch.setenv("ALERT_DIVERGENCE_ENABLED", "0")
    monkeypatch.setenv("TELEGRAM_CHAT_IDS", "111, 222")
    path = _write(tmp_path, """
provider:
  symbols: [btcusdt, " ethusdt "]
  timeframes: ["15m", "4h"]
rules:
  golden_pocket: true
thresholds:
  wavetrend_buy_level: -50
  wavetrend_buy_levels:
    4h: -60
state:
  backend: file
  path: /tmp/alerts.json
""")
    cfg = load_config(path)

    assert cfg.provider.symbols == ["BTCUSDT", "ETHUSDT"]
    assert cfg.provider.timeframes == ["15m", "4h"]
    assert cfg.rules.golden_pocket is True
    assert cfg.rules.kiwihunt is True
    assert cfg.rules.divergence is False
    assert cfg.thresholds.wavetrend_buy_level_for("4h") == -60.0
    assert cfg.thresholds.wavetrend_buy_level_for("15m") == -50.0
    assert cfg.discord.webhook_url.startswith("https://discord.com/api/webhooks/")
    assert cfg.telegram.chat_ids == ["111", "222"]
    assert cfg.state.backend == "file"


def test_rules_only_enables_named_rules():
    rules = RulesConfig.only("trail_flip", "kiwihunt")
    assert rules.trail_flip and rules.kiwihunt
    assert not rules.divergence and not rules.golden_pocket


def test_luxalgo_flip_env_name_still_toggles_trail_flip(tmp_path, monkeypatch):
    monkeypatch.delenv("ALERT_TRAIL_FLIP_ENABLED", raising=False)
    monkeypatch.setenv("ALERT_LUXALGO_FLIP_ENABLED", "false")
    assert load_config(_write(tmp_path, "")).rules.trail_flip is False

    # the current name wins when both are set
    monkeypatch.setenv("ALERT_TRAIL_FLIP_ENABLED", "true")
    assert load_config(_write(tmp_path, "")).rules.trail_flip is True


def test_thresholds_collections_are_frozen(tmp_path):
    cfg = load_config(_write(tmp_path, """
thresholds:
  wavetrend_buy_levels:
    4h: -60
  high_conviction_timeframes: ["1h"]
"""))
    th = cfg.thresholds
    assert th.high_conviction_timeframes == ("1h",)
    with pytest.raises(TypeError):
        th.wavetrend_buy_levels["1h"] = -10.0
    assert th.wavetrend_buy_level_for("1h") == -53.0

    levels = {"4h": -60.0}
    th = SignalThresholds(wavetrend_buy_levels=levels)
    levels["4h"] = 0.0
    assert th.wavetrend_buy_level_for("4h") == -60.0
