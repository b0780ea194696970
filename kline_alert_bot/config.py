from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
import os
import yaml

from .ledger import ALERT_COOLDOWN_MS


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


def _env_list(env_key: str) -> Optional[List[str]]:
    raw = os.getenv(env_key)
    if not raw:
        return None
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass(frozen=True)
class RulesConfig:
    """Which alert rules the evaluator runs. Env: ALERT_<NAME>_ENABLED."""
    trail_flip: bool = True
    rsi_extremes: bool = True
    rsi_sma_cross: bool = True
    divergence: bool = True
    wavetrend_confluence: bool = True
    high_conviction_buy: bool = True
    golden_pocket: bool = False
    kiwihunt: bool = False

    @classmethod
    def all_disabled(cls) -> "RulesConfig":
        return cls(**{f.name: False for f in fields(cls)})

    @classmethod
    def only(cls, *names: str) -> "RulesConfig":
        return replace(cls.all_disabled(), **{n: True for n in names})


@dataclass(frozen=True)
class SignalThresholds:
    cooldown_ms: int = ALERT_COOLDOWN_MS

    rsi_length: int = 14
    rsi_sma_length: int = 14
    rsi_overbought: float = 75.0
    rsi_oversold: float = 25.0

    # WaveTrend buy level; per-timeframe overrides win over the default
    wavetrend_buy_level: float = -53.0
    wavetrend_buy_levels: Mapping[str, float] = field(default_factory=dict)

    high_conviction_timeframes: Tuple[str, ...] = ("1h", "4h")
    high_conviction_min_candles: int = 101
    stoch_oversold: float = 25.0
    volume_factor: float = 0.9
    volume_lookback: int = 20
    hc_wt_deep_level: float = -55.0
    hc_wt_cross_level: float = -40.0

    divergence_bullish_band: float = 45.0
    divergence_bearish_band: float = 55.0

    golden_pocket_lookback: int = 100
    golden_pocket_low: float = 0.618
    golden_pocket_high: float = 0.65

    kiwi_oversold: float = 20.0
    kiwi_overbought: float = 80.0
    kiwi_trend_level: float = 50.0

    def __post_init__(self) -> None:
        # YAML hands over a dict and a list; freeze both
        levels = {str(k): float(v) for k, v in dict(self.wavetrend_buy_levels or {}).items()}
        object.__setattr__(self, "wavetrend_buy_levels", MappingProxyType(levels))
        object.__setattr__(self, "high_conviction_timeframes", tuple(self.high_conviction_timeframes or ()))

    def wavetrend_buy_level_for(self, timeframe: str) -> float:
        return float(self.wavetrend_buy_levels.get(timeframe, self.wavetrend_buy_level))


@dataclass
class ProviderConfig:
    type: str = "binance"
    market: str = "futures"  # futures|spot
    symbols: List[str] = None
    timeframes: List[str] = None
    candles: int = 300
    min_candles: int = 101
    rest_timeout_s: int = 20
    fetch_concurrency: int = 5


@dataclass
class DiscordConfig:
    enabled: bool = True
    webhook_url: str = ""
    footer: str = "Crypto RSI Scanner"
    timeout_s: int = 10


@dataclass
class TelegramConfig:
    enabled: bool = False
    token: str = ""
    chat_ids: List[str] = None
    disable_web_page_preview: bool = True


@dataclass
class StateConfig:
    backend: str = "auto"  # auto | jsonbin | file | memory
    jsonbin_api_key: str = ""
    jsonbin_bin_id: str = ""
    path: str = ""
    timeout_s: int = 15


@dataclass
class AppConfig:
    name: str = "Kline Alert Bot"
    log_level: str = "INFO"


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    rules: RulesConfig
    thresholds: SignalThresholds
    discord: DiscordConfig
    telegram: TelegramConfig
    state: StateConfig


# older cron environments name the trail flip toggle after the LuxAlgo script
_RULE_ENV_ALIASES: Dict[str, str] = {"trail_flip": "ALERT_LUXALGO_FLIP_ENABLED"}


def _rules_from(raw: Dict[str, Any]) -> RulesConfig:
    values = {}
    defaults = RulesConfig(**raw)
    for f in fields(RulesConfig):
        value = getattr(defaults, f.name)
        legacy = _RULE_ENV_ALIASES.get(f.name)
        if legacy:
            value = _env_override(value, legacy)
        values[f.name] = _env_override(value, f"ALERT_{f.name.upper()}_ENABLED")
    return RulesConfig(**values)


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    app = raw.get("app", {})
    provider = raw.get("provider", {})
    rules = raw.get("rules", {})
    thresholds = raw.get("thresholds", {})
    dc = raw.get("discord", {})
    tg = raw.get("telegram", {})
    state = raw.get("state", {})

    cfg = Config(
        app=AppConfig(**app),
        provider=ProviderConfig(**provider),
        rules=_rules_from(rules),
        thresholds=SignalThresholds(**thresholds),
        discord=DiscordConfig(**dc),
        telegram=TelegramConfig(**tg),
        state=StateConfig(**state),
    )

    if cfg.provider.symbols is None:
        cfg.provider.symbols = []
    if cfg.provider.timeframes is None:
        cfg.provider.timeframes = ["1h", "4h"]
    cfg.provider.symbols = [s.strip().upper() for s in cfg.provider.symbols if str(s).strip()]

    # env overrides (useful on cron hosts)
    cfg.discord.webhook_url = _env_override(cfg.discord.webhook_url, "DISCORD_WEBHOOK_URL")
    cfg.telegram.token = _env_override(cfg.telegram.token, "TELEGRAM_TOKEN")
    if cfg.telegram.chat_ids is None:
        cfg.telegram.chat_ids = []
    chat_env = _env_list("TELEGRAM_CHAT_IDS")
    if chat_env:
        cfg.telegram.chat_ids = chat_env

    cfg.state.jsonbin_api_key = _env_override(cfg.state.jsonbin_api_key, "JSONBIN_API_KEY")
    cfg.state.jsonbin_bin_id = _env_override(cfg.state.jsonbin_bin_id, "JSONBIN_BIN_ID")

    return cfg
