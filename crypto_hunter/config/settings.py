"""
Crypto Hunter — Central Configuration
All settings are loaded from environment variables with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional


class MonitorSettings(BaseSettings):
    """Polling loop and data source configuration."""
    interval_seconds: float = 3600.0
    http_timeout_seconds: float = 10.0
    cache_ttl_seconds: int = 60
    data_source: str = "coingecko"  # coingecko | mock
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    top_coins_limit: int = 100
    price_history_size: int = 500
    # 24h: volatility from the 24h change; cycle: change since the previous cycle
    volatility_base: Literal["24h", "cycle"] = "24h"
    binance_base_url: str = "https://api.binance.com/api/v3"
    aggregate_symbols: List[str] = ["BTC", "ETH", "SOL", "BNB", "XRP", "ADA", "DOGE", "DOT", "MATIC", "LINK"]

    model_config = SettingsConfigDict(env_prefix="MONITOR_", env_file=".env", extra="ignore")


class DefaultThreshold(BaseModel):
    """Built-in price trigger for a symbol."""
    target: float
    direction: str = "above"


class AlertSettings(BaseSettings):
    """Alert evaluation thresholds and cooldown windows."""
    min_gainer_pct: float = 15.0
    high_gainer_pct: float = 30.0
    volume_ratio_threshold: float = 0.05
    volatility_warning_pct: float = 5.0
    volatility_critical_pct: float = 10.0
    price_cooldown_seconds: float = 300.0
    volatility_cooldown_seconds: float = 0.0
    notification_cooldown_seconds: float = 300.0
    history_size: int = 100
    touch_tolerance_pct: float = 0.1
    level_tolerance_pct: float = 2.0
    excluded_symbols: List[str] = ["USDT", "USDC", "DAI", "BUSD", "TUSD", "USDD", "USDP"]
    excluded_categories: List[str] = ["stablecoin"]
    default_thresholds: Dict[str, DefaultThreshold] = {
        "BTC": DefaultThreshold(target=75000),
        "ETH": DefaultThreshold(target=2500),
        "SOL": DefaultThreshold(target=100),
        "BNB": DefaultThreshold(target=700),
        "HYPE": DefaultThreshold(target=35),
    }

    model_config = SettingsConfigDict(env_prefix="ALERT_", env_file=".env", extra="ignore")


class TechnicalSettings(BaseSettings):
    """Indicator periods."""
    enabled: bool = True
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bb_period: int = 20
    bb_std: float = 2.0

    model_config = SettingsConfigDict(env_prefix="TA_", env_file=".env", extra="ignore")


class PredictionSettings(BaseSettings):
    """Linear-regression trend predictor configuration."""
    enabled: bool = True
    horizon_hours: float = 24.0
    min_data_points: int = 24
    trend_threshold_pct: float = 2.0

    model_config = SettingsConfigDict(env_prefix="ML_", env_file=".env", extra="ignore")


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""
    rate_limit_per_second: float = 1.0
    max_retries: int = 3
    retry_delay: float = 2.0

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", env_file=".env", extra="ignore")


class FeishuSettings(BaseSettings):
    """Feishu (Lark) custom bot webhook."""
    enabled: bool = False
    webhook_url: str = ""

    model_config = SettingsConfigDict(env_prefix="FEISHU_", env_file=".env", extra="ignore")


class DingTalkSettings(BaseSettings):
    """DingTalk robot webhook."""
    enabled: bool = False
    access_token: str = ""
    secret: str = ""
    base_url: str = "https://oapi.dingtalk.com/robot/send"

    model_config = SettingsConfigDict(env_prefix="DINGTALK_", env_file=".env", extra="ignore")


class StorageSettings(BaseSettings):
    """JSON file locations."""
    data_dir: str = Field(default="data")
    thresholds_file: str = "thresholds.json"
    levels_file: str = "levels.json"
    portfolio_file: str = "portfolio.json"
    paper_trading_file: str = "paper_trading.json"
    paper_starting_balance: float = 10000.0

    model_config = SettingsConfigDict(env_prefix="STORAGE_", env_file=".env", extra="ignore")


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "Crypto Hunter"
    version: str = "2.2.0"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    technical: TechnicalSettings = Field(default_factory=TechnicalSettings)
    prediction: PredictionSettings = Field(default_factory=PredictionSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    feishu: FeishuSettings = Field(default_factory=FeishuSettings)
    dingtalk: DingTalkSettings = Field(default_factory=DingTalkSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
