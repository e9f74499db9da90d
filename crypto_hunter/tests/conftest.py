"""
Crypto Hunter — Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest
import numpy as np
from datetime import datetime, timezone, timedelta

from crypto_hunter.alerts.evaluator import AlertConfig, AlertEvaluator
from crypto_hunter.alerts.models import Direction, Threshold
from crypto_hunter.config.settings import AppSettings, StorageSettings
from crypto_hunter.data.models import CoinSnapshot, PricePoint


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_prices():
    """200 random-walk closes with a mild uptrend."""
    np.random.seed(42)
    returns = np.random.normal(0.0005, 0.01, 200)
    return list(100.0 * np.exp(np.cumsum(returns)))


@pytest.fixture
def rising_prices():
    return [100.0 + i for i in range(40)]


@pytest.fixture
def falling_prices():
    return [200.0 - 2 * i for i in range(40)]


@pytest.fixture
def constant_prices():
    return [100.0] * 40


@pytest.fixture
def linear_series():
    """Hourly samples on price = 50 + 2.5 * hours."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [PricePoint(timestamp=start + timedelta(hours=h), price=50.0 + 2.5 * h) for h in range(48)]


@pytest.fixture
def make_snapshot():
    def _make(symbol="SOL", price=100.0, change=0.0, volume=0.0, market_cap=1e9, **extra):
        return CoinSnapshot(
            symbol=symbol, name=extra.pop("name", symbol), price=price,
            percent_change_24h=change, volume_24h=volume, market_cap=market_cap, **extra,
        )
    return _make


@pytest.fixture
def sol_snapshot(make_snapshot):
    return make_snapshot("SOL", price=100.0, change=13.63, volume=3.76e9, market_cap=4.98e10, name="Solana")


@pytest.fixture
def evaluator(clock):
    return AlertEvaluator(AlertConfig(), clock=clock)


@pytest.fixture
def btc_evaluator(clock):
    config = AlertConfig(default_thresholds={
        "BTC": Threshold(symbol="BTC", target=75000, direction=Direction.ABOVE),
    })
    return AlertEvaluator(config, clock=clock)


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(storage=StorageSettings(data_dir=str(tmp_path)))
