"""
Crypto Hunter — Trend Indicators
EMA seeded with the first price.
"""
from typing import Sequence
import pandas as pd

from crypto_hunter.indicators.base import BaseIndicator, to_series


def ema_series(prices: Sequence[float], period: int) -> pd.Series:
    """
    Running EMA over the whole series.
    ema[0] = price[0]; ema[i] = price[i] * k + ema[i-1] * (1 - k), k = 2 / (period + 1)
    """
    series = to_series(prices, 1, what="ema")
    return series.ewm(span=period, adjust=False).mean()


def calculate_ema(prices: Sequence[float], period: int) -> float:
    """Final EMA value of the series."""
    return float(ema_series(prices, period).iloc[-1])


class EMAIndicator(BaseIndicator):
    """Exponential Moving Average."""

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="ema", params={"period": period})

    def calculate(self, prices: Sequence[float]) -> float:
        return calculate_ema(prices, self.period)
