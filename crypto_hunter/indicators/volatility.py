"""
Crypto Hunter — Volatility Indicators
Bollinger Bands (20, 2)
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence
import numpy as np

from crypto_hunter.indicators.base import BaseIndicator, IndicatorSignal, to_series
from crypto_hunter.utils.helpers import safe_divide


@dataclass(frozen=True)
class BollingerResult:
    upper: Optional[float]
    middle: Optional[float]
    lower: Optional[float]
    position: Optional[float]
    volatility: Optional[float]
    signal: IndicatorSignal

    def to_dict(self) -> Dict[str, Any]:
        def _r(v, digits=4):
            return None if v is None else round(v, digits)
        return {
            "upper": _r(self.upper),
            "middle": _r(self.middle),
            "lower": _r(self.lower),
            "position": _r(self.position, 2),
            "volatility": _r(self.volatility, 2),
            "signal": self.signal.value,
        }


def calculate_bollinger_bands(prices: Sequence[float], period: int = 20,
                              std_multiplier: float = 2.0) -> BollingerResult:
    """
    SMA of the last `period` prices with bands at +/- multiplier population
    standard deviations. Position is the last price's place in the band in
    percent (unclamped); 50 when the band has zero width.
    """
    series = to_series(prices, period, what="bollinger")
    window = series.iloc[-period:].to_numpy()

    middle = float(window.mean())
    std = float(np.std(window))  # population (ddof=0)
    upper = middle + std_multiplier * std
    lower = middle - std_multiplier * std

    last = float(series.iloc[-1])
    if upper == lower:
        position = 50.0
    else:
        position = (last - lower) / (upper - lower) * 100.0

    signal = IndicatorSignal.NEUTRAL
    if upper == lower:
        pass
    elif last >= upper:
        signal = IndicatorSignal.OVERBOUGHT
    elif last <= lower:
        signal = IndicatorSignal.OVERSOLD

    return BollingerResult(
        upper=upper, middle=middle, lower=lower, position=position,
        volatility=safe_divide(std, middle) * 100.0, signal=signal,
    )


class BollingerBandsIndicator(BaseIndicator):
    """Bollinger Bands — volatility bands around a moving average."""

    def __init__(self, period: int = 20, std_dev: float = 2.0):
        self.period = period
        self.std_dev = std_dev
        super().__init__(name="bollinger", params={"period": period, "std_dev": std_dev})

    def calculate(self, prices: Sequence[float]) -> BollingerResult:
        return calculate_bollinger_bands(prices, self.period, self.std_dev)
