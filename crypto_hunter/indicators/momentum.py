"""
Crypto Hunter — Momentum Indicators
RSI (14) with simple-average gains/losses.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from crypto_hunter.indicators.base import BaseIndicator, IndicatorSignal, to_series


@dataclass(frozen=True)
class RSIResult:
    value: Optional[float]
    signal: IndicatorSignal
    overbought: float = 70.0
    oversold: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": None if self.value is None else round(self.value, 2),
            "signal": self.signal.value,
            "overbought": self.overbought,
            "oversold": self.oversold,
        }


def calculate_rsi(prices: Sequence[float], period: int = 14,
                  overbought: float = 70.0, oversold: float = 30.0) -> RSIResult:
    """
    Relative Strength Index over the most recent `period` price changes.
    Gains and losses are plain averages (no Wilder smoothing).
    Needs period + 1 prices.
    """
    series = to_series(prices, period + 1, what="rsi")
    deltas = series.diff().iloc[-period:]

    avg_gain = deltas.clip(lower=0).sum() / period
    avg_loss = (-deltas.clip(upper=0)).sum() / period

    if avg_loss == 0:
        return RSIResult(value=100.0, signal=IndicatorSignal.OVERBOUGHT,
                         overbought=overbought, oversold=oversold)

    rs = avg_gain / avg_loss
    rsi = 100.0 - (100.0 / (1.0 + rs))

    signal = IndicatorSignal.NEUTRAL
    if rsi >= overbought:
        signal = IndicatorSignal.OVERBOUGHT
    elif rsi <= oversold:
        signal = IndicatorSignal.OVERSOLD

    return RSIResult(value=float(rsi), signal=signal, overbought=overbought, oversold=oversold)


class RSIIndicator(BaseIndicator):
    """Relative Strength Index — momentum oscillator measuring speed of price changes."""

    def __init__(self, period: int = 14, overbought: float = 70.0, oversold: float = 30.0):
        self.period = period
        self.overbought = overbought
        self.oversold = oversold
        super().__init__(name="rsi", params={
            "period": period, "overbought": overbought, "oversold": oversold,
        })

    def calculate(self, prices: Sequence[float]) -> RSIResult:
        return calculate_rsi(prices, self.period, self.overbought, self.oversold)
