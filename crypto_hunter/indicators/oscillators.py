"""
Crypto Hunter — Oscillator Indicators
MACD (12, 26, 9)
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from crypto_hunter.indicators.base import BaseIndicator, IndicatorSignal, to_series
from crypto_hunter.indicators.trend import ema_series


@dataclass(frozen=True)
class MACDResult:
    macd: Optional[float]
    signal_line: Optional[float]
    histogram: Optional[float]
    signal: IndicatorSignal
    trend: str = "FLAT"

    def to_dict(self) -> Dict[str, Any]:
        def _r(v):
            return None if v is None else round(v, 4)
        return {
            "macd": _r(self.macd),
            "signal_line": _r(self.signal_line),
            "histogram": _r(self.histogram),
            "signal": self.signal.value,
            "trend": self.trend,
        }


def calculate_macd(prices: Sequence[float], fast: int = 12, slow: int = 26,
                   signal: int = 9) -> MACDResult:
    """
    MACD line = EMA(fast) - EMA(slow) over the full series; the signal line
    is the EMA(signal) of the MACD line series. Needs slow + 1 prices.
    """
    series = to_series(prices, slow + 1, what="macd")

    macd_line = ema_series(series, fast) - ema_series(series, slow)
    signal_line = macd_line.ewm(span=signal, adjust=False).mean()

    macd_value = float(macd_line.iloc[-1])
    signal_value = float(signal_line.iloc[-1])
    histogram = macd_value - signal_value

    result_signal = IndicatorSignal.NEUTRAL
    if macd_value > signal_value and histogram > 0:
        result_signal = IndicatorSignal.BULLISH
    elif macd_value < signal_value and histogram < 0:
        result_signal = IndicatorSignal.BEARISH

    trend = "UP" if histogram > 0 else ("DOWN" if histogram < 0 else "FLAT")
    return MACDResult(macd=macd_value, signal_line=signal_value, histogram=histogram,
                      signal=result_signal, trend=trend)


class MACDIndicator(BaseIndicator):
    """MACD — Moving Average Convergence Divergence trend-following momentum indicator."""

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = fast
        self.slow = slow
        self.signal_period = signal
        super().__init__(name="macd", params={
            "fast": fast, "slow": slow, "signal": signal
        })

    def calculate(self, prices: Sequence[float]) -> MACDResult:
        return calculate_macd(prices, self.fast, self.slow, self.signal_period)
