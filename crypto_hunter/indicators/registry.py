"""
Crypto Hunter — Technical Analyzer
Central registry that holds the configured indicators and produces the
combined analysis report.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from crypto_hunter.indicators.base import BaseIndicator, IndicatorSignal, Recommendation
from crypto_hunter.indicators.momentum import RSIIndicator, RSIResult
from crypto_hunter.indicators.oscillators import MACDIndicator, MACDResult
from crypto_hunter.indicators.volatility import BollingerBandsIndicator, BollingerResult
from crypto_hunter.indicators.structural import PivotPoints, calculate_pivot_points
from crypto_hunter.indicators.composite import composite_score
from crypto_hunter.data.models import OHLC
from crypto_hunter.config.settings import TechnicalSettings, get_settings
from crypto_hunter.errors import InsufficientDataError
from crypto_hunter.utils.helpers import utc_timestamp
from crypto_hunter.utils.logger import get_logger

logger = get_logger("indicator_registry")

MIN_TIMEFRAME_POINTS = 20

_INSUFFICIENT = {
    "rsi": RSIResult(value=None, signal=IndicatorSignal.INSUFFICIENT_DATA),
    "macd": MACDResult(macd=None, signal_line=None, histogram=None,
                       signal=IndicatorSignal.INSUFFICIENT_DATA),
    "bollinger": BollingerResult(upper=None, middle=None, lower=None, position=None,
                                 volatility=None, signal=IndicatorSignal.INSUFFICIENT_DATA),
}


@dataclass
class AnalysisReport:
    """Combined indicator snapshot for one price series."""
    rsi: RSIResult
    macd: MACDResult
    bollinger: BollingerResult
    score: float
    recommendation: Recommendation
    support_resistance: Optional[PivotPoints] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "timestamp": self.timestamp,
            "rsi": self.rsi.to_dict(),
            "macd": self.macd.to_dict(),
            "bollinger": self.bollinger.to_dict(),
            "score": self.score,
            "recommendation": self.recommendation.value,
        }
        if self.support_resistance:
            result["support_resistance"] = self.support_resistance.to_dict()
        return result


class TechnicalAnalyzer:
    """
    Registry of the configured indicators.
    Short series never raise out of here: each indicator that lacks data
    reports INSUFFICIENT_DATA and counts as neutral in the score.
    """

    def __init__(self, settings: Optional[TechnicalSettings] = None):
        self.settings = settings or get_settings().technical
        self._indicators: Dict[str, BaseIndicator] = {}
        self._register_all()

    def _register_all(self) -> None:
        """Register all standard indicators with configured parameters."""
        indicators = [
            RSIIndicator(
                period=self.settings.rsi_period,
                overbought=self.settings.rsi_overbought,
                oversold=self.settings.rsi_oversold,
            ),
            MACDIndicator(
                fast=self.settings.macd_fast,
                slow=self.settings.macd_slow,
                signal=self.settings.macd_signal,
            ),
            BollingerBandsIndicator(
                period=self.settings.bb_period,
                std_dev=self.settings.bb_std,
            ),
        ]
        for ind in indicators:
            self._indicators[ind.name] = ind

        logger.debug("indicators_registered", count=len(self._indicators),
                     names=list(self._indicators.keys()))

    def get(self, name: str) -> Optional[BaseIndicator]:
        """Get a specific indicator by name."""
        return self._indicators.get(name)

    @property
    def indicator_names(self) -> List[str]:
        """List all registered indicator names."""
        return list(self._indicators.keys())

    @property
    def count(self) -> int:
        """Number of registered indicators."""
        return len(self._indicators)

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def _compute(self, name: str, prices: Sequence[float]):
        try:
            return self._indicators[name].calculate(prices)
        except InsufficientDataError as e:
            logger.debug("indicator_insufficient_data", indicator=name,
                         required=e.required, actual=e.actual)
            return _INSUFFICIENT[name]

    def get_analysis_report(
        self,
        prices: Sequence[float],
        ohlc: Optional[Union[OHLC, Mapping[str, float]]] = None,
    ) -> AnalysisReport:
        """Run RSI, MACD and Bollinger (plus pivots when OHLC is given) and score them."""
        rsi = self._compute("rsi", prices)
        macd = self._compute("macd", prices)
        bollinger = self._compute("bollinger", prices)
        score, recommendation = composite_score(rsi, macd, bollinger)

        levels = None
        if ohlc is not None:
            bar = ohlc if isinstance(ohlc, OHLC) else OHLC(**ohlc)
            levels = calculate_pivot_points(bar.high, bar.low, bar.close)

        return AnalysisReport(
            rsi=rsi, macd=macd, bollinger=bollinger,
            score=score, recommendation=recommendation,
            support_resistance=levels,
        )

    def analyze_multiple_timeframes(self, data: Mapping[str, Sequence[float]]) -> Dict[str, Any]:
        """
        Per-timeframe RSI/MACD/Bollinger with a vote across timeframes.
        RSI oversold and MACD bullish vote BUY; overbought and bearish vote
        SELL. The overall signal needs a strict majority and at least two votes.
        """
        if not self.enabled:
            return {"enabled": False}

        timeframes: Dict[str, Any] = {}
        votes: List[Dict[str, str]] = []

        for timeframe, prices in data.items():
            if prices is None or len(prices) < MIN_TIMEFRAME_POINTS:
                timeframes[timeframe] = {"error": IndicatorSignal.INSUFFICIENT_DATA.value}
                continue

            rsi = self._compute("rsi", prices)
            macd = self._compute("macd", prices)
            bollinger = self._compute("bollinger", prices)
            timeframes[timeframe] = {
                "rsi": rsi.to_dict(),
                "macd": macd.to_dict(),
                "bollinger": bollinger.to_dict(),
            }

            if rsi.signal == IndicatorSignal.OVERSOLD:
                votes.append({"timeframe": timeframe, "indicator": "RSI", "signal": "BUY"})
            elif rsi.signal == IndicatorSignal.OVERBOUGHT:
                votes.append({"timeframe": timeframe, "indicator": "RSI", "signal": "SELL"})

            if macd.signal == IndicatorSignal.BULLISH:
                votes.append({"timeframe": timeframe, "indicator": "MACD", "signal": "BUY"})
            elif macd.signal == IndicatorSignal.BEARISH:
                votes.append({"timeframe": timeframe, "indicator": "MACD", "signal": "SELL"})

        buys = sum(1 for v in votes if v["signal"] == "BUY")
        sells = sum(1 for v in votes if v["signal"] == "SELL")

        overall = "NEUTRAL"
        if buys > sells and buys >= 2:
            overall = "BUY"
        elif sells > buys and sells >= 2:
            overall = "SELL"

        return {
            "timeframes": timeframes,
            "signals": votes,
            "summary": {
                "overall_signal": overall,
                "buy_signals": buys,
                "sell_signals": sells,
            },
        }


# Singleton
_analyzer: Optional[TechnicalAnalyzer] = None


def get_technical_analyzer() -> TechnicalAnalyzer:
    global _analyzer
    if _analyzer is None:
        _analyzer = TechnicalAnalyzer()
    return _analyzer
