"""
Crypto Hunter — Composite Scoring
Blends RSI, MACD and Bollinger signals into one 0-100 score.
"""
from typing import Optional, Tuple

from crypto_hunter.indicators.base import IndicatorSignal, Recommendation
from crypto_hunter.indicators.momentum import RSIResult
from crypto_hunter.indicators.oscillators import MACDResult
from crypto_hunter.indicators.volatility import BollingerResult
from crypto_hunter.utils.helpers import clamp

BUY_SCORE = 60
SELL_SCORE = 40


def composite_score(
    rsi: Optional[RSIResult],
    macd: Optional[MACDResult],
    bollinger: Optional[BollingerResult],
) -> Tuple[float, Recommendation]:
    """
    Base 50; RSI oversold/overbought +/-15, MACD bullish/bearish +/-15,
    Bollinger oversold/overbought +/-10. Missing or insufficient-data
    components count as neutral.
    """
    score = 50.0

    if rsi is not None and rsi.value is not None:
        if rsi.signal == IndicatorSignal.OVERSOLD:
            score += 15
        elif rsi.signal == IndicatorSignal.OVERBOUGHT:
            score -= 15

    if macd is not None:
        if macd.signal == IndicatorSignal.BULLISH:
            score += 15
        elif macd.signal == IndicatorSignal.BEARISH:
            score -= 15

    if bollinger is not None:
        if bollinger.signal == IndicatorSignal.OVERSOLD:
            score += 10
        elif bollinger.signal == IndicatorSignal.OVERBOUGHT:
            score -= 10

    score = clamp(score, 0, 100)

    if score >= BUY_SCORE:
        recommendation = Recommendation.BUY
    elif score <= SELL_SCORE:
        recommendation = Recommendation.SELL
    else:
        recommendation = Recommendation.HOLD
    return score, recommendation
