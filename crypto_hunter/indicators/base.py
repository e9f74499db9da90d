"""
Crypto Hunter — Base Indicator Interface
All indicators are stateless: calculate() depends only on its input series.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Sequence
import numpy as np
import pandas as pd

from crypto_hunter.errors import InsufficientDataError


class IndicatorSignal(str, Enum):
    OVERBOUGHT = "OVERBOUGHT"
    OVERSOLD = "OVERSOLD"
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class Recommendation(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


def to_series(prices: Sequence[float], min_points: int, what: str = "series") -> pd.Series:
    """
    Convert a price sequence to a float Series, enforcing a minimum length.
    Raises InsufficientDataError when fewer than min_points prices are given.
    """
    series = pd.Series(prices if prices is not None else [], dtype=float)
    if len(series) < min_points:
        raise InsufficientDataError(required=min_points, actual=len(series), what=what)
    if not np.isfinite(series.to_numpy()).all():
        raise ValueError(f"{what} contains NaN or infinite prices")
    return series


class BaseIndicator(ABC):
    """Abstract base class for all technical indicators."""

    def __init__(self, name: str, params: Optional[Dict[str, Any]] = None):
        self.name = name
        self.params = params or {}

    @abstractmethod
    def calculate(self, prices: Sequence[float]) -> Any:
        """
        Compute the indicator over an ordered sequence of closing prices
        (oldest first). Raises InsufficientDataError on short input.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, params={self.params})"
