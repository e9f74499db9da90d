"""
Crypto Hunter — Trend Estimator
Least-squares price trend, forward projection with a prediction band,
trend classification and a BUY/SELL/HOLD signal.

The band uses a fixed z of 1.96 rather than a Student-t quantile, so it
is only an approximate 95% interval for small samples.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import math
import numpy as np

from crypto_hunter.config.settings import PredictionSettings, get_settings
from crypto_hunter.data.models import PricePoint
from crypto_hunter.errors import InsufficientDataError, ModelNotFittedError
from crypto_hunter.indicators.base import Recommendation
from crypto_hunter.utils.helpers import clamp, safe_divide, utc_timestamp
from crypto_hunter.utils.logger import get_logger

logger = get_logger("trend_estimator")

Z_95 = 1.96
FLAT_BAND = 0.0001  # hourly slope within +/-0.01% of price counts as FLAT
WIDE_BAND_PCT = 10.0
SUMMARY_HORIZONS = (1, 6, 12, 24, 48, 72)

SeriesInput = Sequence[Union[PricePoint, Tuple[datetime, float]]]


class TrendDirection(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"
    UNCERTAIN = "UNCERTAIN"


@dataclass(frozen=True)
class TrendModel:
    slope: float  # price units per hour
    intercept: float
    r_squared: float

    def to_dict(self) -> Dict[str, float]:
        return {"slope": self.slope, "intercept": self.intercept, "r_squared": round(self.r_squared, 4)}


@dataclass(frozen=True)
class Prediction:
    predicted_price: float
    timestamp: datetime
    horizon_hours: float
    lower: float
    upper: float

    @property
    def band_width_pct(self) -> float:
        return safe_divide(self.upper - self.lower, abs(self.predicted_price)) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "predicted_price": round(self.predicted_price, 4),
            "timestamp": self.timestamp.isoformat(),
            "horizon_hours": self.horizon_hours,
            "confidence": {
                "lower": round(self.lower, 4),
                "upper": round(self.upper, 4),
                "interval": 95,
            },
        }


@dataclass(frozen=True)
class TrendClassification:
    direction: TrendDirection
    strength: int  # 0 = uncertain, 1 weak, 2 moderate, 3 strong
    change_percent: float
    hourly_slope: float
    r_squared: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "strength": self.strength,
            "change_percent": round(self.change_percent, 2),
            "hourly_slope": self.hourly_slope,
            "r_squared": round(self.r_squared, 4),
        }


@dataclass
class TrendSignal:
    signal: Recommendation
    score: int
    reasons: List[str]
    prediction: Optional[Prediction] = None
    trend: Optional[TrendClassification] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "score": self.score,
            "reasons": self.reasons,
            "prediction": self.prediction.to_dict() if self.prediction else None,
            "trend": self.trend.to_dict() if self.trend else None,
            "timestamp": self.timestamp,
        }


def _unpack(point) -> Tuple[datetime, float]:
    if isinstance(point, PricePoint):
        return point.timestamp, point.price
    timestamp, price = point
    return timestamp, float(price)


class TrendEstimator:
    """
    Ordinary least squares of price against hours since the first sample.

    One instance holds one fitted model; fit() replaces it wholesale.
    """

    def __init__(self, settings: Optional[PredictionSettings] = None):
        self.settings = settings or get_settings().prediction
        self.model: Optional[TrendModel] = None
        self._hours: Optional[np.ndarray] = None
        self._prices: Optional[np.ndarray] = None
        self._start: Optional[datetime] = None
        self._residual_std_error = 0.0

    @property
    def is_fitted(self) -> bool:
        return self.model is not None

    @property
    def n_points(self) -> int:
        return 0 if self._prices is None else len(self._prices)

    @property
    def last_price(self) -> Optional[float]:
        return None if self._prices is None else float(self._prices[-1])

    def fit(self, series: SeriesInput, min_points: Optional[int] = None) -> TrendModel:
        """
        Fit the trend line. Raises InsufficientDataError when the series has
        fewer than min_points samples (default: configured minimum).
        """
        required = self.settings.min_data_points if min_points is None else min_points
        points = [_unpack(p) for p in (series or [])]
        if len(points) < max(required, 1):
            raise InsufficientDataError(required=max(required, 1), actual=len(points), what="trend")

        start = points[0][0]
        hours = np.array([(ts - start).total_seconds() / 3600.0 for ts, _ in points], dtype=float)
        prices = np.array([price for _, price in points], dtype=float)
        n = len(prices)

        x_mean = hours.mean()
        y_mean = prices.mean()
        sxx = float(((hours - x_mean) ** 2).sum())
        if sxx == 0:
            slope = 0.0
        else:
            slope = float(((hours - x_mean) * (prices - y_mean)).sum() / sxx)
        intercept = float(y_mean - slope * x_mean)

        fitted = slope * hours + intercept
        ss_res = float(((prices - fitted) ** 2).sum())
        ss_tot = float(((prices - y_mean) ** 2).sum())
        r_squared = 0.0 if ss_tot == 0 else clamp(1.0 - ss_res / ss_tot, 0.0, 1.0)

        self.model = TrendModel(slope=slope, intercept=intercept, r_squared=r_squared)
        self._hours = hours
        self._prices = prices
        self._start = start
        self._residual_std_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0

        logger.debug("trend_model_fitted", slope=round(slope, 6), r_squared=round(r_squared, 4), points=n)
        return self.model

    def _require_model(self) -> TrendModel:
        if self.model is None:
            raise ModelNotFittedError("trend model not fitted; call fit() first")
        return self.model

    def predict(self, horizon_hours: Optional[float] = None) -> Prediction:
        """Extrapolate the line horizon_hours past the last sample."""
        model = self._require_model()
        horizon = self.settings.horizon_hours if horizon_hours is None else horizon_hours

        at_hours = float(self._hours[-1]) + horizon
        predicted = model.slope * at_hours + model.intercept
        margin = Z_95 * self._residual_std_error * math.sqrt(1.0 + 1.0 / self.n_points)

        return Prediction(
            predicted_price=predicted,
            timestamp=self._start + timedelta(hours=at_hours),
            horizon_hours=horizon,
            lower=predicted - margin,
            upper=predicted + margin,
        )

    def classify_trend(self) -> TrendClassification:
        """Direction from the hourly slope, strength from R² and projected move."""
        model = self._require_model()
        current = self.last_price
        change_pct = safe_divide(model.slope * self.settings.horizon_hours, current) * 100.0

        direction = TrendDirection.FLAT
        if model.slope > FLAT_BAND * current:
            direction = TrendDirection.UP
        elif model.slope < -FLAT_BAND * current:
            direction = TrendDirection.DOWN

        magnitude = abs(change_pct)
        if model.r_squared >= 0.7:
            if magnitude >= 5:
                strength = 3
            elif magnitude >= 2:
                strength = 2
            else:
                strength = 1
        elif model.r_squared >= 0.4:
            strength = max(1, int(magnitude // 3))
        else:
            strength = 0
            direction = TrendDirection.UNCERTAIN

        return TrendClassification(
            direction=direction,
            strength=strength,
            change_percent=change_pct,
            hourly_slope=model.slope,
            r_squared=model.r_squared,
        )

    def generate_signal(self) -> TrendSignal:
        """Score the fitted trend into BUY (>= 70), SELL (<= 30) or HOLD."""
        if self.model is None:
            return TrendSignal(signal=Recommendation.HOLD, score=50, reasons=["insufficient data"])

        prediction = self.predict()
        trend = self.classify_trend()

        score = 50.0
        if trend.direction == TrendDirection.UP:
            score += trend.strength * 15
        elif trend.direction == TrendDirection.DOWN:
            score -= trend.strength * 15

        threshold = self.settings.trend_threshold_pct
        if trend.change_percent > threshold:
            score += 20
        elif trend.change_percent < -threshold:
            score -= 20

        score += (trend.r_squared - 0.5) * 30
        score = clamp(score, 0, 100)

        reasons = []
        if score >= 70:
            signal = Recommendation.BUY
            reasons.append("projected trend is bullish")
        elif score <= 30:
            signal = Recommendation.SELL
            reasons.append("projected trend is bearish")
        else:
            signal = Recommendation.HOLD
            reasons.append("trend is unclear")

        if trend.r_squared < 0.4:
            reasons.append("low model confidence")
        if prediction.band_width_pct > WIDE_BAND_PCT:
            reasons.append("wide prediction band")

        return TrendSignal(
            signal=signal,
            score=int(round(score)),
            reasons=reasons,
            prediction=prediction,
            trend=trend,
        )

    def get_prediction_summary(self, series: SeriesInput) -> Dict[str, Any]:
        """Fit on series, then project 1h through 72h and attach the signal."""
        if not self.settings.enabled:
            return {"enabled": False, "predictions": {}}

        try:
            self.fit(series)
        except InsufficientDataError as e:
            logger.info("prediction_insufficient_data", required=e.required, actual=e.actual)
            self.model = None
            return {
                "current_price": None,
                "predictions": {},
                "signal": self.generate_signal().to_dict(),
                "model_quality": {"r_squared": 0.0, "data_points": e.actual, "trend": None},
            }

        predictions = {f"{h}h": self.predict(h).to_dict() for h in SUMMARY_HORIZONS}
        return {
            "current_price": self.last_price,
            "predictions": predictions,
            "signal": self.generate_signal().to_dict(),
            "model_quality": {
                "r_squared": round(self.model.r_squared, 4),
                "data_points": self.n_points,
                "trend": self.classify_trend().to_dict(),
            },
        }
