"""
Crypto Hunter — Alert Data Models
Alert records, severities, user price thresholds and watched levels.
"""
import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlertType(str, Enum):
    PRICE_ALERT = "PRICE_ALERT"
    VOLATILITY = "VOLATILITY"
    GAINER = "GAINER"
    VOLUME_SPIKE = "VOLUME_SPIKE"
    SUPPORT_RESISTANCE = "SUPPORT_RESISTANCE"


# Evaluation order within one symbol
ALERT_TYPE_ORDER = [
    AlertType.PRICE_ALERT,
    AlertType.VOLATILITY,
    AlertType.GAINER,
    AlertType.VOLUME_SPIKE,
    AlertType.SUPPORT_RESISTANCE,
]


class Severity(str, Enum):
    """Alert severity, totally ordered: normal < warning < critical."""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def priority(self) -> str:
        """Legacy HIGH/MEDIUM/LOW label."""
        return _PRIORITY_LABEL[self]

    @classmethod
    def from_priority(cls, label: str) -> "Severity":
        """Map HIGH/MEDIUM/LOW (or a severity name) onto a Severity."""
        key = label.strip().upper()
        for severity, priority in _PRIORITY_LABEL.items():
            if priority == key:
                return severity
        return cls(label.strip().lower())

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {Severity.NORMAL: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}
_PRIORITY_LABEL = {Severity.NORMAL: "LOW", Severity.WARNING: "MEDIUM", Severity.CRITICAL: "HIGH"}


class Direction(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class TriggerCondition(str, Enum):
    """cross: price reached the target; touch: price within a small band of it."""
    CROSS = "cross"
    TOUCH = "touch"


class LevelKind(str, Enum):
    SUPPORT = "support"
    RESISTANCE = "resistance"
    BOTH = "both"


class ConditionKind(str, Enum):
    """Cooldown key component."""
    PRICE_ABOVE = "price-above"
    PRICE_BELOW = "price-below"
    PRICE_TOUCH = "price-touch"
    VOLATILITY = "volatility"
    LEVEL = "level"

    @classmethod
    def for_threshold(cls, threshold: "Threshold") -> "ConditionKind":
        if threshold.condition == TriggerCondition.TOUCH:
            return cls.PRICE_TOUCH
        return cls.PRICE_ABOVE if threshold.direction == Direction.ABOVE else cls.PRICE_BELOW


class Threshold(BaseModel):
    """User- or default-configured price trigger."""
    symbol: str
    target: float = Field(..., gt=0, allow_inf_nan=False)
    direction: Direction = Direction.ABOVE
    condition: TriggerCondition = TriggerCondition.CROSS
    enabled: bool = True
    updated_at: Optional[datetime] = None

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()

    def is_triggered(self, price: float, touch_tolerance_pct: float = 0.1) -> bool:
        if self.condition == TriggerCondition.TOUCH:
            return abs(price - self.target) <= price * touch_tolerance_pct / 100.0
        if self.direction == Direction.ABOVE:
            return price >= self.target
        return price <= self.target

    def to_record(self) -> Dict[str, Any]:
        """Plain JSON-compatible mapping."""
        return self.model_dump(mode="json")


class LevelWatch(BaseModel):
    """Support / resistance levels watched for one symbol."""
    symbol: str
    levels: List[float] = Field(..., min_length=1)
    kind: LevelKind = LevelKind.BOTH
    enabled: bool = True
    updated_at: Optional[datetime] = None

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("levels")
    @classmethod
    def _positive_levels(cls, value: List[float]) -> List[float]:
        if any(not math.isfinite(level) or level <= 0 for level in value):
            raise ValueError("levels must be positive finite prices")
        return sorted(set(value))

    def nearest(self, price: float, tolerance_pct: float) -> Optional[float]:
        """Closest level within tolerance_pct of itself, or None."""
        in_band = [lvl for lvl in self.levels if abs(price - lvl) <= lvl * tolerance_pct / 100.0]
        if not in_band:
            return None
        return min(in_band, key=lambda lvl: abs(price - lvl))

    def classify(self, price: float, level: float) -> LevelKind:
        """A 'both' watch reads as resistance when price is above the level, else support."""
        if self.kind != LevelKind.BOTH:
            return self.kind
        return LevelKind.RESISTANCE if price > level else LevelKind.SUPPORT

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Alert(BaseModel):
    """One alert produced by an evaluation pass. Never mutated."""
    model_config = ConfigDict(frozen=True)

    type: AlertType
    severity: Severity
    symbol: str
    name: str = ""
    message: str
    timestamp: datetime
    current: float
    target: Optional[float] = None
    direction: Optional[Direction] = None
    change: Optional[float] = None
    value: Optional[float] = None
    level_kind: Optional[LevelKind] = None

    @property
    def priority(self) -> str:
        return self.severity.priority

    @property
    def dedup_key(self) -> str:
        return f"{self.type.value}:{self.symbol}"

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["priority"] = self.priority
        return data
