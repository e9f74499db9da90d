"""
Crypto Hunter — Structural Levels
Classic floor-trader pivot points (support / resistance).
"""
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class PivotPoints:
    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pivot": round(self.pivot, 4),
            "resistance": {"r1": round(self.r1, 4), "r2": round(self.r2, 4), "r3": round(self.r3, 4)},
            "support": {"s1": round(self.s1, 4), "s2": round(self.s2, 4), "s3": round(self.s3, 4)},
        }


def calculate_pivot_points(high: float, low: float, close: float) -> PivotPoints:
    """Pivot, three resistance and three support levels from the prior bar."""
    pivot = (high + low + close) / 3.0
    return PivotPoints(
        pivot=pivot,
        r1=2 * pivot - low,
        r2=pivot + (high - low),
        r3=high + 2 * (pivot - low),
        s1=2 * pivot - high,
        s2=pivot - (high - low),
        s3=low - 2 * (high - pivot),
    )
