"""
Crypto Hunter — Common Utility Functions
"""
from datetime import datetime, timezone
import math


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO string."""
    return utc_now().isoformat()


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division avoiding ZeroDivisionError."""
    if denominator == 0:
        return default
    return numerator / denominator


def clamp(value: float, min_val: float = 0.0, max_val: float = 100.0) -> float:
    """Clamp a value between min and max."""
    return max(min_val, min(max_val, value))


def is_finite_number(value) -> bool:
    """True for real numbers that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def normalize_symbol(symbol: str) -> str:
    """Normalize ticker format: ' btc ' -> 'BTC', 'BTC/USD' -> 'BTC'."""
    return symbol.strip().upper().replace("-", "/").split("/")[0]


def pct_change(old_val: float, new_val: float) -> float:
    """Calculate percentage change between two values."""
    if old_val == 0:
        return 0.0
    return ((new_val - old_val) / abs(old_val)) * 100.0


def format_price(price: float) -> str:
    """Format a USD price with precision scaled to its magnitude."""
    if price >= 1:
        return f"${price:,.2f}"
    elif price >= 0.001:
        return f"${price:.4f}"
    else:
        return f"${price:.8f}"


def format_pct(value: float) -> str:
    """Signed percentage with two decimals."""
    return f"{value:+.2f}%"
