"""
Crypto Hunter — Data Models for Market Data
Canonical data structures used across the entire platform.
"""
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Any, List, Mapping, Optional
from datetime import datetime
from enum import Enum

from crypto_hunter.errors import InvalidSnapshotError
from crypto_hunter.utils.helpers import safe_divide


class DataSource(str, Enum):
    COINGECKO = "coingecko"
    BINANCE = "binance"
    MOCK = "mock"


class CoinSnapshot(BaseModel):
    """One observation of a traded asset at a point in time."""
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    name: str = ""
    price: float = Field(..., gt=0, allow_inf_nan=False)
    percent_change_24h: float = Field(default=0.0, allow_inf_nan=False)
    volume_24h: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    market_cap: float = Field(..., ge=0, allow_inf_nan=False)
    category: Optional[str] = None
    source: DataSource = DataSource.MOCK
    timestamp: Optional[datetime] = None

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def volume_ratio(self) -> float:
        """24h volume relative to market cap (0 when market cap is 0)."""
        return safe_divide(self.volume_24h, self.market_cap)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], source: DataSource = DataSource.MOCK,
                 timestamp: Optional[datetime] = None) -> "CoinSnapshot":
        """
        Build a snapshot from a loosely-shaped market record.

        Accepts the flat shape (price, percent_change_24h, volume_24h,
        market_cap), the CoinMarketCap-style nested ``quote.USD`` block, and
        CoinGecko /coins/markets rows (current_price, total_volume, ...).
        Raises InvalidSnapshotError on missing or non-finite fields.
        """
        if not isinstance(raw, Mapping):
            raise InvalidSnapshotError(f"snapshot must be a mapping, got {type(raw).__name__}")

        symbol = raw.get("symbol")
        quote = (raw.get("quote") or {}).get("USD") or {}

        fields = {
            "symbol": symbol,
            "name": raw.get("name") or (symbol or ""),
            "price": _first(raw, quote, "price", "current_price"),
            "percent_change_24h": _first(
                raw, quote, "percent_change_24h", "price_change_percentage_24h", default=0.0,
            ),
            "volume_24h": _first(raw, quote, "volume_24h", "total_volume", default=0.0),
            "market_cap": _first(raw, quote, "market_cap"),
            "category": raw.get("category"),
            "source": source,
            "timestamp": timestamp,
        }
        try:
            return cls(**fields)
        except ValidationError as e:
            fields_in_error = ",".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            raise InvalidSnapshotError(
                f"invalid snapshot fields: {fields_in_error}",
                symbol=symbol if isinstance(symbol, str) else None,
            ) from e


def _first(raw: Mapping[str, Any], quote: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
        if quote.get(key) is not None:
            return quote[key]
    return default


class PricePoint(BaseModel):
    """Timestamped price sample used for trend fitting."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    price: float = Field(..., allow_inf_nan=False)


class OHLC(BaseModel):
    """High/low/close triple (open optional) for pivot-point analysis."""
    open: Optional[float] = None
    high: float
    low: float
    close: float


class AggregatedPrice(BaseModel):
    """Price averaged over every exchange that answered for a symbol."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float
    change_24h: float = 0.0
    sources: List[DataSource]
    updated_at: datetime

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
