"""
Crypto Hunter — Portfolio Ledger
Holdings at weighted average cost, a transaction log and valuation
against current prices. Persisted as one JSON document.
"""
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from crypto_hunter.config.settings import get_settings
from crypto_hunter.errors import LedgerError
from crypto_hunter.utils.helpers import normalize_symbol, safe_divide, utc_now
from crypto_hunter.utils.logger import get_logger
from crypto_hunter.utils.storage import JsonFileStore

logger = get_logger("portfolio")

DEFAULT_EXCHANGE = "Binance"

# Float residue left after selling a whole position
DUST = 1e-9


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class Holding(BaseModel):
    symbol: str
    amount: float
    avg_price: float
    exchange: str = DEFAULT_EXCHANGE
    added_at: datetime


class Transaction(BaseModel):
    type: Side
    symbol: str
    amount: float
    price: float
    total: float
    exchange: str = DEFAULT_EXCHANGE
    timestamp: datetime


class PortfolioState(BaseModel):
    holdings: List[Holding] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)


def validate_trade(amount: float, price: float) -> None:
    if amount <= 0:
        raise LedgerError("amount must be positive")
    if price <= 0:
        raise LedgerError("price must be positive")


class PortfolioLedger:
    """Tracks real-world holdings entered by the user."""

    def __init__(self, path: Union[str, Path], clock: Optional[Callable[[], datetime]] = None):
        self._file = JsonFileStore(path)
        self._clock = clock or utc_now
        self.state = self._load()

    def _load(self) -> PortfolioState:
        raw = self._file.load(dict)
        try:
            return PortfolioState.model_validate(raw)
        except ValidationError as e:
            logger.error("portfolio_load_error", path=str(self._file.path), error=str(e))
            return PortfolioState()

    def _save(self) -> None:
        self._file.save(self.state.model_dump(mode="json"))

    def _find(self, symbol: str) -> Optional[Holding]:
        for holding in self.state.holdings:
            if holding.symbol == symbol:
                return holding
        return None

    def add_holding(self, symbol: str, amount: float, price: float,
                    exchange: str = DEFAULT_EXCHANGE) -> PortfolioState:
        """Record a buy; repeated buys average the cost."""
        validate_trade(amount, price)
        symbol = normalize_symbol(symbol)
        now = self._clock()

        existing = self._find(symbol)
        if existing:
            total_amount = existing.amount + amount
            existing.avg_price = (existing.amount * existing.avg_price + amount * price) / total_amount
            existing.amount = total_amount
            existing.exchange = exchange
        else:
            self.state.holdings.append(Holding(
                symbol=symbol, amount=amount, avg_price=price, exchange=exchange, added_at=now,
            ))

        self.state.transactions.append(Transaction(
            type=Side.BUY, symbol=symbol, amount=amount, price=price,
            total=amount * price, exchange=exchange, timestamp=now,
        ))
        self._save()
        logger.info("holding_added", symbol=symbol, amount=amount, price=price)
        return self.state

    def sell_holding(self, symbol: str, amount: float, price: float,
                     exchange: str = DEFAULT_EXCHANGE) -> PortfolioState:
        validate_trade(amount, price)
        symbol = normalize_symbol(symbol)
        holding = self._find(symbol)
        if holding is None or holding.amount + DUST < amount:
            raise LedgerError(f"insufficient {symbol} holding")

        holding.amount -= amount
        if holding.amount <= DUST:
            self.state.holdings = [h for h in self.state.holdings if h.symbol != symbol]

        self.state.transactions.append(Transaction(
            type=Side.SELL, symbol=symbol, amount=amount, price=price,
            total=amount * price, exchange=exchange, timestamp=self._clock(),
        ))
        self._save()
        logger.info("holding_sold", symbol=symbol, amount=amount, price=price)
        return self.state

    def get_portfolio_value(self, current_prices: Mapping[str, float]) -> Dict[str, Any]:
        """Value each holding at the current price, falling back to its average cost."""
        total_value = 0.0
        total_cost = 0.0
        rows = []
        for holding in self.state.holdings:
            current = current_prices.get(holding.symbol) or holding.avg_price
            value = holding.amount * current
            cost = holding.amount * holding.avg_price
            profit = value - cost
            total_value += value
            total_cost += cost
            row = holding.model_dump(mode="json")
            row.update({
                "current_price": current,
                "value": value,
                "profit": profit,
                "profit_percent": safe_divide(profit, cost) * 100.0,
            })
            rows.append(row)

        total_profit = total_value - total_cost
        return {
            "holdings": rows,
            "total_value": total_value,
            "total_cost": total_cost,
            "total_profit": total_profit,
            "total_profit_percent": safe_divide(total_profit, total_cost) * 100.0,
        }

    def get_transaction_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest first."""
        indexed = sorted(enumerate(self.state.transactions),
                         key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        return [t.model_dump(mode="json") for _, t in indexed[:max(limit, 0)]]


# Singleton
_ledger: Optional[PortfolioLedger] = None


def get_portfolio_ledger() -> PortfolioLedger:
    global _ledger
    if _ledger is None:
        storage = get_settings().storage
        _ledger = PortfolioLedger(Path(storage.data_dir) / storage.portfolio_file)
    return _ledger
