"""
Crypto Hunter — Paper Trading Account
Simulated market orders against a virtual cash balance.
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from crypto_hunter.config.settings import get_settings
from crypto_hunter.errors import LedgerError
from crypto_hunter.portfolio.ledger import DUST, Side, validate_trade
from crypto_hunter.utils.helpers import normalize_symbol, safe_divide, utc_now
from crypto_hunter.utils.logger import get_logger
from crypto_hunter.utils.storage import JsonFileStore

logger = get_logger("paper_trading")


class Position(BaseModel):
    symbol: str
    amount: float
    avg_price: float
    side: str = "LONG"


class Trade(BaseModel):
    type: Side
    symbol: str
    amount: float
    price: float
    total: float
    timestamp: datetime


class TradingStats(BaseModel):
    total_trades: int = 0
    winning_trades: int = 0
    total_profit: float = 0.0
    win_rate: float = 0.0


class PaperState(BaseModel):
    balance: float
    positions: List[Position] = Field(default_factory=list)
    trades: List[Trade] = Field(default_factory=list)
    stats: TradingStats = Field(default_factory=TradingStats)
    start_time: datetime


class PaperTradingAccount:
    """
    Long-only simulated account.
    A sell counts as winning when its price beats the most recent earlier
    buy of the same symbol; win rate is measured over sells.
    """

    def __init__(self, path: Union[str, Path], starting_balance: float = 10000.0,
                 clock: Optional[Callable[[], datetime]] = None):
        self._file = JsonFileStore(path)
        self._clock = clock or utc_now
        self.starting_balance = starting_balance
        self.state = self._load()

    def _fresh(self) -> PaperState:
        return PaperState(balance=self.starting_balance, start_time=self._clock())

    def _load(self) -> PaperState:
        raw = self._file.load(dict)
        if not raw:
            return self._fresh()
        try:
            return PaperState.model_validate(raw)
        except ValidationError as e:
            logger.error("paper_state_load_error", path=str(self._file.path), error=str(e))
            return self._fresh()

    def _save(self) -> None:
        self._file.save(self.state.model_dump(mode="json"))

    def _position(self, symbol: str) -> Optional[Position]:
        for position in self.state.positions:
            if position.symbol == symbol:
                return position
        return None

    def market_buy(self, symbol: str, amount: float, price: float) -> PaperState:
        validate_trade(amount, price)
        symbol = normalize_symbol(symbol)
        total = amount * price
        if total > self.state.balance:
            raise LedgerError("insufficient balance")

        self.state.balance -= total
        position = self._position(symbol)
        if position:
            new_amount = position.amount + amount
            position.avg_price = (position.amount * position.avg_price + total) / new_amount
            position.amount = new_amount
        else:
            self.state.positions.append(Position(symbol=symbol, amount=amount, avg_price=price))

        self._record(Side.BUY, symbol, amount, price, total)
        return self.state

    def market_sell(self, symbol: str, amount: float, price: float) -> PaperState:
        validate_trade(amount, price)
        symbol = normalize_symbol(symbol)
        position = self._position(symbol)
        if position is None or position.amount + DUST < amount:
            raise LedgerError(f"insufficient {symbol} position")

        total = amount * price
        self.state.balance += total
        position.amount -= amount
        if position.amount <= DUST:
            self.state.positions = [p for p in self.state.positions if p.symbol != symbol]

        self._record(Side.SELL, symbol, amount, price, total)
        return self.state

    def _record(self, side: Side, symbol: str, amount: float, price: float, total: float) -> None:
        self.state.trades.append(Trade(
            type=side, symbol=symbol, amount=amount, price=price, total=total,
            timestamp=self._clock(),
        ))
        self._update_stats()
        self._save()
        logger.info("paper_trade", side=side.value, symbol=symbol, amount=amount,
                    price=price, balance=round(self.state.balance, 2))

    def _update_stats(self) -> None:
        trades = self.state.trades
        sells = 0
        wins = 0
        for i, trade in enumerate(trades):
            if trade.type != Side.SELL:
                continue
            sells += 1
            prior_buy = next(
                (t for t in reversed(trades[:i]) if t.type == Side.BUY and t.symbol == trade.symbol),
                None,
            )
            if prior_buy is not None and trade.price > prior_buy.price:
                wins += 1

        stats = self.state.stats
        stats.total_trades = len(trades)
        stats.winning_trades = wins
        stats.total_profit = self.state.balance - self.starting_balance
        stats.win_rate = safe_divide(wins, sells) * 100.0

    def get_stats(self) -> Dict[str, Any]:
        data = self.state.stats.model_dump(mode="json")
        data.update({
            "balance": self.state.balance,
            "positions_count": len(self.state.positions),
            "start_time": self.state.start_time.isoformat(),
        })
        return data

    def get_trade_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Newest first."""
        return [t.model_dump(mode="json") for t in reversed(self.state.trades[-limit:] if limit > 0 else [])]

    def reset(self) -> PaperState:
        self.state = self._fresh()
        self._save()
        logger.info("paper_account_reset", balance=self.starting_balance)
        return self.state


# Singleton
_account: Optional[PaperTradingAccount] = None


def get_paper_account() -> PaperTradingAccount:
    global _account
    if _account is None:
        storage = get_settings().storage
        _account = PaperTradingAccount(Path(storage.data_dir) / storage.paper_trading_file,
                                       starting_balance=storage.paper_starting_balance)
    return _account
