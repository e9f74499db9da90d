"""
Crypto Hunter — Multi-Exchange Price Aggregator
Averages Binance and CoinGecko spot prices per symbol.
"""
import asyncio
import aiohttp
from typing import Dict, Iterable, List, Optional
from cachetools import TTLCache

from crypto_hunter.data.models import AggregatedPrice, DataSource
from crypto_hunter.config.settings import MonitorSettings, get_settings
from crypto_hunter.errors import FetchError
from crypto_hunter.utils.helpers import is_finite_number, normalize_symbol, utc_now
from crypto_hunter.utils.logger import get_logger

logger = get_logger("price_aggregator")

COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "LINK": "chainlink",
}


def coingecko_id(symbol: str) -> str:
    return COINGECKO_IDS.get(symbol.upper(), symbol.lower())


class PriceAggregator:
    """
    Queries both exchanges concurrently for each symbol.
    A symbol that no exchange answers for is left out of the result.
    """

    def __init__(self, settings: Optional[MonitorSettings] = None):
        self.settings = settings or get_settings().monitor
        self._session: Optional[aiohttp.ClientSession] = None
        self._cache: TTLCache = TTLCache(maxsize=256, ttl=self.settings.cache_ttl_seconds)

    async def connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: Dict[str, str]):
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status != 200:
                    raise FetchError(f"{url} returned HTTP {resp.status}")
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"{url} request failed: {e}") from e

    async def fetch_binance(self, symbol: str) -> Optional[Dict[str, float]]:
        data = await self._get_json(
            f"{self.settings.binance_base_url}/ticker/price",
            {"symbol": f"{symbol}USDT"},
        )
        price = _as_price(data.get("price") if isinstance(data, dict) else None)
        return None if price is None else {"price": price}

    async def fetch_coingecko(self, symbol: str) -> Optional[Dict[str, float]]:
        coin_id = coingecko_id(symbol)
        data = await self._get_json(
            f"{self.settings.coingecko_base_url}/simple/price",
            {"ids": coin_id, "vs_currencies": "usd", "include_24hr_change": "true"},
        )
        row = data.get(coin_id) if isinstance(data, dict) else None
        if not isinstance(row, dict):
            return None
        price = _as_price(row.get("usd"))
        if price is None:
            return None
        change = row.get("usd_24h_change")
        return {"price": price, "change_24h": float(change) if is_finite_number(change) else 0.0}

    async def aggregate(self, symbol: str) -> Optional[AggregatedPrice]:
        key = normalize_symbol(symbol)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if not self._session:
            await self.connect()

        results = await asyncio.gather(
            self.fetch_binance(key), self.fetch_coingecko(key), return_exceptions=True,
        )
        quotes = []
        for source, result in zip((DataSource.BINANCE, DataSource.COINGECKO), results):
            if isinstance(result, Exception):
                logger.warning("exchange_quote_failed", symbol=key, source=source.value, error=str(result))
            elif result is not None:
                quotes.append((source, result))

        if not quotes:
            return None

        change = next((q["change_24h"] for _, q in quotes if "change_24h" in q), 0.0)
        aggregated = AggregatedPrice(
            symbol=key,
            price=sum(q["price"] for _, q in quotes) / len(quotes),
            change_24h=change,
            sources=[source for source, _ in quotes],
            updated_at=utc_now(),
        )
        self._cache[key] = aggregated
        return aggregated

    async def aggregate_prices(self, symbols: Iterable[str]) -> Dict[str, AggregatedPrice]:
        """Aggregated quotes keyed by symbol, in request order."""
        prices: Dict[str, AggregatedPrice] = {}
        for symbol in dict.fromkeys(normalize_symbol(s) for s in symbols if s.strip()):
            aggregated = await self.aggregate(symbol)
            if aggregated is not None:
                prices[symbol] = aggregated
        logger.info("prices_aggregated", count=len(prices), symbols=list(prices))
        return prices

    async def get_top_coins(self) -> List[AggregatedPrice]:
        prices = await self.aggregate_prices(self.settings.aggregate_symbols)
        return list(prices.values())


def _as_price(value) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if is_finite_number(price) and price > 0 else None


# Singleton
_aggregator: Optional[PriceAggregator] = None


def get_price_aggregator() -> PriceAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = PriceAggregator()
    return _aggregator
