"""
Crypto Hunter — CoinGecko Data Source
Top coins by market cap from the public /coins/markets endpoint.
"""
import asyncio
import aiohttp
from typing import List, Optional
from cachetools import TTLCache

from crypto_hunter.data.adapters.base import BaseDataSource
from crypto_hunter.data.models import CoinSnapshot, DataSource
from crypto_hunter.config.settings import MonitorSettings, get_settings
from crypto_hunter.errors import FetchError
from crypto_hunter.utils.logger import get_logger

logger = get_logger("crypto_adapter")

_CACHE_KEY = "markets"


class CoinGeckoSource(BaseDataSource):
    """CoinGecko market data source with a short TTL cache."""

    def __init__(self, settings: Optional[MonitorSettings] = None):
        super().__init__(source=DataSource.COINGECKO)
        self.settings = settings or get_settings().monitor
        self.base_url = self.settings.coingecko_base_url
        self._session: Optional[aiohttp.ClientSession] = None
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=self.settings.cache_ttl_seconds)

    async def connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info("coingecko_source_connected")

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("coingecko_source_disconnected")

    async def fetch_snapshots(self) -> List[CoinSnapshot]:
        """Fetch top coins ordered by market cap."""
        cached = self._cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        if not self._session:
            await self.connect()

        url = f"{self.base_url}/coins/markets"
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": str(self.settings.top_coins_limit),
            "page": "1",
            "price_change_percentage": "24h",
        }

        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status != 200:
                    raise FetchError(f"coingecko returned HTTP {resp.status}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"coingecko request failed: {e}") from e

        if not isinstance(data, list):
            raise FetchError("coingecko returned an unexpected payload")

        snapshots = self.to_snapshots(data)
        if not snapshots:
            raise FetchError("coingecko returned no usable rows")

        self._cache[_CACHE_KEY] = snapshots
        logger.info("coingecko_fetched", rows=len(data), snapshots=len(snapshots))
        return snapshots
