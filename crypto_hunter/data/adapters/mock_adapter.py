"""
Crypto Hunter — Fixture Data Source
Deterministic market snapshots for offline runs and tests.
"""
import copy
import random
from typing import Any, Dict, List, Optional

from crypto_hunter.data.adapters.base import BaseDataSource
from crypto_hunter.data.models import CoinSnapshot, DataSource

MOCK_COINS: List[Dict[str, Any]] = [
    {"symbol": "BTC", "name": "Bitcoin", "price": 71130.93, "percent_change_24h": 2.92,
     "volume_24h": 41748899685, "market_cap": 1420000000000},
    {"symbol": "ETH", "name": "Ethereum", "price": 2110.43, "percent_change_24h": 2.88,
     "volume_24h": 31968662174, "market_cap": 254360000000},
    {"symbol": "SOL", "name": "Solana", "price": 87.73, "percent_change_24h": 13.63,
     "volume_24h": 3759738821, "market_cap": 49780000000},
    {"symbol": "BNB", "name": "BNB", "price": 643.45, "percent_change_24h": 13.93,
     "volume_24h": 1840711073, "market_cap": 87740000000},
    {"symbol": "HYPE", "name": "Hyperliquid", "price": 31.55, "percent_change_24h": 9.07,
     "volume_24h": 337865145, "market_cap": 8200000000},
    {"symbol": "PEPE", "name": "Pepe", "price": 0.00001234, "percent_change_24h": 25.67,
     "volume_24h": 1234567890, "market_cap": 5200000000},
    {"symbol": "BONK", "name": "Bonk", "price": 0.00002345, "percent_change_24h": 45.32,
     "volume_24h": 456789012, "market_cap": 1500000000},
    {"symbol": "CATI", "name": "Catizen", "price": 0.52, "percent_change_24h": 35.21,
     "volume_24h": 89012345, "market_cap": 260000000},
    {"symbol": "NOT", "name": "Notcoin", "price": 0.00789, "percent_change_24h": 18.45,
     "volume_24h": 234567890, "market_cap": 780000000},
    {"symbol": "PONKE", "name": "Ponke", "price": 0.00234, "percent_change_24h": 52.13,
     "volume_24h": 12345678, "market_cap": 230000000},
]


class MockSource(BaseDataSource):
    """
    Fixture data source.
    With a seed, two random coins get their 24h change bumped into gainer
    territory each fetch, reproducibly.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, seed: Optional[int] = None):
        super().__init__(source=DataSource.MOCK)
        self.rows = rows if rows is not None else MOCK_COINS
        self._rng = random.Random(seed) if seed is not None else None

    async def fetch_snapshots(self) -> List[CoinSnapshot]:
        rows = copy.deepcopy(self.rows)
        if self._rng and rows:
            rows[self._rng.randrange(len(rows))]["percent_change_24h"] = 28 + self._rng.random() * 20
            rows[self._rng.randrange(len(rows))]["percent_change_24h"] = 38 + self._rng.random() * 25
        return self.to_snapshots(rows)
