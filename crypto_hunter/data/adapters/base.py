"""
Crypto Hunter — Base Data Source Interface
All market data sources must implement this interface.
"""
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Mapping
from datetime import datetime, timezone

from crypto_hunter.data.models import CoinSnapshot, DataSource
from crypto_hunter.errors import InvalidSnapshotError
from crypto_hunter.utils.logger import get_logger

logger = get_logger("data_source")


class BaseDataSource(ABC):
    """Abstract base class for all coin snapshot providers."""

    def __init__(self, source: DataSource):
        self.source = source

    async def connect(self) -> None:
        """Initialize connection / session."""
        pass

    async def disconnect(self) -> None:
        """Clean up connection / session."""
        pass

    @abstractmethod
    async def fetch_snapshots(self) -> List[CoinSnapshot]:
        """
        Fetch the current batch of coin snapshots.
        Raises FetchError when no data could be retrieved this cycle.
        """
        pass

    def to_snapshots(self, rows: Iterable[Mapping[str, Any]]) -> List[CoinSnapshot]:
        """Validate raw rows, dropping (and logging) the malformed ones."""
        now = datetime.now(timezone.utc)
        snapshots = []
        for row in rows:
            try:
                snapshots.append(CoinSnapshot.from_raw(row, source=self.source, timestamp=now))
            except InvalidSnapshotError as e:
                logger.warning("snapshot_invalid", source=self.source.value,
                               symbol=e.symbol, error=str(e))
        return snapshots
