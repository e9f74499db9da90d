"""
Crypto Hunter — Threshold Persistence
Custom price thresholds and watched support/resistance levels, each as a
plain {symbol: record} JSON mapping.
"""
from pathlib import Path
from typing import Dict, Type, Union

from pydantic import BaseModel, ValidationError

from crypto_hunter.alerts.models import LevelWatch, Threshold
from crypto_hunter.utils.storage import JsonFileStore
from crypto_hunter.utils.logger import get_logger

logger = get_logger("threshold_store")


class _SymbolRecordStore:
    """JSON-file backed {symbol: model} mapping; invalid records are skipped."""

    model: Type[BaseModel]

    def __init__(self, path: Union[str, Path]):
        self._file = JsonFileStore(path)

    def load(self) -> Dict[str, BaseModel]:
        raw = self._file.load(dict)
        records = {}
        for symbol, record in raw.items():
            try:
                item = self.model(symbol=symbol, **{k: v for k, v in record.items() if k != "symbol"})
            except (ValidationError, AttributeError, TypeError) as e:
                logger.warning("stored_record_invalid", kind=self.model.__name__, symbol=symbol, error=str(e))
                continue
            records[item.symbol] = item
        return records

    def save(self, records: Dict[str, BaseModel]) -> None:
        self._file.save({symbol: item.to_record() for symbol, item in records.items()})


class ThresholdStore(_SymbolRecordStore):
    model = Threshold


class LevelStore(_SymbolRecordStore):
    model = LevelWatch
