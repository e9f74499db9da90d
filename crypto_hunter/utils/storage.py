"""
Crypto Hunter — JSON File Storage
Small whole-document JSON files for thresholds and ledgers.
"""
import json
from pathlib import Path
from typing import Any, Callable, Union

from crypto_hunter.utils.logger import get_logger

logger = get_logger("storage")


class JsonFileStore:
    """Loads and saves one JSON document, creating the parent directory on write."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self, default_factory: Callable[[], Any]) -> Any:
        """Return the stored document, or a fresh default when absent or unreadable."""
        if not self.path.exists():
            return default_factory()
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("json_store_load_error", path=str(self.path), error=str(e))
            return default_factory()

    def save(self, document: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2, default=str)
        tmp.replace(self.path)
