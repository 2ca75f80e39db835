"""
Durable storage for the response cache.

The store deals in one flat record:

    {"entries": {key: {"value": ..., "inserted_at": ..., "ttl": ...}},
     "stats": {"hits": int, "misses": int}}
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from dreamscape.core.errors import CacheQuotaExceeded


class CacheStore(ABC):
    """Where a ResponseCache persists its record."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored record, or None if nothing is stored."""

    @abstractmethod
    def save(self, record: Dict[str, Any]) -> None:
        """Persist the record, raising on failure."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored record."""


class JsonFileCacheStore(CacheStore):
    """
    Single JSON file store.

    Writes are atomic (temp file then rename). An optional byte quota
    makes the store behave like a size-limited browser storage area.
    """

    def __init__(self, path, max_bytes: Optional[int] = None):
        """
        Args:
            path: File to write the record to
            max_bytes: Refuse writes larger than this many bytes
        """
        self.path = Path(path).expanduser()
        self.max_bytes = max_bytes

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            record = json.load(f)
        if not isinstance(record, dict):
            raise ValueError(f"Cache file {self.path} does not hold a JSON object")
        return record

    def save(self, record: Dict[str, Any]) -> None:
        payload = json.dumps(record)
        if self.max_bytes is not None and len(payload.encode("utf-8")) > self.max_bytes:
            raise CacheQuotaExceeded(
                f"Cache record of {len(payload)} bytes exceeds quota of {self.max_bytes}"
            )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            temp_path.replace(self.path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Removed cache file {self.path}")
