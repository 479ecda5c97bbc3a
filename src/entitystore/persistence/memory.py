"""
EntityStore Persistence Layer - Memory Backend

In-memory entity store for development, testing and as the resolver's
fallback. Data is lost when the process exits.
"""

import copy
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .base import EntityStore, T

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "::"


class MemoryEntityStore(EntityStore[T]):
    """
    Thread-safe in-memory entity store.

    Records are kept in a dictionary keyed by the composite key value joined
    with ``"::"``. Colons and percent signs inside a part are percent-escaped
    first, so distinct keys never collide. Every map operation runs under an
    internal lock, so callers on different threads or tasks never need their
    own locking. Stored and returned records are deep copies of the caller's
    objects.
    """

    def __init__(self, record_type: type, fallback_key_names: Optional[Iterable[str]] = None,
                 strict_keys: bool = False):
        super().__init__(record_type, fallback_key_names, strict_keys)
        self._data: Dict[str, T] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _map_key(parts: Tuple[str, ...]) -> str:
        return KEY_SEPARATOR.join(part.replace("%", "%25").replace(":", "%3A") for part in parts)

    async def save(self, key: Any, record: T) -> None:
        """Save record to memory, replacing any existing entry"""
        if record is None:
            raise ValueError("record cannot be None")
        map_key = self._map_key(self._resolve_save_key(key))
        stored = copy.deepcopy(record)
        with self._lock:
            self._data[map_key] = stored
        logger.debug(f"Saved {self.record_type.__name__} '{map_key}' to memory")

    async def insert(self, records: Iterable[T]) -> None:
        """Upsert each record under its own key"""
        if records is None:
            raise ValueError("records cannot be None")
        for record in records:
            map_key = self._map_key(self.key_of(record))
            stored = copy.deepcopy(record)
            with self._lock:
                self._data[map_key] = stored

    async def load(self, *keys: Any) -> Optional[T]:
        """Load record from memory"""
        map_key = self._map_key(self._resolve_keys(keys))
        with self._lock:
            record = self._data.get(map_key)
        return copy.deepcopy(record) if record is not None else None

    async def delete(self, *keys: Any) -> bool:
        """Delete record from memory"""
        map_key = self._map_key(self._resolve_keys(keys))
        with self._lock:
            existed = self._data.pop(map_key, None) is not None
        if existed:
            logger.debug(f"Deleted {self.record_type.__name__} '{map_key}' from memory")
        return existed

    async def list(self) -> List[T]:
        with self._lock:
            records = list(self._data.values())
        return [copy.deepcopy(record) for record in records]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


__all__ = ["MemoryEntityStore", "KEY_SEPARATOR"]
