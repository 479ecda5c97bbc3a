"""
EntityStore Persistence Layer - Relational Backend

Store built on an externally supplied unit-of-work context. The context hands
out one table handle per record type and commits pending changes; the store
never creates the context itself.
"""

import logging
from typing import Any, Iterable, List, Optional, Protocol, runtime_checkable

from ..core.keys import coerce_key_values
from .base import EntityStore, T

logger = logging.getLogger(__name__)


@runtime_checkable
class TableHandle(Protocol):
    """Typed table access for one record type"""

    async def find(self, *keys: Any) -> Optional[Any]:
        ...

    async def add(self, record: Any) -> None:
        ...

    async def remove(self, record: Any) -> None:
        ...

    async def all(self) -> List[Any]:
        ...


@runtime_checkable
class DbStoreContext(Protocol):
    """Unit of work handed to DbEntityStore"""

    def table(self, entity_type: type) -> TableHandle:
        ...

    async def commit(self) -> int:
        """Flush pending changes; returns the number of affected rows"""
        ...


class DbEntityStore(EntityStore[T]):
    """
    Entity store delegating to a relational context.

    Save is remove-if-exists followed by add and commit, so the stored row is
    fully replaced. Columns generated by the database are not carried over.
    Batch insert adds every record and commits once.
    """

    def __init__(self, record_type: type, context: DbStoreContext,
                 fallback_key_names: Optional[Iterable[str]] = None, strict_keys: bool = False):
        super().__init__(record_type, fallback_key_names, strict_keys)
        if context is None:
            raise ValueError("context cannot be None")
        self.context = context

    @property
    def table(self) -> TableHandle:
        return self.context.table(self.record_type)

    def _lookup_values(self, parts: tuple) -> tuple:
        return coerce_key_values(self.key_fields, parts)

    async def _replace(self, table: TableHandle, parts: tuple, record: T) -> None:
        existing = await table.find(*self._lookup_values(parts))
        if existing is not None:
            await table.remove(existing)
        await table.add(record)

    async def save(self, key: Any, record: T) -> None:
        if record is None:
            raise ValueError("record cannot be None")
        parts = self._resolve_save_key(key)
        await self._replace(self.table, parts, record)
        affected = await self.context.commit()
        logger.debug(f"Saved {self.record_type.__name__} {parts} ({affected} rows affected)")

    async def insert(self, records: Iterable[T]) -> None:
        """Upsert all records and commit them together"""
        if records is None:
            raise ValueError("records cannot be None")
        table = self.table
        count = 0
        for record in records:
            await self._replace(table, self.key_of(record), record)
            count += 1
        await self.context.commit()
        logger.debug(f"Inserted {count} {self.record_type.__name__} records")

    async def load(self, *keys: Any) -> Optional[T]:
        parts = self._resolve_keys(keys)
        return await self.table.find(*self._lookup_values(parts))

    async def delete(self, *keys: Any) -> bool:
        parts = self._resolve_keys(keys)
        table = self.table
        existing = await table.find(*self._lookup_values(parts))
        if existing is None:
            return False
        await table.remove(existing)
        await self.context.commit()
        logger.debug(f"Deleted {self.record_type.__name__} {parts}")
        return True

    async def list(self) -> List[T]:
        return await self.table.all()


__all__ = ["DbEntityStore", "DbStoreContext", "TableHandle"]
