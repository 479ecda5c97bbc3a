"""
EntityStore Persistence Layer - Micro-SQL Backend

Store issuing generated SQL over DB-API 2 connections. A zero-argument
connection factory supplies one connection per operation; the store closes it
afterwards. Statements use ``@name`` parameters, which sqlite3 binds from a
mapping.
"""

import asyncio
import logging
from contextlib import closing
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.fields import build_record
from ..sql.builder import SqlBuilder
from .base import EntityStore, T

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], Any]


class SqlEntityStore(EntityStore[T]):
    """
    Entity store over generated SQL.

    The table is created (if missing) when the store is constructed, so key
    inference and column type mapping errors surface before any operation.

    Save runs DELETE and INSERT on one connection and commits them together;
    any failure rolls both back. Batch insert commits each record on its own,
    so records written before a failure stay written.
    """

    def __init__(
        self,
        record_type: type,
        connection_factory: ConnectionFactory,
        table_name: Optional[str] = None,
        fallback_key_names: Optional[Iterable[str]] = None,
        strict_keys: bool = False,
    ):
        super().__init__(record_type, fallback_key_names, strict_keys)
        if connection_factory is None:
            raise ValueError("connection_factory cannot be None")
        self.connection_factory = connection_factory
        self.table_name = table_name or record_type.__name__
        self.builder = SqlBuilder(record_type, fallback_key_names, strict_keys)

        self._create_sql = self.builder.build_create_table_sql(self.table_name)
        self._insert_sql = self.builder.build_insert_sql(self.table_name)
        self._delete_sql = self.builder.build_delete_sql(self.table_name)
        self._select_sql = self.builder.build_select_sql(self.table_name)
        self._select_all_sql = self.builder.build_select_all_sql(self.table_name)

        self._execute_in_transaction([(self._create_sql, {})])
        logger.debug(f"Ensured table {self.table_name} for {record_type.__name__}")

    def _execute_in_transaction(self, statements: List[tuple]) -> List[int]:
        """Run statements on one connection, commit on success, roll back on error"""
        with closing(self.connection_factory()) as conn:
            try:
                counts = []
                for sql, params in statements:
                    with closing(conn.cursor()) as cursor:
                        cursor.execute(sql, params)
                        counts.append(cursor.rowcount)
                conn.commit()
                return counts
            except Exception:
                conn.rollback()
                raise

    def _fetch(self, sql: str, params: Dict[str, Any]) -> List[T]:
        with closing(self.connection_factory()) as conn:
            with closing(conn.cursor()) as cursor:
                cursor.execute(sql, params)
                columns = [column[0] for column in cursor.description]
                rows = cursor.fetchall()
        return [build_record(self.record_type, dict(zip(columns, row))) for row in rows]

    def _replace_statements(self, key_params: Dict[str, Any], record: T) -> List[tuple]:
        return [
            (self._delete_sql, key_params),
            (self._insert_sql, self.builder.insert_parameters(record)),
        ]

    async def save(self, key: Any, record: T) -> None:
        if record is None:
            raise ValueError("record cannot be None")
        key_params = self.builder.key_parameters(self._resolve_save_key(key))
        await asyncio.to_thread(
            self._execute_in_transaction, self._replace_statements(key_params, record)
        )
        logger.debug(f"Saved {self.record_type.__name__} {key_params} to {self.table_name}")

    async def insert(self, records: Iterable[T]) -> None:
        """One statement pair per record, each committed separately"""
        if records is None:
            raise ValueError("records cannot be None")
        for record in records:
            key_params = self.builder.key_parameters(self.key_of(record))
            await asyncio.to_thread(
                self._execute_in_transaction, self._replace_statements(key_params, record)
            )

    async def load(self, *keys: Any) -> Optional[T]:
        key_params = self.builder.key_parameters(self._resolve_keys(keys))
        records = await asyncio.to_thread(self._fetch, self._select_sql, key_params)
        return records[0] if records else None

    async def delete(self, *keys: Any) -> bool:
        key_params = self.builder.key_parameters(self._resolve_keys(keys))
        counts = await asyncio.to_thread(
            self._execute_in_transaction, [(self._delete_sql, key_params)]
        )
        deleted = counts[0] > 0
        if deleted:
            logger.debug(f"Deleted {self.record_type.__name__} {key_params} from {self.table_name}")
        return deleted

    async def list(self) -> List[T]:
        return await asyncio.to_thread(self._fetch, self._select_all_sql, {})


__all__ = ["SqlEntityStore", "ConnectionFactory"]
