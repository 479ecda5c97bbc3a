"""
EntityStore End-to-End System Tests

Wires every backend through the container and resolver the way an
application would, then runs the same store scenario against each of them.

Test Coverage:
- Registration: options -> container -> resolver -> store
- Store contract: save/replace, composite keys, batch insert, list, delete
- Cross-backend consistency: identical results from memory, file, db and sql
- Scope lifecycle for the relational backend
"""

import sqlite3
from typing import Optional

import pytest
import pytest_asyncio
from pydantic import BaseModel
from sqlmodel import Field, SQLModel

from entitystore import (
    DIContainer, EntityStoreOptions, EntityStoreResolver, KeyField, SQLModelStoreContext,
    add_entity_stores
)
from entitystore.core.errors import InvalidKeyError, KeyArityMismatchError


class Order(BaseModel):
    """Composite-key record used by the memory, file and sql backends"""
    OrderId: int = KeyField()
    CustomerId: int = KeyField()
    Amount: float
    Note: Optional[str] = None


class OrderRow(SQLModel, table=True):
    """Composite-key table model used by the relational backend"""
    __tablename__ = "e2e_orders"

    OrderId: int = Field(primary_key=True)
    CustomerId: int = Field(primary_key=True)
    Amount: float
    Note: Optional[str] = None


BACKENDS = ["memory", "file", "sql", "db"]


class TestSystemE2E:
    """End-to-end system tests"""

    @pytest_asyncio.fixture(params=BACKENDS)
    async def backend(self, request, tmp_path):
        """Configured container, resolved store and record type for one backend"""
        kind = request.param
        options = EntityStoreOptions(register_memory_store=(kind == "memory"))
        record_type = Order

        if kind == "file":
            options.register_file_store = True
            options.file_store_directory = str(tmp_path / "records")
        elif kind == "sql":
            options.register_sql_store = True
            options.connection_factory = lambda: sqlite3.connect(tmp_path / "e2e.db")
            options.table_names = {"Order": "orders"}
        elif kind == "db":
            url = f"sqlite+aiosqlite:///{tmp_path / 'e2e_async.db'}"
            setup = SQLModelStoreContext(url)
            await setup.create_all()
            await setup.close()
            options.register_db_store = True
            options.db_context_factory = lambda: SQLModelStoreContext(url)
            record_type = OrderRow

        container = add_entity_stores(DIContainer(), options)
        resolver = container.get(EntityStoreResolver)
        store = resolver.get_store(record_type, scope_id="e2e")

        yield kind, store, record_type

        await container.shutdown()

    @pytest.mark.asyncio
    async def test_store_contract(self, backend):
        kind, store, Record = backend

        # Save by composite key, then load with typed key values
        await store.save(["1", "2"], Record(OrderId=1, CustomerId=2, Amount=10.0, Note="first"))
        loaded = await store.load(1, 2)
        assert (loaded.OrderId, loaded.CustomerId, loaded.Amount, loaded.Note) == (1, 2, 10.0, "first")

        # Save replaces the whole record
        await store.save([1, 2], Record(OrderId=1, CustomerId=2, Amount=12.5))
        replaced = await store.load("1", "2")
        assert replaced.Amount == 12.5
        assert replaced.Note is None

        # Batch insert upserts by each record's own key
        await store.insert([
            Record(OrderId=1, CustomerId=3, Amount=1.0),
            Record(OrderId=2, CustomerId=2, Amount=2.0),
            Record(OrderId=1, CustomerId=2, Amount=3.0),
        ])
        records = sorted(await store.list(), key=lambda r: (r.OrderId, r.CustomerId))
        assert [(r.OrderId, r.CustomerId, r.Amount) for r in records] == [
            (1, 2, 3.0), (1, 3, 1.0), (2, 2, 2.0),
        ]

        # Delete is idempotent
        assert await store.delete(1, 3) is True
        assert await store.delete(1, 3) is False
        assert await store.load(1, 3) is None
        assert await store.exists(2, 2)
        assert len(await store.list()) == 2

    @pytest.mark.asyncio
    async def test_key_validation(self, backend):
        kind, store, Record = backend

        with pytest.raises(KeyArityMismatchError):
            await store.load(1)
        with pytest.raises(KeyArityMismatchError):
            await store.delete(1, 2, 3)
        with pytest.raises(InvalidKeyError):
            await store.load()
        with pytest.raises(InvalidKeyError):
            await store.load(1, None)

    @pytest.mark.asyncio
    async def test_missing_records(self, backend):
        kind, store, Record = backend

        assert await store.load(99, 99) is None
        assert await store.delete(99, 99) is False
        assert await store.list() == []


class TestResolverFallbackE2E:

    @pytest.mark.asyncio
    async def test_unregistered_types_are_isolated(self):
        container = add_entity_stores(DIContainer(), EntityStoreOptions(register_memory_store=False))
        resolver = EntityStoreResolver(container)

        first = resolver.get_store(Order)
        await first.save(["1", "1"], Order(OrderId=1, CustomerId=1, Amount=1.0))

        assert await resolver.get_store(Order).load(1, 1) is None
        assert (await first.load(1, 1)).Amount == 1.0
