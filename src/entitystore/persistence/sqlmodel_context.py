"""
EntityStore Persistence Layer - SQLModel Context

DbStoreContext implementation over SQLModel's async session. One context is
one unit of work: table handles stage changes in a shared session and
``commit()`` writes them in a single transaction.
"""

import logging
from typing import Any, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.fields import record_to_dict

logger = logging.getLogger(__name__)


class SQLModelTableHandle:
    """Table handle for one SQLModel table class"""

    def __init__(self, context: 'SQLModelStoreContext', entity_type: type):
        self.context = context
        self.entity_type = entity_type

    async def find(self, *keys: Any) -> Optional[Any]:
        identity = keys[0] if len(keys) == 1 else tuple(keys)
        return await self.context.session.get(self.entity_type, identity)

    async def add(self, record: Any) -> None:
        # Detached copy so an instance already tracked by the session can be re-added
        self.context.session.add(self.entity_type(**record_to_dict(record)))
        self.context._pending += 1

    async def remove(self, record: Any) -> None:
        session = self.context.session
        await session.delete(record)
        await session.flush()
        self.context._pending += 1

    async def all(self) -> List[Any]:
        result = await self.context.session.exec(select(self.entity_type))
        return list(result.all())


class SQLModelStoreContext:
    """
    Relational store context backed by a SQLAlchemy async engine.

    Example:
        context = SQLModelStoreContext("sqlite+aiosqlite:///app.db")
        await context.create_all()
        store = DbEntityStore(Order, context)
    """

    def __init__(self, engine: Union[str, AsyncEngine], echo: bool = False):
        if isinstance(engine, str):
            engine = create_async_engine(engine, echo=echo)
            self._owns_engine = True
        else:
            self._owns_engine = False
        self.engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine, class_=AsyncSession, expire_on_commit=False
        )
        self._session: Optional[AsyncSession] = None
        self._pending = 0

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    def table(self, entity_type: type) -> SQLModelTableHandle:
        if not hasattr(entity_type, "__table__"):
            raise TypeError(f"{entity_type.__name__} is not a SQLModel table model")
        return SQLModelTableHandle(self, entity_type)

    async def commit(self) -> int:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            self._pending = 0
            raise
        affected, self._pending = self._pending, 0
        return affected

    async def create_all(self) -> None:
        """Create every table registered on SQLModel's metadata"""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.debug("Created SQLModel tables")

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
        if self._owns_engine:
            await self.engine.dispose()

    async def __aenter__(self) -> 'SQLModelStoreContext':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["SQLModelStoreContext", "SQLModelTableHandle"]
