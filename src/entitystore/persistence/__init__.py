"""
EntityStore Persistence Module

Store backends implementing the shared EntityStore contract.
"""

from .base import EntityStore
from .memory import MemoryEntityStore
from .file import FileEntityStore
from .db import DbEntityStore, DbStoreContext, TableHandle
from .sqlmodel_context import SQLModelStoreContext, SQLModelTableHandle
from .sql import SqlEntityStore, ConnectionFactory

__all__ = [
    "EntityStore",
    "MemoryEntityStore",
    "FileEntityStore",
    "DbEntityStore",
    "DbStoreContext",
    "TableHandle",
    "SQLModelStoreContext",
    "SQLModelTableHandle",
    "SqlEntityStore",
    "ConnectionFactory",
]
