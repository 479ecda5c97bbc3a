"""
EntityStore - Pluggable Persistence for Record Types

Key inference, SQL generation and interchangeable async store backends
(memory, file, relational, micro-SQL) behind one EntityStore contract, with
container registration and runtime resolution.
"""

from .core import *
from .core import __all__ as _core_all
from .sql import SqlBuilder
from .persistence import (
    EntityStore, MemoryEntityStore, FileEntityStore, DbEntityStore, DbStoreContext,
    TableHandle, SQLModelStoreContext, SqlEntityStore
)
from .app import (
    DIContainer, ServiceScope, EntityStoreOptions, LoggingConfig,
    EntityStoreResolver, add_entity_stores
)

__version__ = "0.1.0"

__all__ = [
    *_core_all,
    "SqlBuilder",
    "EntityStore",
    "MemoryEntityStore",
    "FileEntityStore",
    "DbEntityStore",
    "DbStoreContext",
    "TableHandle",
    "SQLModelStoreContext",
    "SqlEntityStore",
    "DIContainer",
    "ServiceScope",
    "EntityStoreOptions",
    "LoggingConfig",
    "EntityStoreResolver",
    "add_entity_stores",
]
