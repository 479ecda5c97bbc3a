"""
EntityStore Application Layer

Dependency injection, configuration, store registration and resolution.
"""

from .container import (
    DIContainer, ServiceScope, DIError, ServiceNotFoundError,
    CircularDependencyError, ServiceConfigurationError
)
from .configuration import EntityStoreOptions, LoggingConfig
from .resolver import EntityStoreResolver
from .registration import (
    add_entity_stores, add_memory_store, add_file_store, add_db_store, add_sql_store
)

__all__ = [
    "DIContainer",
    "ServiceScope",
    "DIError",
    "ServiceNotFoundError",
    "CircularDependencyError",
    "ServiceConfigurationError",
    "EntityStoreOptions",
    "LoggingConfig",
    "EntityStoreResolver",
    "add_entity_stores",
    "add_memory_store",
    "add_file_store",
    "add_db_store",
    "add_sql_store",
]
