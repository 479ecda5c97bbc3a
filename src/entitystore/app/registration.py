"""
Service registration for entity stores.

``add_entity_stores`` wires the enabled backends into a DIContainer as
open-generic ``EntityStore`` services. Backends are registered in the order
memory, file, relational, micro-SQL; a later registration replaces an earlier
one, so the last enabled backend serves every record type.
"""

import logging
from pathlib import Path
from typing import Optional

from ..core.dynamic import DynamicTypeRegistry
from ..persistence.base import EntityStore
from ..persistence.db import DbEntityStore, DbStoreContext
from ..persistence.file import FileEntityStore
from ..persistence.memory import MemoryEntityStore
from ..persistence.sql import SqlEntityStore
from .configuration import EntityStoreOptions
from .container import DIContainer, ServiceConfigurationError, ServiceScope
from .resolver import EntityStoreResolver

logger = logging.getLogger(__name__)


def add_memory_store(container: DIContainer, options: EntityStoreOptions) -> DIContainer:
    """Register one in-memory store per record type"""
    def factory(c: DIContainer, entity_type: type) -> MemoryEntityStore:
        return MemoryEntityStore(
            entity_type, options.global_fallback_key_names, options.strict_fallback_keys
        )
    return container.register_open_generic(EntityStore, factory, ServiceScope.SINGLETON)


def add_file_store(container: DIContainer, options: EntityStoreOptions) -> DIContainer:
    """Register one file store per record type, each in its own subdirectory"""
    base_directory = Path(options.file_store_directory)

    def factory(c: DIContainer, entity_type: type) -> FileEntityStore:
        return FileEntityStore(
            entity_type,
            base_directory / entity_type.__name__,
            key_selector=options.key_selector_for(entity_type),
            indent=options.indent_for(entity_type),
            fallback_key_names=options.global_fallback_key_names,
            strict_keys=options.strict_fallback_keys,
        )
    return container.register_open_generic(EntityStore, factory, ServiceScope.SINGLETON)


def add_db_store(container: DIContainer, options: EntityStoreOptions) -> DIContainer:
    """
    Register relational stores sharing one scoped DbStoreContext.

    Raises:
        ServiceConfigurationError: If ``options.db_context_factory`` is not set
    """
    if options.db_context_factory is None:
        raise ServiceConfigurationError("db_context_factory must be provided for the db store")

    container.register_factory(DbStoreContext, options.db_context_factory, ServiceScope.SCOPED)

    def factory(c: DIContainer, entity_type: type) -> DbEntityStore:
        return DbEntityStore(
            entity_type, c.get(DbStoreContext),
            options.global_fallback_key_names, options.strict_fallback_keys
        )
    return container.register_open_generic(EntityStore, factory, ServiceScope.SCOPED)


def add_sql_store(container: DIContainer, options: EntityStoreOptions) -> DIContainer:
    """
    Register micro-SQL stores over the configured connection factory.

    Raises:
        ServiceConfigurationError: If ``options.connection_factory`` is not set
    """
    if options.connection_factory is None:
        raise ServiceConfigurationError("connection_factory must be provided for the sql store")

    def factory(c: DIContainer, entity_type: type) -> SqlEntityStore:
        return SqlEntityStore(
            entity_type,
            options.connection_factory,
            table_name=options.table_name_for(entity_type),
            fallback_key_names=options.global_fallback_key_names,
            strict_keys=options.strict_fallback_keys,
        )
    return container.register_open_generic(EntityStore, factory, ServiceScope.SINGLETON)


def add_entity_stores(container: DIContainer,
                      options: Optional[EntityStoreOptions] = None) -> DIContainer:
    """
    Register entity store services according to ``options``.

    Args:
        container: Container to register into
        options: Registration options; defaults to ``EntityStoreOptions()``

    Returns:
        The container, for chaining
    """
    options = options or EntityStoreOptions()
    container.register_singleton(EntityStoreOptions, options)

    if options.register_dynamic_types:
        container.register(DynamicTypeRegistry, DynamicTypeRegistry, ServiceScope.SINGLETON)

    enabled = []
    if options.register_memory_store:
        add_memory_store(container, options)
        enabled.append("memory")
    if options.register_file_store:
        add_file_store(container, options)
        enabled.append("file")
    if options.register_db_store:
        add_db_store(container, options)
        enabled.append("db")
    if options.register_sql_store:
        add_sql_store(container, options)
        enabled.append("sql")

    if options.any_store_enabled:
        container.register(EntityStoreResolver, EntityStoreResolver, ServiceScope.SINGLETON)

    logger.info(f"Registered entity stores: {', '.join(enabled) or 'none'}")
    return container


__all__ = [
    "add_entity_stores",
    "add_memory_store",
    "add_file_store",
    "add_db_store",
    "add_sql_store",
]
