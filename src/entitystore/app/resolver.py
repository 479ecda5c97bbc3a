"""
Backend resolver mapping record types to their configured store.
"""

import logging
import threading
from typing import Dict, Optional

from ..persistence.base import EntityStore
from ..persistence.memory import MemoryEntityStore
from .configuration import EntityStoreOptions
from .container import DIContainer

logger = logging.getLogger(__name__)


class EntityStoreResolver:
    """
    Resolves the store for a record type known only at runtime.

    The container is asked for ``EntityStore[entity_type]`` first. When nothing
    is registered a MemoryEntityStore is returned instead. Fallback stores are
    created fresh on every call, so two lookups for the same unregistered type
    do not share data, unless ``cache_fallback_stores`` is enabled.
    """

    def __init__(self, container: DIContainer, options: EntityStoreOptions = None):
        if container is None:
            raise ValueError("container cannot be None")
        self.container = container
        self.options = options or EntityStoreOptions()
        self._fallback_stores: Dict[type, MemoryEntityStore] = {}
        self._lock = threading.Lock()

    def get_store(self, entity_type: type, scope_id: Optional[str] = None) -> EntityStore:
        """
        Get the store registered for ``entity_type``.

        Args:
            entity_type: Record type to resolve
            scope_id: Scope for scoped backends such as the relational store

        Returns:
            The registered store, or an in-memory fallback
        """
        if entity_type is None:
            raise ValueError("entity_type cannot be None")

        store = self.container.try_get(EntityStore[entity_type], scope_id)
        if store is not None:
            return store

        if not self.options.cache_fallback_stores:
            logger.debug(f"No store registered for {entity_type.__name__}; using a new memory store")
            return self._create_fallback(entity_type)

        with self._lock:
            if entity_type not in self._fallback_stores:
                logger.debug(f"No store registered for {entity_type.__name__}; caching a memory store")
                self._fallback_stores[entity_type] = self._create_fallback(entity_type)
            return self._fallback_stores[entity_type]

    def _create_fallback(self, entity_type: type) -> MemoryEntityStore:
        return MemoryEntityStore(
            entity_type,
            self.options.global_fallback_key_names,
            self.options.strict_fallback_keys,
        )


__all__ = ["EntityStoreResolver"]
