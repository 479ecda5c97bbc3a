"""
EntityStore Persistence Layer - Base Classes

This module provides the abstract store contract shared by every backend
and the resolver: single and composite key CRUD, batch insert and listing.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..core.errors import InvalidKeyError, KeyArityMismatchError, NoKeyFoundError
from ..core.fields import FieldDescriptor
from ..core.keys import (
    KeySelector, create_key_selector, get_key_fields,
    normalize_fallback_names, stringify_key_part
)

T = TypeVar('T')

logger = logging.getLogger(__name__)


class EntityStore(ABC, Generic[T]):
    """
    Abstract base class for entity stores.

    A store handle is bound to one record type. Identity is either a single
    string id or a composite key whose parts line up with the type's key set.
    """

    def __init__(self, record_type: type, fallback_key_names: Optional[Iterable[str]] = None,
                 strict_keys: bool = False):
        if record_type is None:
            raise TypeError("record_type cannot be None")
        self.record_type = record_type
        self.fallback_key_names: Tuple[str, ...] = normalize_fallback_names(fallback_key_names)
        self.strict_keys = strict_keys
        self._key_selector: Optional[KeySelector] = None

    @property
    def key_fields(self) -> Tuple[FieldDescriptor, ...]:
        """Key set of the bound record type (raises NoKeyFoundError)"""
        return get_key_fields(self.record_type, self.fallback_key_names, self.strict_keys)

    def key_of(self, record: T) -> Tuple[str, ...]:
        """Composite key value of a record instance"""
        if self._key_selector is None:
            self._key_selector = create_key_selector(
                self.record_type, self.fallback_key_names, self.strict_keys
            )
        return self._key_selector(record)

    @staticmethod
    def _require_key_parts(keys: Sequence[Any]) -> None:
        if not keys:
            raise InvalidKeyError("Keys cannot be null or empty")
        if any(key is None for key in keys):
            raise InvalidKeyError("Key parts cannot be None")

    def _resolve_keys(self, keys: Sequence[Any]) -> Tuple[str, ...]:
        """
        Validate caller-supplied key values against the key set.

        A lone key on a type without an inferable key set is a plain id.
        """
        self._require_key_parts(keys)

        try:
            expected = len(self.key_fields)
        except NoKeyFoundError:
            if len(keys) == 1:
                return (stringify_key_part(keys[0]),)
            raise

        if len(keys) != expected:
            raise KeyArityMismatchError(self.record_type, expected, len(keys))
        return tuple(stringify_key_part(key) for key in keys)

    def _resolve_save_key(self, key: Any) -> Tuple[str, ...]:
        """Accept a single id or a sequence of composite key parts"""
        if isinstance(key, (str, bytes)) or not isinstance(key, Sequence):
            if isinstance(key, str) and not key.strip():
                raise InvalidKeyError("Id cannot be empty")
            return self._resolve_keys((key,))
        return self._resolve_keys(tuple(key))

    @abstractmethod
    async def save(self, key: Any, record: T) -> None:
        """
        Insert or fully replace a record.

        Args:
            key: Single id, or a sequence of composite key values
            record: Record to store
        """
        pass

    @abstractmethod
    async def insert(self, records: Iterable[T]) -> None:
        """
        Upsert a batch of records, each addressed by its own key values.

        Not atomic across the batch unless the backend says otherwise.
        """
        pass

    @abstractmethod
    async def load(self, *keys: Any) -> Optional[T]:
        """
        Load a record by id or composite key.

        Returns:
            The record, or None if it does not exist
        """
        pass

    @abstractmethod
    async def delete(self, *keys: Any) -> bool:
        """
        Delete a record by id or composite key.

        Returns:
            True if a record was removed, False otherwise
        """
        pass

    @abstractmethod
    async def list(self) -> List[T]:
        """All records currently held; ordering is backend specific"""
        pass

    async def exists(self, *keys: Any) -> bool:
        """Check if a record exists"""
        return await self.load(*keys) is not None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.record_type.__name__})"


__all__ = ["EntityStore"]
