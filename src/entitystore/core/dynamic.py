"""
Dynamic Record Types

Builds pydantic record models at runtime from field metadata. The generated
classes are ordinary records: key markers and UI hints travel in each field's
``json_schema_extra`` where key inference and field descriptors pick them up.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, Field, create_model

logger = logging.getLogger(__name__)


@dataclass
class DynamicFieldMetadata:
    """Schema of one field of a runtime-built record type"""
    name: str
    type: Any
    is_key: bool = False
    is_required: bool = False
    is_display_field: bool = False
    control_type: Optional[str] = None
    placeholder: Optional[str] = None
    options: List[str] = field(default_factory=list)
    control_parameters: Dict[str, Any] = field(default_factory=dict)
    data_set_controls: Dict[str, Any] = field(default_factory=dict)

    def to_schema_extra(self) -> Dict[str, Any]:
        return {
            "is_key": self.is_key,
            "is_required": self.is_required,
            "is_display_field": self.is_display_field,
            "control_type": self.control_type,
            "placeholder": self.placeholder,
            "options": list(self.options),
            "control_parameters": dict(self.control_parameters),
            "data_set_controls": dict(self.data_set_controls),
        }


class DynamicTypeRegistry:
    """Thread-safe registry of record types built at runtime"""

    def __init__(self):
        self._types: Dict[str, type] = {}
        self._lock = threading.Lock()

    def register_type(self, record_type: type) -> None:
        with self._lock:
            self._types[record_type.__name__] = record_type

    def get_types(self) -> List[type]:
        with self._lock:
            return list(self._types.values())

    def get_type(self, name: str) -> Optional[type]:
        with self._lock:
            return self._types.get(name)

    def __contains__(self, record_type: type) -> bool:
        with self._lock:
            return self._types.get(record_type.__name__) is record_type


class DynamicClassBuilder:
    """
    Builder for pydantic record models defined at runtime.

    Example:
        builder = DynamicClassBuilder("Customer")
        builder.add_field(DynamicFieldMetadata("CustomerId", int, is_key=True))
        builder.add_field(DynamicFieldMetadata("Name", str, is_required=True))
        Customer = builder.build()
    """

    def __init__(self, class_name: str, registry: Optional[DynamicTypeRegistry] = None,
                 base: Type[BaseModel] = BaseModel):
        if not class_name:
            raise ValueError("class_name cannot be empty")
        self.class_name = class_name
        self.registry = registry
        self.base = base
        self._fields: List[DynamicFieldMetadata] = []

    def add_field(self, metadata: DynamicFieldMetadata) -> 'DynamicClassBuilder':
        """Add a field definition; returns self for chaining"""
        if any(existing.name == metadata.name for existing in self._fields):
            raise ValueError(f"Field '{metadata.name}' already defined on {self.class_name}")
        self._fields.append(metadata)
        return self

    @property
    def fields(self) -> List[DynamicFieldMetadata]:
        return list(self._fields)

    def build(self) -> Type[BaseModel]:
        """
        Create the record model.

        Required and key fields have no default; every other field defaults
        to None and is declared Optional.
        """
        definitions: Dict[str, Any] = {}
        for metadata in self._fields:
            extra = metadata.to_schema_extra()
            if metadata.is_required or metadata.is_key:
                definitions[metadata.name] = (metadata.type, Field(..., json_schema_extra=extra))
            else:
                definitions[metadata.name] = (
                    Optional[metadata.type], Field(None, json_schema_extra=extra)
                )

        record_type = create_model(self.class_name, __base__=self.base, **definitions)

        if self.registry is not None:
            self.registry.register_type(record_type)
        logger.debug(f"Built dynamic record type {self.class_name} with {len(definitions)} fields")
        return record_type


__all__ = ["DynamicFieldMetadata", "DynamicTypeRegistry", "DynamicClassBuilder"]
