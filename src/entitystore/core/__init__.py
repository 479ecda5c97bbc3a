"""
EntityStore Core Module

Record introspection and key inference - no storage concerns.
"""

from .errors import (
    EntityStoreError, KeyInferenceError, NoKeyFoundError, AmbiguousKeyError,
    KeyArityMismatchError, InvalidKeyError, UnsupportedFieldTypeError,
    UnsupportedRecordTypeError
)
from .fields import (
    Int64, IsKey, KeyField, FieldDescriptor, describe_fields,
    record_to_dict, build_record, is_record_type
)
from .keys import (
    DEFAULT_FALLBACK_KEY_NAMES, KeySelector, get_key_fields, get_single_key_name,
    create_key_selector, coerce_key_values, dump_key_values
)
from .dynamic import DynamicFieldMetadata, DynamicClassBuilder, DynamicTypeRegistry

__all__ = [
    "EntityStoreError",
    "KeyInferenceError",
    "NoKeyFoundError",
    "AmbiguousKeyError",
    "KeyArityMismatchError",
    "InvalidKeyError",
    "UnsupportedFieldTypeError",
    "UnsupportedRecordTypeError",
    "Int64",
    "IsKey",
    "KeyField",
    "FieldDescriptor",
    "describe_fields",
    "record_to_dict",
    "build_record",
    "is_record_type",
    "DEFAULT_FALLBACK_KEY_NAMES",
    "KeySelector",
    "get_key_fields",
    "get_single_key_name",
    "create_key_selector",
    "coerce_key_values",
    "dump_key_values",
    "DynamicFieldMetadata",
    "DynamicClassBuilder",
    "DynamicTypeRegistry",
]
