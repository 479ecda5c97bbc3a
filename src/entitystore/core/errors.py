"""
EntityStore Errors

Exception hierarchy shared by key inference, the SQL builder and every store
backend. Connection and file-system failures are not wrapped here; they reach
the caller as the original ``OSError`` / driver exception.
"""

from typing import Any, Optional


class EntityStoreError(Exception):
    """Base exception for entity store operations"""
    pass


class KeyInferenceError(EntityStoreError):
    """Raised when the identity fields of a record type cannot be determined"""

    def __init__(self, record_type: type, message: str):
        super().__init__(message)
        self.record_type = record_type


class NoKeyFoundError(KeyInferenceError):
    """Raised when no explicit or fallback key field exists on a record type"""

    def __init__(self, record_type: type, fallback_names: Optional[tuple] = None):
        names = ", ".join(fallback_names or ())
        super().__init__(
            record_type,
            f"No key fields found on type '{record_type.__name__}'. "
            f"Mark a field with KeyField()/IsKey or name it after one of: {names}",
        )
        self.fallback_names = fallback_names


class AmbiguousKeyError(KeyInferenceError):
    """Raised in strict mode when fallback matching selects several fields"""

    def __init__(self, record_type: type, field_names: tuple):
        super().__init__(
            record_type,
            f"Fallback key matching on '{record_type.__name__}' is ambiguous: "
            f"{', '.join(field_names)}. Mark the key fields explicitly.",
        )
        self.field_names = field_names


class KeyArityMismatchError(EntityStoreError, ValueError):
    """Raised when the number of key values differs from the key set length"""

    def __init__(self, record_type: type, expected: int, actual: int):
        super().__init__(
            f"Type '{record_type.__name__}' has {expected} key field(s) "
            f"but {actual} key value(s) were supplied"
        )
        self.record_type = record_type
        self.expected = expected
        self.actual = actual


class InvalidKeyError(EntityStoreError, ValueError):
    """Raised for empty key sequences or missing key parts"""
    pass


class UnsupportedFieldTypeError(EntityStoreError, TypeError):
    """Raised when a field's declared type has no SQL column mapping"""

    def __init__(self, field_name: str, annotation: Any):
        type_name = getattr(annotation, "__name__", repr(annotation))
        super().__init__(
            f"Type '{type_name}' of field '{field_name}' is not supported in auto table creation"
        )
        self.field_name = field_name
        self.annotation = annotation


class UnsupportedRecordTypeError(EntityStoreError, TypeError):
    """Raised when a record type is neither a pydantic model nor a dataclass"""

    def __init__(self, record_type: Any):
        type_name = getattr(record_type, "__name__", repr(record_type))
        super().__init__(
            f"'{type_name}' is not a supported record type (expected a pydantic model or dataclass)"
        )
        self.record_type = record_type


__all__ = [
    "EntityStoreError",
    "KeyInferenceError",
    "NoKeyFoundError",
    "AmbiguousKeyError",
    "KeyArityMismatchError",
    "InvalidKeyError",
    "UnsupportedFieldTypeError",
    "UnsupportedRecordTypeError",
]
