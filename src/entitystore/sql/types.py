"""
SQL Type Mapping

Maps declared field types to SQL column types for auto table creation. The
mapping is fixed; a field type outside it is a construction-time error.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from ..core.errors import UnsupportedFieldTypeError
from ..core.fields import FieldDescriptor, Int64

SQL_TYPES: Dict[Any, str] = {
    str: "TEXT",
    int: "INTEGER",
    Int64: "BIGINT",
    bool: "BOOLEAN",
    datetime: "DATETIME",
    float: "REAL",
}

# Types treated like reference types: their columns accept NULL
REFERENCE_TYPES = (str,)


def get_sql_type(annotation: Any, field_name: str = "?") -> str:
    """
    Map a declared (unwrapped) field type to its SQL column type.

    Raises:
        UnsupportedFieldTypeError: If the type has no mapping
    """
    try:
        return SQL_TYPES[annotation]
    except (KeyError, TypeError):
        raise UnsupportedFieldTypeError(field_name, annotation) from None


def is_nullable(descriptor: FieldDescriptor) -> bool:
    """A column is nullable for reference types and Optional declarations"""
    return descriptor.nullable or descriptor.annotation in REFERENCE_TYPES


def quote_identifier(identifier: str) -> str:
    return f'"{identifier}"'


def build_primary_key_clause(
    key_fields: Iterable[FieldDescriptor],
    quote: Optional[Callable[[str], str]] = None,
) -> str:
    """Build ``PRIMARY KEY (k1, k2, ...)`` over the key set columns"""
    quote = quote or (lambda name: name)
    return f"PRIMARY KEY ({', '.join(quote(f.name) for f in key_fields)})"


__all__ = [
    "SQL_TYPES",
    "get_sql_type",
    "is_nullable",
    "quote_identifier",
    "build_primary_key_clause",
]
