"""
Key Inference

Determines which fields of a record type form its identity. Explicitly marked
fields win outright; otherwise every field whose name equals or ends with one
of the fallback names (case-insensitive) becomes part of the key set.
"""

import logging
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional, Sequence, Tuple

from pydantic import TypeAdapter, ValidationError

from .errors import AmbiguousKeyError, InvalidKeyError, NoKeyFoundError
from .fields import FieldDescriptor, describe_fields

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_KEY_NAMES: Tuple[str, ...] = ("Id",)

KeySelector = Callable[[Any], Tuple[str, ...]]


def normalize_fallback_names(fallback_names: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Turn a fallback name list into a hashable tuple, applying the default"""
    if fallback_names is None:
        return DEFAULT_FALLBACK_KEY_NAMES
    if isinstance(fallback_names, str):
        return (fallback_names,)
    return tuple(fallback_names)


def _matches_fallback(field_name: str, fallback_names: Tuple[str, ...]) -> bool:
    lowered = field_name.lower()
    return any(
        lowered == name.lower() or lowered.endswith(name.lower())
        for name in fallback_names
        if name
    )


@lru_cache(maxsize=None)
def _infer_key_fields(
    record_type: type, fallback_names: Tuple[str, ...], strict: bool
) -> Tuple[FieldDescriptor, ...]:
    fields = describe_fields(record_type)

    marked = tuple(f for f in fields if f.is_key)
    if marked:
        return marked

    matched = tuple(f for f in fields if _matches_fallback(f.name, fallback_names))
    if not matched:
        raise NoKeyFoundError(record_type, fallback_names)

    if len(matched) > 1:
        names = tuple(f.name for f in matched)
        if strict:
            raise AmbiguousKeyError(record_type, names)
        logger.warning(
            f"Fallback key matching on {record_type.__name__} selected {len(names)} fields "
            f"({', '.join(names)}); treating them as one composite key"
        )
    return matched


def get_key_fields(
    record_type: type,
    fallback_names: Optional[Iterable[str]] = None,
    strict: bool = False,
) -> Tuple[FieldDescriptor, ...]:
    """
    Get the ordered key set of a record type.

    Args:
        record_type: Record class to inspect
        fallback_names: Names matched (exactly or as suffix) when no field is
            explicitly marked; defaults to ``("Id",)``
        strict: Reject fallback matches that select more than one field

    Returns:
        Key field descriptors in declaration order

    Raises:
        NoKeyFoundError: If no key field can be identified
        AmbiguousKeyError: If ``strict`` and fallback matching is ambiguous
    """
    if record_type is None:
        raise TypeError("record_type cannot be None")
    return _infer_key_fields(record_type, normalize_fallback_names(fallback_names), strict)


def get_single_key_name(
    record_type: type, fallback_names: Optional[Iterable[str]] = None
) -> Optional[str]:
    """Name of the first key field, or None when the type has no key"""
    try:
        return get_key_fields(record_type, fallback_names)[0].name
    except NoKeyFoundError:
        return None


def stringify_key_part(value: Any) -> str:
    return "" if value is None else str(value)


def create_key_selector(
    record_type: type,
    fallback_names: Optional[Iterable[str]] = None,
    strict: bool = False,
) -> KeySelector:
    """
    Build a function extracting the composite key value from a record.

    Key inference runs immediately so a type without keys fails here rather
    than on first use.
    """
    key_fields = get_key_fields(record_type, fallback_names, strict)
    names = tuple(f.name for f in key_fields)

    def select(record: Any) -> Tuple[str, ...]:
        if record is None:
            raise InvalidKeyError("Cannot select keys from None")
        return tuple(stringify_key_part(getattr(record, name, None)) for name in names)

    return select


@lru_cache(maxsize=None)
def _field_adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def coerce_key_values(
    key_fields: Sequence[FieldDescriptor], values: Sequence[Any]
) -> Tuple[Any, ...]:
    """
    Convert stringified key values back to each key field's declared type.

    Raises:
        InvalidKeyError: If a value cannot be converted
    """
    coerced = []
    for key_field, value in zip(key_fields, values):
        try:
            coerced.append(_field_adapter(key_field.annotation).validate_python(value))
        except ValidationError as e:
            raise InvalidKeyError(
                f"Key value {value!r} is not valid for field '{key_field.name}': {e}"
            ) from e
    return tuple(coerced)


def dump_key_values(
    key_fields: Sequence[FieldDescriptor], values: Sequence[Any]
) -> Tuple[Any, ...]:
    """Coerce key values and serialize them the way ``record_to_dict(mode="json")`` does"""
    coerced = coerce_key_values(key_fields, values)
    return tuple(
        _field_adapter(key_field.annotation).dump_python(value, mode="json")
        for key_field, value in zip(key_fields, coerced)
    )


__all__ = [
    "DEFAULT_FALLBACK_KEY_NAMES",
    "KeySelector",
    "normalize_fallback_names",
    "get_key_fields",
    "get_single_key_name",
    "stringify_key_part",
    "create_key_selector",
    "coerce_key_values",
    "dump_key_values",
]
