"""
Record Field Metadata

Structural introspection over record types. A record is any pydantic model
(SQLModel table models included) or standard-library dataclass; its public
fields are described once per type and cached for the process lifetime.
"""

import dataclasses
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType, UnionType
from typing import (
    Annotated, Any, Dict, Mapping, NewType, Tuple, Union,
    get_args, get_origin, get_type_hints
)

from pydantic import BaseModel, Field, TypeAdapter

from .errors import UnsupportedRecordTypeError

# 64-bit integer column marker (plain ``int`` maps to a 32-bit INTEGER column)
Int64 = NewType("Int64", int)


class _KeyMarker:
    """Annotated metadata marking a field as part of the record identity"""

    def __repr__(self) -> str:
        return "IsKey"


IsKey = _KeyMarker()


def KeyField(default: Any = ..., **kwargs: Any) -> Any:
    """
    Declare a pydantic field that is part of the record's key set.

    Accepts the same arguments as ``pydantic.Field``. Explicitly marked key
    fields always win over fallback name matching.
    """
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra["is_key"] = True
    return Field(default, json_schema_extra=extra, **kwargs)


@dataclass(frozen=True)
class FieldDescriptor:
    """Name, declared type and identity information for one record field"""
    name: str
    annotation: Any
    nullable: bool = False
    is_key: bool = False
    metadata: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, hash=False
    )


def unwrap_annotation(annotation: Any) -> Tuple[Any, bool]:
    """
    Strip ``Annotated`` and ``Optional`` wrappers from a declared type.

    Returns:
        The inner type and whether ``None`` was part of the declaration
    """
    nullable = False
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
        elif origin is Union or origin is UnionType:
            args = get_args(annotation)
            members = tuple(arg for arg in args if arg is not type(None))
            if len(members) < len(args):
                nullable = True
            if len(members) == 1:
                annotation = members[0]
            else:
                return Union[members], nullable
        else:
            return annotation, nullable


def _has_key_marker(annotation: Any) -> bool:
    """Check Annotated metadata (possibly nested in Optional) for IsKey"""
    if get_origin(annotation) is Annotated:
        if any(item is IsKey for item in get_args(annotation)[1:]):
            return True
        return _has_key_marker(get_args(annotation)[0])
    if get_origin(annotation) in (Union, UnionType):
        return any(_has_key_marker(arg) for arg in get_args(annotation))
    return False


def is_record_type(record_type: Any) -> bool:
    """Check whether a type can be described as a record"""
    if not isinstance(record_type, type):
        return False
    return issubclass(record_type, BaseModel) or dataclasses.is_dataclass(record_type)


def _describe_model(record_type: type) -> Tuple[FieldDescriptor, ...]:
    descriptors = []
    for name, info in record_type.model_fields.items():
        if name.startswith("_"):
            continue
        annotation, nullable = unwrap_annotation(info.annotation)
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        is_key = (
            bool(extra.get("is_key") or extra.get("primary_key"))
            # SQLModel keeps primary_key on its own FieldInfo subclass
            or getattr(info, "primary_key", None) is True
            or any(item is IsKey for item in info.metadata)
        )
        metadata = {k: v for k, v in extra.items() if k not in ("is_key", "primary_key")}
        descriptors.append(FieldDescriptor(
            name=name,
            annotation=annotation,
            nullable=nullable,
            is_key=is_key,
            metadata=MappingProxyType(metadata),
        ))
    return tuple(descriptors)


def _describe_dataclass(record_type: type) -> Tuple[FieldDescriptor, ...]:
    hints = get_type_hints(record_type, include_extras=True)
    descriptors = []
    for dc_field in dataclasses.fields(record_type):
        if dc_field.name.startswith("_"):
            continue
        declared = hints.get(dc_field.name, dc_field.type)
        annotation, nullable = unwrap_annotation(declared)
        is_key = bool(dc_field.metadata.get("is_key")) or _has_key_marker(declared)
        metadata = {k: v for k, v in dc_field.metadata.items() if k != "is_key"}
        descriptors.append(FieldDescriptor(
            name=dc_field.name,
            annotation=annotation,
            nullable=nullable,
            is_key=is_key,
            metadata=MappingProxyType(metadata),
        ))
    return tuple(descriptors)


@lru_cache(maxsize=None)
def describe_fields(record_type: type) -> Tuple[FieldDescriptor, ...]:
    """
    Describe the public fields of a record type in declaration order.

    Args:
        record_type: A pydantic model class or dataclass

    Returns:
        Tuple of field descriptors

    Raises:
        UnsupportedRecordTypeError: If the type is not a model or dataclass
    """
    if not is_record_type(record_type):
        raise UnsupportedRecordTypeError(record_type)
    if issubclass(record_type, BaseModel):
        return _describe_model(record_type)
    return _describe_dataclass(record_type)


@lru_cache(maxsize=None)
def _adapter(record_type: type) -> TypeAdapter:
    return TypeAdapter(record_type)


def record_to_dict(record: Any, mode: str = "python") -> Dict[str, Any]:
    """Dump a record's field values; ``mode="json"`` yields JSON-safe values"""
    if isinstance(record, BaseModel):
        return record.model_dump(mode=mode)
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return _adapter(type(record)).dump_python(record, mode=mode)
    raise UnsupportedRecordTypeError(type(record))


def build_record(record_type: type, data: Mapping[str, Any]) -> Any:
    """Validate a mapping of field values into a record instance"""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        return record_type.model_validate(dict(data))
    if is_record_type(record_type):
        return _adapter(record_type).validate_python(dict(data))
    raise UnsupportedRecordTypeError(record_type)


__all__ = [
    "Int64",
    "IsKey",
    "KeyField",
    "FieldDescriptor",
    "unwrap_annotation",
    "is_record_type",
    "describe_fields",
    "record_to_dict",
    "build_record",
]
