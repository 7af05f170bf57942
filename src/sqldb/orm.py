"""
Declarative mapping between Python classes and table rows.

Each mapped class is registered once, before first use, with its table name
and an ordered list of (attribute, column) pairs:

    @mapped('users', {'id': 'id', 'username': 'username', 'score': 'score'})
    @dataclass
    class User:
        id: int = 0
        username: str = ''
        score: float = 0.0

Field value types are read from the type annotations unless given
explicitly. Mapped classes must be constructible with no arguments, since
columns missing from a row leave the attribute at its default.
"""
import dataclasses
import inspect
import logging
import threading
import types
import typing
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import numpy as np
from sqldb.exceptions import MappingError, MappingNotFoundError
from sqldb.types import Row, Value, ValueType, coerce

logger = logging.getLogger(__name__)

T = TypeVar('T')

ANNOTATION_TYPES: dict[Any, ValueType] = {
    int: ValueType.INT64,
    float: ValueType.FLOAT64,
    str: ValueType.TEXT,
    bytes: ValueType.BLOB,
    np.int32: ValueType.INT32,
    np.int64: ValueType.INT64,
    np.float32: ValueType.FLOAT32,
    np.float64: ValueType.FLOAT64,
}


@dataclass(frozen=True)
class FieldMapping:
    """One mapped attribute and the column it is stored in."""
    attribute: str
    column: str
    type: ValueType


@dataclass(frozen=True)
class MappingDescriptor:
    """Table name and ordered field mappings for one class."""
    cls: type
    table: str
    fields: tuple[FieldMapping, ...]

    @property
    def columns(self) -> list[str]:
        return [f.column for f in self.fields]


_registry: dict[type, MappingDescriptor] = {}
_registry_lock = threading.RLock()


def _annotation_value_type(annotation: Any) -> ValueType | None:
    """Resolve `int`, `np.int32`, `str | None`, `Optional[float]` and so on."""
    if annotation in ANNOTATION_TYPES:
        return ANNOTATION_TYPES[annotation]
    if typing.get_origin(annotation) in {typing.Union, types.UnionType}:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return _annotation_value_type(args[0])
    return None


def _default_constructible(cls: type) -> bool:
    if dataclasses.is_dataclass(cls):
        return all(
            f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
            for f in dataclasses.fields(cls) if f.init
            )
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return True
    return all(
        p.default is not inspect.Parameter.empty
        or p.kind in {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}
        for p in signature.parameters.values()
        )


def _normalize_fields(cls: type, fields: Any) -> list[tuple]:
    if fields is None:
        if not dataclasses.is_dataclass(cls):
            raise MappingError(f'{cls.__name__} is not a dataclass; fields must be given')
        return [(f.name, f.name) for f in dataclasses.fields(cls)]
    if isinstance(fields, Mapping):
        return list(fields.items())
    return [(f.attribute, f.column, f.type) if isinstance(f, FieldMapping) else tuple(f)
            for f in fields]


def register(cls: type, table: str,
             fields: Mapping[str, str] | Iterable[tuple | FieldMapping] | None = None) -> MappingDescriptor:
    """Register the mapping for `cls`. Each class may be registered once.

    Args:
        cls: the mapped class
        table: table the class is stored in
        fields: {attribute: column}, or (attribute, column[, ValueType]) tuples,
            or FieldMapping objects; None maps every dataclass field to a
            same-named column

    Raises
        MappingError: on duplicate registration, duplicate columns, an
            attribute whose value type cannot be determined, or a class that
            cannot be constructed without arguments
    """
    if not _default_constructible(cls):
        raise MappingError(f'{cls.__name__} must be constructible without arguments')

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError):
        hints = getattr(cls, '__annotations__', {})

    mappings = []
    for entry in _normalize_fields(cls, fields):
        attribute, column, *rest = entry
        value_type = rest[0] if rest else _annotation_value_type(hints.get(attribute))
        if value_type is None:
            raise MappingError(f'Cannot determine value type of {cls.__name__}.{attribute}')
        mappings.append(FieldMapping(attribute, column, ValueType(value_type)))

    columns = [m.column for m in mappings]
    if len(set(columns)) != len(columns):
        raise MappingError(f'Duplicate column in mapping for {cls.__name__}: {columns}')

    descriptor = MappingDescriptor(cls, table, tuple(mappings))
    with _registry_lock:
        if cls in _registry:
            raise MappingError(f'{cls.__name__} is already mapped to {_registry[cls].table!r}')
        _registry[cls] = descriptor
    logger.debug(f'Registered mapping {cls.__name__} -> {table}: {columns}')
    return descriptor


def mapped(table: str, fields: Any = None) -> Callable[[type[T]], type[T]]:
    """Class decorator form of `register`."""
    def decorator(cls: type[T]) -> type[T]:
        register(cls, table, fields)
        return cls
    return decorator


def get_mapping(cls: type) -> MappingDescriptor:
    """Look up the registered mapping.

    Raises
        MappingNotFoundError: if `cls` was never registered
    """
    try:
        return _registry[cls]
    except KeyError:
        raise MappingNotFoundError(f'No mapping registered for {cls.__name__}') from None


def is_mapped(cls: type) -> bool:
    return cls in _registry


def unregister(cls: type) -> None:
    with _registry_lock:
        _registry.pop(cls, None)


def clear_registry() -> None:
    with _registry_lock:
        _registry.clear()


def struct_to_row(instance: Any) -> dict[str, Value]:
    """Exactly the registered columns, widened to their stored width.
    """
    descriptor = get_mapping(type(instance))
    return {f.column: Value.of(getattr(instance, f.attribute)).widened()
            for f in descriptor.fields}


def _tagged(row: Mapping[str, Any], column: str) -> Value:
    if isinstance(row, Row):
        return row.value(column)
    return Value.of(row[column])


def row_to_struct(cls: type[T], row: Mapping[str, Any]) -> T:
    """Build a `cls` from a row.

    Registered columns present in the row are coerced into their attribute;
    absent columns leave the attribute at its default.
    """
    descriptor = get_mapping(cls)
    updates = {f.attribute: coerce(_tagged(row, f.column), f.type, f.column)
               for f in descriptor.fields if f.column in row}
    instance = cls()
    if dataclasses.is_dataclass(cls):
        init_fields = {f.name for f in dataclasses.fields(cls) if f.init}
        instance = dataclasses.replace(
            instance, **{k: v for k, v in updates.items() if k in init_fields})
        updates = {k: v for k, v in updates.items() if k not in init_fields}
    for attribute, value in updates.items():
        setattr(instance, attribute, value)
    return instance
