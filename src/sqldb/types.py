"""
Tagged value model shared by binding, decoding and the ORM layer.

This module provides:
- ValueType / SQLType: value tags and declared column types
- Value: the tagged union moved in and out of the engine
- coerce: the explicit (source, target) conversion table
- Row: a decoded result tuple keyed by column name
"""
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Self

import numpy as np
import pandas as pd
from sqldb.exceptions import TypeMismatchError

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class ValueType(Enum):
    """Value tags. FLOAT32 is a read target only; no stored Value carries it."""
    NULL = 'null'
    INT32 = 'int32'
    INT64 = 'int64'
    FLOAT32 = 'float32'
    FLOAT64 = 'float64'
    TEXT = 'text'
    BLOB = 'blob'


class SQLType(Enum):
    """Declared column types."""
    INTEGER = 'INTEGER'
    TEXT = 'TEXT'
    REAL = 'REAL'
    BLOB = 'BLOB'
    NULL = 'NULL'

    @property
    def ddl(self) -> str:
        return self.value


NARROW_INT_TYPES = (np.int8, np.int16, np.int32, np.uint8, np.uint16)


def _is_missing(obj: Any) -> bool:
    """pandas NA/NaT count as NULL."""
    return obj is pd.NA or obj is pd.NaT


@dataclass(frozen=True, slots=True)
class Value:
    """Tagged union of NULL, INT32, INT64, FLOAT64, TEXT and BLOB.
    """
    type: ValueType
    payload: Any = None

    def __post_init__(self):
        if self.type is ValueType.FLOAT32:
            raise TypeMismatchError(None, ValueType.FLOAT32)

    @classmethod
    def null(cls) -> Self:
        return cls(ValueType.NULL)

    @classmethod
    def of(cls, obj: Any) -> Self:
        """Infer the tag of a Python object.

        Narrow numpy integers become INT32, numpy.float32 is widened to
        FLOAT64, buffers are copied into immutable bytes. Integers outside
        the signed 64-bit range raise TypeMismatchError.
        """
        if isinstance(obj, Value):
            return obj
        if obj is None or _is_missing(obj):
            return cls(ValueType.NULL)
        if isinstance(obj, NARROW_INT_TYPES):
            return cls(ValueType.INT32, int(obj))
        if isinstance(obj, (bool, int, np.integer)):
            number = int(obj)
            if not INT64_MIN <= number <= INT64_MAX:
                raise TypeMismatchError(None, ValueType.INT64)
            return cls(ValueType.INT64, number)
        if isinstance(obj, (float, np.floating)):
            return cls(ValueType.FLOAT64, float(obj))
        if isinstance(obj, str):
            return cls(ValueType.TEXT, obj)
        if isinstance(obj, (bytes, bytearray, memoryview)):
            return cls(ValueType.BLOB, bytes(obj))
        raise TypeMismatchError(None, type(obj).__name__)

    @property
    def is_null(self) -> bool:
        return self.type is ValueType.NULL

    def widened(self) -> Self:
        """Return the value at its canonical stored width."""
        if self.type is ValueType.INT32:
            return Value(ValueType.INT64, self.payload)
        return self

    def __repr__(self) -> str:
        if self.type is ValueType.BLOB:
            return f'Value(BLOB, {len(self.payload)} bytes)'
        return f'Value({self.type.name}, {self.payload!r})'


def bind_value(value: Value) -> Any:
    """Map a tagged value to the DB-API parameter for its bind primitive.
    """
    match value.type:
        case ValueType.NULL:
            return None
        case ValueType.INT32 | ValueType.INT64:
            return int(value.payload)
        case ValueType.FLOAT64:
            return float(value.payload)
        case ValueType.TEXT:
            return str(value.payload)
        case ValueType.BLOB:
            return bytes(value.payload)
    raise TypeMismatchError(None, value.type)


def decode_value(obj: Any) -> Value:
    """Tag a column value read from the engine."""
    if obj is None:
        return Value(ValueType.NULL)
    if isinstance(obj, int):
        return Value(ValueType.INT64, obj)
    if isinstance(obj, float):
        return Value(ValueType.FLOAT64, obj)
    if isinstance(obj, str):
        return Value(ValueType.TEXT, obj)
    if isinstance(obj, (bytes, memoryview)):
        return Value(ValueType.BLOB, bytes(obj))
    raise TypeMismatchError(None, type(obj).__name__)


def _narrow_int(payload: int, column: str | None) -> np.int32:
    if not INT32_MIN <= payload <= INT32_MAX:
        raise TypeMismatchError(column, ValueType.INT32)
    return np.int32(payload)


_IDENTITY: dict[ValueType, Callable[[Any], Any]] = {
    ValueType.INT32: np.int32,
    ValueType.INT64: int,
    ValueType.FLOAT64: float,
    ValueType.TEXT: str,
    ValueType.BLOB: bytes,
}

# (source, target) -> converter(payload, column)
_CONVERSIONS: dict[tuple[ValueType, ValueType], Callable[[Any, str | None], Any]] = {
    (ValueType.INT64, ValueType.INT32): _narrow_int,
    (ValueType.INT32, ValueType.INT64): lambda v, _: int(v),
    (ValueType.FLOAT64, ValueType.FLOAT32): lambda v, _: np.float32(v),
}


def coerce(value: Value, target: ValueType, column: str | None = None) -> Any:
    """Read a stored value as the requested type.

    Matching tags return the payload unchanged; only the integer width and
    float width conversions are supported. NULL reads as None for any target.

    Raises
        TypeMismatchError: naming the column and the requested type
    """
    if value.type is ValueType.NULL:
        return None
    if value.type is target:
        return _IDENTITY[target](value.payload)
    converter = _CONVERSIONS.get((value.type, target))
    if converter is None:
        raise TypeMismatchError(column, target)
    return converter(value.payload, column)


class Row(Mapping):
    """A result tuple: column name -> Value.

    Indexing yields the plain payload; `value()` yields the tagged Value and
    `get_as()` coerces to a requested type.
    """

    __slots__ = ('_values',)

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Value] = {
            name: Value.of(v) for name, v in (values or {}).items()
        }

    def __getitem__(self, column: str) -> Any:
        return self._values[column].payload

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def value(self, column: str) -> Value:
        return self._values[column]

    def get_as(self, column: str, target: ValueType) -> Any:
        return coerce(self._values[column], target, column)

    def __repr__(self) -> str:
        return f'Row({dict(self)!r})'
