"""Conversions between Python objects and SQL values."""

from __future__ import annotations

import enum
import math
import struct

from .value import Value, ValueKind, value_of


class SqlType(enum.Enum):
    """Target types for reading values out of result rows."""

    BOOL = "bool"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    F32 = "f32"
    F64 = "f64"
    STRING = "string"
    BYTES = "bytes"


class ConversionError(ValueError):
    """A value could not be read as the requested type."""

    def __init__(self, value: Value, target: str) -> None:
        super().__init__(f"cannot convert {value!r} to {target}")
        self.value = value
        self.target = target


_INT_BITS = {SqlType.I8: 8, SqlType.I16: 16, SqlType.I32: 32, SqlType.I64: 64}
_INT_TYPES = frozenset(_INT_BITS)
_FLOAT_TYPES = frozenset({SqlType.F32, SqlType.F64})


def _wrap(number: int, bits: int) -> int:
    half = 1 << (bits - 1)
    return (number + half) % (1 << bits) - half


def _round_f32(number: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", number))[0]
    except OverflowError:
        return math.copysign(math.inf, number)


def _extract(value: Value, sql_type: SqlType) -> object:
    if sql_type is SqlType.BOOL:
        return value.as_bool()
    if sql_type in _INT_BITS:
        number = value.as_i64()
        return None if number is None else _wrap(number, _INT_BITS[sql_type])
    if sql_type is SqlType.F32:
        number = value.as_f64()
        return None if number is None else _round_f32(number)
    if sql_type is SqlType.F64:
        return value.as_f64()
    if sql_type is SqlType.STRING:
        return value.as_string()
    return value.as_bytes()


def from_sql(value: Value, sql_type: SqlType, nullable: bool = False) -> object:
    """Read ``value`` as ``sql_type``; a null gives None when ``nullable``."""
    if nullable and value.is_null():
        return None
    result = _extract(value, sql_type)
    if result is None:
        raise ConversionError(value, sql_type.value)
    return result


def _check_type(obj: object, sql_type: SqlType) -> None:
    if sql_type is SqlType.BOOL:
        ok = isinstance(obj, bool)
    elif sql_type in _INT_TYPES:
        ok = isinstance(obj, int) and not isinstance(obj, bool)
    elif sql_type in _FLOAT_TYPES:
        ok = isinstance(obj, (int, float)) and not isinstance(obj, bool)
    elif sql_type is SqlType.STRING:
        ok = isinstance(obj, str)
    else:
        ok = isinstance(obj, (bytes, bytearray, memoryview))
    if not ok:
        raise TypeError(f"cannot store {type(obj).__name__} as {sql_type.value}")


def to_sql(obj: object, sql_type: SqlType | None = None) -> Value:
    """Turn ``obj`` into a Value, as ``sql_type`` when one is given."""
    if obj is None:
        return Value(ValueKind.NULL)
    if sql_type is None:
        return value_of(obj)
    _check_type(obj, sql_type)
    return Value(ValueKind[sql_type.name], obj)