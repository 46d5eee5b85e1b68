"""Dynamically typed SQL values."""

from __future__ import annotations

import enum
import math
import re
import struct
from dataclasses import dataclass
from decimal import Decimal


class ValueKind(enum.Enum):
    """The kinds of data a :class:`Value` can hold."""

    NULL = "Null"
    BOOL = "Bool"
    I8 = "I8"
    I16 = "I16"
    I32 = "I32"
    I64 = "I64"
    U8 = "U8"
    U16 = "U16"
    U32 = "U32"
    U64 = "U64"
    F32 = "F32"
    F64 = "F64"
    STRING = "String"
    BYTES = "Bytes"
    ARRAY = "Array"
    MAP = "Map"


_INT_RANGES = {
    ValueKind.I8: (-(2**7), 2**7 - 1),
    ValueKind.I16: (-(2**15), 2**15 - 1),
    ValueKind.I32: (-(2**31), 2**31 - 1),
    ValueKind.I64: (-(2**63), 2**63 - 1),
    ValueKind.U8: (0, 2**8 - 1),
    ValueKind.U16: (0, 2**16 - 1),
    ValueKind.U32: (0, 2**32 - 1),
    ValueKind.U64: (0, 2**64 - 1),
}

_TYPE_NAMES = {
    ValueKind.NULL: "null",
    ValueKind.BOOL: "bool",
    ValueKind.I8: "i8",
    ValueKind.I16: "i16",
    ValueKind.I32: "i32",
    ValueKind.I64: "i64",
    ValueKind.U8: "u8",
    ValueKind.U16: "u16",
    ValueKind.U32: "u32",
    ValueKind.U64: "u64",
    ValueKind.F32: "f32",
    ValueKind.F64: "f64",
    ValueKind.STRING: "string",
    ValueKind.BYTES: "bytes",
    ValueKind.ARRAY: "array",
    ValueKind.MAP: "map",
}

_I64_MIN, _I64_MAX = _INT_RANGES[ValueKind.I64]
_INT_TEXT = re.compile(r"[+-]?[0-9]+")


def _round_f32(number: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", number))[0]
    except OverflowError:
        return math.copysign(math.inf, number)


def _shortest_f32_text(number: float) -> str:
    for digits in range(1, 10):
        text = f"{number:.{digits}g}"
        if _round_f32(float(text)) == number:
            return text
    return repr(number)


def _format_float(number: float, single: bool) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    text = _shortest_f32_text(number) if single else repr(number)
    plain = format(Decimal(text), "f")
    if "." in plain:
        plain = plain.rstrip("0").rstrip(".")
    return plain


def _wrap_i64(number: int) -> int:
    return (number + 2**63) % 2**64 - 2**63


def _saturate_i64(number: float) -> int:
    if math.isnan(number):
        return 0
    if number >= 2**63:
        return _I64_MAX
    if number <= -(2**63):
        return _I64_MIN
    return int(number)


def _parse_i64(text: str) -> int | None:
    if not _INT_TEXT.fullmatch(text):
        return None
    number = int(text)
    if _I64_MIN <= number <= _I64_MAX:
        return number
    return None


def _parse_f64(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class Value:
    """A single SQL value tagged with its kind."""

    kind: ValueKind
    data: object = None

    def __post_init__(self) -> None:
        kind, data = self.kind, self.data
        if kind is ValueKind.NULL:
            if data is not None:
                raise TypeError("a null value carries no data")
        elif kind is ValueKind.BOOL:
            if not isinstance(data, bool):
                raise TypeError(f"{kind.value} needs a bool, got {data!r}")
        elif kind in _INT_RANGES:
            if isinstance(data, bool) or not isinstance(data, int):
                raise TypeError(f"{kind.value} needs an int, got {data!r}")
            low, high = _INT_RANGES[kind]
            if not low <= data <= high:
                raise ValueError(f"{data} is out of range for {_TYPE_NAMES[kind]}")
        elif kind in (ValueKind.F32, ValueKind.F64):
            if isinstance(data, bool) or not isinstance(data, (int, float)):
                raise TypeError(f"{kind.value} needs a float, got {data!r}")
            number = float(data)
            if kind is ValueKind.F32:
                number = _round_f32(number)
            object.__setattr__(self, "data", number)
        elif kind is ValueKind.STRING:
            if not isinstance(data, str):
                raise TypeError(f"String needs a str, got {data!r}")
        elif kind is ValueKind.BYTES:
            if not isinstance(data, (bytes, bytearray, memoryview)):
                raise TypeError(f"Bytes needs bytes, got {data!r}")
            object.__setattr__(self, "data", bytes(data))
        elif kind is ValueKind.ARRAY:
            items = tuple(data or ())
            if not all(isinstance(item, Value) for item in items):
                raise TypeError("Array items must be Values")
            object.__setattr__(self, "data", items)
        elif kind is ValueKind.MAP:
            entries = dict(data or {})
            if not all(
                isinstance(key, str) and isinstance(item, Value)
                for key, item in entries.items()
            ):
                raise TypeError("Map entries must map str to Value")
            object.__setattr__(self, "data", entries)

    def as_bool(self) -> bool | None:
        """The value as a bool, if it is a bool or an i64."""
        if self.kind is ValueKind.BOOL:
            return self.data
        if self.kind is ValueKind.I64:
            return self.data != 0
        return None

    def as_i64(self) -> int | None:
        """The value as a signed 64-bit integer, where it converts."""
        if self.kind is ValueKind.U64:
            return _wrap_i64(self.data)
        if self.kind in _INT_RANGES:
            return self.data
        if self.kind is ValueKind.F64:
            return _saturate_i64(self.data)
        if self.kind is ValueKind.STRING:
            return _parse_i64(self.data)
        return None

    def as_f64(self) -> float | None:
        """The value as a float, where it converts."""
        if self.kind in (ValueKind.F32, ValueKind.F64):
            return self.data
        if self.kind is ValueKind.I64:
            return float(self.data)
        if self.kind is ValueKind.STRING:
            return _parse_f64(self.data)
        return None

    def as_str(self) -> str | None:
        """The text of a string value, or None."""
        return self.data if self.kind is ValueKind.STRING else None

    def as_string(self) -> str | None:
        """The value rendered as text, for strings, i64, f64 and bools."""
        if self.kind is ValueKind.STRING:
            return self.data
        if self.kind is ValueKind.I64:
            return str(self.data)
        if self.kind is ValueKind.F64:
            return _format_float(self.data, single=False)
        if self.kind is ValueKind.BOOL:
            return "true" if self.data else "false"
        return None

    def as_bytes(self) -> bytes | None:
        """The raw bytes of a bytes or string value."""
        if self.kind is ValueKind.BYTES:
            return self.data
        if self.kind is ValueKind.STRING:
            return self.data.encode("utf-8")
        return None

    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def type_name(self) -> str:
        return _TYPE_NAMES[self.kind]

    def __str__(self) -> str:
        kind, data = self.kind, self.data
        if kind is ValueKind.NULL:
            return "NULL"
        if kind is ValueKind.BOOL:
            return "true" if data else "false"
        if kind in _INT_RANGES:
            return str(data)
        if kind in (ValueKind.F32, ValueKind.F64):
            return _format_float(data, single=kind is ValueKind.F32)
        if kind is ValueKind.STRING:
            return "'" + data.replace("'", "''") + "'"
        if kind is ValueKind.BYTES:
            return f"X'{data.hex()}'"
        if kind is ValueKind.ARRAY:
            return "ARRAY[" + ", ".join(str(item) for item in data) + "]"
        return "MAP"

    def __repr__(self) -> str:
        if self.kind is ValueKind.NULL:
            return "Null"
        if self.kind is ValueKind.BOOL:
            return f"Bool({'true' if self.data else 'false'})"
        if self.kind is ValueKind.BYTES:
            return f"Bytes({list(self.data)})"
        if self.kind is ValueKind.ARRAY:
            return f"Array({list(self.data)!r})"
        return f"{self.kind.value}({self.data!r})"


def value_of(obj: object) -> Value:
    """Wrap a plain Python object in the matching :class:`Value`."""
    if isinstance(obj, Value):
        return obj
    if obj is None:
        return Value(ValueKind.NULL)
    if isinstance(obj, bool):
        return Value(ValueKind.BOOL, obj)
    if isinstance(obj, int):
        return Value(ValueKind.I64, obj)
    if isinstance(obj, float):
        return Value(ValueKind.F64, obj)
    if isinstance(obj, str):
        return Value(ValueKind.STRING, obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return Value(ValueKind.BYTES, bytes(obj))
    raise TypeError(f"cannot make a SQL value from {type(obj).__name__}")