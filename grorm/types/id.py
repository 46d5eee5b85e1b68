"""Integer row identifiers."""

from __future__ import annotations

from dataclasses import dataclass

from .conversions import ConversionError
from .value import Value, ValueKind

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


@dataclass(frozen=True, order=True)
class Id:
    """A signed 64-bit row identifier; zero means not yet assigned."""

    value: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"an Id needs an int, got {self.value!r}")
        if not _I64_MIN <= self.value <= _I64_MAX:
            raise ValueError(f"{self.value} is out of range for an Id")

    def is_zero(self) -> bool:
        return self.value == 0

    def to_sql(self) -> Value:
        return Value(ValueKind.I64, self.value)

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


def id_from_sql(value: Value) -> Id:
    """Read an :class:`Id` from a SQL value."""
    number = value.as_i64()
    if number is None:
        raise ConversionError(value, "Id")
    return Id(number)