"""Builder for SELECT statements."""

from __future__ import annotations

from collections.abc import Iterable

from ..types.value import Value, ValueKind, value_of

_INLINE_OPERATORS = frozenset({"IN", "IS", "IS NOT"})


def _check_count(number: int, what: str) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or number < 0:
        raise ValueError(f"{what} must be a non-negative integer, got {number!r}")
    return number


class SelectBuilder:
    """Builds a SELECT statement with ``?`` placeholders."""

    def __init__(self, table: str) -> None:
        self._table = table
        self._columns: list[str] = ["*"]
        self._conditions: list[tuple[str, str, Value]] = []
        self._order_by: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._joins: list[str] = []
        self._group_by: list[str] = []

    def _where(self, column: str, operator: str, value: object) -> SelectBuilder:
        self._conditions.append((column, operator, value_of(value)))
        return self

    def columns(self, cols: Iterable[str]) -> SelectBuilder:
        self._columns = list(cols)
        return self

    def where_eq(self, column: str, value: object) -> SelectBuilder:
        return self._where(column, "=", value)

    def where_ne(self, column: str, value: object) -> SelectBuilder:
        return self._where(column, "!=", value)

    def where_gt(self, column: str, value: object) -> SelectBuilder:
        return self._where(column, ">", value)

    def where_lt(self, column: str, value: object) -> SelectBuilder:
        return self._where(column, "<", value)

    def where_like(self, column: str, value: object) -> SelectBuilder:
        return self._where(column, "LIKE", value)

    def where_in(self, column: str, values: Iterable[object]) -> SelectBuilder:
        listed = ", ".join(str(value_of(v)) for v in values)
        return self._where(column, "IN", Value(ValueKind.STRING, f"({listed})"))

    def where_null(self, column: str) -> SelectBuilder:
        return self._where(column, "IS", Value(ValueKind.STRING, "NULL"))

    def where_not_null(self, column: str) -> SelectBuilder:
        return self._where(column, "IS NOT", Value(ValueKind.STRING, "NULL"))

    def order_by_asc(self, column: str) -> SelectBuilder:
        self._order_by.append((column, True))
        return self

    def order_by_desc(self, column: str) -> SelectBuilder:
        self._order_by.append((column, False))
        return self

    def limit(self, limit: int) -> SelectBuilder:
        self._limit = _check_count(limit, "limit")
        return self

    def offset(self, offset: int) -> SelectBuilder:
        self._offset = _check_count(offset, "offset")
        return self

    def join(self, table: str, on: str) -> SelectBuilder:
        self._joins.append(f"JOIN {table} ON {on}")
        return self

    def left_join(self, table: str, on: str) -> SelectBuilder:
        self._joins.append(f"LEFT JOIN {table} ON {on}")
        return self

    def group_by(self, columns: Iterable[str]) -> SelectBuilder:
        self._group_by = list(columns)
        return self

    def build(self) -> tuple[str, list[Value]]:
        """Return the SQL text and the values bound to its placeholders."""
        parts = [f"SELECT {', '.join(self._columns)} FROM {self._table}"]
        params: list[Value] = []
        parts.extend(self._joins)

        if self._conditions:
            clauses = []
            for column, operator, value in self._conditions:
                if operator in _INLINE_OPERATORS:
                    clauses.append(f"{column} {operator} {value}")
                else:
                    params.append(value)
                    clauses.append(f"{column} {operator} ?")
            parts.append("WHERE " + " AND ".join(clauses))

        if self._group_by:
            parts.append("GROUP BY " + ", ".join(self._group_by))

        if self._order_by:
            orders = (f"{col} {'ASC' if asc else 'DESC'}" for col, asc in self._order_by)
            parts.append("ORDER BY " + ", ".join(orders))

        if self._limit is not None:
            parts.append(f"LIMIT {self._limit}")
        if self._offset is not None:
            parts.append(f"OFFSET {self._offset}")

        return " ".join(parts), params