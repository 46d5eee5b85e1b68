"""Builder for DELETE statements."""

from __future__ import annotations

from ..types.value import Value, value_of


class DeleteBuilder:
    """Builds a DELETE statement with ``?`` placeholders."""

    def __init__(self, table: str) -> None:
        self._table = table
        self._conditions: list[tuple[str, str, Value]] = []

    def _where(self, column: str, operator: str, value: object) -> DeleteBuilder:
        self._conditions.append((column, operator, value_of(value)))
        return self

    def where_eq(self, column: str, value: object) -> DeleteBuilder:
        return self._where(column, "=", value)

    def where_ne(self, column: str, value: object) -> DeleteBuilder:
        return self._where(column, "!=", value)

    def where_gt(self, column: str, value: object) -> DeleteBuilder:
        return self._where(column, ">", value)

    def where_lt(self, column: str, value: object) -> DeleteBuilder:
        return self._where(column, "<", value)

    def build(self) -> tuple[str, list[Value]]:
        """Return the SQL text and the values bound to its placeholders."""
        sql = f"DELETE FROM {self._table}"
        params = [value for _, _, value in self._conditions]
        if self._conditions:
            clauses = (f"{col} {op} ?" for col, op, _ in self._conditions)
            sql += " WHERE " + " AND ".join(clauses)
        return sql, params