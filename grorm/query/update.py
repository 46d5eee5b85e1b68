"""Builder for UPDATE statements."""

from __future__ import annotations

from ..types.value import Value, value_of


class UpdateBuilder:
    """Builds an UPDATE statement with ``?`` placeholders."""

    def __init__(self, table: str) -> None:
        self._table = table
        self._sets: list[tuple[str, Value]] = []
        self._conditions: list[tuple[str, str, Value]] = []

    def set(self, column: str, value: object) -> UpdateBuilder:
        self._sets.append((column, value_of(value)))
        return self

    def where_eq(self, column: str, value: object) -> UpdateBuilder:
        self._conditions.append((column, "=", value_of(value)))
        return self

    def where_ne(self, column: str, value: object) -> UpdateBuilder:
        self._conditions.append((column, "!=", value_of(value)))
        return self

    def build(self) -> tuple[str, list[Value]]:
        """Return the SQL text and the values bound to its placeholders."""
        sql = f"UPDATE {self._table}"
        params: list[Value] = []

        if self._sets:
            params.extend(value for _, value in self._sets)
            sql += " SET " + ", ".join(f"{col} = ?" for col, _ in self._sets)

        if self._conditions:
            params.extend(value for _, _, value in self._conditions)
            clauses = (f"{col} {op} ?" for col, op, _ in self._conditions)
            sql += " WHERE " + " AND ".join(clauses)

        return sql, params