"""Builder for INSERT statements."""

from __future__ import annotations

from collections.abc import Iterable

from ..types.value import Value, value_of


class InsertBuilder:
    """Builds an INSERT statement with ``?`` placeholders."""

    def __init__(self, table: str) -> None:
        self._table = table
        self._columns: list[str] = []
        self._rows: list[list[Value]] = []
        self._returning: list[str] = []

    def columns(self, cols: Iterable[str]) -> InsertBuilder:
        self._columns = list(cols)
        return self

    def values(self, vals: Iterable[object]) -> InsertBuilder:
        """Append one row of values."""
        self._rows.append([value_of(v) for v in vals])
        return self

    def returning(self, cols: Iterable[str]) -> InsertBuilder:
        self._returning = list(cols)
        return self

    def build(self) -> tuple[str, list[Value]]:
        """Return the SQL text and the values bound to its placeholders."""
        sql = f"INSERT INTO {self._table}"
        params: list[Value] = []

        if self._columns:
            sql += f" ({', '.join(self._columns)})"

        if self._rows:
            groups = []
            for row in self._rows:
                params.extend(row)
                groups.append("(" + ", ".join("?" for _ in row) + ")")
            sql += " VALUES " + ", ".join(groups)

        if self._returning:
            sql += " RETURNING " + ", ".join(self._returning)

        return sql, params