"""A small file-backed SQLite-style store that keeps each table in a text file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import BinaryIO, Union

from .errors import ProtocolError
from .sqlite_sql import (
    extract_columns_from_insert,
    extract_create_table_name,
    extract_select_columns,
    extract_table_name_from_delete,
    extract_table_name_from_insert,
    extract_table_name_from_select,
    extract_table_name_from_update,
    extract_values_from_insert,
    parse_set_clause,
    parse_where_clause,
)

SQLITE_HEADER = b"SQLite format 3\x00"
PAGE_SIZE = 4096

_DDL_PREFIXES = ("CREATE TABLE", "CREATE INDEX", "CREATE VIEW", "CREATE TRIGGER")
_DML_PREFIXES = ("INSERT", "UPDATE", "DELETE", "DROP", "ALTER")
_QUERY_PREFIXES = ("SELECT", "PRAGMA", "EXPLAIN")


@dataclass(frozen=True)
class SqliteColumnInfo:
    """Name and declared type of a result column."""

    name: str
    data_type: str


@dataclass
class SqliteRows:
    """Rows returned by a query, with their column descriptions."""

    rows: list[list[str]] = field(default_factory=list)
    columns: list[SqliteColumnInfo] = field(default_factory=list)


@dataclass(frozen=True)
class SqliteDone:
    """A statement that returned no rows, with the number of rows it touched."""

    count: int


SqliteResult = Union[SqliteRows, SqliteDone]


def _lines(text: str) -> list[str]:
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)


class SqliteConnection:
    """A connection to a database file whose tables live in sibling text files."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self.page_size = PAGE_SIZE
        self.page_count = 0
        self._file: BinaryIO | None = None
        self._tx_backups: dict[str, str] = {}
        if self.path.exists():
            self._open_existing()
        else:
            self._create_new()

    def _open_existing(self) -> None:
        handle = open(self.path, "r+b")
        try:
            header = handle.read(16)
            if header != SQLITE_HEADER:
                raise ProtocolError("Not a valid SQLite database file")
            handle.seek(16)
            page_size = int.from_bytes(handle.read(2).ljust(2, b"\x00"), "big")
            self.page_size = page_size or PAGE_SIZE
            self.page_count = os.fstat(handle.fileno()).st_size // self.page_size
        except BaseException:
            handle.close()
            raise
        self._file = handle

    def _create_new(self) -> None:
        handle = open(self.path, "w+b")
        page = bytearray(self.page_size)
        page[:16] = SQLITE_HEADER
        page[16:18] = self.page_size.to_bytes(2, "big")
        page[18] = 1
        page[19] = 1
        handle.write(page)
        handle.flush()
        self.page_count = 1
        self._file = handle

    @property
    def _dir(self) -> Path:
        return self.path.parent

    def _data_path(self, table_name: str) -> Path:
        return self._dir / f"{self.path.stem}.{table_name}.data"

    def _schema_path(self) -> Path:
        return self._dir / f"{self.path.stem}.schema"

    def execute_query(self, sql: str) -> SqliteResult:
        """Run one statement and return its rows or its affected-row count."""
        sql_upper = sql.strip().upper()

        if sql_upper.startswith(_DDL_PREFIXES):
            return self._execute_ddl(sql)
        if sql_upper.startswith(_DML_PREFIXES):
            return self._execute_dml(sql)
        if sql_upper.startswith(_QUERY_PREFIXES):
            return self._execute_select(sql)
        if sql_upper.startswith("BEGIN"):
            self._begin_transaction()
        elif sql_upper.startswith("COMMIT"):
            self._tx_backups.clear()
        elif sql_upper.startswith("ROLLBACK"):
            self._rollback_transaction()
        return SqliteDone(0)

    def _execute_ddl(self, sql: str) -> SqliteDone:
        if sql.strip().upper().startswith("CREATE TABLE"):
            self._store_schema(extract_create_table_name(sql), sql)
        return SqliteDone(0)

    def _execute_dml(self, sql: str) -> SqliteDone:
        sql_upper = sql.strip().upper()
        if sql_upper.startswith("INSERT"):
            table_name = extract_table_name_from_insert(sql)
            columns = extract_columns_from_insert(sql)
            values = extract_values_from_insert(sql)
            self._store_row(table_name, columns, values)
            return SqliteDone(1)
        if sql_upper.startswith("DELETE"):
            return SqliteDone(self._delete_rows(extract_table_name_from_delete(sql), sql))
        if sql_upper.startswith("UPDATE"):
            return SqliteDone(self._update_rows(extract_table_name_from_update(sql), sql))
        return SqliteDone(0)

    def _execute_select(self, sql: str) -> SqliteRows:
        sql_upper = sql.strip().upper()
        if not sql_upper.startswith("SELECT"):
            return SqliteRows()

        if "FROM" not in sql_upper:
            col_name = sql[6:].strip().rstrip(";")
            return SqliteRows([["0"]], [SqliteColumnInfo(col_name, "TEXT")])

        if "COUNT(" in sql_upper:
            count = self.count_rows(extract_table_name_from_select(sql))
            return SqliteRows([[str(count)]], [SqliteColumnInfo("COUNT(*)", "INTEGER")])

        table_name = extract_table_name_from_select(sql)
        columns = extract_select_columns(sql)
        rows = self._read_rows(table_name, columns, sql)
        if columns == ["*"]:
            infos = self._read_header_columns(table_name)
        else:
            infos = [SqliteColumnInfo(name, "TEXT") for name in columns]
        return SqliteRows(rows, infos)

    def _begin_transaction(self) -> None:
        prefix = self.path.stem
        try:
            entries = list(self._dir.iterdir())
        except OSError:
            return
        for entry in entries:
            name = entry.name
            if not (name.startswith(prefix) and name.endswith(".data")):
                continue
            try:
                self._tx_backups[name] = _read_text(entry)
            except (OSError, UnicodeDecodeError):
                continue

    def _rollback_transaction(self) -> None:
        for name, content in self._tx_backups.items():
            _write_text(self._dir / name, content)
        self._tx_backups.clear()

    def _read_header_columns(self, table_name: str) -> list[SqliteColumnInfo]:
        data_path = self._data_path(table_name)
        if not data_path.exists():
            return []
        lines = _lines(_read_text(data_path))
        if not lines:
            return []
        return [SqliteColumnInfo(name.strip(), "TEXT") for name in lines[0].split("|")]

    def _store_schema(self, table_name: str, sql: str) -> None:
        schema_path = self._schema_path()
        content = _read_text(schema_path) if schema_path.exists() else ""
        if f"[{table_name}]" not in content:
            content += f"[{table_name}]\n{sql}\n\n"
            _write_text(schema_path, content)

        data_path = self._data_path(table_name)
        if not data_path.exists():
            _write_text(data_path, "")

    def _store_row(self, table_name: str, columns: list[str], values: list[str]) -> None:
        data_path = self._data_path(table_name)
        content = _read_text(data_path) if data_path.exists() else ""

        if any(col.lower() == "id" for col in columns):
            final_columns = list(columns)
            final_values = list(values)
        else:
            row_count = len(_lines(content))
            final_columns = ["id", *columns]
            final_values = [str(row_count), *values]

        header = "|".join(final_columns)
        if not content.startswith(header):
            content = header + "\n"

        for i, col in enumerate(final_columns):
            if col.lower() == "id" and i < len(final_values) and final_values[i] == "0":
                final_values[i] = str(len(_lines(content)))

        content += "|".join(final_values) + "\n"
        _write_text(data_path, content)

    def _load_table(self, table_name: str) -> tuple[Path, list[str]] | None:
        data_path = self._data_path(table_name)
        if not data_path.exists():
            return None
        lines = _lines(_read_text(data_path))
        if not lines:
            return None
        return data_path, lines

    def _read_rows(self, table_name: str, columns: list[str], sql: str) -> list[list[str]]:
        loaded = self._load_table(table_name)
        if loaded is None:
            return []
        _, lines = loaded

        header = lines[0].split("|")
        if columns == ["*"]:
            indices = list(range(len(header)))
        else:
            indices = []
            for col in columns:
                wanted = col.strip()
                found = next((i for i, h in enumerate(header) if h.strip() == wanted), None)
                if found is not None:
                    indices.append(found)

        filters = parse_where_clause(sql, header)
        rows: list[list[str]] = []
        for line in lines[1:]:
            if not line:
                continue
            values = line.split("|")
            if not all(f.matches(values) for f in filters):
                continue
            row = [values[i] if i < len(values) else "NULL" for i in indices]
            if row:
                rows.append(row)
        return rows

    def count_rows(self, table_name: str) -> int:
        """Number of data rows stored for ``table_name``."""
        data_path = self._data_path(table_name)
        if not data_path.exists():
            return 0
        return max(len(_lines(_read_text(data_path))) - 1, 0)

    def _delete_rows(self, table_name: str, sql: str) -> int:
        loaded = self._load_table(table_name)
        if loaded is None:
            return 0
        data_path, lines = loaded

        header = lines[0].split("|")
        filters = parse_where_clause(sql, header)
        kept = [lines[0]]
        deleted = 0
        for line in lines[1:]:
            if not line:
                continue
            values = line.split("|")
            if all(f.matches(values) for f in filters):
                deleted += 1
            else:
                kept.append(line)

        _write_text(data_path, "".join(line + "\n" for line in kept))
        return deleted

    def _update_rows(self, table_name: str, sql: str) -> int:
        loaded = self._load_table(table_name)
        if loaded is None:
            return 0
        data_path, lines = loaded

        header = lines[0].split("|")
        filters = parse_where_clause(sql, header)
        assignments = parse_set_clause(sql, header)
        output = [lines[0]]
        updated = 0
        for line in lines[1:]:
            if not line:
                continue
            values = line.split("|")
            if all(f.matches(values) for f in filters):
                for col_idx, new_value in assignments:
                    if col_idx < len(values):
                        values[col_idx] = new_value
                output.append("|".join(values))
                updated += 1
            else:
                output.append(line)

        _write_text(data_path, "".join(line + "\n" for line in output))
        return updated

    def close(self) -> None:
        """Release the database file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> SqliteConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()