"""Parsing of the small SQL dialect understood by the file-backed SQLite store."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from .errors import ProtocolError

_NAME_QUOTES = "\"`'"
_VALUE_QUOTES = "\"'"
_OPERATORS = ("!=", "<>", ">=", "<=", "=", ">", "<")


@dataclass(frozen=True)
class SimpleFilter:
    """A comparison of one column against a literal value."""

    col_idx: int
    operator: str
    value: str

    def matches(self, values: Sequence[str]) -> bool:
        """Whether a row's values satisfy the comparison."""
        if self.col_idx >= len(values):
            return False
        actual = values[self.col_idx]
        op = self.operator
        if op == "=":
            return actual == self.value
        if op in ("!=", "<>"):
            return actual != self.value
        if op == ">":
            return actual > self.value
        if op == "<":
            return actual < self.value
        if op == ">=":
            return actual >= self.value
        if op == "<=":
            return actual <= self.value
        return False


@dataclass(frozen=True)
class InFilter:
    """A membership test of one column against a list of values."""

    col_idx: int
    values: tuple[str, ...]

    def matches(self, values: Sequence[str]) -> bool:
        """Whether a row's value for the column is among the listed values."""
        if self.col_idx >= len(values):
            return False
        return values[self.col_idx] in self.values


WhereFilter = Union[SimpleFilter, InFilter]


def _column_index(header: Sequence[str], name: str) -> int | None:
    try:
        return list(header).index(name)
    except ValueError:
        return None


def _first_token(text: str, separators: str) -> str:
    pattern = r"[\s" + re.escape(separators) + "]" if separators else r"\s"
    return re.split(pattern, text, maxsplit=1)[0]


def _find_first(text: str, *needles: str) -> int:
    """Position of the first needle that occurs, tried in order, else len(text)."""
    for needle in needles:
        pos = text.find(needle)
        if pos >= 0:
            return pos
    return len(text)


def parse_where_clause(sql: str, header: Sequence[str]) -> list[WhereFilter]:
    """Parse the WHERE conditions of ``sql`` against the column ``header``."""
    sql_upper = sql.upper()
    where_pos = sql_upper.find("WHERE")
    if where_pos < 0:
        return []

    rest = sql[where_pos + 5:].strip()
    rest_upper = sql_upper[where_pos + 5:].strip()
    cond_end = _find_first(rest_upper, "ORDER", "LIMIT")
    where_part = rest[:cond_end].strip()

    filters: list[WhereFilter] = []
    for part in where_part.split("AND"):
        part = part.strip()
        if not part:
            continue
        condition = parse_condition(part, header)
        if condition is not None:
            filters.append(condition)
    return filters


def parse_condition(cond: str, header: Sequence[str]) -> WhereFilter | None:
    """Parse one condition such as ``age > 3`` or ``name IN ('a', 'b')``."""
    cond = cond.strip()
    cond_upper = cond.upper()

    in_pos = cond_upper.find("IN")
    if in_pos >= 0:
        col_name = cond[:in_pos].strip().strip(_NAME_QUOTES)
        after_in = cond[in_pos + 2:].strip()
        paren_start = after_in.find("(")
        if paren_start < 0:
            return None
        paren_end = after_in.rfind(")")
        if paren_end < 0:
            return None
        values_str = after_in[paren_start + 1:paren_end]
        values = tuple(v.strip().strip(_VALUE_QUOTES) for v in values_str.split(","))
        col_idx = _column_index(header, col_name)
        if col_idx is not None:
            return InFilter(col_idx, values)

    for op in _OPERATORS:
        pos = cond.find(op)
        if pos < 0:
            continue
        col_name = cond[:pos].strip().strip(_NAME_QUOTES)
        value = cond[pos + len(op):].strip().strip(_VALUE_QUOTES)
        col_idx = _column_index(header, col_name)
        if col_idx is not None:
            return SimpleFilter(col_idx, op, value)
    return None


def parse_set_clause(sql: str, header: Sequence[str]) -> list[tuple[int, str]]:
    """Parse the SET assignments of an UPDATE into (column index, value) pairs."""
    set_pos = sql.upper().find("SET")
    if set_pos < 0:
        return []

    after_set = sql[set_pos + 3:].strip()
    set_end = _find_first(after_set, "WHERE", "ORDER", "LIMIT")
    set_part = after_set[:set_end].strip()

    pairs: list[tuple[int, str]] = []
    for part in set_part.split(","):
        part = part.strip()
        eq_pos = part.find("=")
        if eq_pos < 0:
            continue
        col_name = part[:eq_pos].strip().strip(_NAME_QUOTES)
        value = part[eq_pos + 1:].strip().strip(_VALUE_QUOTES)
        col_idx = _column_index(header, col_name)
        if col_idx is not None:
            pairs.append((col_idx, value))
    return pairs


def _table_after(sql: str, keyword: str, offset: int, separators: str) -> str:
    pos = sql.upper().find(keyword)
    if pos < 0:
        raise ProtocolError("Cannot extract table name")
    rest = sql[pos + offset:].strip()
    return _first_token(rest, separators).strip(_NAME_QUOTES)


def extract_create_table_name(sql: str) -> str:
    """The table named by a CREATE TABLE statement."""
    pos = sql.upper().find("CREATE TABLE")
    if pos < 0:
        raise ProtocolError("Cannot extract table name")
    rest = sql[pos + 13:].strip()
    if rest.startswith("IF NOT EXISTS"):
        rest = rest[14:].strip()
    return _first_token(rest, "(").strip(_NAME_QUOTES)


def extract_table_name_from_insert(sql: str) -> str:
    """The table named after INTO."""
    return _table_after(sql, "INTO", 4, "(")


def extract_table_name_from_delete(sql: str) -> str:
    """The table named after FROM in a DELETE."""
    return _table_after(sql, "FROM", 4, ";")


def extract_table_name_from_update(sql: str) -> str:
    """The table named after UPDATE."""
    return _table_after(sql, "UPDATE", 6, "")


def extract_table_name_from_select(sql: str) -> str:
    """The table named after FROM in a SELECT."""
    return _table_after(sql, "FROM", 4, ";,")


def extract_columns_from_insert(sql: str) -> list[str]:
    """The column list in the first parentheses of an INSERT."""
    start = sql.find("(")
    if start < 0:
        return []
    end = sql[start:].find(")")
    if end < 0:
        return []
    cols_str = sql[start + 1:start + end]
    return [c.strip().strip(_NAME_QUOTES) for c in cols_str.split(",")]


def extract_values_from_insert(sql: str) -> list[str]:
    """The values in the parentheses after VALUES."""
    pos = sql.upper().find("VALUES")
    if pos < 0:
        return []
    rest = sql[pos + 6:].strip()
    start = rest.find("(")
    if start < 0:
        return []
    end = rest[start:].find(")")
    if end < 0:
        return []
    vals_str = rest[start + 1:start + end]
    return [v.strip().strip("'") for v in vals_str.split(",")]


def _select_column_name(column: str) -> str:
    column = column.strip()
    as_pos = column.upper().rfind(" AS ")
    if as_pos >= 0:
        return column[as_pos + 4:].strip()
    space_pos = column.rfind(" ")
    if space_pos >= 0:
        after = column[space_pos + 1:].strip()
        if all(ch.isalnum() or ch == "_" for ch in after):
            return after
    return column.split(".")[-1]


def extract_select_columns(sql: str) -> list[str]:
    """The output column names of a SELECT, or ``["*"]``."""
    sql_upper = sql.upper()
    select_pos = sql_upper.find("SELECT")
    from_pos = sql_upper.find("FROM")
    if select_pos < 0 or from_pos < 0:
        return ["*"]
    cols_str = sql[select_pos + 6:from_pos].strip()
    if cols_str == "*":
        return ["*"]
    return [_select_column_name(c) for c in cols_str.split(",")]