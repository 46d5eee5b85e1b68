# grorm

A compact database toolkit in three layers:

- **Values and conversions** (`grorm.types`): a tagged `Value` type covering SQL
  scalar kinds, `to_sql` / `from_sql` for moving between Python objects and
  `Value`s, and an `Id` wrapper for integer row identifiers.
- **Query builders** (`grorm.query`): `SelectBuilder`, `InsertBuilder`,
  `UpdateBuilder` and `DeleteBuilder` produce SQL text with `?` placeholders
  together with the list of bound values.
- **Protocol clients** (`grorm.protocol`): small wire clients for PostgreSQL and
  MySQL, and `SqliteConnection`, a store that keeps each table as a
  pipe-separated text file next to a database file.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Values

```python
from grorm.types.value import Value, ValueKind, value_of
from grorm.types.conversions import SqlType, from_sql, to_sql

v = value_of("O'Brien")       # a String value
str(v)                        # "'O''Brien'"
value_of(42)                  # an I64 value; floats give F64, None gives Null
to_sql(7, SqlType.I32)        # an I32 value
from_sql(v, SqlType.STRING)   # "O'Brien"
from_sql(Value(ValueKind.NULL), SqlType.I64, nullable=True)  # None
```

`from_sql` raises `ConversionError` (a `ValueError`) when a value cannot be read
as the requested type. `Value` also offers `as_bool`, `as_i64`, `as_f64`,
`as_str`, `as_string`, `as_bytes`, `is_null` and `type_name`.

`grorm.types.id` provides `Id`, a signed 64-bit identifier where zero means
"not assigned yet", and `id_from_sql` to read one from a `Value`.

## Building queries

```python
from grorm.query.select import SelectBuilder

sql, params = (
    SelectBuilder("users")
    .columns(["id", "name"])
    .where_eq("age", 30)
    .order_by_desc("id")
    .limit(10)
    .build()
)
# sql    == "SELECT id, name FROM users WHERE age = ? ORDER BY id DESC LIMIT 10"
# params == [the I64 value 30]
```

Plain Python objects passed as values are wrapped with `value_of`. `where_in`,
`where_null` and `where_not_null` write their values into the SQL text instead
of binding them. Joins (`join`, `left_join`), `group_by` and `offset` are also
available.

```python
from grorm.query.insert import InsertBuilder
from grorm.query.update import UpdateBuilder
from grorm.query.delete import DeleteBuilder

InsertBuilder("users").columns(["name"]).values(["Alice"]).returning(["id"]).build()
# ("INSERT INTO users (name) VALUES (?) RETURNING id", [String('Alice')])
UpdateBuilder("users").set("age", 31).where_eq("id", 1).build()
DeleteBuilder("users").where_lt("age", 18).build()
```

## File-backed SQLite-style store

```python
from grorm.protocol.sqlite import SqliteConnection, SqliteRows

with SqliteConnection("app.db") as conn:
    conn.execute_query("CREATE TABLE users (id INTEGER, name TEXT)")
    conn.execute_query("INSERT INTO users (name) VALUES ('Alice')")
    result = conn.execute_query("SELECT * FROM users WHERE name = 'Alice'")
    # result.rows == [["1", "Alice"]]
    conn.count_rows("users")  # 1
```

Opening a path that does not exist writes a one-page file with an SQLite
header; an existing file must start with that header. The tables themselves
live beside it as `<stem>.<table>.data` and the CREATE statements in
`<stem>.schema`. A row inserted without an `id` column gets one numbered from 1.

The store understands a small subset of SQL: `CREATE TABLE`, `INSERT`,
`UPDATE ... SET`, `DELETE`, `SELECT` with `WHERE` conditions joined by `AND`
(`=`, `!=`, `<>`, `<`, `>`, `<=`, `>=`, `IN (...)`), `COUNT(...)`, and
`BEGIN` / `COMMIT` / `ROLLBACK`, which back up and restore the data files.
`execute_query` returns `SqliteRows` or `SqliteDone`.

## PostgreSQL and MySQL

```python
from grorm.protocol import mysql, pg

password = "password"

conn = pg.connect("localhost", 5432, "user", password, "appdb")
result = conn.execute_query("SELECT 1")          # PgRows, PgCommandComplete or PgEmpty
conn.prepare("one", "SELECT 1")
result = conn.execute_prepared("one", [])
conn.close()

conn = mysql.connect("localhost", 3306, "user", password, "appdb")
result = conn.execute_query("SELECT 1")          # MyRows or MyOk
conn.close()
```

The PostgreSQL client supports trust and MD5 authentication (`md5_password`
computes the response). Both connection classes can also be built over any
already open object with `sendall`, `recv` and `close`, then started with
`handshake`, and both work as context managers. Values in result rows are
returned as text, with SQL nulls as the string `"NULL"`.

Server errors, malformed statements and malformed packets are raised as
`grorm.protocol.errors.ProtocolError`, whose message starts with
`protocol error: `.

## What it does not do

- There is no model layer: no mapping of classes to tables, no schema
  generation, no transaction objects.
- There is no connection pool.
- The query builders only produce SQL text and parameters; nothing here runs a
  built statement with its parameters bound.
- The SQLite-style store is not a real SQLite database: it reads and writes its
  own text files, stores every value as text and compares values as strings.
- The MySQL client does not compute the `mysql_native_password` scramble; its
  login reply carries the first 20 bytes of the password itself. Neither client
  supports TLS.