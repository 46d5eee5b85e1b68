"""Client side of the PostgreSQL frontend/backend wire protocol."""

from __future__ import annotations

import hashlib
import socket
import struct
from collections.abc import Sequence
from dataclasses import dataclass, field
from types import TracebackType
from typing import Optional, Protocol, Union

from .errors import ProtocolError

PG_PROTOCOL_VERSION = 196608

_I16_MAX = 2**15 - 1


class _Stream(Protocol):
    def sendall(self, data: bytes) -> object: ...

    def recv(self, size: int) -> bytes: ...

    def close(self) -> object: ...


@dataclass(frozen=True)
class PgColumnInfo:
    """Description of one result column, as sent in a RowDescription message."""

    name: str
    table_oid: int
    column_attr: int
    data_type: int
    type_size: int
    type_modifier: int
    format_code: int


@dataclass
class PgRows:
    """Rows returned by a query, as text, with their column descriptions."""

    rows: list[list[str]] = field(default_factory=list)
    columns: list[PgColumnInfo] = field(default_factory=list)


@dataclass(frozen=True)
class PgCommandComplete:
    """A statement that returned no rows, with the server's command tag."""

    tag: str


@dataclass(frozen=True)
class PgEmpty:
    """A statement that produced neither rows nor a command tag."""


PgResult = Union[PgRows, PgCommandComplete, PgEmpty]


def _i16(number: int) -> bytes:
    return struct.pack(">h", number)


def _i32(number: int) -> bytes:
    return struct.pack(">i", number)


def _cstring(text: str) -> bytes:
    return text.encode("utf-8") + b"\x00"


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def md5_password(username: str, password: str, salt: bytes) -> str:
    """The response to an MD5 authentication request for ``salt``."""
    inner = hashlib.md5(password.encode("utf-8") + username.encode("utf-8")).hexdigest()
    outer = hashlib.md5(inner.encode("ascii") + bytes(salt)).hexdigest()
    return f"md5{outer}"


class PgConnection:
    """A session with a PostgreSQL server over an already open stream."""

    def __init__(self, stream: _Stream, username: str, password: str) -> None:
        self._stream = stream
        self.username = username
        self._password = password

    def handshake(self, database: str) -> None:
        """Send the startup message, authenticate and wait until the server is ready."""
        self._send_startup_message(database)
        self._read_authentication()
        self._read_until_ready()

    def _send_startup_message(self, database: str) -> None:
        body = (
            _i32(PG_PROTOCOL_VERSION)
            + b"user\x00"
            + _cstring(self.username)
            + b"database\x00"
            + _cstring(database)
            + b"\x00"
        )
        self._stream.sendall(_i32(len(body) + 4) + body)

    def _read(self, size: int) -> bytes:
        data = bytearray()
        while len(data) < size:
            chunk = self._stream.recv(size - len(data))
            if not chunk:
                raise ConnectionError("connection closed by server")
            data += chunk
        return bytes(data)

    def _read_byte(self) -> bytes:
        return self._read(1)

    def _read_i16(self) -> int:
        return struct.unpack(">h", self._read(2))[0]

    def _read_i32(self) -> int:
        return struct.unpack(">i", self._read(4))[0]

    def _read_header(self) -> tuple[bytes, int]:
        """Read a message type and return it with the length of the body."""
        msg_type = self._read_byte()
        length = self._read_i32()
        if length < 4:
            raise ProtocolError(f"invalid message length {length}")
        return msg_type, length - 4

    def _server_error(self, body_len: int) -> ProtocolError:
        return ProtocolError(f"PostgreSQL error: {_text(self._read(body_len))}")

    def _send_message(self, msg_type: bytes, content: bytes) -> None:
        self._stream.sendall(msg_type + _i32(len(content) + 4) + content)

    def _read_authentication(self) -> None:
        while True:
            msg_type, body_len = self._read_header()
            if msg_type == b"R":
                auth_type = self._read_i32()
                if auth_type == 0:
                    return
                if auth_type == 5:
                    salt = self._read(4)
                    response = md5_password(self.username, self._password, salt)
                    self._send_message(b"p", _cstring(response))
            elif msg_type == b"K":
                self._read_i32()
                self._read_i32()
            elif msg_type == b"E":
                raise self._server_error(body_len)
            else:
                self._read(body_len)

    def _read_until_ready(self) -> None:
        while True:
            msg_type, body_len = self._read_header()
            if msg_type == b"Z":
                self._read_byte()
                return
            if msg_type == b"E":
                raise self._server_error(body_len)
            self._read(body_len)

    def execute_query(self, sql: str) -> PgResult:
        """Run ``sql`` with the simple query protocol."""
        self._send_message(b"Q", _cstring(sql))
        return self._read_query_result()

    def _read_cstring(self) -> str:
        data = bytearray()
        while (byte := self._read_byte()) != b"\x00":
            data += byte
        return _text(bytes(data))

    def _read_column(self) -> PgColumnInfo:
        name = self._read_cstring()
        return PgColumnInfo(
            name=name,
            table_oid=self._read_i32(),
            column_attr=self._read_i16(),
            data_type=self._read_i32(),
            type_size=self._read_i16(),
            type_modifier=self._read_i32(),
            format_code=self._read_i16(),
        )

    def _read_data_row(self) -> list[str]:
        row = []
        for _ in range(self._read_i16()):
            length = self._read_i32()
            if length == -1:
                row.append("NULL")
            elif length < 0:
                raise ProtocolError(f"invalid value length {length}")
            else:
                row.append(_text(self._read(length)))
        return row

    def _read_command_tag(self, body_len: int) -> str:
        data = bytearray()
        for _ in range(body_len):
            byte = self._read_byte()
            if byte == b"\x00":
                break
            data += byte
        return _text(bytes(data))

    def _read_query_result(self) -> PgResult:
        columns: list[PgColumnInfo] = []
        rows: list[list[str]] = []
        command_tag = ""

        while True:
            msg_type, body_len = self._read_header()
            if msg_type == b"T":
                columns = [self._read_column() for _ in range(self._read_i16())]
            elif msg_type == b"D":
                rows.append(self._read_data_row())
            elif msg_type == b"C":
                command_tag = self._read_command_tag(body_len)
            elif msg_type == b"Z":
                self._read_byte()
                break
            elif msg_type == b"E":
                raise self._server_error(body_len)
            else:
                self._read(body_len)

        if columns:
            return PgRows(rows, columns)
        if command_tag:
            return PgCommandComplete(command_tag)
        return PgEmpty()

    def prepare(self, name: str, sql: str) -> None:
        """Ask the server to prepare ``sql`` as the statement ``name``."""
        self._send_message(b"P", _cstring(name) + _cstring(sql) + _i16(0))
        self._stream.sendall(b"DS\x00" + _i32(6) + b"\x00")
        self._read_until_ready()

    def execute_prepared(
        self, name: str, params: Sequence[Optional[str]]
    ) -> PgResult:
        """Bind text ``params`` to the prepared statement ``name`` and run it.

        An empty string, ``"NULL"`` or None is sent as a SQL null.
        """
        if len(params) > _I16_MAX:
            raise ProtocolError(f"too many parameters: {len(params)}")
        content = bytearray(b"\x00")
        content += _cstring(name)
        content += _i16(0)
        content += _i16(len(params))
        for param in params:
            if param is None or param == "" or param == "NULL":
                content += _i32(-1)
            else:
                encoded = param.encode("utf-8")
                content += _i32(len(encoded)) + encoded
        content += _i16(0)
        self._send_message(b"B", bytes(content))
        self._send_message(b"E", b"\x00" + _i32(0))
        self._send_message(b"S", b"")
        return self._read_query_result()

    def close(self) -> None:
        """Close the underlying stream."""
        self._stream.close()

    def __enter__(self) -> PgConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def connect(
    host: str, port: int, username: str, password: str, database: str
) -> PgConnection:
    """Open a TCP connection to a server and complete the startup handshake."""
    sock = socket.create_connection((host, port))
    conn = PgConnection(sock, username, password)
    try:
        conn.handshake(database)
    except BaseException:
        sock.close()
        raise
    return conn