"""Client side of the MySQL text protocol."""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass, field
from types import TracebackType
from typing import Protocol, Union

from .errors import ProtocolError

CLIENT_CAPABILITIES = 0x0285A2FF
AUTH_PLUGIN_NAME = b"mysql_native_password\x00"
COM_QUERY = 0x03

_HANDSHAKE_MIN_LEN = 36
_AUTH_DATA_LEN = 20
_NULL_MARKER = 251
_EOF_HEADER = 0xFE
_ERR_HEADER = 0xFF
_OK_HEADER = 0x00

_RESPONSE_HEADER = struct.pack("<IIII", CLIENT_CAPABILITIES, 0x21, 0, 0x21) + bytes(19 * 4)


class _Stream(Protocol):
    def sendall(self, data: bytes) -> object: ...

    def recv(self, size: int) -> bytes: ...

    def close(self) -> object: ...


@dataclass(frozen=True)
class MyColumnInfo:
    """Description of one result column."""

    name: str
    data_type: int
    flags: int
    decimals: int


@dataclass
class MyRows:
    """Rows returned by a query, as text, with their column descriptions."""

    rows: list[list[str]] = field(default_factory=list)
    columns: list[MyColumnInfo] = field(default_factory=list)


@dataclass(frozen=True)
class MyOk:
    """A statement that returned no rows."""

    affected_rows: int
    last_insert_id: int | None


MyResult = Union[MyRows, MyOk]


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _server_error(payload: bytes) -> ProtocolError:
    message = payload[3:].decode("latin-1")
    return ProtocolError(f"MySQL error: {message}")


def _wrap_i64(number: int) -> int:
    return (number + 2**63) % 2**64 - 2**63


class _Cursor:
    """Sequential reader over one packet payload."""

    def __init__(self, data: bytes, pos: int = 0) -> None:
        self._data = data
        self.pos = pos

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self._data):
            raise ProtocolError("packet is shorter than its contents")
        chunk = self._data[self.pos:end]
        self.pos = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def uint(self, size: int) -> int:
        return int.from_bytes(self.take(size), "little")

    def lenenc(self) -> int:
        return self.lenenc_from(self.u8())

    def lenenc_from(self, first: int) -> int:
        if first == 0xFB:
            return 0
        if first == 0xFC:
            return self.uint(2)
        if first == 0xFD:
            return self.uint(3)
        if first == 0xFE:
            return self.uint(8)
        return first


def _auth_response(password: str) -> bytes:
    if not password:
        return b"\x00"
    return b"\x14" + password.encode("utf-8")[:_AUTH_DATA_LEN].ljust(_AUTH_DATA_LEN, b"\x00")


def _parse_column(payload: bytes) -> MyColumnInfo:
    start = payload.find(b"c")
    cursor = _Cursor(payload, (len(payload) if start < 0 else start) + 1)
    for _ in range(4):  # catalog, schema, table, org_table
        cursor.take(cursor.u8())
    name = _text(cursor.take(cursor.u8()))
    cursor.take(cursor.u8())  # org_name
    cursor.take(1)
    cursor.uint(2)  # character set
    cursor.uint(4)  # column length
    data_type = cursor.u8()
    flags = cursor.uint(2)
    decimals = cursor.u8()
    return MyColumnInfo(name, data_type, flags, decimals)


def _parse_row(payload: bytes, column_count: int) -> list[str]:
    row = []
    pos = 0
    for _ in range(column_count):
        if pos >= len(payload):
            row.append("NULL")
            continue
        length = payload[pos]
        pos += 1
        if length >= _NULL_MARKER:
            row.append("NULL")
            continue
        if pos + length > len(payload):
            raise ProtocolError("row value runs past the end of its packet")
        row.append(_text(payload[pos:pos + length]))
        pos += length
    return row


class MyConnection:
    """A session with a MySQL server over an already open stream."""

    def __init__(self, stream: _Stream) -> None:
        self._stream = stream
        self.sequence_id = 0
        self.server_version = ""
        self.thread_id = 0

    def handshake(self, username: str, password: str, database: str) -> None:
        """Read the server greeting, log in and wait for the verdict."""
        self._read_handshake()
        self._send_handshake_response(username, password, database)
        self._read_auth_result()

    def _read(self, size: int) -> bytes:
        data = bytearray()
        while len(data) < size:
            chunk = self._stream.recv(size - len(data))
            if not chunk:
                raise ConnectionError("connection closed by server")
            data += chunk
        return bytes(data)

    def _read_packet(self) -> tuple[int, bytes]:
        header = self._read(4)
        length = int.from_bytes(header[:3], "little")
        return header[3], self._read(length)

    def _send_packet(self, seq: int, payload: bytes) -> None:
        if len(payload) >= 1 << 24:
            raise ProtocolError(f"packet too large: {len(payload)} bytes")
        self._stream.sendall(len(payload).to_bytes(3, "little") + bytes([seq]) + payload)

    def _read_handshake(self) -> None:
        seq, payload = self._read_packet()
        self.sequence_id = (seq + 1) % 256
        if len(payload) < _HANDSHAKE_MIN_LEN:
            raise ProtocolError(f"handshake packet too short: {len(payload)} bytes")
        cursor = _Cursor(payload)
        cursor.u8()  # protocol version
        end = payload.find(b"\x00", cursor.pos)
        if end < 0:
            raise ProtocolError("server version is not terminated")
        self.server_version = payload[cursor.pos:end].decode("latin-1")
        cursor.pos = end + 1
        self.thread_id = cursor.uint(4)

    def _send_handshake_response(self, username: str, password: str, database: str) -> None:
        auth = _auth_response(password)
        payload = (
            _RESPONSE_HEADER
            + username.encode("utf-8")
            + b"\x00"
            + bytes([len(auth)])
            + auth
            + database.encode("utf-8")
            + b"\x00"
            + AUTH_PLUGIN_NAME
        )
        self._send_packet(1, payload)

    def _read_auth_result(self) -> None:
        while True:
            _, payload = self._read_packet()
            self.sequence_id = 2
            if not payload:
                raise ProtocolError("empty authentication reply")
            if payload[0] == _OK_HEADER:
                return
            if payload[0] == _ERR_HEADER:
                raise _server_error(payload)

    def execute_query(self, sql: str) -> MyResult:
        """Run ``sql`` and return its rows or its OK summary."""
        self.sequence_id = 0
        self._send_packet(0, bytes([COM_QUERY]) + sql.encode("utf-8"))

        _, payload = self._read_packet()
        self.sequence_id = 1
        if not payload:
            raise ProtocolError("empty query reply")
        cursor = _Cursor(payload)
        first = cursor.u8()

        if first == _OK_HEADER:
            affected_rows = cursor.lenenc()
            last_insert_id = cursor.lenenc()
            cursor.uint(2)  # status flags
            cursor.uint(2)  # warnings
            return MyOk(affected_rows, _wrap_i64(last_insert_id))
        if first == _ERR_HEADER:
            raise _server_error(payload)

        column_count = cursor.lenenc_from(first)
        columns = [_parse_column(self._read_packet()[1]) for _ in range(column_count)]
        self._read_packet()  # end of column definitions

        rows = []
        while True:
            _, row_payload = self._read_packet()
            if len(row_payload) < 9 and row_payload[:1] == bytes([_EOF_HEADER]):
                break
            rows.append(_parse_row(row_payload, len(columns)))
        return MyRows(rows, columns)

    def close(self) -> None:
        """Close the underlying stream."""
        self._stream.close()

    def __enter__(self) -> MyConnection:
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
) -> MyConnection:
    """Open a TCP connection to a server and log in."""
    sock = socket.create_connection((host, port))
    conn = MyConnection(sock)
    try:
        conn.handshake(username, password, database)
    except BaseException:
        sock.close()
        raise
    return conn