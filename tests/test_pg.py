import socket
import struct
import threading

import pytest

from grorm.protocol.errors import ProtocolError
from grorm.protocol.pg import (
    PgColumnInfo,
    PgCommandComplete,
    PgConnection,
    PgEmpty,
    PgRows,
    connect,
    md5_password,
)


class FakeStream:
    def __init__(self, incoming=b"", chunk=None):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.chunk = chunk
        self.closed = False

    def recv(self, size):
        n = size if self.chunk is None else min(size, self.chunk)
        data = bytes(self.incoming[:n])
        del self.incoming[:n]
        return data

    def sendall(self, data):
        self.sent += data

    def close(self):
        self.closed = True


def i16(n):
    return struct.pack(">h", n)


def i32(n):
    return struct.pack(">i", n)


def msg(kind, body=b""):
    return kind + i32(len(body) + 4) + body


def row_description(columns):
    body = i16(len(columns))
    for name, oid, attr, dtype, size, mod, fmt in columns:
        body += name.encode() + b"\x00" + i32(oid) + i16(attr) + i32(dtype)
        body += i16(size) + i32(mod) + i16(fmt)
    return msg(b"T", body)


def data_row(values):
    body = i16(len(values))
    for v in values:
        body += i32(-1) if v is None else i32(len(v)) + v
    return msg(b"D", body)


READY = msg(b"Z", b"I")
AUTH_OK = msg(b"R", i32(0))


def make_conn(incoming, chunk=None):
    password = "password"
    stream = FakeStream(incoming, chunk)
    return PgConnection(stream, "alice", password), stream


def test_md5_password_shape_and_determinism():
    password = "password"
    first = md5_password("alice", password, b"\x01\x02\x03\x04")
    assert first.startswith("md5")
    assert len(first) == 35
    assert all(c in "0123456789abcdef" for c in first[3:])
    assert first == md5_password("alice", password, b"\x01\x02\x03\x04")
    assert first != md5_password("alice", password, b"\x04\x03\x02\x01")
    assert first != md5_password("bob", password, b"\x01\x02\x03\x04")


def test_startup_message_bytes():
    conn, stream = make_conn(AUTH_OK + READY)
    conn.handshake("db")
    body = b"\x00\x03\x00\x00" + b"user\x00alice\x00database\x00db\x00\x00"
    assert bytes(stream.sent) == i32(len(body) + 4) + body
    assert not stream.incoming


def test_md5_authentication_sends_password_message():
    salt = b"\x0a\x0b\x0c\x0d"
    incoming = (
        msg(b"R", i32(5) + salt)
        + AUTH_OK
        + msg(b"S", b"client_encoding\x00UTF8\x00")
        + msg(b"K", i32(1234) + i32(5678))
        + READY
    )
    conn, stream = make_conn(incoming, chunk=1)
    conn.handshake("db")
    password = "password"
    response = md5_password("alice", password, salt).encode() + b"\x00"
    assert bytes(stream.sent).endswith(b"p" + i32(len(response) + 4) + response)
    assert not stream.incoming


def test_authentication_error_is_raised():
    conn, _ = make_conn(msg(b"E", b"SFATAL\x00Mbad login\x00\x00"))
    with pytest.raises(ProtocolError) as info:
        conn.handshake("db")
    assert "PostgreSQL error" in str(info.value)
    assert "bad login" in str(info.value)


def test_error_before_ready_is_raised():
    conn, _ = make_conn(AUTH_OK + msg(b"E", b"Mno database\x00"))
    with pytest.raises(ProtocolError, match="no database"):
        conn.handshake("db")


def test_execute_query_returns_rows():
    incoming = (
        row_description(
            [("id", 16384, 1, 23, 4, -1, 0), ("name", 16384, 2, 25, -1, -1, 0)]
        )
        + data_row([b"1", None])
        + data_row([b"2", b"bob"])
        + msg(b"C", b"SELECT 2\x00")
        + READY
    )
    conn, stream = make_conn(incoming)
    result = conn.execute_query("SELECT 1")
    assert bytes(stream.sent) == msg(b"Q", b"SELECT 1\x00")
    assert isinstance(result, PgRows)
    assert result.rows == [["1", "NULL"], ["2", "bob"]]
    assert result.columns[0] == PgColumnInfo("id", 16384, 1, 23, 4, -1, 0)
    assert [c.name for c in result.columns] == ["id", "name"]


def test_execute_query_command_complete():
    conn, _ = make_conn(msg(b"C", b"INSERT 0 1\x00") + READY)
    assert conn.execute_query("INSERT INTO t VALUES (1)") == PgCommandComplete("INSERT 0 1")


def test_execute_query_empty():
    conn, _ = make_conn(msg(b"I") + READY)
    assert conn.execute_query("") == PgEmpty()


def test_notice_is_skipped():
    conn, stream = make_conn(
        msg(b"N", b"SNOTICE\x00Mhello\x00\x00") + msg(b"C", b"DELETE 3\x00") + READY
    )
    assert conn.execute_query("DELETE FROM t") == PgCommandComplete("DELETE 3")
    assert not stream.incoming


def test_execute_query_error():
    conn, _ = make_conn(msg(b"E", b"Msyntax error\x00"))
    with pytest.raises(ProtocolError, match="syntax error"):
        conn.execute_query("SELEC")


def test_prepare_sends_parse_and_describe():
    conn, stream = make_conn(msg(b"1") + READY)
    conn.prepare("s1", "SELECT 1")
    parse = msg(b"P", b"s1\x00SELECT 1\x00" + i16(0))
    describe = b"DS\x00" + i32(6) + b"\x00"
    assert bytes(stream.sent) == parse + describe
    assert not stream.incoming


def test_execute_prepared_messages_and_result():
    incoming = (
        msg(b"2")
        + row_description([("n", 0, 0, 23, 4, -1, 0)])
        + data_row([b"42"])
        + msg(b"C", b"SELECT 1\x00")
        + READY
    )
    conn, stream = make_conn(incoming)
    result = conn.execute_prepared("s1", ["42", "", "NULL"])
    bind_content = (
        b"\x00s1\x00" + i16(0) + i16(3) + i32(2) + b"42" + i32(-1) + i32(-1) + i16(0)
    )
    expected = (
        msg(b"B", bind_content)
        + msg(b"E", b"\x00" + i32(0))
        + msg(b"S")
    )
    assert bytes(stream.sent) == expected
    assert result.rows == [["42"]]
    assert result.columns[0].name == "n"


def test_truncated_stream_raises_connection_error():
    conn, _ = make_conn(b"Z\x00\x00")
    with pytest.raises(ConnectionError):
        conn.execute_query("SELECT 1")


def test_invalid_message_length():
    conn, _ = make_conn(b"C" + i32(2))
    with pytest.raises(ProtocolError, match="invalid message length"):
        conn.execute_query("SELECT 1")


def test_close_closes_stream():
    conn, stream = make_conn(b"")
    with conn:
        pass
    assert stream.closed is True


def _recv_exact(sock, size):
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def test_connect_over_tcp():
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]
    received = []
    queries = []

    def serve():
        server_side, _ = listener.accept()
        with server_side:
            header = _recv_exact(server_side, 4)
            length = struct.unpack(">i", header)[0]
            received.append(header + _recv_exact(server_side, length - 4))
            server_side.sendall(AUTH_OK + READY)
            kind = _recv_exact(server_side, 1)
            size = _recv_exact(server_side, 4)
            if len(size) == 4:
                body = _recv_exact(server_side, struct.unpack(">i", size)[0] - 4)
                queries.append(kind + size + body)
                server_side.sendall(msg(b"C", b"SELECT 1\x00") + READY)
            _recv_exact(server_side, 1)

    thread = threading.Thread(target=serve)
    thread.start()
    try:
        password = "password"
        conn = connect("127.0.0.1", port, "alice", password, "db")
        try:
            result = conn.execute_query("SELECT 1")
        finally:
            conn.close()
    finally:
        thread.join(timeout=5)
        listener.close()
    assert result == PgCommandComplete("SELECT 1")
    assert queries == [msg(b"Q", b"SELECT 1\x00")]
    assert len(received) == 1
    assert b"user\x00alice\x00database\x00db\x00\x00" in received[0]
    assert received[0][4:8] == b"\x00\x03\x00\x00"