import struct

import pytest

from grorm.protocol.errors import ProtocolError
from grorm.protocol.mysql import MyColumnInfo, MyConnection, MyOk, MyRows


class FakeStream:
    def __init__(self, incoming: bytes) -> None:
        self._incoming = bytearray(incoming)
        self.sent = bytearray()
        self.closed = False

    def recv(self, size: int) -> bytes:
        chunk = bytes(self._incoming[:size])
        del self._incoming[:size]
        return chunk

    def sendall(self, data: bytes) -> None:
        self.sent += data

    def close(self) -> None:
        self.closed = True


def packet(seq: int, payload: bytes) -> bytes:
    return len(payload).to_bytes(3, "little") + bytes([seq]) + payload


def greeting() -> bytes:
    payload = (
        b"\x0a"
        + b"8.0.33\x00"
        + struct.pack("<I", 7)
        + b"abcdefgh"
        + b"\xff\xf7"
        + b"\x21"
        + b"\x02\x00"
        + b"\x15"
        + bytes(10)
    )
    return packet(0, payload)


def column(name: bytes, data_type: int = 253) -> bytes:
    body = (
        b"c"
        + b"\x00\x00\x00\x00"
        + bytes([len(name)])
        + name
        + b"\x00"
        + b"\x0c"
        + b"\x21\x00"
        + b"\x00\x01\x00\x00"
        + bytes([data_type])
        + b"\x01\x00"
        + b"\x00"
    )
    return packet(2, body)


def row(*values: bytes | None) -> bytes:
    body = b""
    for value in values:
        body += b"\xfb" if value is None else bytes([len(value)]) + value
    return packet(3, body)


EOF = packet(4, b"\xfe\x00\x00\x02\x00")


def sent_payload(data: bytes) -> tuple[int, bytes]:
    length = int.from_bytes(data[:3], "little")
    return data[3], data[4:4 + length]


def test_handshake_sends_login_packet():
    stream = FakeStream(greeting() + packet(2, b"\x00\x00\x00\x02\x00\x00\x00"))
    conn = MyConnection(stream)
    conn.handshake("alice", "", "shop")
    seq, payload = sent_payload(bytes(stream.sent))
    assert seq == 1
    assert payload[:4] == struct.pack("<I", 0x0285A2FF)
    assert payload.endswith(b"shop\x00mysql_native_password\x00")
    assert b"alice\x00\x01\x00shop\x00" in payload
    assert conn.server_version == "8.0.33"
    assert conn.sequence_id == 2


def test_handshake_sends_padded_password():
    password = "password"
    stream = FakeStream(greeting() + packet(2, b"\x00\x00\x00"))
    MyConnection(stream).handshake("bob", password, "db")
    _, payload = sent_payload(bytes(stream.sent))
    auth = b"\x14" + password.encode().ljust(20, b"\x00")
    assert b"bob\x00" + bytes([len(auth)]) + auth + b"db\x00" in payload


def test_handshake_reports_server_error():
    error = b"\xff\x15\x04" + b"Access denied"
    stream = FakeStream(greeting() + packet(2, error))
    with pytest.raises(ProtocolError) as info:
        MyConnection(stream).handshake("bob", "", "db")
    assert info.value.message == "MySQL error: Access denied"


def test_handshake_skips_other_replies_until_ok():
    stream = FakeStream(greeting() + packet(2, b"\x01\x02") + packet(3, b"\x00\x00\x00"))
    conn = MyConnection(stream)
    conn.handshake("bob", "", "db")
    assert stream.recv(1) == b""


def test_short_greeting_is_rejected():
    stream = FakeStream(packet(0, b"\x0a8.0\x00"))
    with pytest.raises(ProtocolError):
        MyConnection(stream).handshake("bob", "", "db")


def test_execute_query_ok_packet():
    stream = FakeStream(packet(1, b"\x00\x03\x05\x02\x00\x00\x00"))
    conn = MyConnection(stream)
    result = conn.execute_query("DELETE FROM t")
    assert result == MyOk(3, 5)
    seq, payload = sent_payload(bytes(stream.sent))
    assert seq == 0
    assert payload == b"\x03DELETE FROM t"


def test_execute_query_ok_with_two_byte_length():
    stream = FakeStream(packet(1, b"\x00\xfc\x2c\x01\x00\x02\x00\x00\x00"))
    result = MyConnection(stream).execute_query("UPDATE t SET a = 1")
    assert result == MyOk(0x012C, 0)


def test_execute_query_rows():
    incoming = (
        packet(1, b"\x02")
        + column(b"id", 3)
        + column(b"name")
        + EOF
        + row(b"1", b"Alice")
        + row(b"2", None)
        + EOF
    )
    result = MyConnection(FakeStream(incoming)).execute_query("SELECT id, name FROM users")
    assert isinstance(result, MyRows)
    assert result.columns == [
        MyColumnInfo("id", 3, 1, 0),
        MyColumnInfo("name", 253, 1, 0),
    ]
    assert result.rows == [["1", "Alice"], ["2", "NULL"]]


def test_long_rows_are_read_whole():
    long_name = "Bartholomew".encode()
    incoming = packet(1, b"\x01") + column(b"name") + EOF + row(long_name) + EOF
    result = MyConnection(FakeStream(incoming)).execute_query("SELECT name FROM users")
    assert result.rows == [["Bartholomew"]]


def test_missing_values_are_null():
    incoming = packet(1, b"\x02") + column(b"a") + column(b"b") + EOF + row(b"x") + EOF
    result = MyConnection(FakeStream(incoming)).execute_query("SELECT a, b FROM t")
    assert result.rows == [["x", "NULL"]]


def test_execute_query_error():
    stream = FakeStream(packet(1, b"\xff\x28\x04" + b"syntax"))
    with pytest.raises(ProtocolError) as info:
        MyConnection(stream).execute_query("SELEC 1")
    assert str(info.value) == "protocol error: MySQL error: syntax"


def test_closed_stream_raises_connection_error():
    with pytest.raises(ConnectionError):
        MyConnection(FakeStream(b"")).execute_query("SELECT 1")


def test_context_manager_closes_stream():
    stream = FakeStream(b"")
    with MyConnection(stream) as conn:
        assert conn.sequence_id == 0
    assert stream.closed is True