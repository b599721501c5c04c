"""Tests for the TCP transport against a loopback echo server."""

from __future__ import annotations

import socket
import threading
import time
from unittest.mock import patch

import pytest

from picomotor_mcp.transport.tcp_connection import TCPConnection


class _LineServer:
    """Accepts one client and answers each received line with ``<line>>``."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.received = b""
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        conn, _ = self.sock.accept()
        with conn:
            buffer = b""
            while True:
                data = conn.recv(1024)
                if not data:
                    break
                self.received += data
                buffer += data
                while b"\r\n" in buffer:
                    line, buffer = buffer.split(b"\r\n", 1)
                    conn.sendall(line + b"\r\n>")

    def close(self):
        self.sock.close()
        self._thread.join(timeout=2)


@pytest.fixture
def server():
    srv = _LineServer()
    yield srv
    srv.close()


def _read_until(conn: TCPConnection, expected: bytes, timeout: float = 2.0) -> bytes:
    data = b""
    deadline = time.monotonic() + timeout
    while expected not in data and time.monotonic() < deadline:
        data += conn.read_available()
        time.sleep(0.01)
    return data


def test_open_write_read_close(server):
    conn = TCPConnection()
    conn.open("127.0.0.1", server.port)
    assert conn.connected
    assert conn.info.port == server.port

    assert conn.write(b"VER\r\n") == 5
    assert _read_until(conn, b">") == b"VER\r\n>"

    conn.close()
    assert not conn.connected


def test_read_available_does_not_block(server):
    conn = TCPConnection()
    conn.open("127.0.0.1", server.port)
    start = time.monotonic()
    assert conn.read_available() == b""
    assert time.monotonic() - start < 0.5
    conn.close()


def test_close_is_idempotent(server):
    conn = TCPConnection()
    conn.open("127.0.0.1", server.port)
    conn.close()
    conn.close()
    assert not conn.connected


def test_connection_refused_raises():
    # Grab a free port and close it so nothing listens there
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    conn = TCPConnection(connect_timeout=1.0)
    with pytest.raises(ConnectionError):
        conn.open("127.0.0.1", port)
    assert not conn.connected


def test_dns_failure_raises_connection_error():
    conn = TCPConnection()
    with patch(
        "picomotor_mcp.transport.tcp_connection.socket.create_connection",
        side_effect=socket.gaierror("Name or service not known"),
    ):
        with pytest.raises(ConnectionError):
            conn.open("picomotor.invalid", 23)


def test_timeout_raises_connection_error():
    conn = TCPConnection()
    with patch(
        "picomotor_mcp.transport.tcp_connection.socket.create_connection",
        side_effect=socket.timeout("timed out"),
    ):
        with pytest.raises(ConnectionError):
            conn.open("192.168.2.2", 23)


def test_write_when_closed_raises():
    conn = TCPConnection()
    with pytest.raises(ConnectionError):
        conn.write(b"VER\r\n")
    with pytest.raises(ConnectionError):
        conn.read_available()
