"""TCP connection to the Picomotor Ethernet Controller.

The 8752 listens on a telnet-style port (23 by default) and answers each
command after a short processing delay. Reads never block: the session
sleeps for the settle delay and then drains whatever has arrived.
"""

from __future__ import annotations

import logging
import select
import socket
from dataclasses import dataclass

from ..config import CONNECT_TIMEOUT_S, DEFAULT_HOST, DEFAULT_PORT, READ_BUFFER_SIZE
from .base import Transport

logger = logging.getLogger(__name__)

WRITE_TIMEOUT_S = 1.0


@dataclass
class ConnectionInfo:
    """Endpoint details of an open connection."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    local_address: str = ""


class TCPConnection(Transport):
    """Manages the TCP socket to the controller.

    Usage::

        conn = TCPConnection()
        conn.open("192.168.2.2", 23)
        conn.write(b"VER\\r\\n")
        data = conn.read_available()
        conn.close()
    """

    def __init__(
        self,
        connect_timeout: float = CONNECT_TIMEOUT_S,
        write_timeout: float = WRITE_TIMEOUT_S,
        read_buffer_size: int = READ_BUFFER_SIZE,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._write_timeout = write_timeout
        self._read_buffer_size = read_buffer_size
        self._sock: socket.socket | None = None
        self._connected = False
        self._info = ConnectionInfo()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def info(self) -> ConnectionInfo:
        return self._info

    def open(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        """Connect to the controller.

        Raises:
            ConnectionError: If the host cannot be resolved or reached, the
                connection is refused, or the attempt times out.
        """
        if self._connected:
            self.close()

        try:
            sock = socket.create_connection((host, port), timeout=self._connect_timeout)
        except OSError as e:
            raise ConnectionError(
                f"Could not connect to Picomotor controller at {host}:{port}. "
                f"Check the address and that the controller is powered. "
                f"Last error: {e}"
            ) from e

        sock.settimeout(self._write_timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._sock = sock
        self._connected = True
        local = sock.getsockname()
        self._info = ConnectionInfo(
            host=host, port=port, local_address=f"{local[0]}:{local[1]}"
        )
        logger.info("Connected to %s:%s", host, port)

    def close(self) -> None:
        """Close the socket."""
        if not self._connected:
            return

        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            self._connected = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Send ``data`` in full.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
            OSError: If the send fails or times out.
        """
        if not self._connected:
            raise ConnectionError("Not connected to controller")

        self._sock.sendall(data)
        logger.debug("TX %d bytes: %s", len(data), data.hex(" "))
        return len(data)

    def read_available(self) -> bytes:
        """Drain whatever the controller has sent so far.

        Returns:
            The buffered bytes, or ``b""`` if nothing has arrived.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to controller")

        chunks: list[bytes] = []
        while True:
            readable, _, _ = select.select([self._sock], [], [], 0)
            if not readable:
                break
            try:
                chunk = self._sock.recv(self._read_buffer_size)
            except OSError as e:
                logger.debug("Read error: %s", e)
                break
            if not chunk:
                logger.warning("Controller closed the connection")
                self.close()
                break
            chunks.append(chunk)

        data = b"".join(chunks)
        if data:
            logger.debug("RX %d bytes: %s", len(data), data.hex(" "))
        return data
