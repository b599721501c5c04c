"""Byte-stream transport interface used by the session."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Transport(ABC):
    """Open/close/read/write capability over one stream connection.

    ``read_available`` must not block: it returns whatever is buffered,
    possibly nothing.
    """

    line_terminator: bytes = b"\r\n"

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @abstractmethod
    def open(self, host: str, port: int) -> None:
        """Open the connection. Raises ``ConnectionError`` on failure."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Calling it on a closed transport is a no-op."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write all of ``data``. Raises ``OSError`` on failure."""

    @abstractmethod
    def read_available(self) -> bytes:
        ...
