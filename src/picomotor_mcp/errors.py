"""Exception and warning types raised by the driver.

Connection failures are reported with the built-in ``ConnectionError``.
"""

from __future__ import annotations


class PicomotorError(Exception):
    """Base class for driver errors."""


class EncodingError(PicomotorError, ValueError):
    """A command could not be turned into a packet. Nothing was sent."""


class TransportWriteError(PicomotorError, IOError):
    """A write failed part way through a packet.

    The controller state after a partial write is unknown, so the command
    is never resent automatically.
    """

    def __init__(self, message: str, sent: int = 0, total: int = 0) -> None:
        super().__init__(message)
        self.sent = sent
        self.total = total


class NoReplyWarning(UserWarning):
    """A command that expected a reply read back no data."""
