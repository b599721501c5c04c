"""Rolling sequence counter for binary commands."""

from __future__ import annotations

SEQUENCE_START = 1
SEQUENCE_MODULO = 256


class CommandSequencer:
    """Hands out the sequence byte for each correlated command.

    The counter starts at 1 and wraps from 255 to 0. Access is serialized
    by the owning session.
    """

    __slots__ = ("_value",)

    def __init__(self, start: int = SEQUENCE_START) -> None:
        self._value = start % SEQUENCE_MODULO

    def next(self) -> int:
        """Return the current value, then advance."""
        value = self._value
        self._value = (value + 1) % SEQUENCE_MODULO
        return value

    def peek(self) -> int:
        return self._value

    def reset(self, start: int = SEQUENCE_START) -> None:
        self._value = start % SEQUENCE_MODULO
