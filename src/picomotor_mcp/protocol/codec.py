"""Variant-bound encoder/decoder used by the session."""

from __future__ import annotations

from .framing import Command, Variant, encode_command
from .parser import Reply, decode_reply


class PacketCodec:
    """Encodes commands and decodes replies for one wire variant."""

    def __init__(self, variant: Variant = Variant.LINE) -> None:
        self.variant = Variant(variant)

    def encode(self, command: Command) -> bytes:
        """Encode a command. Raises ``EncodingError`` for malformed commands."""
        return encode_command(command, self.variant)

    def decode(self, data: bytes) -> Reply:
        return decode_reply(data, self.variant)

    def __repr__(self) -> str:
        return f"PacketCodec(variant={self.variant.value})"
