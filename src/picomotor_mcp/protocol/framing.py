"""Packet builder and parser for both wire variants.

Binary packet layout::

    +-----------+----------+-----------+-----------+------------------+
    | Flags     | Sequence |  Length   |  Opcode   |     Payload      |
    | 1 byte    | 1 byte   |  2 bytes  |  2 bytes  |  variable length |
    +-----------+----------+-----------+-----------+------------------+

- Flags: bit0 mode (0 = write, 1 = read), bit1 reply requested,
  bits 2-7 reserved (zero)
- Sequence: caller-assigned rolling counter, echoed by the controller
- Length: little-endian, 4 + payload length
- Opcode: instruction class byte, then instruction byte

Line packets are the ASCII command string; the transport's line
terminator is appended on write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import EncodingError

HEADER_SIZE = 6
LENGTH_OFFSET = 2
OPCODE_OFFSET = 4
PAYLOAD_OFFSET = 6
LENGTH_OVERHEAD = 4
MAX_LENGTH = 0xFFFF
MAX_PAYLOAD = MAX_LENGTH - LENGTH_OVERHEAD  # 65531

FLAG_READ = 1 << 0
FLAG_REPLY = 1 << 1
FLAG_RESERVED_MASK = 0xFC

DEFAULT_CHUNK_SIZE = 64


class Variant(str, Enum):
    """Wire framing in effect for a session."""

    LINE = "line"
    BINARY = "binary"


class Mode(str, Enum):
    """Direction of a binary command."""

    READ = "r"
    WRITE = "w"


@dataclass
class Command:
    """A logical request to the controller.

    ``opcode`` is the 16-bit operation code (instruction class in the high
    byte). For the line variant ``payload`` holds the ASCII command string
    and ``opcode`` is informational only.
    """

    opcode: int = 0
    mode: Mode = Mode.READ
    expects_reply: bool = True
    payload: bytes = b""
    sequence: int | None = None

    def __repr__(self) -> str:
        seq = "-" if self.sequence is None else str(self.sequence)
        return (
            f"Command(opcode=0x{self.opcode:04X}, mode={self.mode.value}, "
            f"reply={self.expects_reply}, seq={seq}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


@dataclass
class Packet:
    """A parsed binary packet."""

    flags: int
    sequence: int
    opcode: int
    payload: bytes

    @property
    def mode(self) -> Mode:
        return Mode.READ if self.flags & FLAG_READ else Mode.WRITE

    @property
    def reply_requested(self) -> bool:
        return bool(self.flags & FLAG_REPLY)

    def __repr__(self) -> str:
        return (
            f"Packet(flags=0x{self.flags:02X}, seq={self.sequence}, "
            f"opcode=0x{self.opcode:04X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def flag_byte(mode: Mode, reply: bool) -> int:
    """Compose the flag byte for a mode and reply request."""
    flags = FLAG_READ if mode == Mode.READ else 0
    if reply:
        flags |= FLAG_REPLY
    return flags


def build_packet(command: Command) -> bytes:
    """Build the binary packet for a command.

    Args:
        command: The command to frame. An unassigned sequence is sent as 0.

    Returns:
        The complete packet, header followed by the payload.

    Raises:
        EncodingError: If the payload does not fit the 16-bit length field
            or the opcode or sequence are out of range.
    """
    payload = bytes(command.payload)
    if len(payload) > MAX_PAYLOAD:
        raise EncodingError(
            f"Payload of {len(payload)} bytes exceeds the {MAX_PAYLOAD}-byte limit"
        )
    if not 0 <= command.opcode <= 0xFFFF:
        raise EncodingError(f"Opcode must be 0x0000-0xFFFF, got {command.opcode:#x}")

    sequence = 0 if command.sequence is None else command.sequence
    if not 0 <= sequence <= 0xFF:
        raise EncodingError(f"Sequence must be 0-255, got {sequence}")

    header = bytes([
        flag_byte(command.mode, command.expects_reply),
        sequence,
    ])
    length = (LENGTH_OVERHEAD + len(payload)).to_bytes(2, "little")
    opcode = bytes([(command.opcode >> 8) & 0xFF, command.opcode & 0xFF])
    return header + length + opcode + payload


def build_line(command: Command) -> bytes:
    """Validate and return the ASCII command string of a line command.

    Raises:
        EncodingError: If the string is empty, not printable ASCII,
            or contains a line break.
    """
    payload = bytes(command.payload)
    if not payload:
        raise EncodingError("Line command must not be empty")
    if b"\n" in payload or b"\r" in payload:
        raise EncodingError(f"Line command contains a line break: {payload!r}")
    if any(b < 0x20 or b > 0x7E for b in payload):
        raise EncodingError(f"Line command is not printable ASCII: {payload!r}")
    return payload


def encode_command(command: Command, variant: Variant) -> bytes:
    """Encode a command for the given variant."""
    if variant == Variant.BINARY:
        return build_packet(command)
    return build_line(command)


def parse_packet(data: bytes) -> Packet | None:
    """Parse a binary packet.

    Args:
        data: Raw bytes starting at the flag byte. Trailing bytes past the
            declared length are ignored.

    Returns:
        A ``Packet``, or ``None`` if the buffer is shorter than the header,
        the declared length is inconsistent, or reserved flag bits are set.
    """
    if len(data) < HEADER_SIZE:
        return None

    flags = data[0]
    if flags & FLAG_RESERVED_MASK:
        return None

    length = int.from_bytes(data[LENGTH_OFFSET:OPCODE_OFFSET], "little")
    if length < LENGTH_OVERHEAD:
        return None

    payload_size = length - LENGTH_OVERHEAD
    if len(data) < PAYLOAD_OFFSET + payload_size:
        return None

    opcode = (data[OPCODE_OFFSET] << 8) | data[OPCODE_OFFSET + 1]
    return Packet(
        flags=flags,
        sequence=data[1],
        opcode=opcode,
        payload=bytes(data[PAYLOAD_OFFSET : PAYLOAD_OFFSET + payload_size]),
    )


def split_chunks(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[bytes]:
    """Split an outgoing packet into ordered writes of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    return [data[offset : offset + chunk_size] for offset in range(0, len(data), chunk_size)]
