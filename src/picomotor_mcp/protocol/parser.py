"""Reply decoding for both variants and fixed-offset parsing of query replies.

Binary replies use the outgoing packet layout; the controller echoes the
flag, sequence and opcode bytes. Field offsets below are absolute offsets
into the reply buffer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..models.status import FirmwareVersion, HardwareStatus, MainStatus
from .framing import PAYLOAD_OFFSET, Packet, Variant, parse_packet

PROMPT = ">"

FW_PATCH_OFFSET = PAYLOAD_OFFSET  # u16 little-endian
FW_MINOR_OFFSET = PAYLOAD_OFFSET + 2
FW_MAJOR_OFFSET = PAYLOAD_OFFSET + 3
MAIN_STATUS_OFFSET = PAYLOAD_OFFSET
HW_STATUS_OFFSET = PAYLOAD_OFFSET

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


@dataclass
class Reply:
    """A decoded controller reply.

    ``lines`` is filled for line replies. ``raw`` always holds the bytes read.
    ``no_reply`` is set when a reply was expected but nothing was read.
    """

    lines: list[str] = field(default_factory=list)
    raw: bytes = b""
    no_reply: bool = False

    @property
    def empty(self) -> bool:
        return not self.raw

    @property
    def packet(self) -> Packet | None:
        """The binary reply header and payload, if the buffer parses."""
        return parse_packet(self.raw)

    def __repr__(self) -> str:
        if self.lines:
            return f"Reply(lines={self.lines!r})"
        if self.no_reply:
            return "Reply(no_reply=True)"
        return f"Reply(raw={self.raw.hex(' ') if self.raw else '(empty)'})"


def split_lines(data: bytes) -> list[str]:
    """Strip the prompt character and split the text into non-empty lines."""
    text = data.decode("ascii", errors="replace")
    text = text.replace(PROMPT, "").replace("\r", "")
    return [line for line in text.split("\n") if line.strip()]


def decode_reply(data: bytes, variant: Variant) -> Reply:
    """Decode raw bytes read from the controller.

    An empty buffer gives an empty reply flagged ``no_reply``; whether that
    matters is up to the caller.
    """
    if not data:
        return Reply(no_reply=True)
    if variant == Variant.BINARY:
        return Reply(raw=bytes(data))
    return Reply(lines=split_lines(data), raw=bytes(data))


def parse_firmware_version(reply: Reply, variant: Variant) -> FirmwareVersion | None:
    """Parse a firmware version reply.

    Binary replies carry patch (u16 LE), minor and major at fixed offsets.
    Line replies are searched for the first dotted version number.
    """
    if variant == Variant.BINARY:
        raw = reply.raw
        if len(raw) <= FW_MAJOR_OFFSET:
            return None
        return FirmwareVersion(
            major=raw[FW_MAJOR_OFFSET],
            minor=raw[FW_MINOR_OFFSET],
            patch=int.from_bytes(raw[FW_PATCH_OFFSET:FW_MINOR_OFFSET], "little"),
            raw=raw.hex(" "),
        )

    for line in reply.lines:
        match = _VERSION_RE.search(line)
        if match:
            major, minor, patch = match.groups()
            return FirmwareVersion(
                major=int(major),
                minor=int(minor),
                patch=int(patch) if patch else 0,
                raw=line.strip(),
            )
    return None


def parse_main_status(reply: Reply, variant: Variant) -> MainStatus | None:
    """Parse a main status reply (status byte at ``MAIN_STATUS_OFFSET``)."""
    if variant == Variant.BINARY:
        if len(reply.raw) <= MAIN_STATUS_OFFSET:
            return None
        return MainStatus(byte=reply.raw[MAIN_STATUS_OFFSET])
    if not reply.lines:
        return None
    return MainStatus(lines=list(reply.lines))


def parse_hardware_status(reply: Reply, variant: Variant) -> HardwareStatus | None:
    """Parse a hardware status reply (status byte at ``HW_STATUS_OFFSET``)."""
    if variant == Variant.BINARY:
        if len(reply.raw) <= HW_STATUS_OFFSET:
            return None
        return HardwareStatus(byte=reply.raw[HW_STATUS_OFFSET])
    if not reply.lines:
        return None
    return HardwareStatus(lines=list(reply.lines))
