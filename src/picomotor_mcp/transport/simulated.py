"""In-process stand-in for the controller connection.

``SimulatedConnection`` implements the transport interface without a
socket. Replies come from a queue of canned buffers or from a responder
callable that sees everything written since the last read.
``SimulatedController`` is a responder that answers the documented
commands of both variants.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Iterable

from ..models.status import (
    HW_INITIALIZED,
    MAIN_FINE_RESOLUTION,
    MAIN_MOTOR_DETECTED,
    MAIN_REVERSE,
)
from ..protocol.commands import Opcode
from ..protocol.framing import (
    LENGTH_OVERHEAD,
    PAYLOAD_OFFSET,
    Packet,
    Variant,
    parse_packet,
)
from ..protocol.parser import PROMPT
from .base import Transport

logger = logging.getLogger(__name__)

Responder = Callable[[bytes], bytes]

SIMULATED_FIRMWARE = (2, 1, 7)


class SimulatedConnection(Transport):
    """Transport double that records writes and serves scripted replies.

    Args:
        responder: Called with the bytes written since the last read;
            its return value is what the read yields.
        replies: Canned read results, served in order before the responder.
        fail_open: Make ``open`` raise ``ConnectionError``.
        fail_after_writes: Let this many writes succeed, then raise ``OSError``.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        replies: Iterable[bytes] = (),
        fail_open: bool = False,
        fail_after_writes: int | None = None,
    ) -> None:
        self.responder = responder
        self.replies: deque[bytes] = deque(replies)
        self.fail_open = fail_open
        self.fail_after_writes = fail_after_writes
        self.writes: list[bytes] = []
        self.open_calls: list[tuple[str, int]] = []
        self.close_calls = 0
        self._pending = bytearray()
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def written(self) -> bytes:
        return b"".join(self.writes)

    def open(self, host: str, port: int) -> None:
        self.open_calls.append((host, port))
        if self.fail_open:
            raise ConnectionError(f"Simulated connection to {host}:{port} refused")
        self._connected = True
        logger.info("Simulated connection to %s:%s", host, port)

    def close(self) -> None:
        self.close_calls += 1
        if not self._connected:
            return
        self._connected = False
        self._pending.clear()
        logger.info("Simulated connection closed")

    def write(self, data: bytes) -> int:
        if not self._connected:
            raise ConnectionError("Not connected to controller")
        if self.fail_after_writes is not None and len(self.writes) >= self.fail_after_writes:
            raise OSError("Simulated write failure")
        self.writes.append(bytes(data))
        self._pending.extend(data)
        return len(data)

    def read_available(self) -> bytes:
        if not self._connected:
            raise ConnectionError("Not connected to controller")
        if self.replies:
            self._pending.clear()
            return self.replies.popleft()
        if self.responder is None or not self._pending:
            return b""
        data = bytes(self._pending)
        self._pending.clear()
        return self.responder(data)


class SimulatedController:
    """Responder emulating a controller with one driver and motor.

    Line commands are answered with text and a ``>`` prompt; ``GO`` and
    ``CHL`` produce no output. Binary packets are acknowledged by echoing
    the header, with query results in the payload.
    """

    def __init__(self, variant: Variant = Variant.LINE, terminator: bytes = b"\r\n") -> None:
        self.variant = Variant(variant)
        self.terminator = terminator
        self.fine = False
        self.reverse = False
        self.motor = 0
        self.position = 0

    def __call__(self, data: bytes) -> bytes:
        if self.variant == Variant.BINARY:
            return self._answer_packets(data)
        return self._answer_lines(data)

    # ─── LINE VARIANT ─────────────────────────────────────────────────

    def _answer_lines(self, data: bytes) -> bytes:
        out = b""
        text = data.decode("ascii", errors="replace")
        for line in text.replace("\r", "\n").split("\n"):
            if line.strip():
                out += self._answer_line(line.strip())
        return out

    def _answer_line(self, line: str) -> bytes:
        keyword, _, arg = line.partition(" ")
        keyword = keyword.upper()
        prompt = PROMPT.encode()

        if keyword == "VER":
            version = ".".join(str(v) for v in SIMULATED_FIRMWARE)
            return f"New_Focus 8752 Version {version}".encode() + self.terminator + prompt
        if keyword == "STA":
            return f"A1=0x{self._main_status_byte():02X}".encode() + self.terminator + prompt
        if keyword == "DIAG":
            return b"NO ERRORS" + self.terminator + prompt
        if keyword in ("GO", "CHL"):
            if keyword == "CHL" and "=" in arg:
                self.motor = int(arg.split("=", 1)[1])
            return b""
        if keyword == "REL" and "=" in arg:
            self.position += int(arg.split("=", 1)[1])
        elif keyword == "FOR":
            self.reverse = False
        elif keyword == "REV":
            self.reverse = True
        elif keyword == "RES":
            self.fine = arg.strip().upper() == "FINE"
        return prompt

    # ─── BINARY VARIANT ───────────────────────────────────────────────

    def _answer_packets(self, data: bytes) -> bytes:
        out = b""
        offset = 0
        while offset < len(data):
            packet = parse_packet(data[offset:])
            if packet is None:
                logger.debug("Simulator dropped %d unparseable bytes", len(data) - offset)
                break
            end = offset + PAYLOAD_OFFSET + len(packet.payload)
            if packet.reply_requested:
                out += self._answer_packet(packet, data[offset:end])
            offset = end
        return out

    def _answer_packet(self, packet: Packet, raw: bytes) -> bytes:
        payload = b""

        if packet.opcode == Opcode.FIRMWARE_VERSION:
            major, minor, patch = SIMULATED_FIRMWARE
            payload = patch.to_bytes(2, "little") + bytes([minor, major])
        elif packet.opcode == Opcode.MAIN_STATUS:
            payload = bytes([self._main_status_byte()])
        elif packet.opcode == Opcode.HARDWARE_STATUS:
            payload = bytes([HW_INITIALIZED])
        elif packet.opcode == Opcode.SET_DIRECTION and packet.payload:
            self.reverse = packet.payload[0] == 1
        elif packet.opcode == Opcode.SET_RESOLUTION and packet.payload:
            self.fine = packet.payload[0] == 1
        elif packet.opcode == Opcode.SET_MOTOR and packet.payload:
            self.motor = packet.payload[0]
        elif packet.opcode == Opcode.MOVE_RELATIVE and len(packet.payload) >= 4:
            self.position += int.from_bytes(packet.payload[:4], "little", signed=True)

        length = (LENGTH_OVERHEAD + len(payload)).to_bytes(2, "little")
        return raw[:2] + length + raw[4:PAYLOAD_OFFSET] + payload

    def _main_status_byte(self) -> int:
        status = MAIN_MOTOR_DETECTED
        if self.fine:
            status |= MAIN_FINE_RESOLUTION
        if self.reverse:
            status |= MAIN_REVERSE
        return status
