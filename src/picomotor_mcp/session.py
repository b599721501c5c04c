"""Request/response session with one Picomotor controller.

A session owns exactly one transport and runs one exchange at a time:
encode, write in chunks, wait the settle delay, read what has arrived,
decode. Nothing is retried; repeating a move whose first attempt may have
landed is not safe for a physical actuator.

Usage::

    with DeviceSession() as pm:
        pm.connect("192.168.2.2", 23)
        pm.set_direction("f")
        pm.move_relative(100)
        print(pm.query_firmware_version())
"""

from __future__ import annotations

import logging
import threading
import time
import warnings
from typing import Callable

from .config import DEFAULT_HOST, DEFAULT_PORT, SessionConfig
from .errors import NoReplyWarning, TransportWriteError
from .models.status import FirmwareVersion, HardwareStatus, MainStatus
from .protocol.codec import PacketCodec
from .protocol.commands import (
    Direction,
    Resolution,
    build_get_firmware_version,
    build_get_hardware_status,
    build_get_status,
    build_go,
    build_move_relative,
    build_set_direction,
    build_set_motor,
    build_set_resolution,
    build_stop,
    line_command,
)
from .protocol.framing import Command, Variant, split_chunks
from .protocol.parser import (
    Reply,
    parse_firmware_version,
    parse_hardware_status,
    parse_main_status,
)
from .protocol.sequence import CommandSequencer
from .transport.base import Transport
from .transport.tcp_connection import TCPConnection

logger = logging.getLogger(__name__)


class DeviceSession:
    """One logical connection to a controller.

    Args:
        transport: The transport to own. Defaults to a new ``TCPConnection``;
            pass a ``SimulatedConnection`` to run without hardware.
        config: Variant, chunk size and settle delay. Defaults to
            ``SessionConfig()``.
        sleep: Function used for the settle delay.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        config: SessionConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or SessionConfig()
        if transport is None:
            transport = TCPConnection(connect_timeout=self.config.connect_timeout)
        self._transport = transport
        self._codec = PacketCodec(self.config.variant)
        self._sequencer = CommandSequencer()
        self._lock = threading.Lock()
        self._sleep = sleep

    @property
    def variant(self) -> Variant:
        return self._codec.variant

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def sequencer(self) -> CommandSequencer:
        return self._sequencer

    @property
    def connected(self) -> bool:
        return self._transport.connected

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    def connect(self, host: str | None = None, port: int | None = None) -> None:
        """Open the owned transport.

        Args:
            host: Controller address, defaults to the configured host.
            port: Controller port, defaults to the configured port.

        Raises:
            ConnectionError: If the transport cannot be opened.
        """
        host = host or self.config.host or DEFAULT_HOST
        port = port or self.config.port or DEFAULT_PORT
        try:
            self._transport.open(host, port)
        except ConnectionError:
            raise
        except OSError as e:
            raise ConnectionError(f"Could not open {host}:{port}: {e}") from e
        self._sequencer.reset()
        logger.info("Session open on %s:%s (%s variant)", host, port, self.variant.value)

    def close(self) -> None:
        """Close the owned transport. Safe to call any number of times."""
        try:
            self._transport.close()
        except Exception as e:
            logger.warning("Error closing transport: %s", e)

    def __enter__(self) -> DeviceSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        transport = getattr(self, "_transport", None)
        if transport is not None and transport.connected:
            self.close()

    # ─── EXCHANGE ────────────────────────────────────────────────────

    def exchange(self, command: Command) -> Reply:
        """Send a command and, if it expects one, read its reply.

        Returns:
            The decoded reply. Commands that expect no reply get an empty
            ``Reply``. An empty read gives an empty ``Reply`` with
            ``no_reply`` set and emits ``NoReplyWarning``.

        Raises:
            EncodingError: If the command cannot be encoded. Nothing is sent.
            TransportWriteError: If a chunk fails to write.
            ConnectionError: If the session is not connected.
        """
        with self._lock:
            self._send(command)
            if not command.expects_reply:
                return Reply()
            reply = self._receive()
            self._check_reply(command, reply)
            return reply

    def send(self, command: Command) -> None:
        """Encode and write a command without reading a reply."""
        with self._lock:
            self._send(command)

    def receive(self) -> Reply:
        """Wait the settle delay and decode whatever the controller sent."""
        with self._lock:
            return self._receive()

    def send_raw(self, text: str, expects_reply: bool = True) -> Reply:
        """Exchange a raw line command such as ``"VEL a1 0=1000"``."""
        if self.variant != Variant.LINE:
            raise ValueError("Raw text commands need the line variant")
        return self.exchange(line_command(text, expects_reply=expects_reply))

    def _send(self, command: Command) -> None:
        if not self._transport.connected:
            raise ConnectionError("Not connected to controller")

        correlated = self.variant == Variant.BINARY and command.expects_reply
        if correlated:
            command.sequence = self._sequencer.peek()
        data = self._codec.encode(command)
        if correlated:
            self._sequencer.next()
        if self.variant == Variant.LINE:
            data += self._transport.line_terminator

        logger.debug("Sending %r", command)
        sent = 0
        for chunk in split_chunks(data, self.config.chunk_size):
            try:
                self._transport.write(chunk)
            except ConnectionError:
                raise
            except OSError as e:
                raise TransportWriteError(
                    f"Write failed after {sent} of {len(data)} bytes: {e}",
                    sent=sent,
                    total=len(data),
                ) from e
            sent += len(chunk)

    def _receive(self) -> Reply:
        if self.config.settle_delay > 0:
            self._sleep(self.config.settle_delay)
        reply = self._codec.decode(self._transport.read_available())
        if reply.no_reply:
            logger.warning("No reply from controller (busy or command produced no output)")
            warnings.warn("No reply from controller", NoReplyWarning, stacklevel=3)
        else:
            logger.debug("Received %r", reply)
        return reply

    def _check_reply(self, command: Command, reply: Reply) -> None:
        if self.variant != Variant.BINARY or reply.no_reply or command.sequence is None:
            return
        packet = reply.packet
        if packet is None:
            logger.warning("Malformed reply header: %s", reply.raw.hex(" "))
        elif packet.sequence != command.sequence:
            logger.warning(
                "Reply sequence %d does not match command sequence %d",
                packet.sequence,
                command.sequence,
            )

    # ─── DEVICE OPERATIONS ───────────────────────────────────────────

    def move_relative(self, steps: int) -> Reply:
        """Move the active motor by ``steps`` in the configured direction."""
        return self.exchange(build_move_relative(steps, self.variant))

    def set_direction(self, direction: Direction | str) -> Reply:
        return self.exchange(build_set_direction(direction, self.variant))

    def set_resolution(self, resolution: Resolution | str) -> Reply:
        return self.exchange(build_set_resolution(resolution, self.variant))

    def set_active_motor(self, motor: int) -> Reply:
        """Select motor channel 0-2 on the driver."""
        return self.exchange(build_set_motor(motor, self.variant))

    def go(self) -> Reply:
        """Start the configured motion."""
        return self.exchange(build_go(self.variant))

    def stop(self) -> Reply:
        return self.exchange(build_stop(self.variant))

    def query_firmware_version(self) -> FirmwareVersion | None:
        """Query the firmware version; ``None`` if the reply had none."""
        reply = self.exchange(build_get_firmware_version(self.variant))
        return parse_firmware_version(reply, self.variant)

    def query_status(self) -> MainStatus | None:
        reply = self.exchange(build_get_status(self.variant))
        return parse_main_status(reply, self.variant)

    def query_hardware_status(self) -> HardwareStatus | None:
        reply = self.exchange(build_get_hardware_status(self.variant))
        return parse_hardware_status(reply, self.variant)

    def __repr__(self) -> str:
        state = "connected" if self.connected else "closed"
        return f"DeviceSession(variant={self.variant.value}, {state})"
