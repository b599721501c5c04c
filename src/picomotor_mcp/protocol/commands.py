"""Operation codes and high-level command builders.

Each device operation has a line form (the 8752 ASCII command set) and a
binary form identified by a two-byte opcode: instruction class in the
high byte, instruction in the low byte.
"""

from __future__ import annotations

import struct
from enum import Enum, IntEnum

from ..errors import EncodingError
from .framing import Command, Mode, Variant

DEFAULT_DRIVER = "a1"
MOTOR_IDS = (0, 1, 2)
MAX_STEPS = 2**31 - 1


class Opcode(IntEnum):
    """Binary operation codes."""

    FIRMWARE_VERSION = 0x0205
    HARDWARE_STATUS = 0x1A0A
    MAIN_STATUS = 0x1A0C
    SET_DIRECTION = 0x1A1B
    SET_RESOLUTION = 0x1A1C
    SET_MOTOR = 0x1A1D
    MOVE_RELATIVE = 0x3001
    GO = 0x3002
    STOP = 0x3003


# Opcodes standing in for line commands, kept on the Command for logging
LINE_OPCODES: dict[str, Opcode] = {
    "VER": Opcode.FIRMWARE_VERSION,
    "DIAG": Opcode.HARDWARE_STATUS,
    "STA": Opcode.MAIN_STATUS,
    "FOR": Opcode.SET_DIRECTION,
    "REV": Opcode.SET_DIRECTION,
    "RES": Opcode.SET_RESOLUTION,
    "CHL": Opcode.SET_MOTOR,
    "REL": Opcode.MOVE_RELATIVE,
    "GO": Opcode.GO,
    "STO": Opcode.STOP,
}


class Direction(str, Enum):
    FORWARD = "f"
    BACKWARD = "b"


class Resolution(str, Enum):
    FINE = "fine"
    COARSE = "coarse"


def _parse_direction(value: Direction | str) -> Direction:
    if isinstance(value, Direction):
        return value
    key = str(value).strip().lower()
    if key in ("f", "forward", "for"):
        return Direction.FORWARD
    if key in ("b", "backward", "back", "rev", "reverse"):
        return Direction.BACKWARD
    raise ValueError(f"Direction must be forward (f) or backward (b), got {value!r}")


def _parse_resolution(value: Resolution | str) -> Resolution:
    if isinstance(value, Resolution):
        return value
    try:
        return Resolution(str(value).strip().lower())
    except ValueError:
        raise ValueError(
            f"Resolution must be 'fine' or 'coarse', got {value!r}"
        ) from None


def line_command(text: str, expects_reply: bool = True) -> Command:
    """Wrap a raw 8752 command string.

    Args:
        text: The command, e.g. ``"REL a1=100"``.
        expects_reply: Whether the controller answers this command.

    Raises:
        EncodingError: If the text has non-ASCII characters.
    """
    try:
        payload = text.encode("ascii")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Line command is not ASCII: {text!r}") from e
    keyword = text.split(" ", 1)[0].upper()
    opcode = LINE_OPCODES.get(keyword, 0)
    return Command(
        opcode=int(opcode),
        mode=Mode.WRITE,
        expects_reply=expects_reply,
        payload=payload,
    )


def build_command(opcode: Opcode, mode: Mode, payload: bytes = b"") -> Command:
    """Build a binary command. Every binary command requests an acknowledgement."""
    return Command(opcode=int(opcode), mode=mode, expects_reply=True, payload=payload)


def build_move_relative(
    steps: int, variant: Variant = Variant.LINE, driver: str = DEFAULT_DRIVER
) -> Command:
    """Move the active motor ``steps`` in the configured direction.

    Args:
        steps: Signed step count.
    """
    if not -MAX_STEPS <= steps <= MAX_STEPS:
        raise ValueError(f"Step count out of range: {steps}")
    if variant == Variant.BINARY:
        return build_command(Opcode.MOVE_RELATIVE, Mode.WRITE, struct.pack("<i", steps))
    return line_command(f"REL {driver}={steps}")


def build_set_direction(
    direction: Direction | str,
    variant: Variant = Variant.LINE,
    driver: str = DEFAULT_DRIVER,
) -> Command:
    """Set the direction for the next movement.

    Args:
        direction: ``Direction.FORWARD`` (``"f"``) or ``Direction.BACKWARD`` (``"b"``).
    """
    direction = _parse_direction(direction)
    if variant == Variant.BINARY:
        value = 0 if direction == Direction.FORWARD else 1
        return build_command(Opcode.SET_DIRECTION, Mode.WRITE, bytes([value]))
    keyword = "FOR" if direction == Direction.FORWARD else "REV"
    return line_command(f"{keyword} {driver}")


def build_set_resolution(
    resolution: Resolution | str, variant: Variant = Variant.LINE
) -> Command:
    """Set the step resolution ("fine" or "coarse")."""
    resolution = _parse_resolution(resolution)
    if variant == Variant.BINARY:
        value = 1 if resolution == Resolution.FINE else 0
        return build_command(Opcode.SET_RESOLUTION, Mode.WRITE, bytes([value]))
    return line_command(f"RES {resolution.value.upper()}")


def build_set_motor(
    motor: int, variant: Variant = Variant.LINE, driver: str = DEFAULT_DRIVER
) -> Command:
    """Select the motor channel on the driver.

    Args:
        motor: Motor channel 0-2.
    """
    if motor not in MOTOR_IDS:
        raise ValueError(f"Motor must be one of {MOTOR_IDS}, got {motor}")
    if variant == Variant.BINARY:
        return build_command(Opcode.SET_MOTOR, Mode.WRITE, bytes([motor]))
    return line_command(f"CHL {driver}={motor}", expects_reply=False)


def build_go(variant: Variant = Variant.LINE, driver: str = DEFAULT_DRIVER) -> Command:
    """Start the configured motion."""
    if variant == Variant.BINARY:
        return build_command(Opcode.GO, Mode.WRITE)
    return line_command(f"GO {driver}", expects_reply=False)


def build_stop(variant: Variant = Variant.LINE, driver: str = DEFAULT_DRIVER) -> Command:
    """Stop the motion in progress."""
    if variant == Variant.BINARY:
        return build_command(Opcode.STOP, Mode.WRITE)
    return line_command(f"STO {driver}")


def build_get_firmware_version(variant: Variant = Variant.LINE) -> Command:
    if variant == Variant.BINARY:
        return build_command(Opcode.FIRMWARE_VERSION, Mode.READ)
    return line_command("VER")


def build_get_status(variant: Variant = Variant.LINE) -> Command:
    if variant == Variant.BINARY:
        return build_command(Opcode.MAIN_STATUS, Mode.READ)
    return line_command("STA")


def build_get_hardware_status(variant: Variant = Variant.LINE) -> Command:
    if variant == Variant.BINARY:
        return build_command(Opcode.HARDWARE_STATUS, Mode.READ)
    return line_command("DIAG")
