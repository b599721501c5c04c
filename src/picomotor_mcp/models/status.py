"""Typed results of controller queries."""

from __future__ import annotations

from dataclasses import dataclass, field

# Main status byte
MAIN_MOVING = 1 << 0
MAIN_MOTOR_DETECTED = 1 << 1
MAIN_FINE_RESOLUTION = 1 << 2
MAIN_REVERSE = 1 << 3

# Hardware status byte
HW_INITIALIZED = 1 << 0
HW_INCOMPATIBLE_DRIVER = 1 << 1
HW_DRIVER_FAULT = 1 << 2
HW_COMMAND_ERROR = 1 << 7


@dataclass
class FirmwareVersion:
    """Controller firmware version."""

    major: int = 0
    minor: int = 0
    patch: int = 0
    raw: str = ""

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_dict(self) -> dict:
        return {"version": str(self), "raw": self.raw}


@dataclass
class MainStatus:
    """Main status flags.

    Binary replies fill the flags from the status byte; line replies only
    carry the controller's text in ``lines``.
    """

    byte: int | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def moving(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & MAIN_MOVING)

    @property
    def motor_detected(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & MAIN_MOTOR_DETECTED)

    @property
    def fine_resolution(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & MAIN_FINE_RESOLUTION)

    @property
    def reverse(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & MAIN_REVERSE)

    def to_dict(self) -> dict:
        return {
            "moving": self.moving,
            "motor_detected": self.motor_detected,
            "fine_resolution": self.fine_resolution,
            "reverse": self.reverse,
            "raw_byte": self.byte,
            "lines": list(self.lines),
        }


@dataclass
class HardwareStatus:
    """Hardware status flags, or diagnostic text for line replies."""

    byte: int | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def initialized(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & HW_INITIALIZED)

    @property
    def incompatible_driver(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & HW_INCOMPATIBLE_DRIVER)

    @property
    def driver_fault(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & HW_DRIVER_FAULT)

    @property
    def command_error(self) -> bool | None:
        return None if self.byte is None else bool(self.byte & HW_COMMAND_ERROR)

    def to_dict(self) -> dict:
        return {
            "initialized": self.initialized,
            "incompatible_driver": self.incompatible_driver,
            "driver_fault": self.driver_fault,
            "command_error": self.command_error,
            "raw_byte": self.byte,
            "lines": list(self.lines),
        }
