"""Data models for controller query results."""

from .status import FirmwareVersion, HardwareStatus, MainStatus
