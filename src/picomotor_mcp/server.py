"""MCP server entry point for the New Focus Picomotor Ethernet Controller.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import SessionConfig
from .errors import TransportWriteError
from .protocol.commands import MOTOR_IDS
from .protocol.framing import Variant
from .session import DeviceSession
from .transport.simulated import SimulatedConnection, SimulatedController

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "picomotor",
    instructions="MCP server for the New Focus Picomotor Ethernet Controller 8752",
)

# Global session state
_session: DeviceSession | None = None


def _get_session() -> DeviceSession:
    """Get the active session, raising if not connected."""
    if _session is None or not _session.connected:
        raise RuntimeError(
            "Not connected to controller. Use the 'connect' tool first."
        )
    return _session


def _reply_dict(reply) -> dict[str, Any]:
    result: dict[str, Any] = {"no_reply": reply.no_reply}
    if reply.lines:
        result["lines"] = reply.lines
    elif reply.raw:
        result["raw_hex"] = reply.raw.hex(" ")
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    variant: str | None = None,
    simulate: bool = False,
) -> dict[str, Any]:
    """Open a connection to the Picomotor controller.

    Defaults come from the PICOMOTOR_HOST / PICOMOTOR_PORT /
    PICOMOTOR_VARIANT environment variables. Queries the firmware
    version to confirm the controller answers.

    Args:
        host: Controller IP address or hostname.
        port: Controller TCP port (23 on the 8752).
        variant: Wire protocol, "line" (default) or "binary".
        simulate: Talk to an in-process simulated controller instead.
    """
    global _session
    if _session is not None and _session.connected:
        return {"connected": True, "message": "Already connected"}

    config = SessionConfig.from_env()
    if variant is not None:
        try:
            config.variant = Variant(variant.lower())
        except ValueError:
            return {"error": f"Unknown variant '{variant}'. Valid: line, binary"}
    if host:
        config.host = host
    if port:
        config.port = port

    logger.debug("Connecting with %s", config.to_dict())
    transport = None
    if simulate:
        transport = SimulatedConnection(responder=SimulatedController(config.variant))

    session = DeviceSession(transport=transport, config=config)
    session.connect(config.host, config.port)
    _session = session

    result: dict[str, Any] = {
        "connected": True,
        "host": config.host,
        "port": config.port,
        "variant": config.variant.value,
        "simulated": simulate,
    }
    firmware = session.query_firmware_version()
    if firmware is not None:
        result["firmware"] = str(firmware)
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the controller."""
    global _session
    if _session is None:
        return {"disconnected": True}
    _session.close()
    _session = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve the controller firmware version."""
    session = _get_session()
    firmware = session.query_firmware_version()
    if firmware is None:
        return {"error": "No firmware version in controller reply"}
    return firmware.to_dict()


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Read the controller main status."""
    session = _get_session()
    status = session.query_status()
    if status is None:
        return {"error": "No response from controller"}
    return status.to_dict()


@mcp.tool()
def get_hardware_status() -> dict[str, Any]:
    """Read the controller hardware/diagnostic status."""
    session = _get_session()
    status = session.query_hardware_status()
    if status is None:
        return {"error": "No response from controller"}
    return status.to_dict()


# ─── MOTION TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def move_relative(steps: int) -> dict[str, Any]:
    """Move the active motor a number of steps in the configured direction.

    Args:
        steps: Step count.
    """
    session = _get_session()
    try:
        reply = session.move_relative(steps)
    except ValueError as e:
        return {"error": str(e)}
    result = _reply_dict(reply)
    result["steps"] = steps
    return result


@mcp.tool()
def set_direction(direction: str) -> dict[str, Any]:
    """Set the direction of the next movement.

    Args:
        direction: "forward" or "backward".
    """
    session = _get_session()
    try:
        reply = session.set_direction(direction)
    except ValueError as e:
        return {"error": str(e)}
    result = _reply_dict(reply)
    result["direction"] = direction
    return result


@mcp.tool()
def set_resolution(resolution: str) -> dict[str, Any]:
    """Set the step resolution.

    Args:
        resolution: "fine" or "coarse".
    """
    session = _get_session()
    try:
        reply = session.set_resolution(resolution)
    except ValueError as e:
        return {"error": str(e)}
    result = _reply_dict(reply)
    result["resolution"] = resolution.lower()
    return result


@mcp.tool()
def set_active_motor(motor: int) -> dict[str, Any]:
    """Select the motor channel to drive.

    Args:
        motor: Motor channel (0-2).
    """
    if motor not in MOTOR_IDS:
        return {"error": f"Motor must be one of {list(MOTOR_IDS)}"}
    session = _get_session()
    reply = session.set_active_motor(motor)
    result = _reply_dict(reply)
    result["motor"] = motor
    return result


@mcp.tool()
def go() -> dict[str, Any]:
    """Start the configured motion."""
    return _reply_dict(_get_session().go())


@mcp.tool()
def stop() -> dict[str, Any]:
    """Stop the motion in progress."""
    return _reply_dict(_get_session().stop())


@mcp.tool()
def send_raw(command: str, expects_reply: bool = True) -> dict[str, Any]:
    """Send a raw 8752 text command (line variant only).

    Args:
        command: Command string, e.g. "VEL a1 0=1000".
        expects_reply: Whether to wait for and read a reply.
    """
    session = _get_session()
    try:
        reply = session.send_raw(command, expects_reply=expects_reply)
    except ValueError as e:
        return {"error": str(e)}
    except TransportWriteError as e:
        return {"error": str(e), "sent": e.sent, "total": e.total}
    return _reply_dict(reply)


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("picomotor://device/status")
def resource_device_status() -> str:
    """Connection state and session settings."""
    if _session is None or not _session.connected:
        return json.dumps({"connected": False})
    return json.dumps({"connected": True, **_session.config.to_dict()})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
