"""Host-side driver and MCP server for the New Focus Picomotor Ethernet Controller."""

__version__ = "0.1.0"
