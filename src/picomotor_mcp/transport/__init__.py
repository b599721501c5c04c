"""Byte-stream transports: TCP socket and in-process simulation."""

from .base import Transport
from .simulated import SimulatedConnection, SimulatedController
from .tcp_connection import TCPConnection
