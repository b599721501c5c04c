"""Connection and timing defaults.

Values can be overridden per session through :class:`SessionConfig` or
from the environment with :meth:`SessionConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .protocol.framing import Variant

DEFAULT_HOST = "192.168.2.2"
DEFAULT_PORT = 23
CHUNK_SIZE = 64
SETTLE_DELAY_S = 0.1
READ_BUFFER_SIZE = 1024
CONNECT_TIMEOUT_S = 3.0

ENV_PREFIX = "PICOMOTOR_"


@dataclass
class SessionConfig:
    """Settings for one controller session."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    variant: Variant = Variant.LINE
    chunk_size: int = CHUNK_SIZE
    settle_delay: float = SETTLE_DELAY_S
    connect_timeout: float = CONNECT_TIMEOUT_S

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "variant": self.variant.value,
            "chunk_size": self.chunk_size,
            "settle_delay": self.settle_delay,
            "connect_timeout": self.connect_timeout,
        }

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> SessionConfig:
        """Build a config from ``PICOMOTOR_*`` environment variables.

        Recognised: ``PICOMOTOR_HOST``, ``PICOMOTOR_PORT``,
        ``PICOMOTOR_VARIANT`` (``line`` or ``binary``) and
        ``PICOMOTOR_SETTLE_DELAY`` (seconds). Unset variables keep
        the defaults.

        Raises:
            ValueError: If a variable holds an unparseable value.
        """
        env = os.environ if environ is None else environ
        config = cls()

        host = env.get(ENV_PREFIX + "HOST")
        if host:
            config.host = host
        port = env.get(ENV_PREFIX + "PORT")
        if port:
            config.port = int(port)
        variant = env.get(ENV_PREFIX + "VARIANT")
        if variant:
            config.variant = Variant(variant.lower())
        delay = env.get(ENV_PREFIX + "SETTLE_DELAY")
        if delay:
            config.settle_delay = float(delay)

        return config
