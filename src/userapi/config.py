"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized settings for the user API server.

    Defaults (this dataclass)
          ▼
    Environment (ServerConfig.from_env)   USERAPI_PORT=8000 ...
          ▼
    Command line (python -m userapi)      --port 8000 ...

Later sources override earlier ones. validate() runs when the server is
constructed so a bad value fails at startup, not on the first request.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    NETWORK    host, port, backlog, buffer_size, timeout
    HTTP       keep_alive, keep_alive_timeout, max_request_size
    THREADING  min_workers, max_workers, queue_size
    LOGGING    log_level, log_format
    IDENTITY   server_name, version (reported by GET /status)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 3000
    """TCP port. 0 lets the OS pick a free one (used by the tests)."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """Socket timeout for the first request on a connection, in seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve several requests per TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 1024 * 1024  # 1 MB
    """Largest accepted request (headers plus body) in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections waiting for a worker before new ones get a 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: "text" (Apache-like) or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "UserApiServer"
    version: str = "1.0.0"

    @property
    def server_header(self) -> str:
        """Value of the Server response header, e.g. "UserApiServer/1.0.0"."""
        return f"{self.server_name}/{self.version}"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

            USERAPI_HOST        bind address       (default 127.0.0.1)
            USERAPI_PORT        port               (default 3000)
            USERAPI_WORKERS     max worker threads (default 16)
            USERAPI_TIMEOUT     socket timeout, s  (default 30)
            USERAPI_LOG_LEVEL   logging level      (default INFO)
            USERAPI_LOG_FORMAT  text or json       (default text)

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = cls()
        max_workers = int(os.getenv("USERAPI_WORKERS", str(defaults.max_workers)))
        return cls(
            host=os.getenv("USERAPI_HOST", defaults.host),
            port=int(os.getenv("USERAPI_PORT", str(defaults.port))),
            min_workers=min(defaults.min_workers, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("USERAPI_TIMEOUT", str(defaults.timeout))),
            log_level=os.getenv("USERAPI_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("USERAPI_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """
        Check every value, raising ValueError on the first bad one.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
