"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest first)                                          │
    │                                                                      │
    │   1. Command-line flags     routekit --port 3000                     │
    │   2. Environment            ROUTEKIT_PORT=3000 routekit              │
    │   3. Defaults below                                                  │
    └─────────────────────────────────────────────────────────────────────┘

validate() runs at startup so a bad value fails before the port is bound,
not on the first request.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    if raw.lower() in ("none", "off", "0"):
        return None
    return float(raw)


@dataclass
class ServerConfig:
    """
    Configuration for HTTPServer.

        ServerConfig(port=8090, request_timeout=10.0)
        ServerConfig.from_env()
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8090
    """Port to listen on; 0 lets the OS pick a free one."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: Optional[float] = 30.0
    """Socket timeout for reading the first request. None blocks forever."""

    request_timeout: Optional[float] = 30.0
    """
    Seconds a single dispatch may run. When it overruns, the response is
    cancelled and the client gets 503. None disables the limit.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve several requests per TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024
    """Upper bound on a whole request (headers and body) in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    static_dir: Optional[str] = None
    """Directory served under static_url_prefix. None uses the bundled one."""

    static_url_prefix: str = "/static"

    template_dir: Optional[str] = None
    """Template directory. None uses the bundled templates."""

    suppress_root_not_found: bool = True
    """Leave "/" alone in the not-found handler instead of answering 404."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format, "text" (Apache style) or "json"."""

    server_name: str = "routekit/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a config from ROUTEKIT_* environment variables.

        ROUTEKIT_HOST, ROUTEKIT_PORT, ROUTEKIT_TIMEOUT,
        ROUTEKIT_REQUEST_TIMEOUT ("none" or "0" disables),
        ROUTEKIT_WORKERS (max workers), ROUTEKIT_STATIC_DIR,
        ROUTEKIT_TEMPLATE_DIR, ROUTEKIT_LOG_LEVEL.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = cls()
        max_workers = int(os.getenv("ROUTEKIT_WORKERS", str(defaults.max_workers)))
        return cls(
            host=os.getenv("ROUTEKIT_HOST", defaults.host),
            port=int(os.getenv("ROUTEKIT_PORT", str(defaults.port))),
            timeout=_env_float("ROUTEKIT_TIMEOUT", defaults.timeout),
            request_timeout=_env_float("ROUTEKIT_REQUEST_TIMEOUT", defaults.request_timeout),
            min_workers=min(defaults.min_workers, max_workers),
            max_workers=max_workers,
            static_dir=os.getenv("ROUTEKIT_STATIC_DIR") or None,
            template_dir=os.getenv("ROUTEKIT_TEMPLATE_DIR") or None,
            log_level=os.getenv("ROUTEKIT_LOG_LEVEL", defaults.log_level).upper(),
        )

    def validate(self) -> None:
        """
        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}")
        if not self.static_url_prefix.startswith("/"):
            raise ValueError("static_url_prefix must start with '/'")
