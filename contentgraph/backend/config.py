"""HTTP server configuration with dev/prod security modes."""

import os
from dataclasses import dataclass, field
from enum import Enum


class SecurityMode(str, Enum):
    """Security mode determines default security settings.

    DEV: Relaxed settings for local development and testing
    PROD: Strict settings for deployment (default)
    """
    DEV = "dev"
    PROD = "prod"


@dataclass
class ServerConfig:
    """Configuration for the graph API server.

    Security settings are determined by CONTENTGRAPH_MODE (dev/prod).
    Individual settings can be overridden via environment variables.

    DEV mode:
        - Authentication: disabled
        - Verbose errors: enabled
        - Host: 127.0.0.1

    PROD mode (default):
        - Authentication: required
        - Verbose errors: disabled
        - Host: 0.0.0.0
    """

    mode: SecurityMode = field(default=None)  # type: ignore[assignment]

    host: str = field(default=None)  # type: ignore[assignment]
    port: int = field(default_factory=lambda: int(os.environ.get("PORT", "8430")))

    api_key: str | None = field(
        default_factory=lambda: os.environ.get("CONTENTGRAPH_API_KEY")
    )
    require_auth: bool = field(default=None)  # type: ignore[assignment]
    verbose_errors: bool = field(default=None)  # type: ignore[assignment]

    # Create Neo4j constraints on first connection
    init_schema: bool = field(default=None)  # type: ignore[assignment]

    def __post_init__(self):
        """Apply mode-based defaults."""
        if self.mode is None:
            mode_str = os.environ.get("CONTENTGRAPH_MODE", "prod").lower()
            try:
                self.mode = SecurityMode(mode_str)
            except ValueError:
                self.mode = SecurityMode.PROD

        dev = self.mode == SecurityMode.DEV
        if self.require_auth is None:
            self.require_auth = self._env_bool("CONTENTGRAPH_REQUIRE_AUTH", not dev)
        if self.verbose_errors is None:
            self.verbose_errors = self._env_bool("CONTENTGRAPH_VERBOSE_ERRORS", dev)
        if self.init_schema is None:
            self.init_schema = self._env_bool("CONTENTGRAPH_INIT_SCHEMA", True)
        if self.host is None:
            self.host = os.environ.get("HOST", "127.0.0.1" if dev else "0.0.0.0")

    @staticmethod
    def _env_bool(key: str, default: bool) -> bool:
        """Parse boolean from environment variable."""
        val = os.environ.get(key, "").lower()
        if val in ("true", "1", "yes"):
            return True
        if val in ("false", "0", "no"):
            return False
        return default

    @property
    def is_dev_mode(self) -> bool:
        return self.mode == SecurityMode.DEV


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global server config instance."""
    global _config
    if _config is None:
        _config = ServerConfig()
    return _config


def reset_config() -> None:
    """Reset config for testing."""
    global _config
    _config = None
