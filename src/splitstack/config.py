"""
=============================================================================
CONFIGURATION
=============================================================================

Centralized configuration for the server and the client pipeline.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m splitstack --port 8000                          │
    │                                                                      │
    │   2. Process environment                                            │
    │      └── PORT=8000 APP_ENV=production python -m splitstack         │
    │                                                                      │
    │   3. .env file (python-dotenv; never overrides the environment)     │
    │      └── PORT=8000                                                  │
    │          CLIENT_URL=http://localhost:3000                          │
    │                                                                      │
    │   4. Default values (in the dataclasses below)                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The variable names follow the conventions of the Node tooling the split
client is built with (PORT, CLIENT_URL, NODE_ENV), so one .env file can
serve both halves of the project.

=============================================================================
MODES
=============================================================================

    development   error responses include message + stack
    production    client bundle served for non-API paths
    test          neither
    (unset)       neither: an unconfigured server discloses nothing

Validation runs eagerly at startup. Fail fast, not hours into a deploy.
=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import logging
import os

from dotenv import find_dotenv, load_dotenv


logger = logging.getLogger(__name__)


class Mode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Mode"]:
        if value is None or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid mode: {value!r}. Must be one of "
                f"{', '.join(m.value for m in cls)}."
            )


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_ms(name: str) -> Optional[float]:
    """Read a millisecond env var as seconds."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value) / 1000


def _load_env_file(env_file: Optional[str]) -> None:
    """Load env_file, or the nearest .env above the working directory."""
    # load_dotenv("") would search from this module's directory instead
    path = env_file or find_dotenv(usecwd=True)
    if path:
        load_dotenv(path)


def _split_origins(value: str) -> List[str]:
    return [origin.strip().rstrip("/") for origin in value.split(",") if origin.strip()]


@dataclass
class ServerConfig:
    """
    Configuration for the API server.

        ServerConfig(
            port=5000,
            mode=Mode.DEVELOPMENT,
            allowed_origins=["http://localhost:3000"],
        )
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Bind address. "0.0.0.0" inside containers."""

    port: int = 5000
    """Listen port (PORT). 0 asks the OS for a free port."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Socket read timeout in seconds."""

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0

    # ─────────────────────────────────────────────────────────────────────
    # ENVIRONMENT
    # ─────────────────────────────────────────────────────────────────────

    mode: Optional[Mode] = None
    """APP_ENV / NODE_ENV. Gates diagnostics and the client bundle."""

    # ─────────────────────────────────────────────────────────────────────
    # PIPELINE
    # ─────────────────────────────────────────────────────────────────────

    allowed_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    """CLIENT_URL, comma-separated. Origins allowed to make credentialed calls."""

    api_prefix: str = "/api"
    """Namespace of the API routes; also the admission control scope."""

    rate_limit_window: float = 15 * 60
    """Admission window in seconds (RATE_LIMIT_WINDOW_MS)."""

    rate_limit_max: int = 100
    """Requests admitted per identity per window (RATE_LIMIT_MAX)."""

    body_limit: int = 10 * 1024 * 1024  # 10 MB
    """Largest request body the parser accepts (BODY_LIMIT)."""

    request_timeout: Optional[float] = None
    """Handler timeout in seconds (REQUEST_TIMEOUT_MS). None = unbounded."""

    trust_proxy: bool = False
    """Take client identity from X-Forwarded-For (TRUST_PROXY)."""

    client_dist_dir: str = "client/dist"
    """Pre-built client bundle served in production (CLIENT_DIST_DIR)."""

    # ─────────────────────────────────────────────────────────────────────
    # THREADING
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: Optional[str] = None
    """Access log format: dev, combined or json. None picks by mode."""

    server_name: str = "splitstack"

    # ─────────────────────────────────────────────────────────────────────
    # DERIVED
    # ─────────────────────────────────────────────────────────────────────

    @property
    def is_development(self) -> bool:
        return self.mode is Mode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.mode is Mode.PRODUCTION

    @property
    def access_log_format(self) -> str:
        if self.log_format:
            return self.log_format
        return "dev" if self.is_development else "combined"

    @property
    def max_request_size(self) -> int:
        """Transport read limit: the body limit plus room for headers."""
        return self.body_limit + 64 * 1024

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ServerConfig":
        """
        Build configuration from the environment.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HOST                  Bind address (default: 127.0.0.1)
        PORT                  Listen port (default: 5000)
        APP_ENV / NODE_ENV    development | production | test
        CLIENT_URL            Allowed origins, comma-separated
        API_PREFIX            API namespace (default: /api)
        RATE_LIMIT_WINDOW_MS  Admission window (default: 900000)
        RATE_LIMIT_MAX        Requests per window (default: 100)
        BODY_LIMIT            Body size limit in bytes (default: 10 MB)
        REQUEST_TIMEOUT_MS    Handler timeout (default: none)
        TRUST_PROXY           Use X-Forwarded-For (default: false)
        CLIENT_DIST_DIR       Client bundle (default: client/dist)
        WORKERS               Max worker threads (default: 16)
        LOG_LEVEL             Logging level (default: INFO)
        LOG_FORMAT            dev | combined | json

        =====================================================================
        """
        _load_env_file(env_file)
        defaults = cls()

        window = _env_ms("RATE_LIMIT_WINDOW_MS")
        client_url = os.getenv("CLIENT_URL")
        workers = int(os.getenv("WORKERS", str(defaults.max_workers)))

        return cls(
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", str(defaults.port))),
            mode=Mode.parse(os.getenv("APP_ENV") or os.getenv("NODE_ENV")),
            allowed_origins=_split_origins(client_url) if client_url else defaults.allowed_origins,
            api_prefix=os.getenv("API_PREFIX", defaults.api_prefix),
            rate_limit_window=window if window is not None else defaults.rate_limit_window,
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", str(defaults.rate_limit_max))),
            body_limit=int(os.getenv("BODY_LIMIT", str(defaults.body_limit))),
            request_timeout=_env_ms("REQUEST_TIMEOUT_MS"),
            trust_proxy=_env_bool(os.getenv("TRUST_PROXY")),
            client_dist_dir=os.getenv("CLIENT_DIST_DIR", defaults.client_dist_dir),
            min_workers=min(defaults.min_workers, workers),
            max_workers=workers,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("LOG_FORMAT") or None,
        )

    def validate(self) -> None:
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not self.api_prefix.startswith("/"):
            raise ValueError(f"api_prefix must start with '/', got {self.api_prefix!r}")

        if self.rate_limit_window <= 0:
            raise ValueError("rate_limit_window must be > 0")

        if self.rate_limit_max < 1:
            raise ValueError("rate_limit_max must be >= 1")

        if self.body_limit < 0:
            raise ValueError("body_limit must be >= 0")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in (None, "dev", "combined", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format!r}")

        if "*" in self.allowed_origins:
            logger.warning("CLIENT_URL allows every origin; credentials will be echoed to any site")


@dataclass
class ClientConfig:
    """Configuration for the outbound client pipeline."""

    api_base_url: str = "http://localhost:5000/api"
    """Base URL every client request is resolved against (API_URL)."""

    login_path: str = "/login"
    """Where the session is sent after a 401."""

    timeout: float = 10.0
    """Per-request timeout in seconds."""

    retries: int = 0
    """Transport-level connection retries, below the interceptors."""

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        _load_env_file(env_file)
        defaults = cls()
        return cls(
            api_base_url=os.getenv("API_URL", defaults.api_base_url),
            login_path=os.getenv("LOGIN_PATH", defaults.login_path),
            timeout=float(os.getenv("API_TIMEOUT", str(defaults.timeout))),
            retries=int(os.getenv("API_RETRIES", str(defaults.retries))),
        )
