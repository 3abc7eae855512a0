"""Configuration and logging setup for the analytics platform client."""

import json
import logging
import os
import pathlib
import re

import pydantic
import structlog

from .errors import ConfigurationError

CONFIG_ENV_VAR = "GDC_API_CONFIG_PATH"
DEFAULT_PORT = 443
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_TIMEOUT = 30.0

HOSTNAME_REGEX = re.compile(r"^[a-z0-9_.-]+$", re.IGNORECASE)

# domain@host:port, domain@host, host:port or host
CONFIG_STRING_REGEX = re.compile(
    r"^(?:(?P<domain>[a-z_-]+)@)?(?P<hostname>[a-z0-9._-]+)(?::(?P<port>[a-z0-9]+))?$",
    re.IGNORECASE,
)

logger = structlog.get_logger(__name__)


class ApiConfig(pydantic.BaseModel):
    """Connection settings for the analytics platform API."""

    model_config = pydantic.ConfigDict(frozen=True)

    hostname: str = pydantic.Field(description="API server hostname")
    port: int = pydantic.Field(DEFAULT_PORT, description="API server port", gt=0, lt=65536)
    domain: str | None = pydantic.Field(
        None,
        description="Organization domain, required for user registration",
    )
    poll_interval: float = pydantic.Field(
        DEFAULT_POLL_INTERVAL,
        description="Seconds to wait between two polls of an asynchronous task",
        ge=0,
    )
    debug: bool = pydantic.Field(False, description="Log every HTTP exchange")
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    verify_ssl: bool = pydantic.Field(True, description="Verify TLS certificates")
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("hostname")
    @classmethod
    def _check_hostname(cls, value: str) -> str:
        if not HOSTNAME_REGEX.match(value):
            msg = f"Invalid hostname: {value!r}"
            raise ValueError(msg)
        return value

    def __init__(self, **data):
        """Validate the settings.

        Raises:
            ConfigurationError: If any setting is missing or invalid.
        """
        try:
            super().__init__(**data)
        except pydantic.ValidationError as exc:
            msg = f"Invalid API configuration: {exc}"
            raise ConfigurationError(msg) from exc

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}:{self.port}"

    @classmethod
    def from_string(cls, value: str, **overrides) -> "ApiConfig":
        """Build a configuration from ``domain@host:port`` notation.

        Domain and port are optional; the port defaults to 443.

        Raises:
            ConfigurationError: If the string does not match the notation
                or yields invalid settings.
        """
        match = CONFIG_STRING_REGEX.match(value)
        if not match:
            msg = f"Invalid configuration string: {value!r}"
            raise ConfigurationError(msg)
        data = {
            "hostname": match["hostname"],
            "domain": match["domain"],
            "port": match["port"] or DEFAULT_PORT,
        }
        data.update(overrides)
        return build_config(data)


def build_config(data: dict) -> ApiConfig:
    """Validate a settings mapping into an :class:`ApiConfig`.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    config = ApiConfig(**data)
    if not config.domain:
        logger.warning("Domain not specified, user registration will fail")
    return config


def load_config(config_path: str | None = None) -> ApiConfig:
    """Load configuration from a JSON file.

    Falls back to the path in the ``GDC_API_CONFIG_PATH`` environment
    variable when no path is given.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR)
    if not resolved_path:
        msg = f"No configuration path given and {CONFIG_ENV_VAR} is not set"
        raise ConfigurationError(msg)

    path = pathlib.Path(resolved_path)
    if not path.exists():
        msg = f"Configuration file not found: {resolved_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return build_config(data)


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
