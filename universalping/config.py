"""Configuration loader with type-safe dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Service mode waits longer for slow (sleeping) apps to wake up.
DEFAULT_TIMEOUT_MS = 60000
ONCE_DEFAULT_TIMEOUT_MS = 30000

DEFAULT_DELAY_MS = 1000
DEFAULT_SCHEDULE = "*/15 * * * *"  # every 15 minutes
DEFAULT_USER_AGENT = "Universal-HTTP-Ping-Service/1.0"

# Valid privacy modes
PRIVACY_NONE = "none"
PRIVACY_PARTIAL = "partial"
PRIVACY_FULL = "full"
PRIVACY_MODES = (PRIVACY_NONE, PRIVACY_PARTIAL, PRIVACY_FULL)

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class PingConfig:
    """Configuration for individual requests and pacing between them."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    delay_ms: int = DEFAULT_DELAY_MS
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.timeout_ms < 1:
            raise ConfigError(f"Request timeout must be at least 1ms (got {self.timeout_ms})")
        if self.delay_ms < 0:
            raise ConfigError(f"Ping delay must be non-negative (got {self.delay_ms})")
        if not self.user_agent:
            raise ConfigError("User-Agent cannot be empty")


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for log output."""

    level: str = "info"

    def __post_init__(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level '{self.level}'. Must be one of: {LOG_LEVELS}")


@dataclass(frozen=True)
class Config:
    """Main configuration container.

    Endpoints are kept exactly as configured; filtering out malformed
    URLs is done once at startup by the validator.
    """

    endpoints: tuple[str, ...]
    ping: PingConfig = field(default_factory=PingConfig)
    schedule: str = DEFAULT_SCHEDULE
    privacy: str = PRIVACY_NONE
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.endpoints, tuple):
            raise ConfigError("Endpoints must be a tuple")
        if not self.endpoints:
            raise ConfigError("At least one endpoint must be configured")
        if not self.schedule or not self.schedule.strip():
            raise ConfigError("Schedule expression cannot be empty")
        if self.privacy not in PRIVACY_MODES:
            raise ConfigError(f"Invalid privacy mode '{self.privacy}'. Must be one of: {PRIVACY_MODES}")


def _parse_endpoints(data: object) -> tuple[str, ...]:
    """Parse the endpoint list, stripping whitespace and dropping blank entries."""
    if data is None:
        return ()
    if not isinstance(data, list):
        raise ConfigError("'endpoints' must be a list")

    endpoints: list[str] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, str):
            raise ConfigError(f"Endpoint entry {index} must be a string")
        entry = entry.strip()
        if entry:
            endpoints.append(entry)
    return tuple(endpoints)


def _parse_privacy_mode(value: object) -> str:
    """Normalize a privacy mode value.

    Booleans are accepted for compatibility with the on/off PRIVACY_MODE
    switch: true hides endpoints completely, false shows them as-is.
    """
    if isinstance(value, bool):
        return PRIVACY_FULL if value else PRIVACY_NONE
    mode = str(value).strip().lower()
    if mode == "true":
        return PRIVACY_FULL
    if mode in ("false", ""):
        return PRIVACY_NONE
    return mode


def _parse_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")


def _parse_ping_config(data: dict | None, default_timeout_ms: int) -> PingConfig:
    """Parse ping configuration section."""
    if data is None:
        return PingConfig(timeout_ms=default_timeout_ms)
    if not isinstance(data, dict):
        raise ConfigError("'ping' section must be a dictionary")

    return PingConfig(
        timeout_ms=_parse_int(data.get("timeout_ms", default_timeout_ms), "ping.timeout_ms"),
        delay_ms=_parse_int(data.get("delay_ms", DEFAULT_DELAY_MS), "ping.delay_ms"),
        user_agent=str(data.get("user_agent", DEFAULT_USER_AGENT)),
    )


def _parse_logging_config(data: dict | None) -> LoggingConfig:
    """Parse logging configuration section."""
    if data is None:
        return LoggingConfig()
    if not isinstance(data, dict):
        raise ConfigError("'logging' section must be a dictionary")

    return LoggingConfig(level=str(data.get("level", "info")).lower())


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - WEBSITE_URLS: Comma-separated endpoint list, replaces 'endpoints'
    - REQUEST_TIMEOUT: Override ping.timeout_ms
    - PING_DELAY: Override ping.delay_ms
    - PING_INTERVAL: Override schedule (crontab expression)
    - PRIVACY_MODE: Override privacy (none/partial/full, or true/false)
    - LOG_LEVEL: Override logging.level
    """
    for section in ("ping", "logging"):
        if config_data.get(section) is None:
            config_data[section] = {}
        elif not isinstance(config_data[section], dict):
            raise ConfigError(f"'{section}' section must be a dictionary")

    website_urls = os.environ.get("WEBSITE_URLS")
    if website_urls is not None:
        config_data["endpoints"] = website_urls.split(",")

    request_timeout = os.environ.get("REQUEST_TIMEOUT")
    if request_timeout is not None:
        config_data["ping"]["timeout_ms"] = _parse_int(request_timeout, "REQUEST_TIMEOUT")

    ping_delay = os.environ.get("PING_DELAY")
    if ping_delay is not None:
        config_data["ping"]["delay_ms"] = _parse_int(ping_delay, "PING_DELAY")

    ping_interval = os.environ.get("PING_INTERVAL")
    if ping_interval is not None:
        config_data["schedule"] = ping_interval

    privacy_mode = os.environ.get("PRIVACY_MODE")
    if privacy_mode is not None:
        config_data["privacy"] = privacy_mode

    log_level = os.environ.get("LOG_LEVEL")
    if log_level is not None:
        config_data["logging"]["level"] = log_level

    return config_data


def _read_yaml(config_path: str) -> dict:
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        raise ConfigError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    return data


def load_config(config_path: str | None = None, *, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Config:
    """Load and validate configuration from a YAML file and the environment.

    Args:
        config_path: Path to the YAML configuration file, or None to configure
            from environment variables only.
        default_timeout_ms: Request timeout used when neither the file nor
            the environment sets one.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    data = _read_yaml(config_path) if config_path is not None else {}
    data = _apply_env_overrides(data)

    endpoints = _parse_endpoints(data.get("endpoints"))
    if not endpoints:
        raise ConfigError("No endpoints configured. Set 'endpoints' in the config file or WEBSITE_URLS")

    return Config(
        endpoints=endpoints,
        ping=_parse_ping_config(data.get("ping"), default_timeout_ms),
        schedule=str(data.get("schedule", DEFAULT_SCHEDULE)),
        privacy=_parse_privacy_mode(data.get("privacy", PRIVACY_NONE)),
        logging=_parse_logging_config(data.get("logging")),
    )
