"""Configuration loader with type-safe dataclasses."""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# A probe slower than this is classified as down even with a 2xx status.
DEFAULT_LATENCY_THRESHOLD_MS = 500

DEFAULT_INTERVAL = 15.0
DEFAULT_TIMEOUT = 5.0
DEFAULT_USER_AGENT = "DomainWatch/0.1"


@dataclass(frozen=True)
class EndpointConfig:
    """A single HTTP endpoint to probe.

    Only ``url`` is required. ``name`` is a free-form label and need not be
    unique. An empty ``method`` means GET and an empty ``body`` sends no payload.
    """

    name: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    method: str = ""
    body: str = ""

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError(f"URL cannot be empty for '{self.name}'")

    @property
    def effective_method(self) -> str:
        """Return the HTTP method to send, falling back to GET."""
        return self.method or "GET"


@dataclass(frozen=True)
class MonitorConfig:
    """Configuration for the check cycle and its schedule."""

    interval: float = DEFAULT_INTERVAL  # seconds between cycle starts
    max_cycles: int = 0  # 0 runs until stopped
    timeout: float = DEFAULT_TIMEOUT  # per-request timeout in seconds
    latency_threshold_ms: int = DEFAULT_LATENCY_THRESHOLD_MS
    workers: int = 1  # probes in flight per cycle
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not math.isfinite(self.interval) or self.interval <= 0:
            raise ConfigError(f"Monitor interval must be positive (got {self.interval})")
        if self.max_cycles < 0:
            raise ConfigError(f"max_cycles must be non-negative (got {self.max_cycles})")
        if self.latency_threshold_ms < 1:
            raise ConfigError(f"Latency threshold must be at least 1ms (got {self.latency_threshold_ms})")
        if not math.isfinite(self.timeout):
            raise ConfigError(f"Request timeout must be finite (got {self.timeout})")
        # The timeout has to cover the whole latency window.
        if self.timeout * 1000 < self.latency_threshold_ms:
            raise ConfigError(
                f"Request timeout ({self.timeout}s) must not be shorter than the "
                f"latency threshold ({self.latency_threshold_ms}ms)"
            )
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1 (got {self.workers})")
        if not self.user_agent:
            raise ConfigError("User-Agent cannot be empty")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    endpoints: list[EndpointConfig]
    monitor: MonitorConfig = field(default_factory=MonitorConfig)

    def __post_init__(self) -> None:
        if not self.endpoints:
            raise ConfigError("At least one endpoint must be configured")


def _parse_headers(data: object, index: int) -> dict[str, str]:
    """Parse an endpoint's headers mapping, stringifying values."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Endpoint {index}: 'headers' must be a dictionary")
    return {str(key): "" if value is None else str(value) for key, value in data.items()}


def _parse_scalar(data: dict, key: str, index: int) -> str:
    """Read an optional string field, treating null as empty."""
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"Endpoint {index}: '{key}' must be a string")
    return str(value)


def _parse_endpoint_config(data: dict, index: int) -> EndpointConfig:
    """Parse a single endpoint entry."""
    if not isinstance(data, dict):
        raise ConfigError(f"Endpoint {index} must be a dictionary")

    url = data.get("url")
    if url is None or url == "":
        raise ConfigError(f"Endpoint {index} is missing 'url' field")
    if isinstance(url, (dict, list)):
        raise ConfigError(f"Endpoint {index}: 'url' must be a string")

    name = data.get("name")

    return EndpointConfig(
        name=str(name) if name is not None else str(url),
        url=str(url),
        headers=_parse_headers(data.get("headers"), index),
        method=_parse_scalar(data, "method", index),
        body=_parse_scalar(data, "body", index),
    )


def _parse_monitor_config(data: dict | None) -> MonitorConfig:
    """Parse monitor configuration section."""
    if data is None:
        return MonitorConfig()
    if not isinstance(data, dict):
        raise ConfigError("'monitor' section must be a dictionary")

    try:
        return MonitorConfig(
            interval=float(data.get("interval", DEFAULT_INTERVAL)),
            max_cycles=int(data.get("max_cycles", 0)),
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            latency_threshold_ms=int(data.get("latency_threshold_ms", DEFAULT_LATENCY_THRESHOLD_MS)),
            workers=int(data.get("workers", 1)),
            user_agent=str(data.get("user_agent", DEFAULT_USER_AGENT)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in 'monitor' section: {e}")


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - DOMAINWATCH_MONITOR_INTERVAL: Override monitor.interval
    - DOMAINWATCH_MAX_CYCLES: Override monitor.max_cycles
    - DOMAINWATCH_REQUEST_TIMEOUT: Override monitor.timeout
    - DOMAINWATCH_WORKERS: Override monitor.workers
    """
    if config_data.get("monitor") is None:
        config_data["monitor"] = {}
    monitor = config_data["monitor"]
    if not isinstance(monitor, dict):
        return config_data

    overrides = {
        "DOMAINWATCH_MONITOR_INTERVAL": ("interval", float),
        "DOMAINWATCH_MAX_CYCLES": ("max_cycles", int),
        "DOMAINWATCH_REQUEST_TIMEOUT": ("timeout", float),
        "DOMAINWATCH_WORKERS": ("workers", int),
    }
    for env_name, (key, convert) in overrides.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        try:
            monitor[key] = convert(value)
        except ValueError:
            raise ConfigError(f"Invalid value for {env_name}: {value!r}")

    return config_data


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    The file is either a bare list of endpoints or a mapping with an
    ``endpoints`` list and an optional ``monitor`` section.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
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

    if isinstance(data, list):
        data = {"endpoints": data}
    elif not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML list or dictionary")

    data = _apply_env_overrides(data)

    endpoints_data = data.get("endpoints")
    if endpoints_data is None:
        raise ConfigError("Configuration must contain an 'endpoints' section")
    if not isinstance(endpoints_data, list):
        raise ConfigError("'endpoints' must be a list")

    endpoints = [_parse_endpoint_config(entry, i) for i, entry in enumerate(endpoints_data)]

    return Config(
        endpoints=endpoints,
        monitor=_parse_monitor_config(data.get("monitor")),
    )
