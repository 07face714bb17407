"""Server configuration: pydantic models loaded from one YAML file.

A bad value in the file is a startup error, never a silent reset to
defaults: the defaults point at a local broker and carry no API key.
"""

import logging
import threading
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/smart-display/config.yaml")

_MQTT_SCHEMES = {
    "mqtt": (1883, False),
    "tcp": (1883, False),
    "mqtts": (8883, True),
    "ssl": (8883, True),
}


# =============================================================================
# Configuration Models
# =============================================================================


class MqttConfig(BaseModel):
    """MQTT broker connection settings."""

    server: str = Field("mqtt://localhost:1883", description="Broker URL")
    username: str | None = Field(None, description="Broker username")
    password: SecretStr | None = Field(None, description="Broker password")
    client_id: str = Field("smart-display-server", min_length=1, description="MQTT client id")
    keepalive: int = Field(30, ge=5, le=3600, description="Keepalive in seconds")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        """Validate broker URL scheme and host."""
        parsed = urlparse(v)
        if parsed.scheme not in _MQTT_SCHEMES:
            raise ValueError(f"Unsupported MQTT scheme: {parsed.scheme or '<none>'}")
        if not parsed.hostname:
            raise ValueError("MQTT server URL has no host")
        # Reading .port raises ValueError for non-numeric or out-of-range ports
        if parsed.port == 0:
            raise ValueError("MQTT port must not be 0")
        return v

    @property
    def host(self) -> str:
        return urlparse(self.server).hostname or "localhost"

    @property
    def port(self) -> int:
        parsed = urlparse(self.server)
        return parsed.port or _MQTT_SCHEMES[parsed.scheme][0]

    @property
    def tls_enabled(self) -> bool:
        return _MQTT_SCHEMES[urlparse(self.server).scheme][1]


class DisplayConfig(BaseModel):
    """Pixel display settings."""

    width: int = Field(32, ge=8, le=256, description="Display width in pixels")
    height: int = Field(8, ge=8, le=256, description="Display height in pixels")
    brightness: int = Field(50, ge=0, le=100, description="Display brightness %")


class SchedulerConfig(BaseModel):
    """App rotation timing."""

    tick_interval: float = Field(1.0, gt=0, le=60, description="Seconds between ticks")
    hold_ticks: int = Field(15, ge=1, le=3600, description="Ticks an app stays selected")


class ClockAppConfig(BaseModel):
    """Clock app settings."""

    format_24h: bool = Field(True, description="Use 24-hour format")


class RoomWeatherAppConfig(BaseModel):
    """Room (sensor) weather app settings."""

    max_cache_age_minutes: int = Field(10, ge=1, description="Minutes before a reading is stale")


class CityWeatherAppConfig(BaseModel):
    """City weather app settings."""

    api_key: SecretStr = Field(default=SecretStr(""), description="OpenWeatherMap API key")
    location: str = Field("Berlin", min_length=1, description="City name")
    units: str = Field("metric", description="Units: metric, imperial")
    max_cache_age_minutes: int = Field(30, ge=1, description="Minutes before data is stale")

    @field_validator("units")
    @classmethod
    def validate_units(cls, v: str) -> str:
        if v not in ("metric", "imperial", "standard"):
            raise ValueError(f"Unknown units: {v}")
        return v


class AppsConfig(BaseModel):
    """Per-app settings."""

    clock: ClockAppConfig = Field(default_factory=ClockAppConfig)
    room_weather: RoomWeatherAppConfig = Field(default_factory=RoomWeatherAppConfig)
    city_weather: CityWeatherAppConfig = Field(default_factory=CityWeatherAppConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Log level")
    format: str = Field("simple", description="Format: simple, structured")
    file: str | None = Field(None, description="Log file path")
    max_size_mb: int = Field(10, ge=1, description="Max log file size")
    backup_count: int = Field(3, ge=0, description="Number of backup files")


class Config(BaseModel):
    """Root configuration model."""

    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    apps: AppsConfig = Field(default_factory=AppsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Loading
# =============================================================================


def load_config(data: dict[str, Any], source: str | Path | None = None) -> Config:
    """Validate a raw settings mapping.

    Args:
        data: Parsed settings (e.g. from YAML)
        source: Where the settings came from, for the error message

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If any setting is invalid
    """
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in e.errors()
        ]
        raise ConfigurationError(
            "Invalid configuration",
            path=str(source) if source else None,
            problems=problems,
            cause=e,
        ) from e


def _storable(config: Config) -> dict[str, Any]:
    """Dump config for YAML with secrets in clear text."""
    data = config.model_dump(mode="json")
    password = config.mqtt.password
    data["mqtt"]["password"] = password.get_secret_value() if password else None
    data["apps"]["city_weather"]["api_key"] = config.apps.city_weather.api_key.get_secret_value()
    return data


class ConfigManager:
    """Process-wide holder of the server configuration.

    The YAML file is read once. A missing file is created with defaults so
    there is something to edit; a file that cannot be read or parsed as
    YAML is skipped with a warning. Settings that parse but do not validate
    raise ``ConfigurationError`` instead of being replaced by defaults.

    Usage:
        config = ConfigManager.get_instance("/etc/smart-display/config.yaml").get()
    """

    _instance: "ConfigManager | None" = None
    _instance_lock = threading.Lock()

    def __init__(self, config_path: str | Path) -> None:
        self._config_path = Path(config_path)
        self._lock = threading.RLock()
        self._config = self._read()

    @classmethod
    def get_instance(cls, config_path: str | Path | None = None) -> "ConfigManager":
        """Return the shared manager, creating it from config_path on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls(config_path or DEFAULT_CONFIG_PATH)
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the shared manager (for testing)."""
        with cls._instance_lock:
            cls._instance = None

    @property
    def path(self) -> Path:
        return self._config_path

    def _read(self) -> Config:
        if not self._config_path.exists():
            logger.info("No config at %s, writing defaults", self._config_path)
            config = Config()
            try:
                self._write(config)
            except OSError as e:
                logger.warning("Could not write default config: %s", e)
            return config

        try:
            raw = yaml.safe_load(self._config_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Unreadable config %s, using defaults: %s", self._config_path, e)
            return Config()

        if not isinstance(raw, dict):
            raise ConfigurationError(
                "Config file must contain a mapping",
                path=str(self._config_path),
                problems=[f"top level is {type(raw).__name__}"],
            )

        config = load_config(raw, source=self._config_path)
        logger.info("Loaded config from %s", self._config_path)
        return config

    def _write(self, config: Config) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._config_path.with_suffix(".tmp")
        staging.write_text(yaml.safe_dump(_storable(config), default_flow_style=False, sort_keys=False))
        staging.replace(self._config_path)
        logger.debug("Wrote config to %s", self._config_path)

    def get(self) -> Config:
        """Deep copy of the loaded configuration."""
        with self._lock:
            return self._config.model_copy(deep=True)
