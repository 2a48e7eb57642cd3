"""Configuration loading for igputop."""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from igputop.errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "/etc/igputop/config.yaml"


@dataclass(slots=True, frozen=True)
class CollectorConfig:
    """Settings for locating and driving the telemetry helper."""

    ndsudo_path: str = ""
    device: str = ""
    update_every: int = 1
    first_sample_timeout: float = 3.0
    stop_timeout: float = 2.0
    max_lines: int | None = 1000
    log_level: str = "INFO"
    log_file: str | None = None

    def validate(self) -> "CollectorConfig":
        """Raise ConfigError on nonsensical values, return self otherwise."""
        if not isinstance(self.update_every, int) or self.update_every < 1:
            raise ConfigError(f"update_every must be a positive integer, got {self.update_every!r}")
        for name in ("first_sample_timeout", "stop_timeout"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")
        if self.max_lines is not None and (not isinstance(self.max_lines, int) or self.max_lines < 1):
            raise ConfigError(f"max_lines must be a positive integer or null, got {self.max_lines!r}")
        if not isinstance(self.device, str):
            raise ConfigError(f"device must be a string, got {self.device!r}")
        return self

    def with_overrides(self, **overrides: Any) -> "CollectorConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values).validate()


def _from_mapping(data: dict) -> CollectorConfig:
    known = {f.name for f in fields(CollectorConfig)}
    values: dict[str, Any] = {}

    logging_section = data.get("logging") or {}
    if not isinstance(logging_section, dict):
        raise ConfigError("'logging' must be a mapping")
    if "level" in logging_section:
        values["log_level"] = str(logging_section["level"])
    if "file" in logging_section:
        values["log_file"] = logging_section["file"]

    for key, value in data.items():
        if key == "logging":
            continue
        if key not in known:
            logger.warning("Ignoring unknown config key", key=key)
            continue
        values[key] = value

    if values.get("device") is not None:
        values["device"] = str(values["device"])
    return CollectorConfig(**values).validate()


def load_config(config_path: str | None = None) -> CollectorConfig:
    """
    Load configuration from a YAML file.

    A missing file is not an error: defaults are used and a warning is logged.

    Raises:
        ConfigError: The file is not valid YAML or holds invalid values.
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        logger.warning("Config file not found, using defaults", path=str(path))
        return CollectorConfig()

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")

    config = _from_mapping(data)
    logger.info("Configuration loaded", path=str(path))
    return config
