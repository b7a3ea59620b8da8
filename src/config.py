"""
Configuration management for cfstack.

Settings are the tunables of a run (worker counts, poll intervals, init stack
names). They come from defaults, then an optional YAML file, then
``CFSTACK_<FIELD>`` environment variables.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path.home() / ".cfstack.yaml"
ENV_PREFIX = "CFSTACK_"


@dataclass
class Settings:
    """Run settings."""

    # Concurrency
    max_workers: int = 50
    dispatch_interval: float = 0.05

    # Polling (seconds)
    poll_deadline: float = 24 * 60 * 60
    status_interval: float = 5
    retry_interval: float = 10
    exists_interval: float = 10
    call_interval: float = 15
    changeset_interval: float = 30

    # Init stack
    init_stack_name: str = "cfstack-Init"
    templates_bucket_resource: str = "TemplatesS3Bucket"
    source_bucket_resource: str = "SourceS3Bucket"

    # Output
    diff_output: str = "diff.json"

    # AWS
    profile: str = "default"

    log_level: str = "WARNING"

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """Create settings from a dictionary, coercing values to field types.

        Raises:
            ValueError: A value cannot be converted
        """
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, raw in data.items():
            if key not in known:
                logger.warning("Ignoring unknown setting: %s", key)
                continue
            values[key] = _coerce(key, known[key].type, raw)
        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        for name in (
            "dispatch_interval",
            "status_interval",
            "retry_interval",
            "exists_interval",
            "call_interval",
            "changeset_interval",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.poll_deadline <= 0:
            raise ValueError("poll_deadline must be positive")


def _coerce(name: str, type_: Any, raw: Any) -> Any:
    # Field types are strings under postponed evaluation on some interpreters
    type_name = type_ if isinstance(type_, str) else getattr(type_, "__name__", str(type_))
    try:
        if type_name == "int":
            if isinstance(raw, bool):
                raise ValueError(raw)
            return int(raw)
        if type_name == "float":
            if isinstance(raw, bool):
                raise ValueError(raw)
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for setting {name}: {raw!r}") from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def _environment_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    names = {f.name for f in fields(Settings)}
    overrides = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in names:
            overrides[name] = value
    return overrides


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from defaults, a YAML file and the environment.

    Args:
        path: Config file; ``~/.cfstack.yaml`` is used when present and no
            path is given
        environ: Environment mapping, defaults to ``os.environ``

    Raises:
        FileNotFoundError: An explicitly given config file does not exist
        ValueError: A setting has an invalid value
    """
    data: Dict[str, Any] = {}

    if path is not None:
        config_file = Path(path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")
        data.update(_read_config_file(config_file))
    elif DEFAULT_CONFIG_FILE.exists():
        data.update(_read_config_file(DEFAULT_CONFIG_FILE))

    data.update(_environment_overrides(os.environ if environ is None else environ))
    return Settings.from_dict(data)


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or load the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    global _settings
    _settings = settings
