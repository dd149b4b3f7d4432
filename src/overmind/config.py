"""
Configuration for overmind.

Settings come from an optional YAML file (``.overmind.yml`` in the
working directory by default) and are overridden by command-line flags.
"""

import sys
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError

DEFAULT_CONFIG_FILE = ".overmind.yml"

DEFAULT_IGNORE_PATTERNS = [
    ".git/*",
    "__pycache__/*",
    ".pytest_cache/*",
    ".mypy_cache/*",
    "*.egg-info/*",
    ".venv/*",
    "venv/*",
    "node_modules/*",
    ".overmind/*",
]


class Config:
    """
    Raw YAML configuration file.
    """

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.config = self.load_config()

    def load_config(self) -> dict:
        """
        Loads the configuration from a YAML file.

        Returns:
            A dictionary containing the configuration.
        """
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping")
        return data


@dataclass
class NotifyConfig:
    """Desktop notification settings."""

    enabled: bool = True
    command: str = "notify-send"
    expiration_seconds: int = 10
    image_folder: str = "~/bin/autotest_images"


@dataclass
class OvermindConfig:
    """All tunables of a running overmind."""

    # Change detection
    poll_interval: float = 1.0
    source_extensions: list[str] = field(default_factory=lambda: [".py"])
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))

    # Worker lifecycle
    log_globs: list[str] = field(default_factory=lambda: ["log/test*.log"])
    preload: list[str] = field(default_factory=list)
    test_dir: str = "tests"

    # Supervision
    interpreter: str = field(default_factory=lambda: sys.executable)
    dual: bool = False
    cooldown_seconds: float = 5.0
    stagger_seconds: float = 15.0
    marker_path: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "overmind_worker_works"
    )

    notify: NotifyConfig = field(default_factory=NotifyConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OvermindConfig":
        """Build a config from a (YAML-loaded) mapping."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        notify = values.pop("notify", None) or {}
        if not isinstance(notify, dict):
            raise ConfigError("'notify' must be a mapping")
        notify_known = {f.name for f in fields(NotifyConfig)}
        notify_unknown = set(notify) - notify_known
        if notify_unknown:
            raise ConfigError(
                f"Unknown notify keys: {', '.join(sorted(notify_unknown))}"
            )

        if "marker_path" in values:
            values["marker_path"] = Path(values["marker_path"]).expanduser()

        config = cls(**values, notify=NotifyConfig(**notify))
        config.validate()
        return config

    def validate(self) -> None:
        """Reject values that would make the loops misbehave."""
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be positive")
        if self.cooldown_seconds < 0:
            raise ConfigError("cooldown_seconds must not be negative")
        if self.stagger_seconds < 0:
            raise ConfigError("stagger_seconds must not be negative")
        if not self.source_extensions:
            raise ConfigError("source_extensions must not be empty")

    def override(self, **values: Any) -> "OvermindConfig":
        """Apply command-line overrides; ``None`` means "not given"."""
        for key, value in values.items():
            if value is None:
                continue
            if not hasattr(self, key):
                raise ConfigError(f"Unknown configuration key: {key}")
            setattr(self, key, value)
        self.validate()
        return self


def load_config(path: Optional[str] = None) -> OvermindConfig:
    """Load configuration from ``path`` or ``.overmind.yml`` if present.

    An explicitly given path must exist; the default file is optional.
    """
    if path is None:
        if not Path(DEFAULT_CONFIG_FILE).is_file():
            return OvermindConfig()
        path = DEFAULT_CONFIG_FILE
    elif not Path(path).is_file():
        raise ConfigError(f"Config file not found: {path}")

    return OvermindConfig.from_dict(Config(path).config)
