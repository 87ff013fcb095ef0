"""Configuration loader: YAML file plus environment overrides."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import AppConfig, ConfigError

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "MOODLE_API_URL": ("moodle", "url"),
    "MOODLE_API_TOKEN": ("moodle", "token"),
    "MOODLE_COURSE_ID": ("moodle", "course_id"),
    "MOODLE_TUTOR_LOG_LEVEL": ("logging", "level"),
}


class ConfigLoader:
    """Loads and validates configuration files."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        """Initialize the config loader.

        Args:
            environ: Environment mapping. Defaults to os.environ
        """
        self.environ = os.environ if environ is None else environ

    def load(self, config_file: str | Path | None = None, require_moodle: bool = True) -> AppConfig:
        """Load configuration from an optional YAML file and the environment.

        Environment variables take precedence over file values.

        Args:
            config_file: Path to a YAML config file
            require_moodle: Fail unless a Moodle URL and token are configured

        Returns:
            Parsed AppConfig object

        Raises:
            ConfigError: If the file is invalid or required settings are missing
        """
        data = self._load_yaml(Path(config_file).expanduser()) if config_file else {}

        for env_var, (section, key) in ENV_OVERRIDES.items():
            value = self.environ.get(env_var)
            if value:
                data[section] = {**(data.get(section) or {}), key: value}

        try:
            config = AppConfig.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        if require_moodle:
            if not config.moodle.url:
                raise ConfigError("Moodle URL required. Set MOODLE_API_URL or moodle.url")
            if not config.moodle.token:
                raise ConfigError("Moodle token required. Set MOODLE_API_TOKEN or moodle.token")

        return config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load and parse a YAML file."""
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")
        return data
