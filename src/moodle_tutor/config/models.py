"""Configuration data models."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..analytics.models import CohortThresholds


class ConfigError(Exception):
    """Missing or invalid configuration."""

    pass


@dataclass
class MoodleSettings:
    """Moodle LMS connection settings."""

    url: str | None = None
    token: str | None = None
    course_id: int | None = None
    timeout: float = 30.0
    verify_ssl: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MoodleSettings":
        course_id = data.get("course_id")
        return cls(
            url=data.get("url"),
            token=data.get("token"),
            course_id=int(course_id) if course_id not in (None, "") else None,
            timeout=float(data.get("timeout", 30.0)),
            verify_ssl=bool(data.get("verify_ssl", True)),
        )


@dataclass
class LoggingSettings:
    """Log level and optional log file."""

    level: str = "INFO"
    file: Path | None = None

    @property
    def level_number(self) -> int:
        level = logging.getLevelName(self.level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level: {self.level}")
        return level

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoggingSettings":
        log_file = data.get("file")
        return cls(
            level=str(data.get("level", "INFO")),
            file=Path(log_file).expanduser() if log_file else None,
        )


@dataclass
class AppConfig:
    """Complete server configuration."""

    moodle: MoodleSettings = field(default_factory=MoodleSettings)
    thresholds: CohortThresholds = field(default_factory=CohortThresholds)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        return cls(
            moodle=MoodleSettings.from_dict(data.get("moodle") or {}),
            thresholds=CohortThresholds.from_dict(data.get("thresholds")),
            logging=LoggingSettings.from_dict(data.get("logging") or {}),
        )
