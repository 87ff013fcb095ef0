"""
Configuration module.

Handles loading and validation of Moodle connection settings, cohort
analytics thresholds and logging options.
"""

from .loader import ConfigLoader
from .models import AppConfig, ConfigError, LoggingSettings, MoodleSettings

__all__ = ["ConfigLoader", "AppConfig", "ConfigError", "LoggingSettings", "MoodleSettings"]
