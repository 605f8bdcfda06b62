"""
groupme_sync.config - Configuration management module

Contains configuration file loading and validation, typed settings with
environment overrides, and the default configuration template.
"""

from groupme_sync.config.generator import generate_default_config, save_config_file
from groupme_sync.config.loader import ConfigError, ConfigLoader
from groupme_sync.config.settings import (
    AppSettings,
    DaemonSettings,
    GoogleSettings,
    GroupMeSettings,
    LedgerSettings,
    RequiredSettings,
    SettingsError,
)

__all__ = [
    "AppSettings",
    "ConfigError",
    "ConfigLoader",
    "DaemonSettings",
    "GoogleSettings",
    "GroupMeSettings",
    "LedgerSettings",
    "RequiredSettings",
    "SettingsError",
    "generate_default_config",
    "save_config_file",
]
