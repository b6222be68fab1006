"""Configuration module for scrubkit."""

from scrubkit.config.schema import (
    ErrorContextConfig,
    ObjectSanitizationConfig,
    Settings,
    StackTraceConfig,
    ValidationConfig,
    get_settings,
    reset_settings,
)
from scrubkit.config.untrusted import read_config

__all__ = [
    "ValidationConfig",
    "ObjectSanitizationConfig",
    "StackTraceConfig",
    "ErrorContextConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "read_config",
]
