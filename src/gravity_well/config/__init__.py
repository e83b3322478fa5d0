"""Configuration package for gravity well imports."""

from .logging_config import setup_logging, LoggingConfig, LoggedOperation, StructuredLogger
from .settings import (
    ALLOWED_EXTENSIONS,
    ConfigurationError,
    ImportConfig,
    load_settings,
    parse_extensions,
    reset_settings,
    save_settings,
    validate_extensions,
    validate_global_tags,
)

__all__ = [
    # Logging
    "setup_logging",
    "LoggingConfig",
    "LoggedOperation",
    "StructuredLogger",
    # Settings
    "ALLOWED_EXTENSIONS",
    "ConfigurationError",
    "ImportConfig",
    "load_settings",
    "parse_extensions",
    "reset_settings",
    "save_settings",
    "validate_extensions",
    "validate_global_tags",
]
