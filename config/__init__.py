"""Configuration management for the SARIMA forecaster."""

from .config_manager import (
    ConfigurationManager,
    ConfigurationError,
    DEFAULT_CONFIG_PATH,
    deep_merge,
    get_config,
)

__all__ = [
    'ConfigurationManager',
    'ConfigurationError',
    'DEFAULT_CONFIG_PATH',
    'deep_merge',
    'get_config',
]
