"""YAML-backed configuration for the roster forecaster."""

from .manager import (
    ConfigurationError,
    ConfigurationManager,
    CONFIG_ENV_VAR,
    DEFAULTS_PATH,
    get_config,
    reset_config,
)

__all__ = [
    'ConfigurationError',
    'ConfigurationManager',
    'CONFIG_ENV_VAR',
    'DEFAULTS_PATH',
    'get_config',
    'reset_config',
]
