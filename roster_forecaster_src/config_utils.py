# roster_forecaster_src/config_utils.py

import logging
from typing import Any, Optional

from config import get_config

logger = logging.getLogger(__name__)

# Global configuration manager, set by initialize_config()
config_manager = None


def initialize_config():
    """
    Initialize the global configuration manager.

    Loads the bundled defaults plus any override file and logs validation
    problems as warnings.

    Raises
    ------
    ConfigurationError
        If a configuration file cannot be read or parsed
    """
    global config_manager
    if config_manager is None:
        config_manager = get_config()
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    return config_manager


def reset_config_manager():
    """Forget the global configuration manager (used when the override file changes)."""
    global config_manager
    config_manager = None


def get_config_value(key_path: str, default: Any = None, args=None, cli_param: Optional[str] = None) -> Any:
    """
    Retrieve a configuration value with command-line override support.

    Precedence:
    1. CLI argument (if provided and not None)
    2. Configuration file
    3. Default value
    """
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    return default
