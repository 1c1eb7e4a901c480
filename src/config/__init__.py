"""
Configuration and logging bootstrap for the Geo API client.
"""

from .config_module import (
    ConfigError,
    get_bool_config,
    get_config,
    get_float_config,
    get_int_config,
    load_config,
    validate_config,
)
from .logger_module import initialize_logger, log_debug, log_error, log_info, log_warning

__all__ = [
    "ConfigError",
    "load_config",
    "get_config",
    "get_float_config",
    "get_int_config",
    "get_bool_config",
    "validate_config",
    "initialize_logger",
    "log_debug",
    "log_info",
    "log_warning",
    "log_error",
]
