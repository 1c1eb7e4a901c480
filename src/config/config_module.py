"""
Configuration management for the Geo API client.

Handles loading environment variables from .env files, reading typed
configuration values, and validating that credentials are present.
"""

import os
import logging
from typing import Any, List, Optional
from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration is missing or malformed."""
    pass


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_config(env_path: str = ".env") -> None:
    """
    Load environment variables from a .env file.
    
    Args:
        env_path: Path to the .env file (default: ".env")
    """
    logger = logging.getLogger(__name__)
    
    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
        logger.info(f"Loaded configuration from {env_path}")
    else:
        logger.warning(f"Configuration file {env_path} not found, using system environment variables only")


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value from environment variables.
    
    Args:
        key: Environment variable key
        default: Default value if key not found
        
    Returns:
        Configuration value or default
    """
    logger = logging.getLogger(__name__)
    
    value = os.getenv(key)
    
    if value is None:
        if default is not None:
            logger.warning(f"Configuration key '{key}' not found, using default value: {default}")
        else:
            logger.warning(f"Configuration key '{key}' not found and no default provided")
        return default
    
    return value


def get_float_config(key: str, default: Optional[float] = None) -> Optional[float]:
    """
    Read a float configuration value.
    
    Raises:
        ConfigError: If the value is set but is not a number
    """
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Configuration key '{key}' must be a number, got '{raw}'")


def get_int_config(key: str, default: Optional[int] = None) -> Optional[int]:
    """
    Read an integer configuration value.
    
    Raises:
        ConfigError: If the value is set but is not an integer
    """
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Configuration key '{key}' must be an integer, got '{raw}'")


def get_bool_config(key: str, default: bool = False) -> bool:
    """
    Read a boolean configuration value (1/0, true/false, yes/no, on/off).
    
    Raises:
        ConfigError: If the value is set but not recognised
    """
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"Configuration key '{key}' must be a boolean, got '{raw}'")


def validate_config(required_keys: List[str]) -> None:
    """
    Validate that all required configuration keys are present and non-empty.
    
    Args:
        required_keys: List of required environment variable keys
        
    Raises:
        ConfigError: If any required key is missing or empty
    """
    logger = logging.getLogger(__name__)
    missing_keys = []
    empty_keys = []
    
    for key in required_keys:
        value = os.getenv(key)
        if value is None:
            missing_keys.append(key)
        elif value.strip() == "":
            empty_keys.append(key)
    
    if missing_keys or empty_keys:
        error_msg = "Configuration validation failed:"
        if missing_keys:
            error_msg += f" Missing keys: {', '.join(missing_keys)}."
        if empty_keys:
            error_msg += f" Empty keys: {', '.join(empty_keys)}."
        
        logger.error(error_msg)
        raise ConfigError(error_msg)
    
    logger.info(f"Configuration validation passed for keys: {', '.join(required_keys)}")
