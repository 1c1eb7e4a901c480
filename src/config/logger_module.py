"""
Logging utilities for the Geo API client.

Provides one-time logging configuration plus the small log_* helpers the
rest of the package calls, so that tests can patch a single name per module.
"""

import logging
from pathlib import Path
from typing import Optional


_logger_initialized = False

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(filename)s:%(lineno)d - %(message)s'


def initialize_logger(log_level: str = "INFO", log_file: Optional[str] = "logs/geoapi.log") -> None:
    """
    Initialize the root logger with a console handler and an optional file handler.
    
    Calling it again is a no-op, so library entry points may call it freely.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file, or None for console only
    """
    global _logger_initialized
    
    if _logger_initialized:
        return
    
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()
    
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        # Worker threads log here too, hence threadName in the format
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        root_logger.addHandler(file_handler)
    
    _logger_initialized = True
    
    root_logger.info(f"Logger initialized with level {log_level}, file: {log_file}")


def log_debug(message: str) -> None:
    """Log a debug message."""
    logging.getLogger().debug(message)


def log_info(message: str) -> None:
    """Log an info message."""
    logging.getLogger().info(message)


def log_warning(message: str) -> None:
    """Log a warning message."""
    logging.getLogger().warning(message)


def log_error(message: str) -> None:
    """Log an error message."""
    logging.getLogger().error(message)
