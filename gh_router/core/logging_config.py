"""
Logging Configuration Module.

This module provides centralized logging configuration for the gh_router package.
Library modules only create loggers via ``logging.getLogger(__name__)``; the
process embedding the router calls ``setup_logging()`` once at startup.

Features:
- Configurable log levels per module
- Console and file logging
- Simple, detailed or JSON line formats
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from .config import Settings

# Define log formats
SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

LOG_FILE_NAME = "gh_router.log"

# Module-specific log levels
MODULE_LOG_LEVELS: Dict[str, str] = {
    "gh_router": "INFO",
    "gh_router.routing": "DEBUG",
    "gh_router.execution": "DEBUG",
    "gh_router.composite": "DEBUG",
    "gh_router.adapters": "INFO",
    "gh_router.engine": "INFO",
    # Third-party libraries (reduce noise)
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
}


def _select_format(fmt: str) -> str:
    if fmt == "json":
        return JSON_FORMAT
    if fmt == "simple":
        return SIMPLE_FORMAT
    return DETAILED_FORMAT


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
    *,
    config: Optional[Settings] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: Override default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Override default format (simple, detailed, json)
        enable_file: Whether to enable file logging; defaults to the configured flag
        config: Settings to read defaults from; a fresh ``Settings()`` when omitted
    """
    cfg = config or Settings()
    level = (log_level or cfg.log_level).upper()
    fmt = log_format or cfg.log_format
    file_enabled = cfg.enable_file_logging if enable_file is None else enable_file

    formatter = logging.Formatter(_select_format(fmt), datefmt="%Y-%m-%d %H:%M:%S")

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels, filter at handler level

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if file_enabled:
        log_dir = Path(cfg.log_file_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={file_enabled}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The module name (typically __name__)

    Returns:
        A configured logger instance
    """
    return logging.getLogger(name)
