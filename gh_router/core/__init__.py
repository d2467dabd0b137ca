"""Configuration and logging setup shared by the router."""

from .config import CliConfig, GitHubConfig, RetryPolicy, Settings
from .logging_config import get_logger, setup_logging

__all__ = [
    "CliConfig",
    "GitHubConfig",
    "RetryPolicy",
    "Settings",
    "get_logger",
    "setup_logging",
]
