"""Utility modules for configuration, logging, and error handling."""

from .config import load_config, get_config
from .logger import get_logger
from .retry import retry_async, timeout_async

__all__ = [
    "load_config",
    "get_config",
    "get_logger",
    "retry_async",
    "timeout_async",
]
