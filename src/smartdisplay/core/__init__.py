"""Core infrastructure module.

Provides foundational components:
- Configuration management with validation
- Custom exception hierarchy
- Structured logging
- Retry logic with exponential backoff
- Thread-safe primitives and the timestamped cache
"""

from .cache import CachedValue
from .config import Config, ConfigManager, load_config
from .errors import (
    SmartDisplayError,
    ConfigurationError,
    TransportError,
    APIError,
    AppError,
)
from .logging import setup_logging, get_logger
from .retry import async_retry, RetryConfig
from .threading import BackgroundLoop, LockedValue, StoppableThread

__all__ = [
    # Cache
    "CachedValue",
    # Config
    "Config",
    "ConfigManager",
    "load_config",
    # Errors
    "SmartDisplayError",
    "ConfigurationError",
    "TransportError",
    "APIError",
    "AppError",
    # Logging
    "setup_logging",
    "get_logger",
    # Retry
    "async_retry",
    "RetryConfig",
    # Threading
    "BackgroundLoop",
    "LockedValue",
    "StoppableThread",
]
