"""
Core Module - Foundation components for Persona Responder
=========================================================

This module provides the foundational components including:
- Configuration management
- Logging setup
- Exception handling
"""

from .config import Config, load_config, save_config
from .exceptions import (
    ResponderError,
    ConfigError,
    RulesetLoadError,
    EmbeddingError,
    EmbeddingCacheError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "ResponderError",
    "ConfigError",
    "RulesetLoadError",
    "EmbeddingError",
    "EmbeddingCacheError",
    "setup_logging",
    "get_logger",
]
