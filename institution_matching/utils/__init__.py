"""Shared utilities: configuration and logging."""

from institution_matching.utils.config import (
    CacheConfig,
    Config,
    GroupingConfig,
    LoggingConfig,
    MatchingConfig,
    NormalizationConfig,
    get_config,
    load_config,
    reset_config,
)
from institution_matching.utils.logging import setup_logging

__all__ = [
    "CacheConfig",
    "Config",
    "GroupingConfig",
    "LoggingConfig",
    "MatchingConfig",
    "NormalizationConfig",
    "get_config",
    "load_config",
    "reset_config",
    "setup_logging",
]
