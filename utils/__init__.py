"""
Utilities module for the patrol bot.

This module provides common utilities:
- Configuration management
"""

from .config import (
    load_config,
    save_config,
    Config,
    ConfigError,
    ServerSettings,
    BotSettings,
    PatrolSettings,
    WebSettings,
)

__all__ = [
    'load_config',
    'save_config',
    'Config',
    'ConfigError',
    'ServerSettings',
    'BotSettings',
    'PatrolSettings',
    'WebSettings',
]
