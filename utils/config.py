"""
config.py - Configuration management for the patrol bot.

This module provides utilities for:
- Loading configuration from JSON/YAML files
- Typed configuration sections with defaults
- Writing configuration back without losing unknown keys

The file layout uses camelCase keys, one object per section:

    {
      "server": {"host": "localhost", "port": 25565},
      "bot": {"username": "PatrolBot", "password": "", "version": "1.20.1"},
      "patrol": {"centerX": 0, "centerY": 64, "centerZ": 0, "radius": 10},
      "web": {"port": 3000}
    }
"""

import os
import copy
import json
import logging
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Optional, Any
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""


def _is_yaml(path: str) -> bool:
    return path.endswith('.yaml') or path.endswith('.yml')


def load_config(path: str) -> Optional[Dict]:
    """
    Load configuration from a YAML or JSON file.

    Args:
        path: Path to configuration file

    Returns:
        Configuration dictionary, or None if the file is missing or unreadable
    """
    if not os.path.exists(path):
        logger.error(f"Config file not found: {path}")
        return None

    try:
        with open(path, 'r') as f:
            if _is_yaml(path):
                return yaml.safe_load(f) or {}
            return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Error loading config {path}: {e}")
        return None


def save_config(config: Dict, path: str) -> None:
    """
    Save configuration to a file.

    Args:
        config: Configuration dictionary
        path: Path to save to
    """
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        if _is_yaml(path):
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(config, f, indent=2)


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


class _Section:
    """Mixin mapping snake_case dataclass fields to camelCase file keys."""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]):
        data = data or {}
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} section must be a mapping, got {data!r}")
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(name): value for name, value in asdict(self).items()}


@dataclass
class ServerSettings(_Section):
    """Target Minecraft server and reconnection timing (seconds)."""
    host: str = "localhost"
    port: int = 25565
    reconnect_delay: float = 5.0
    reconnect_retry_delay: float = 10.0
    switch_delay: float = 2.0


@dataclass
class BotSettings(_Section):
    """Account used by the bot."""
    username: str = "PatrolBot"
    password: str = ""
    version: Optional[str] = None
    goto_timeout: float = 120.0


@dataclass
class PatrolSettings(_Section):
    """Patrol area and loop timing (seconds)."""
    center_x: float = 0.0
    center_y: float = 64.0
    center_z: float = 0.0
    radius: float = 10.0
    teleport_buffer: float = 2.0
    wait_at_point: float = 2.0
    wait_at_center: float = 3.0
    retry_delay: float = 3.0
    auto_start_delay: float = 2.0
    seed: Optional[int] = None


@dataclass
class WebSettings(_Section):
    """Dashboard listen address."""
    host: str = "0.0.0.0"
    port: int = 3000


def _valid_port(port: Any) -> bool:
    return isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535


@dataclass
class Config:
    """
    Full bot configuration.

    Usage:
        config = Config.load('config.json')
        config.server.host = 'mc.example.org'
        config.save('config.json')
    """
    server: ServerSettings = field(default_factory=ServerSettings)
    bot: BotSettings = field(default_factory=BotSettings)
    patrol: PatrolSettings = field(default_factory=PatrolSettings)
    web: WebSettings = field(default_factory=WebSettings)

    # Raw file contents, kept so unknown keys survive a save
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    SECTIONS = ('server', 'bot', 'patrol', 'web')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build a config from a file dictionary and validate it."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        try:
            config = cls(
                server=ServerSettings.from_dict(data.get('server')),
                bot=BotSettings.from_dict(data.get('bot')),
                patrol=PatrolSettings.from_dict(data.get('patrol')),
                web=WebSettings.from_dict(data.get('web')),
                raw=copy.deepcopy(data),
            )
        except (TypeError, AttributeError) as e:
            raise ConfigError(f"Malformed configuration: {e}") from e

        config.validate()
        return config

    @classmethod
    def load(cls, path: str) -> 'Config':
        """
        Load and validate a configuration file.

        Raises:
            ConfigError: if the file is missing, unreadable or invalid
        """
        data = load_config(path)
        if data is None:
            raise ConfigError(f"Could not load configuration from {path}")
        return cls.from_dict(data)

    def validate(self) -> None:
        """Check value ranges, raising ConfigError on the first problem."""
        if not _valid_port(self.server.port):
            raise ConfigError(f"Invalid server port: {self.server.port!r}")
        if not _valid_port(self.web.port):
            raise ConfigError(f"Invalid web port: {self.web.port!r}")
        if not self.server.host or not str(self.server.host).strip():
            raise ConfigError("Server host must not be empty")
        if not self.bot.username:
            raise ConfigError("Bot username must not be empty")
        radius = self.patrol.radius
        if not isinstance(radius, (int, float)) or isinstance(radius, bool) or radius <= 0:
            raise ConfigError(f"Patrol radius must be positive: {self.patrol.radius}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the file layout, keeping unknown keys from the source file."""
        data = copy.deepcopy(self.raw)
        for name in self.SECTIONS:
            section = data.get(name)
            if not isinstance(section, dict):
                section = {}
            section.update(getattr(self, name).to_dict())
            data[name] = section
        return data

    def save(self, path: str) -> None:
        """Save configuration to file."""
        save_config(self.to_dict(), path)

    def __repr__(self) -> str:
        return (f'Config(server={self.server.host}:{self.server.port}, '
                f'bot={self.bot.username}, radius={self.patrol.radius}, '
                f'web_port={self.web.port})')
