"""
Integration module for the patrol bot.

This module provides integration with the external Minecraft client:
- MinecraftClient: Session wrapper around a Mineflayer bot
- MineflayerBackend: JSPyBridge adapter for Mineflayer and its pathfinder
"""

from .mc_client import (
    MinecraftClient,
    MineflayerBackend,
    ClientConfig,
    ConnectionState,
    MovementError,
    Position,
)

__all__ = [
    'MinecraftClient',
    'MineflayerBackend',
    'ClientConfig',
    'ConnectionState',
    'MovementError',
    'Position',
]
