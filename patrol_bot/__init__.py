"""
Patrol Bot module.

This module provides the live bot functionality:
- BotController: Connection lifecycle, reconnects and user controls
- Patroller: Restartable random-walk patrol around a center point
- BotStatus: Shared status record reported by the dashboard
- create_app: Flask dashboard and JSON API

SAFETY NOTE:
This bot is intended to be used only where automation is explicitly
allowed by the server owner (e.g., your own worlds, private servers,
or servers that have given explicit permission). Do not use this in
violation of any server's terms of service.
"""

from .controller import BotController
from .patrol import Patroller, random_point, is_teleport
from .state import BotStatus
from .dashboard import create_app

__all__ = [
    'BotController',
    'Patroller',
    'random_point',
    'is_teleport',
    'BotStatus',
    'create_app',
]
