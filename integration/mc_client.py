"""
mc_client.py - Minecraft client abstraction for the patrol bot.

This module provides a clean abstraction layer over the actual Minecraft
client library. The rest of the bot code interacts with this interface
rather than directly with the bridge or protocol-level details.

Internally this drives a Node.js Mineflayer bot through the ``javascript``
bridge package (JSPyBridge), with the mineflayer-pathfinder plugin doing
all movement planning. Everything bridge-specific lives in
``MineflayerBackend`` so swapping client libraries only touches this file.

SAFETY NOTE:
This bot is intended to be used only where automation is explicitly
allowed by the server owner. Do not use this in violation of any
server's terms of service.
"""

import math
import logging
from typing import Dict, List, Optional, Tuple, Any, Callable
from dataclasses import dataclass
from enum import IntEnum

logger = logging.getLogger(__name__)


# Packet-level chat listeners stripped from every bot. Servers with custom
# chat formats crash the chat parser.
CHAT_PACKET_EVENTS = ('player_chat', 'system_chat', 'disguised_chat', 'chat')


class ConnectionState(IntEnum):
    """Connection state for the Minecraft client."""
    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2
    PLAYING = 3
    ERROR = 4


class MovementError(Exception):
    """Raised when the pathfinder fails or abandons a move."""


@dataclass
class Position:
    """3D position in the world."""
    x: float
    y: float
    z: float

    def to_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'z': self.z}

    def copy(self) -> 'Position':
        return Position(self.x, self.y, self.z)

    def rounded(self, digits: int = 1) -> 'Position':
        """Round every axis, e.g. to one decimal for status reports."""
        return Position(
            round(self.x, digits),
            round(self.y, digits),
            round(self.z, digits)
        )

    def distance_to(self, other: 'Position') -> float:
        """Calculate Euclidean distance to another position."""
        return math.sqrt(
            (self.x - other.x) ** 2 +
            (self.y - other.y) ** 2 +
            (self.z - other.z) ** 2
        )

    def horizontal_distance_to(self, other: 'Position') -> float:
        """Distance on the X/Z plane, ignoring height."""
        return math.sqrt(
            (self.x - other.x) ** 2 +
            (self.z - other.z) ** 2
        )

    @classmethod
    def from_vec3(cls, vec) -> 'Position':
        """Build a Position from anything with x, y and z attributes."""
        return cls(float(vec.x), float(vec.y), float(vec.z))


@dataclass
class ClientConfig:
    """
    Configuration for the Minecraft client.

    Timeouts mirror the Mineflayer options of the same name and are
    in milliseconds, except ``goto_timeout`` which is in seconds.
    """
    host: str = "localhost"
    port: int = 25565
    username: str = "PatrolBot"
    password: Optional[str] = None
    version: Optional[str] = None

    # Connection stability
    keep_alive: bool = True
    check_timeout_interval: int = 30000
    close_timeout: int = 60000

    # Movement
    goto_timeout: float = 120.0

    def to_bot_options(self) -> Dict[str, Any]:
        """Build the options object passed to ``mineflayer.createBot``."""
        options: Dict[str, Any] = {
            'host': self.host,
            'port': self.port,
            'username': self.username,
            'keepAlive': self.keep_alive,
            'checkTimeoutInterval': self.check_timeout_interval,
            'closeTimeout': self.close_timeout,
            # Reconnection is handled by the controller
            'retryOnDisconnect': False,
            'plugins': {'chat': False},
        }
        if self.password:
            options['password'] = self.password
        if self.version:
            options['version'] = self.version
        return options


class MineflayerBackend:
    """
    Thin adapter over Mineflayer and mineflayer-pathfinder via JSPyBridge.

    The bridge starts a Node.js process on import, so it is only imported
    the first time a bot is actually created.
    """

    def __init__(self):
        self._mineflayer = None
        self._pathfinder = None

    def _load(self) -> None:
        if self._mineflayer is None:
            from javascript import require
            self._mineflayer = require('mineflayer')
            self._pathfinder = require('mineflayer-pathfinder')

    def create_bot(self, options: Dict[str, Any]):
        """Create a bot with chat listeners stripped and the pathfinder loaded."""
        self._load()
        bot = self._mineflayer.createBot(options)

        packet_client = bot._client
        for event in CHAT_PACKET_EVENTS:
            packet_client.removeAllListeners(event)

        bot.loadPlugin(self._pathfinder.pathfinder)
        return bot

    def subscribe(self, bot, event: str, handler: Callable) -> None:
        """Attach ``handler(*args)`` to a bot event."""
        from javascript import On

        def listener(this, *args):
            handler(*args)

        On(bot, event)(listener)

    def setup_movements(self, bot) -> None:
        bot.pathfinder.setMovements(self._pathfinder.Movements(bot))

    def goto(self, bot, target: Position, tolerance: float, timeout: float) -> None:
        """Block until the bot is within ``tolerance`` blocks of target."""
        from javascript.errors import JavaScriptError

        goal = self._pathfinder.goals.GoalNear(target.x, target.y, target.z, tolerance)
        try:
            bot.pathfinder.goto(goal, timeout=timeout)
        except JavaScriptError as e:
            raise MovementError(str(e)) from e

    def stop_moving(self, bot) -> None:
        bot.pathfinder.stop()

    def position(self, bot) -> Optional[Position]:
        entity = bot.entity
        if not entity:
            return None
        return Position.from_vec3(entity.position)

    def player_names(self, bot) -> List[str]:
        from javascript import globalThis
        return [str(name) for name in globalThis.Object.keys(bot.players)]

    def quit(self, bot, reason: str) -> None:
        bot.quit(reason)


class MinecraftClient:
    """
    Abstraction over the actual Minecraft client/bot library.

    One instance corresponds to one bot session: after the bot ends,
    create a new client rather than reconnecting this one.

    Usage:
        config = ClientConfig(host="localhost", port=25565, username="bot")
        client = MinecraftClient(config)
        client.on_event('spawn', lambda pos: print(pos))
        client.connect()
        client.goto(Position(10, 64, 10))
        client.quit("done")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        backend: Optional[MineflayerBackend] = None
    ):
        """
        Initialize the Minecraft client.

        Args:
            config: Client configuration
            backend: Bridge adapter; defaults to a Mineflayer backend
        """
        self.config = config or ClientConfig()
        self.backend = backend or MineflayerBackend()

        self._state = ConnectionState.DISCONNECTED
        self._bot = None

        # Cached state
        self._position: Optional[Position] = None
        self._health: float = 20.0
        self._food: float = 20.0
        self._players: List[str] = []

        # Event callbacks
        self._event_handlers: Dict[str, List[Callable]] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def username(self) -> str:
        return self.config.username

    def connect(self) -> bool:
        """
        Create the bot and start connecting to the server.

        Connecting is asynchronous: ``spawn`` fires once the bot is in
        the world, ``end`` if the connection fails or drops.

        Returns:
            True if the bot was created, False if already connected
        """
        if self._state not in (ConnectionState.DISCONNECTED, ConnectionState.ERROR):
            logger.warning("Client already connected or connecting")
            return False

        self._state = ConnectionState.CONNECTING
        logger.info(f"Connecting to {self.config.host}:{self.config.port} "
                    f"as {self.config.username}...")

        try:
            self._bot = self.backend.create_bot(self.config.to_bot_options())
        except Exception:
            self._state = ConnectionState.ERROR
            raise

        self._register_bot_events()
        return True

    def _register_bot_events(self) -> None:
        """Wire bot events to the Python-level event handlers."""
        handlers = {
            'connect': self._handle_connect,
            'login': self._handle_login,
            'spawn': self._handle_spawn,
            'error': self._handle_error,
            'end': self._handle_end,
            'move': self._handle_move,
            'health': self._handle_health,
            'playerJoined': self._handle_players_changed,
            'playerLeft': self._handle_players_changed,
        }
        for event, handler in handlers.items():
            self.backend.subscribe(self._bot, event, handler)

    def _handle_connect(self, *args) -> None:
        logger.info("Bot connecting to server...")

    def _handle_login(self, *args) -> None:
        self._state = ConnectionState.CONNECTED
        logger.info("Bot logged in successfully")

    def _handle_spawn(self, *args) -> None:
        self._state = ConnectionState.PLAYING
        self._position = self.backend.position(self._bot)
        logger.info("Bot spawned successfully!")
        self._emit_event('spawn', self._position.copy() if self._position else None)

    def _handle_error(self, err=None, *args) -> None:
        self._state = ConnectionState.ERROR
        logger.error(f"Bot error: {err}")
        self._emit_event('error', err)

    def _handle_end(self, reason=None, *args) -> None:
        self._state = ConnectionState.DISCONNECTED
        logger.info(f"Bot disconnected: {reason}")
        self._emit_event('end', reason)

    def _handle_move(self, *args) -> None:
        position = self.backend.position(self._bot)
        if position is None:
            return
        self._position = position
        self._emit_event('move', position.copy())

    def _handle_health(self, *args) -> None:
        self._health = float(self._bot.health)
        self._food = float(self._bot.food)
        self._emit_event('health', (self._health, self._food))

    def _handle_players_changed(self, *args) -> None:
        names = self.backend.player_names(self._bot)
        self._players = [name for name in names if name != self.username]
        self._emit_event('players', list(self._players))

    def is_connected(self) -> bool:
        """Check if client is connected and playing."""
        return self._state == ConnectionState.PLAYING

    def setup_movements(self) -> None:
        """Install the default pathfinder movement rules."""
        if self._bot is None:
            return
        self.backend.setup_movements(self._bot)

    def goto(self, target: Position, tolerance: float = 1.0) -> None:
        """
        Walk to a target position using the pathfinder.

        Args:
            target: Target position
            tolerance: How close to get (in blocks)

        Raises:
            MovementError: if not connected or the pathfinder fails
        """
        if not self.is_connected():
            raise MovementError("Cannot move: not connected")

        self.backend.goto(
            self._bot,
            target,
            tolerance,
            self.config.goto_timeout
        )

    def stop_moving(self) -> None:
        """Drop the current pathfinder goal."""
        if not self.is_connected():
            return
        self.backend.stop_moving(self._bot)

    def quit(self, reason: str = "Disconnecting") -> None:
        """Leave the server. The ``end`` event follows."""
        if self._bot is None:
            return

        logger.info(f"Quitting: {reason}")
        self.backend.quit(self._bot, reason)

    def get_position(self) -> Optional[Position]:
        """
        Get the current player position.

        Returns:
            Current position or None if not available
        """
        return self._position

    def get_health(self) -> float:
        """Get current health (0-20)."""
        return self._health

    def get_food(self) -> float:
        """Get current food level (0-20)."""
        return self._food

    def get_players(self) -> List[str]:
        """Names of the other players online."""
        return list(self._players)

    def on_event(self, event_type: str, handler: Callable) -> None:
        """
        Register an event handler.

        Args:
            event_type: Event type ('spawn', 'error', 'end', 'move',
                'health' or 'players')
            handler: Callback taking a single payload argument
        """
        if event_type not in self._event_handlers:
            self._event_handlers[event_type] = []
        self._event_handlers[event_type].append(handler)

    def _emit_event(self, event_type: str, data: Any) -> None:
        """Emit an event to registered handlers."""
        if event_type in self._event_handlers:
            for handler in self._event_handlers[event_type]:
                try:
                    handler(data)
                except Exception as e:
                    logger.error(f"Error in {event_type} handler: {e}", exc_info=True)
