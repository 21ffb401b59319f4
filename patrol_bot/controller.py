"""
controller.py - Connection lifecycle and controls for the patrol bot.

This module implements the controller that:
- Creates one client session per connection
- Reacts to bot events (spawn, move, health, players, error, end)
- Reconnects after unexpected disconnects
- Detects teleports and moves the patrol center along
- Handles manual controls: center, patrol toggle, server switch, disconnect

Events from a previous session's client are ignored, so a late ``end``
from a bot that was replaced cannot trigger a reconnect.
"""

import time
import logging
import threading
from functools import partial
from typing import Optional, Dict, Any, Callable

import numpy as np

from integration.mc_client import MinecraftClient, ClientConfig, Position
from utils.config import Config
from .patrol import Patroller, is_teleport
from .state import BotStatus

logger = logging.getLogger(__name__)


ClientFactory = Callable[[ClientConfig], MinecraftClient]


class BotController:
    """
    Coordinates the client session, the patrol task and user controls.

    Usage:
        config = Config.load('config.json')
        controller = BotController(config, 'config.json')
        controller.connect()
        ...
        controller.shutdown()
    """

    def __init__(
        self,
        config: Config,
        config_path: str,
        client_factory: Optional[ClientFactory] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the controller.

        Args:
            config: Bot configuration
            config_path: File the configuration is saved back to
            client_factory: Builds a client for a session; defaults to MinecraftClient
            rng: Random generator for patrol points
        """
        self.config = config
        self.config_path = config_path
        self.client_factory = client_factory or MinecraftClient

        patrol = config.patrol
        self.status = BotStatus(
            center=Position(patrol.center_x, patrol.center_y, patrol.center_z)
        )
        self.client: Optional[MinecraftClient] = None
        self.patroller = Patroller(self.status, patrol, rng=rng)

        self._timers: Dict[str, threading.Timer] = {}
        self._timer_lock = threading.Lock()
        self._closed = False

        logger.info(f"BotController initialized (radius={patrol.radius})")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _client_config(self) -> ClientConfig:
        server, bot = self.config.server, self.config.bot
        return ClientConfig(
            host=server.host,
            port=server.port,
            username=bot.username,
            password=bot.password or None,
            version=bot.version or None,
            goto_timeout=bot.goto_timeout
        )

    def connect(self) -> MinecraftClient:
        """
        Start a new bot session against the configured server.

        Returns:
            The client of the new session
        """
        self._cancel_timer('reconnect')

        client = self.client_factory(self._client_config())
        client.on_event('spawn', partial(self._on_spawn, client))
        client.on_event('error', partial(self._on_error, client))
        client.on_event('end', partial(self._on_end, client))
        client.on_event('move', partial(self._on_move, client))
        client.on_event('health', partial(self._on_health, client))
        client.on_event('players', partial(self._on_players, client))

        with self.status.lock:
            self.client = client
            self.status.connected = False
            self.status.server_configured = True
            # The previous session's end is stale from here on
            self.status.switching_servers = False

        self.patroller.attach(client)
        client.connect()
        return client

    def _is_current(self, client: MinecraftClient) -> bool:
        return client is self.client

    def _reconnect(self) -> None:
        with self.status.lock:
            configured = self.status.server_configured
        if self._closed or not configured:
            return

        logger.info("Attempting to reconnect...")
        try:
            self.connect()
        except Exception as e:
            delay = self.config.server.reconnect_retry_delay
            logger.error(f"Reconnection failed: {e}; retrying in {delay}s")
            self._schedule('reconnect', delay, self._reconnect)

    def connect_configured_server(self) -> None:
        """Connect, scheduling a retry instead of raising if the attempt fails."""
        server = self.config.server
        try:
            self.connect()
        except Exception as e:
            logger.error(f"Failed to connect to {server.host}:{server.port}: {e}",
                         exc_info=True)
            self._schedule('reconnect', server.reconnect_retry_delay, self._reconnect)

    # ------------------------------------------------------------------
    # Bot events
    # ------------------------------------------------------------------

    def _on_spawn(self, client: MinecraftClient, position: Optional[Position]) -> None:
        if not self._is_current(client):
            return

        with self.status.lock:
            self.status.connected = True
            self.status.spawned_at = time.time()
            if position is not None:
                # The spawn point becomes the patrol center
                self.status.center = position.copy()
                self.status.position = position.rounded()
            center = self.status.center.copy()

        logger.info(f"Center point set to spawn position: "
                    f"{center.x}, {center.y}, {center.z}")

        client.setup_movements()
        self._schedule(
            'auto_patrol',
            self.config.patrol.auto_start_delay,
            self._auto_start_patrol
        )

    def _auto_start_patrol(self) -> None:
        logger.info("Auto-starting patrol after spawn...")
        self.start_patrolling()

    def _on_error(self, client: MinecraftClient, err: Any) -> None:
        if not self._is_current(client):
            return

        with self.status.lock:
            self.status.connected = False
        self.patroller.stop()

    def _on_end(self, client: MinecraftClient, reason: Any) -> None:
        if not self._is_current(client):
            logger.debug(f"Ignoring end of a replaced session: {reason}")
            return

        self._cancel_timer('auto_patrol')
        with self.status.lock:
            self.status.connected = False
            self.status.spawned_at = None
            switching = self.status.switching_servers
            configured = self.status.server_configured
            if switching:
                self.status.switching_servers = False
        self.patroller.stop()

        if switching:
            logger.info("Not auto-reconnecting (switching servers)")
            return
        if not configured or self._closed:
            logger.info("Not auto-reconnecting (no server configured)")
            return

        self._schedule('reconnect', self.config.server.reconnect_delay, self._reconnect)

    def _on_move(self, client: MinecraftClient, position: Position) -> None:
        if not self._is_current(client):
            return

        new_position = position.rounded()
        radius = self.config.patrol.radius
        buffer = self.config.patrol.teleport_buffer

        with self.status.lock:
            center = self.status.center
            if self.status.connected and is_teleport(new_position, center, radius, buffer):
                distance = new_position.horizontal_distance_to(center)
                logger.info(f"Teleport detected! Distance from center: {distance:.2f} blocks")
                logger.info(f"Old center: {center.x}, {center.y}, {center.z}")
                self.status.center = new_position.copy()
                logger.info(f"New center updated to: {new_position.x}, "
                            f"{new_position.y}, {new_position.z}")
            self.status.position = new_position

    def _on_health(self, client: MinecraftClient, vitals) -> None:
        if not self._is_current(client):
            return
        health, food = vitals
        with self.status.lock:
            self.status.health = health
            self.status.food = food

    def _on_players(self, client: MinecraftClient, players) -> None:
        if not self._is_current(client):
            return
        with self.status.lock:
            self.status.players = [name for name in players if name != client.username]

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def set_center(self, x: float, y: float, z: float) -> Position:
        """
        Set a new patrol center and walk there if connected.

        Returns:
            The new center
        """
        center = Position(float(x), float(y), float(z))
        with self.status.lock:
            self.status.center = center
            connected = self.status.connected

        logger.info(f"Center set to: {center.x}, {center.y}, {center.z}")
        if connected:
            threading.Thread(
                target=self.patroller.move_to_center,
                name="move-to-center",
                daemon=True
            ).start()
        return center.copy()

    def start_patrolling(self) -> bool:
        return self.patroller.start()

    def stop_patrolling(self) -> None:
        self.patroller.stop()

    def toggle_patrol(self) -> bool:
        """
        Flip patrolling on or off.

        Returns:
            Whether the bot is patrolling afterwards
        """
        with self.status.lock:
            patrolling = self.status.is_patrolling

        if patrolling:
            self.stop_patrolling()
        else:
            self.start_patrolling()

        with self.status.lock:
            return self.status.is_patrolling

    def update_server(self, host: str, port: int) -> None:
        """
        Save a new target server and switch the bot over to it.

        Raises:
            OSError: if the configuration cannot be written
        """
        host = host.strip()
        self.config.server.host = host
        self.config.server.port = port
        self.config.save(self.config_path)

        self._cancel_timer('reconnect')
        self._cancel_timer('auto_patrol')
        with self.status.lock:
            # Suppress the reconnect the old session's end would trigger
            self.status.switching_servers = True
            client = self.client

        if client is not None:
            logger.info(f"Switching to new server: {host}:{port}")
            self.patroller.stop()
            with self.status.lock:
                self.status.connected = False
            client.quit('Switching servers')

        self._schedule(
            'switch',
            self.config.server.switch_delay,
            self.connect_configured_server
        )

    def disconnect(self) -> None:
        """Leave the server and stay offline until a server is configured again."""
        logger.info("User requested disconnect")
        for name in ('reconnect', 'switch', 'auto_patrol'):
            self._cancel_timer(name)

        with self.status.lock:
            self.status.server_configured = False
            self.status.connected = False
            self.status.switching_servers = True
            client = self.client

        self.patroller.stop()
        if client is not None:
            client.quit('User requested disconnect')

    def get_status(self) -> Dict[str, Any]:
        """Status document for the dashboard."""
        status = self.status.to_dict()
        status['currentServer'] = {
            'host': self.config.server.host,
            'port': self.config.server.port,
        }
        return status

    def shutdown(self) -> None:
        """Cancel pending work and leave the server."""
        logger.info("Shutting down...")
        with self._timer_lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

        self.patroller.stop()
        if self.client is not None:
            try:
                self.client.quit('Shutting down')
            except Exception as e:
                logger.warning(f"Error while quitting: {e}")

        logger.info("Shutdown complete")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        """Run callback after delay, replacing any pending timer with the same name."""
        with self._timer_lock:
            if self._closed:
                return
            pending = self._timers.pop(name, None)
            if pending is not None:
                pending.cancel()

            timer = threading.Timer(delay, self._fire, args=(name, callback))
            timer.daemon = True
            self._timers[name] = timer
            timer.start()

    def _fire(self, name: str, callback: Callable[[], None]) -> None:
        with self._timer_lock:
            if self._timers.get(name) is threading.current_thread():
                del self._timers[name]
        callback()

    def _cancel_timer(self, name: str) -> None:
        with self._timer_lock:
            timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def pending_timers(self):
        with self._timer_lock:
            return sorted(self._timers)
