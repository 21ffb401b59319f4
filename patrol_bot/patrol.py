"""
patrol.py - Random-walk patrol around a center point.

The patrol loop runs on its own thread:
1. Walk to a random point inside the patrol radius
2. Wait a moment
3. Walk back to the center
4. Wait, then repeat while connected and patrolling

Every start gets its own stop event, so stopping and quickly restarting
never leaves an old loop driving the bot alongside the new one.
"""

import math
import logging
import threading
from typing import Optional

import numpy as np

from integration.mc_client import MinecraftClient, MovementError, Position
from utils.config import PatrolSettings
from .state import BotStatus

logger = logging.getLogger(__name__)


def random_point(
    center: Position,
    radius: float,
    rng: np.random.Generator
) -> Position:
    """
    Pick a point within ``radius`` blocks of center on the X/Z plane.

    Angle and distance are both uniform, which biases points towards the
    center. The height stays at the center's Y; the pathfinder settles
    the bot on the ground.
    """
    angle = float(rng.uniform(0.0, 2 * math.pi))
    distance = float(rng.uniform(0.0, radius))

    return Position(
        center.x + math.cos(angle) * distance,
        center.y,
        center.z + math.sin(angle) * distance
    )


def is_teleport(
    position: Position,
    center: Position,
    radius: float,
    buffer: float = 2.0
) -> bool:
    """True when position is further than ``radius + buffer`` from center (X/Z only)."""
    return position.horizontal_distance_to(center) > radius + buffer


class Patroller:
    """
    Restartable patrol task.

    Usage:
        patroller = Patroller(status, settings)
        patroller.attach(client)
        patroller.start()
        ...
        patroller.stop()
    """

    def __init__(
        self,
        status: BotStatus,
        settings: PatrolSettings,
        client: Optional[MinecraftClient] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the patroller.

        Args:
            status: Shared status record (center, flags, current target)
            settings: Radius and loop timing
            client: Client of the current session, if any
            rng: Random generator; seeded from settings when omitted
        """
        self.status = status
        self.settings = settings
        self.client = client
        self.rng = rng if rng is not None else np.random.default_rng(settings.seed)

        self._stop_event = threading.Event()
        self._stop_event.set()
        self._thread: Optional[threading.Thread] = None

    def attach(self, client: MinecraftClient) -> None:
        """Point the patrol at a new client session."""
        self.client = client

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        Start patrolling if connected and not already patrolling.

        Returns:
            True if a new patrol loop was started
        """
        with self.status.lock:
            if not self.status.connected or self.status.is_patrolling:
                return False

            self.status.is_patrolling = True
            # Retire a loop that is still winding down from an earlier stop
            self._stop_event.set()
            stop_event = threading.Event()
            self._stop_event = stop_event

        logger.info("Starting patrol...")
        self._thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            name="patrol",
            daemon=True
        )
        self._thread.start()
        return True

    def stop(self) -> None:
        """Stop patrolling and cancel the current move."""
        with self.status.lock:
            was_patrolling = self.status.is_patrolling
            self.status.is_patrolling = False
            self.status.current_target = None
            self._stop_event.set()

        if was_patrolling and self.client is not None:
            try:
                self.client.stop_moving()
            except Exception as e:
                logger.warning(f"Could not cancel current move: {e}")

        logger.info("Patrol stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the patrol thread to finish."""
        if self._thread is not None:
            self._thread.join(timeout)

    def next_point(self) -> Position:
        with self.status.lock:
            center = self.status.center.copy()
        return random_point(center, self.settings.radius, self.rng)

    def move_to(self, target: Position, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Walk to target, logging rather than raising pathfinder failures.

        Args:
            target: Position to walk to
            stop_event: Stop event of the calling loop; no move is sent once set

        Returns:
            True if the target was reached
        """
        with self.status.lock:
            # stop() sets the event under this lock
            if stop_event is not None and stop_event.is_set():
                return False
            self.status.current_target = target.copy()

        try:
            self.client.goto(target, tolerance=1.0)
        except MovementError as e:
            logger.warning(f"Movement error: {e}")
            return False

        logger.info(f"Reached position: {target.x:.1f}, {target.y:.1f}, {target.z:.1f}")
        return True

    def move_to_center(self, stop_event: Optional[threading.Event] = None) -> bool:
        with self.status.lock:
            center = self.status.center.copy()
        logger.info(f"Moving to center: {center.x}, {center.y}, {center.z}")
        return self.move_to(center, stop_event)

    def patrol_once(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Run one patrol cycle: random point, pause, center, pause.

        Returns early, without sending further moves, once ``stop_event`` is set.
        """
        if stop_event is None:
            stop_event = threading.Event()

        point = self.next_point()
        if stop_event.is_set():
            return

        logger.info(f"Patrolling to: {point.x:.1f}, {point.y:.1f}, {point.z:.1f}")
        if self.move_to(point, stop_event):
            logger.info("Successfully reached patrol point")

        if stop_event.wait(self.settings.wait_at_point):
            return

        logger.info("Returning to center")
        if self.move_to_center(stop_event):
            logger.info("Successfully returned to center")

        stop_event.wait(self.settings.wait_at_center)

    def _should_continue(self, stop_event: threading.Event) -> bool:
        with self.status.lock:
            return (
                not stop_event.is_set()
                and self.status.connected
                and self.status.is_patrolling
            )

    def _describe(self) -> str:
        with self.status.lock:
            return (f"connected={self.status.connected}, "
                    f"patrolling={self.status.is_patrolling}")

    def _run(self, stop_event: threading.Event) -> None:
        """Patrol loop body; runs until stopped or disconnected."""
        while self._should_continue(stop_event):
            try:
                self.patrol_once(stop_event)
            except Exception as e:
                logger.error(f"Patrol error: {e}", exc_info=True)
                if not self._should_continue(stop_event):
                    logger.info(f"Not retrying patrol: {self._describe()}")
                    return
                logger.info(f"Retrying patrol in {self.settings.retry_delay} seconds...")
                stop_event.wait(self.settings.retry_delay)
                continue

            if self._should_continue(stop_event):
                logger.info("Continuing patrol...")

        logger.info(f"Patrol loop ended: {self._describe()}")
