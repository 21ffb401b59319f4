"""
Tests for patrol_bot/patrol.py — point generation, teleport check and the
restartable patrol loop.
"""

import threading

import numpy as np
import pytest

from integration.mc_client import ClientConfig, MinecraftClient, MovementError, Position
from patrol_bot.patrol import Patroller, is_teleport, random_point
from patrol_bot.state import BotStatus
from utils.config import PatrolSettings
from conftest import spawn


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestRandomPoint:

    def test_points_stay_inside_radius(self):
        rng = np.random.default_rng(42)
        center = Position(100, 70, -50)
        for _ in range(500):
            point = random_point(center, 8, rng)
            assert point.horizontal_distance_to(center) < 8
            assert point.y == 70

    def test_seeded_generators_agree(self):
        center = Position(0, 64, 0)
        a = random_point(center, 10, np.random.default_rng(7))
        b = random_point(center, 10, np.random.default_rng(7))
        assert a == b

    def test_returns_plain_floats(self):
        point = random_point(Position(0, 64, 0), 10, np.random.default_rng(1))
        assert type(point.x) is float
        assert type(point.z) is float


class TestIsTeleport:

    def test_inside_radius(self):
        assert not is_teleport(Position(5, 64, 5), Position(0, 64, 0), 10)

    def test_boundary_is_not_teleport(self):
        assert not is_teleport(Position(12, 64, 0), Position(0, 64, 0), 10, buffer=2)

    def test_beyond_buffer(self):
        assert is_teleport(Position(12.1, 64, 0), Position(0, 64, 0), 10, buffer=2)

    def test_height_ignored(self):
        assert not is_teleport(Position(0, 300, 0), Position(0, 64, 0), 10)


# ---------------------------------------------------------------------------
# Patroller
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return PatrolSettings(radius=10, wait_at_point=0, wait_at_center=0, retry_delay=0)


@pytest.fixture
def status():
    return BotStatus(center=Position(0, 64, 0))


@pytest.fixture
def client(backend):
    client = MinecraftClient(ClientConfig(), backend)
    client.connect()
    spawn(backend.bot)
    return client


@pytest.fixture
def patroller(status, settings, client):
    status.connected = True
    patroller = Patroller(status, settings, client, rng=np.random.default_rng(0))
    yield patroller
    patroller.stop()
    patroller.join(timeout=2)


class TestStartStop:

    def test_requires_connection(self, patroller, status):
        status.connected = False
        assert patroller.start() is False
        assert status.is_patrolling is False

    def test_start_once(self, patroller, status):
        assert patroller.start() is True
        assert patroller.start() is False
        assert status.is_patrolling is True

        patroller.stop()
        patroller.join(timeout=2)
        assert not patroller.running

    def test_stop_clears_flags_and_cancels_move(self, patroller, status, backend):
        status.is_patrolling = True
        status.current_target = Position(1, 64, 1)
        patroller.stop()
        assert status.is_patrolling is False
        assert status.current_target is None
        assert backend.stop_calls == 1

    def test_restart_retires_previous_loop(self, status, client, backend):
        status.connected = True
        settings = PatrolSettings(radius=10, wait_at_point=0.01, wait_at_center=0.01)
        patroller = Patroller(status, settings, client, rng=np.random.default_rng(0))

        patroller.start()
        first = patroller._thread
        patroller.stop()
        patroller.start()
        second = patroller._thread

        first.join(timeout=2)
        assert not first.is_alive()
        assert second.is_alive()

        patroller.stop()
        second.join(timeout=2)
        assert not second.is_alive()

    def test_stop_before_first_move_sends_nothing(self, patroller, status, backend):
        entered = threading.Event()
        gate = threading.Event()
        pick = patroller.next_point

        def held_next_point():
            entered.set()
            gate.wait(2)
            return pick()

        patroller.next_point = held_next_point
        patroller.start()
        assert entered.wait(2)

        patroller.stop()
        gate.set()
        patroller.join(timeout=2)

        assert not patroller.running
        assert backend.gotos == []
        assert status.current_target is None


class TestPatrolCycle:

    def test_cycle_visits_point_then_center(self, patroller, status, backend):
        patroller.patrol_once()

        assert len(backend.gotos) == 2
        point, tolerance, _ = backend.gotos[0]
        assert point.horizontal_distance_to(status.center) < 10
        assert tolerance == 1.0
        assert backend.gotos[1][0] == Position(0, 64, 0)
        assert status.current_target == Position(0, 64, 0)

    def test_movement_error_does_not_abort_cycle(self, patroller, backend):
        backend.goto_errors = [MovementError("Took too long to decide path to goal!")]
        patroller.patrol_once()
        assert len(backend.gotos) == 2

    def test_stop_during_pause_skips_return(self, patroller, backend):
        stop_event = threading.Event()
        backend.goto_hook = lambda n: stop_event.set()
        patroller.patrol_once(stop_event)
        assert len(backend.gotos) == 1

    def test_stopped_cycle_sends_no_moves(self, patroller, status, backend):
        stop_event = threading.Event()
        stop_event.set()
        patroller.patrol_once(stop_event)
        assert backend.gotos == []
        assert status.current_target is None

    def test_move_to_after_stop_is_skipped(self, patroller, status, backend):
        stop_event = threading.Event()
        stop_event.set()
        assert patroller.move_to(Position(3, 64, 3), stop_event) is False
        assert backend.gotos == []
        assert status.current_target is None

    def test_move_to_center_uses_latest_center(self, patroller, status, backend):
        status.center = Position(20, 65, 20)
        assert patroller.move_to_center() is True
        assert backend.gotos[-1][0] == Position(20, 65, 20)


class TestPatrolLoop:

    def test_loop_runs_until_stopped(self, patroller, backend):
        backend.goto_hook = lambda n: patroller.stop() if n >= 6 else None

        patroller.start()
        patroller.join(timeout=2)

        assert not patroller.running
        assert len(backend.gotos) >= 6

    def test_loop_ends_on_disconnect(self, patroller, status, backend):
        def drop(n):
            if n >= 3:
                with status.lock:
                    status.connected = False

        backend.goto_hook = drop
        patroller.start()
        patroller.join(timeout=2)

        assert not patroller.running
        assert len(backend.gotos) in (3, 4)

    def test_unexpected_error_is_retried(self, patroller, backend):
        backend.goto_errors = [RuntimeError("bridge hiccup")]
        backend.goto_hook = lambda n: patroller.stop() if n >= 3 else None

        patroller.start()
        patroller.join(timeout=2)

        # First cycle dies on the error, the retry runs a full cycle
        assert len(backend.gotos) >= 3
