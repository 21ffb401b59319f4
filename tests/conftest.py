"""
Shared pytest fixtures for the patrol bot test suite.

Provides a fake Mineflayer backend so clients, the patroller and the
controller can be exercised without Node.js or a Minecraft server.
"""

import threading

import numpy as np
import pytest

from integration.mc_client import MinecraftClient, Position
from patrol_bot.controller import BotController
from utils.config import Config


# ---------------------------------------------------------------------------
# Fake bridge
# ---------------------------------------------------------------------------

class FakeBot:
    """Stands in for a Mineflayer bot proxy."""

    def __init__(self, options):
        self.options = options
        self.username = options['username']
        self.handlers = {}
        self.position = None
        self.health = 20
        self.food = 20
        self.players = [options['username']]
        self.quit_reasons = []
        self.movements_set = False

    def emit(self, event, *args):
        for handler in self.handlers.get(event, []):
            handler(*args)


class FakeBackend:
    """Records bridge calls and lets tests script pathfinder outcomes."""

    def __init__(self):
        self.bots = []
        self.gotos = []
        self.goto_errors = []
        self.goto_hook = None
        self.stop_calls = 0
        self.create_error = None
        self.moved = threading.Event()

    @property
    def bot(self):
        return self.bots[-1]

    def create_bot(self, options):
        if self.create_error is not None:
            raise self.create_error
        bot = FakeBot(options)
        self.bots.append(bot)
        return bot

    def subscribe(self, bot, event, handler):
        bot.handlers.setdefault(event, []).append(handler)

    def setup_movements(self, bot):
        bot.movements_set = True

    def goto(self, bot, target, tolerance, timeout):
        self.gotos.append((target.copy(), tolerance, timeout))
        self.moved.set()
        if self.goto_hook is not None:
            self.goto_hook(len(self.gotos))
        if self.goto_errors:
            error = self.goto_errors.pop(0)
            if error is not None:
                raise error

    def stop_moving(self, bot):
        self.stop_calls += 1

    def position(self, bot):
        return bot.position.copy() if bot.position else None

    def player_names(self, bot):
        return list(bot.players)

    def quit(self, bot, reason):
        bot.quit_reasons.append(reason)


def spawn(bot, x=0.0, y=64.0, z=0.0):
    """Simulate the bot spawning at a position."""
    bot.position = Position(x, y, z)
    bot.emit('login')
    bot.emit('spawn')


def move(bot, x, y, z):
    bot.position = Position(x, y, z)
    bot.emit('move')


class RecordingScheduler:
    """Replaces controller timers with a list of (name, delay, callback)."""

    def __init__(self):
        self.calls = []

    def __call__(self, name, delay, callback):
        self.calls.append((name, delay, callback))

    def names(self):
        return [name for name, _, _ in self.calls]

    def last(self, name):
        for call in reversed(self.calls):
            if call[0] == name:
                return call
        raise AssertionError(f"nothing scheduled as {name!r}")

    def fire(self, name):
        _, _, callback = self.last(name)
        callback()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config():
    return Config.from_dict({
        'server': {'host': 'localhost', 'port': 25565},
        'bot': {'username': 'PatrolBot'},
        'patrol': {
            'centerX': 0, 'centerY': 64, 'centerZ': 0, 'radius': 10,
            'waitAtPoint': 0, 'waitAtCenter': 0, 'retryDelay': 0,
        },
        'web': {'port': 3000},
    })


@pytest.fixture
def config_path(tmp_path, config):
    path = tmp_path / 'config.json'
    config.save(str(path))
    return str(path)


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def controller(config, config_path, backend, scheduler):
    controller = BotController(
        config,
        config_path,
        client_factory=lambda client_config: MinecraftClient(client_config, backend),
        rng=np.random.default_rng(0)
    )
    controller._schedule = scheduler
    yield controller
    controller.patroller.stop()
    controller.patroller.join(timeout=2)
