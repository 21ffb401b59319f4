"""
state.py - Shared status record for the patrol bot.

Bot events, the patrol thread and HTTP handlers all read and write the
same record, so every access goes through its lock.
"""

import time
import threading
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

from integration.mc_client import Position


@dataclass
class BotStatus:
    """Mutable status of the bot as reported by the dashboard."""
    connected: bool = False
    position: Position = field(default_factory=lambda: Position(0.0, 0.0, 0.0))
    center: Position = field(default_factory=lambda: Position(0.0, 64.0, 0.0))
    is_patrolling: bool = False
    current_target: Optional[Position] = None
    health: float = 20.0
    food: float = 20.0
    last_chat: str = ''
    players: List[str] = field(default_factory=list)
    server_configured: bool = False
    switching_servers: bool = False
    spawned_at: Optional[float] = None

    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    def uptime_ms(self, now: Optional[float] = None) -> int:
        """Milliseconds since the current session spawned, 0 when offline."""
        with self.lock:
            if not self.connected or self.spawned_at is None:
                return 0
            now = time.time() if now is None else now
            return max(0, int((now - self.spawned_at) * 1000))

    def to_dict(self) -> Dict[str, Any]:
        """Status document with the dashboard's key names."""
        with self.lock:
            return {
                'connected': self.connected,
                'serverConfigured': self.server_configured,
                'position': self.position.to_dict(),
                'center': self.center.to_dict(),
                'isPatrolling': self.is_patrolling,
                'currentTarget': (
                    self.current_target.to_dict() if self.current_target else None
                ),
                'health': self.health,
                'food': self.food,
                'lastChat': self.last_chat,
                'players': list(self.players),
                'uptime': self.uptime_ms(),
            }
