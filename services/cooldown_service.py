"""
Cooldown Service
Per-user cooldown tracking for the /ping command
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("ping-bot")


def now_ms() -> float:
    """Current wall clock time in milliseconds since epoch"""
    return time.time() * 1000


def remaining_seconds(remaining_ms: float) -> int:
    """Round a remaining cooldown up to whole seconds for display"""
    return math.ceil(remaining_ms / 1000)


@dataclass
class CooldownConfig:
    """Configuration for cooldowns"""
    cooldown_ms: int = 60000


@dataclass
class CooldownCheck:
    """Result of a cooldown check"""
    allowed: bool
    remaining_ms: float = 0

    @property
    def remaining_seconds(self) -> int:
        return remaining_seconds(self.remaining_ms)


class CooldownService:
    """Tracks when each user may start a new ping run.

    Checking and recording are separate steps: a check never mutates state,
    so a rejected or cancelled invocation never incurs a cooldown.
    """

    def __init__(self, config: CooldownConfig = None, clock: Callable[[], float] = None):
        """
        Initialize cooldown service.

        Args:
            config: Cooldown configuration
            clock: Callable returning the current time in milliseconds
        """
        self.config = config or CooldownConfig()
        self.clock = clock or now_ms
        self._expiries: Dict[str, float] = {}

    def check(self, user_id: str, now: Optional[float] = None) -> CooldownCheck:
        """Check whether a user is allowed to start a run"""
        if now is None:
            now = self.clock()

        expiry = self._expiries.get(user_id)
        if expiry is None:
            return CooldownCheck(allowed=True)

        if now >= expiry:
            # Stale entry
            del self._expiries[user_id]
            return CooldownCheck(allowed=True)

        return CooldownCheck(allowed=False, remaining_ms=expiry - now)

    def record(self, user_id: str, now: Optional[float] = None, duration_ms: Optional[int] = None) -> float:
        """Start a cooldown for a user, returns the expiry instant"""
        if now is None:
            now = self.clock()
        if duration_ms is None:
            duration_ms = self.config.cooldown_ms

        expiry = now + duration_ms
        self._expiries[user_id] = expiry
        logger.debug(f"Cooldown recorded for user {user_id}: {duration_ms}ms")
        return expiry

    def get_expiry(self, user_id: str) -> Optional[float]:
        return self._expiries.get(user_id)

    @property
    def stats(self) -> dict:
        """Get cooldown statistics"""
        now = self.clock()
        return {
            "cooldown_ms": self.config.cooldown_ms,
            "users_on_cooldown": sum(1 for expiry in self._expiries.values() if expiry > now),
            "total_stored": len(self._expiries)
        }
