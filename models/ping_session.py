"""
Ping Session Model
Tracks ping requests, in-flight ping sessions and their outcomes
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple, Optional


class DeliveryMethod(str, Enum):
    """Where the pings are delivered"""
    SERVER = "server"
    DIRECT_MESSAGE = "direct-message"

    @property
    def label(self) -> str:
        """Human readable label used in embeds and messages"""
        return "this server" if self is DeliveryMethod.SERVER else "DMs"


class PingState(str, Enum):
    """States of a single /ping invocation"""
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    RUNNING = "running"

    # Terminal states
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"
    PARTIALLY_STOPPED = "partially_stopped"
    DELIVERY_FAILED = "delivery_failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({
    PingState.REJECTED,
    PingState.CANCELLED,
    PingState.TIMED_OUT,
    PingState.COMPLETED,
    PingState.PARTIALLY_STOPPED,
    PingState.DELIVERY_FAILED,
})


class Rejection(str, Enum):
    """Reasons a request is refused before confirmation"""
    ALREADY_ACTIVE = "already_active"
    ON_COOLDOWN = "on_cooldown"
    TARGET_NOT_FOUND = "target_not_found"
    SELF_TARGET = "self_target"
    NOT_IN_GUILD = "not_in_guild"


class ConfirmationChoice(str, Enum):
    """Answer to the confirm/cancel prompt"""
    CONFIRM = "confirm"
    CANCEL = "cancel"
    TIMEOUT = "timeout"


class StopResult(str, Enum):
    """Result of pressing the Stop button"""
    STOPPING = "stopping"
    NO_ACTIVE_SESSION = "no_active_session"
    PERMISSION_DENIED = "permission_denied"


_session_counter = itertools.count(1)


class SessionKey(NamedTuple):
    """Composite session identifier: owner plus a process-wide sequence number"""
    owner_id: str
    sequence: int

    @classmethod
    def next_for(cls, owner_id: str) -> "SessionKey":
        return cls(owner_id, next(_session_counter))

    def __str__(self) -> str:
        return f"{self.owner_id}#{self.sequence}"


@dataclass
class PingRequest:
    """A parsed /ping invocation

    ``target``, ``channel`` are opaque handles handed back to the delivery
    collaborator; the core never inspects them.
    """
    inviter_id: str
    inviter_mention: str
    target_id: Optional[str]
    target_mention: Optional[str]
    amount: int
    method: DeliveryMethod
    context: Optional[str] = None
    guild_id: Optional[str] = None
    guild_name: Optional[str] = None
    bot_user_id: Optional[str] = None
    target: Any = None
    channel: Any = None

    @property
    def has_guild(self) -> bool:
        return self.guild_id is not None


@dataclass
class PingSession:
    """Represents one confirmed, in-flight ping run"""
    key: SessionKey
    amount: int
    method: DeliveryMethod
    context: Optional[str] = None
    stop_requested: bool = False
    completed: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def remaining(self) -> int:
        return self.amount - self.completed

    def request_stop(self):
        """Mark the session as stopped (idempotent)"""
        self.stop_requested = True


@dataclass
class PingResult:
    """Terminal report of a /ping invocation"""
    state: PingState
    amount: int
    completed: int = 0
    rejection: Optional[Rejection] = None
    remaining_seconds: Optional[int] = None
    session_key: Optional[SessionKey] = None

    @property
    def cooldown_eligible(self) -> bool:
        """Whether the run made it far enough to earn a cooldown"""
        return self.state in (PingState.COMPLETED, PingState.PARTIALLY_STOPPED)
