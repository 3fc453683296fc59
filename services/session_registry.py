"""
Session Registry
Tracks which users are running a ping session and the state of every session

All operations are synchronous: on a single asyncio loop nothing can interleave
inside them, so each one is atomic without a lock.
"""

import logging
from typing import Dict, Optional, Set

from models.ping_session import DeliveryMethod, PingSession, SessionKey

logger = logging.getLogger("ping-bot")


class SessionRegistry:
    """Registry of active-user markers and in-flight ping sessions"""

    def __init__(self):
        self._active_users: Set[str] = set()
        self._sessions: Dict[SessionKey, PingSession] = {}
        self._owners: Dict[str, SessionKey] = {}

        # Statistics
        self._total_sessions = 0
        self._stopped_sessions = 0

    # Active-user markers

    def try_acquire(self, user_id: str) -> bool:
        """Set the active marker for a user, False if it is already held"""
        if user_id in self._active_users:
            return False
        self._active_users.add(user_id)
        return True

    def release(self, user_id: str):
        """Remove the active marker for a user (idempotent)"""
        self._active_users.discard(user_id)

    def is_active(self, user_id: str) -> bool:
        return user_id in self._active_users

    # Sessions

    def create_session(self, user_id: str, amount: int = 0,
                       method: DeliveryMethod = DeliveryMethod.SERVER,
                       context: Optional[str] = None) -> SessionKey:
        """Create a fresh session owned by a user"""
        key = SessionKey.next_for(user_id)
        session = PingSession(key=key, amount=amount, method=method, context=context)
        self._sessions[key] = session
        self._owners[user_id] = key
        self._total_sessions += 1
        logger.info(f"Ping session created: {key} ({amount} pings via {method.label})")
        return key

    def get_session(self, key: SessionKey) -> Optional[PingSession]:
        return self._sessions.get(key)

    def session_for_owner(self, user_id: str) -> Optional[PingSession]:
        """Get the session owned by a user, looked up by owner not by key"""
        key = self._owners.get(user_id)
        if key is None:
            return None
        return self._sessions.get(key)

    def request_stop(self, user_id: str) -> bool:
        """Flag the session owned by a user as stopped"""
        session = self.session_for_owner(user_id)
        if session is None:
            return False
        if not session.stop_requested:
            self._stopped_sessions += 1
            logger.info(f"Stop requested for ping session {session.key}")
        session.request_stop()
        return True

    def is_stopped(self, key: SessionKey) -> bool:
        """Check the stop flag; a missing session counts as stopped"""
        session = self._sessions.get(key)
        return session is None or session.stop_requested

    def increment_completed(self, key: SessionKey) -> int:
        """Count one more delivered ping, returns the new count"""
        session = self._sessions[key]
        session.completed += 1
        return session.completed

    def destroy_session(self, key: SessionKey):
        """Remove a session (idempotent)"""
        session = self._sessions.pop(key, None)
        if session is None:
            return
        if self._owners.get(key.owner_id) == key:
            del self._owners[key.owner_id]
        logger.info(f"Ping session destroyed: {key} ({session.completed}/{session.amount} sent)")

    @property
    def stats(self) -> dict:
        """Get registry statistics"""
        return {
            "active_users": len(self._active_users),
            "active_sessions": len(self._sessions),
            "total_sessions": self._total_sessions,
            "stopped_sessions": self._stopped_sessions
        }
