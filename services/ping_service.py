"""
Ping Service
Drives a single /ping invocation from validation through confirmation and the
paced delivery loop, and handles Stop requests for running sessions.

The service knows nothing about Discord. It talks to two collaborators:

presenter:
    ``confirm(request) -> ConfirmationChoice``
    ``show_progress(request, session)``
    ``notify_delivery_failure(request)``
    ``show_outcome(request, result)``

delivery:
    ``send_direct(target, text)``
    ``send_to_channel(channel, text)``
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from models.ping_session import (
    ConfirmationChoice,
    DeliveryMethod,
    PingRequest,
    PingResult,
    PingState,
    Rejection,
    SessionKey,
    StopResult,
)
from services.cooldown_service import CooldownService
from services.session_registry import SessionRegistry
from utils.message_utils import format_ping

logger = logging.getLogger("ping-bot")


class DeliveryError(Exception):
    """A ping could not be delivered to its recipient"""


@dataclass
class PingConfig:
    """Configuration for ping runs"""
    max_pings: int = 100
    confirmation_timeout: float = 30.0  # Seconds to wait for confirm/cancel
    pacing_delay: float = 0.3  # Seconds to wait after every send
    cooldown_on_failure: bool = False  # Also start a cooldown after a failed DM run


class PingService:
    """Service running ping sessions"""

    def __init__(self,
                 registry: SessionRegistry = None,
                 cooldowns: CooldownService = None,
                 config: PingConfig = None,
                 sleep=None):
        """
        Initialize ping service.

        Args:
            registry: Registry of active users and sessions
            cooldowns: Per-user cooldown tracking
            config: Ping configuration
            sleep: Coroutine function used for the pacing delay
        """
        self.registry = registry or SessionRegistry()
        self.cooldowns = cooldowns or CooldownService()
        self.config = config or PingConfig()
        self._sleep = sleep or asyncio.sleep

    def validate(self, request: PingRequest) -> Optional[PingResult]:
        """Check a request before confirmation, returns a rejection or None"""
        rejection = None
        remaining = None

        cooldown = self.cooldowns.check(request.inviter_id)
        if self.registry.is_active(request.inviter_id):
            rejection = Rejection.ALREADY_ACTIVE
        elif not cooldown.allowed:
            rejection = Rejection.ON_COOLDOWN
            remaining = cooldown.remaining_seconds
        elif request.target_id is None:
            rejection = Rejection.TARGET_NOT_FOUND
        elif request.target_id == request.bot_user_id:
            rejection = Rejection.SELF_TARGET
        elif not request.has_guild:
            rejection = Rejection.NOT_IN_GUILD

        if rejection is None:
            return None

        logger.info(f"Ping request from user {request.inviter_id} rejected: {rejection.value}")
        return PingResult(
            state=PingState.REJECTED,
            amount=request.amount,
            rejection=rejection,
            remaining_seconds=remaining
        )

    async def run(self, request: PingRequest, presenter, delivery) -> PingResult:
        """Run a /ping invocation to its terminal state"""
        self._transition(request, PingState.VALIDATING)
        result = self.validate(request)
        if result is not None:
            await self._report(presenter, request, result)
            return result

        self._transition(request, PingState.AWAITING_CONFIRMATION)
        choice = await self._await_confirmation(request, presenter)

        if choice is not ConfirmationChoice.CONFIRM:
            state = PingState.CANCELLED if choice is ConfirmationChoice.CANCEL else PingState.TIMED_OUT
            result = PingResult(state=state, amount=request.amount)
            self._transition(request, state)
            await self._report(presenter, request, result)
            return result

        self._transition(request, PingState.CONFIRMED)
        if not self.registry.try_acquire(request.inviter_id):
            # Another run was confirmed while this prompt was open
            result = PingResult(
                state=PingState.REJECTED,
                amount=request.amount,
                rejection=Rejection.ALREADY_ACTIVE
            )
            self._transition(request, PingState.REJECTED)
            await self._report(presenter, request, result)
            return result

        key = self.registry.create_session(
            request.inviter_id, request.amount, request.method, request.context
        )
        session = self.registry.get_session(key)
        self._transition(request, PingState.RUNNING)

        try:
            await presenter.show_progress(request, session)
            state = await self._deliver(request, key, presenter, delivery)
        except Exception as e:
            logger.error(f"Error while pinging for session {key}: {e}", exc_info=True)
            state = PingState.DELIVERY_FAILED
        finally:
            self.registry.release(request.inviter_id)
            self.registry.destroy_session(key)

        result = PingResult(
            state=state,
            amount=request.amount,
            completed=session.completed,
            session_key=key
        )
        self._transition(request, state)

        if result.cooldown_eligible or (state is PingState.DELIVERY_FAILED and self.config.cooldown_on_failure):
            self.cooldowns.record(request.inviter_id)

        await self._report(presenter, request, result)
        return result

    async def _await_confirmation(self, request: PingRequest, presenter) -> ConfirmationChoice:
        """Wait for the confirm/cancel answer, bounded by the confirmation timeout"""
        try:
            return await asyncio.wait_for(
                presenter.confirm(request),
                timeout=self.config.confirmation_timeout
            )
        except asyncio.TimeoutError:
            return ConfirmationChoice.TIMEOUT
        except Exception as e:
            logger.error(f"Error awaiting confirmation from user {request.inviter_id}: {e}", exc_info=True)
            return ConfirmationChoice.TIMEOUT

    async def _deliver(self, request: PingRequest, key: SessionKey, presenter, delivery) -> PingState:
        """Paced delivery loop, polls the stop flag before every send"""
        text = format_ping(request)

        for _ in range(request.amount):
            if self.registry.is_stopped(key):
                break

            if request.method is DeliveryMethod.DIRECT_MESSAGE:
                try:
                    await delivery.send_direct(request.target, text)
                except Exception as e:
                    if isinstance(e, DeliveryError):
                        logger.warning(f"Could not DM user {request.target_id}: {e}")
                    else:
                        logger.error(f"Error sending DM to user {request.target_id}: {e}", exc_info=True)
                    await self._notify_failure(presenter, request)
                    return PingState.DELIVERY_FAILED
            else:
                await delivery.send_to_channel(request.channel, text)

            self.registry.increment_completed(key)
            await self._sleep(self.config.pacing_delay)

        session = self.registry.get_session(key)
        if session.completed == request.amount:
            return PingState.COMPLETED
        return PingState.PARTIALLY_STOPPED

    def stop(self, requester_id: str, owner_id: str) -> StopResult:
        """Handle a Stop request for the session owned by owner_id"""
        if requester_id != owner_id:
            logger.info(f"User {requester_id} tried to stop the ping session of user {owner_id}")
            return StopResult.PERMISSION_DENIED

        if not self.registry.request_stop(owner_id):
            return StopResult.NO_ACTIVE_SESSION

        return StopResult.STOPPING

    async def _notify_failure(self, presenter, request: PingRequest):
        try:
            await presenter.notify_delivery_failure(request)
        except Exception as e:
            logger.error(f"Error sending delivery failure notice: {e}")

    async def _report(self, presenter, request: PingRequest, result: PingResult):
        """Show the terminal outcome; a rendering failure never escapes"""
        try:
            await presenter.show_outcome(request, result)
        except Exception as e:
            logger.error(f"Error reporting ping outcome {result.state.value} "
                         f"to user {request.inviter_id}: {e}", exc_info=True)

    def _transition(self, request: PingRequest, state: PingState):
        if state.is_terminal:
            logger.info(f"Ping request from user {request.inviter_id} ended: {state.value}")
        else:
            logger.debug(f"Ping request from user {request.inviter_id}: -> {state.value}")

    @property
    def stats(self) -> dict:
        """Get ping service statistics"""
        return {
            "sessions": self.registry.stats,
            "cooldowns": self.cooldowns.stats,
            "pacing_delay": self.config.pacing_delay,
            "max_pings": self.config.max_pings
        }
