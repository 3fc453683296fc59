import asyncio

import pytest
from unittest.mock import MagicMock, AsyncMock

from models.ping_session import (
    ConfirmationChoice,
    DeliveryMethod,
    PingRequest,
    PingState,
    Rejection,
    StopResult,
)
from services.cooldown_service import CooldownService
from services.session_registry import SessionRegistry
from services.ping_service import DeliveryError, PingConfig, PingService

NOW_MS = 1_000_000


def make_request(**overrides) -> PingRequest:
    values = dict(
        inviter_id="1",
        inviter_mention="<@1>",
        target_id="2",
        target_mention="<@2>",
        amount=5,
        method=DeliveryMethod.SERVER,
        context=None,
        guild_id="10",
        guild_name="Test Guild",
        bot_user_id="99",
        target=MagicMock(),
        channel=MagicMock(),
    )
    values.update(overrides)
    return PingRequest(**values)


def make_presenter(choice=ConfirmationChoice.CONFIRM):
    presenter = MagicMock()
    presenter.confirm = AsyncMock(return_value=choice)
    presenter.show_progress = AsyncMock()
    presenter.notify_delivery_failure = AsyncMock()
    presenter.show_outcome = AsyncMock()
    return presenter


def make_delivery():
    delivery = MagicMock()
    delivery.send_direct = AsyncMock()
    delivery.send_to_channel = AsyncMock()
    return delivery


def make_service(**config) -> PingService:
    cooldowns = CooldownService(clock=lambda: NOW_MS)
    return PingService(
        registry=SessionRegistry(),
        cooldowns=cooldowns,
        config=PingConfig(**config),
        sleep=AsyncMock()
    )


@pytest.mark.asyncio
async def test_server_run_completes_all_pings():
    service = make_service()
    presenter = make_presenter()
    delivery = make_delivery()
    request = make_request(amount=5)

    result = await service.run(request, presenter, delivery)

    assert result.state == PingState.COMPLETED
    assert result.completed == 5
    assert delivery.send_to_channel.call_count == 5
    delivery.send_direct.assert_not_called()
    delivery.send_to_channel.assert_called_with(request.channel, "👤 **Pinged:** <@2>\n")

    # Pacing delay follows every send, including the last
    assert service._sleep.call_count == 5
    service._sleep.assert_called_with(0.3)

    presenter.show_progress.assert_called_once()
    presenter.show_outcome.assert_called_once_with(request, result)
    assert not service.registry.is_active("1")
    assert service.registry.stats["active_sessions"] == 0
    assert service.cooldowns.get_expiry("1") == NOW_MS + 60000


@pytest.mark.asyncio
async def test_stop_after_third_direct_message():
    service = make_service()
    presenter = make_presenter()
    delivery = make_delivery()
    sent = []

    async def send_direct(target, text):
        sent.append(text)
        if len(sent) == 3:
            assert service.stop("1", "1") == StopResult.STOPPING

    delivery.send_direct = AsyncMock(side_effect=send_direct)
    request = make_request(amount=10, method=DeliveryMethod.DIRECT_MESSAGE, context="wake up")

    result = await service.run(request, presenter, delivery)

    assert result.state == PingState.PARTIALLY_STOPPED
    assert result.completed == 3
    assert len(sent) == 3
    assert "🌐 **Server:** Test Guild" in sent[0]
    assert "wake up" in sent[0]
    assert not service.registry.is_active("1")
    assert service.registry.session_for_owner("1") is None
    assert service.cooldowns.get_expiry("1") is not None


@pytest.mark.asyncio
async def test_stop_during_trailing_delay_still_completes():
    service = make_service()

    async def sleep(delay):
        if service._sleep.call_count == 3:
            service.stop("1", "1")

    service._sleep = AsyncMock(side_effect=sleep)
    result = await service.run(make_request(amount=3), make_presenter(), make_delivery())

    assert result.state == PingState.COMPLETED
    assert result.completed == 3


@pytest.mark.asyncio
async def test_direct_message_failure_aborts_run():
    service = make_service()
    presenter = make_presenter()
    delivery = make_delivery()
    delivery.send_direct = AsyncMock(side_effect=DeliveryError("Cannot send messages to this user"))
    request = make_request(amount=5, method=DeliveryMethod.DIRECT_MESSAGE)

    result = await service.run(request, presenter, delivery)

    assert result.state == PingState.DELIVERY_FAILED
    assert result.completed == 0
    assert delivery.send_direct.call_count == 1
    presenter.notify_delivery_failure.assert_called_once_with(request)
    presenter.show_outcome.assert_called_once_with(request, result)
    assert not service.registry.is_active("1")
    assert service.cooldowns.get_expiry("1") is None


@pytest.mark.asyncio
async def test_direct_message_failure_records_cooldown_when_configured():
    service = make_service(cooldown_on_failure=True)
    delivery = make_delivery()
    delivery.send_direct = AsyncMock(side_effect=DeliveryError("blocked"))

    result = await service.run(
        make_request(method=DeliveryMethod.DIRECT_MESSAGE), make_presenter(), delivery
    )

    assert result.state == PingState.DELIVERY_FAILED
    assert service.cooldowns.get_expiry("1") == NOW_MS + 60000


@pytest.mark.asyncio
async def test_unexpected_channel_error_is_delivery_failure():
    service = make_service()
    presenter = make_presenter()
    delivery = make_delivery()
    delivery.send_to_channel = AsyncMock(side_effect=[None, RuntimeError("gateway gone")])

    result = await service.run(make_request(amount=5), presenter, delivery)

    assert result.state == PingState.DELIVERY_FAILED
    assert result.completed == 1
    presenter.notify_delivery_failure.assert_not_called()
    assert not service.registry.is_active("1")
    assert service.registry.stats["active_sessions"] == 0


@pytest.mark.asyncio
async def test_cancel_sends_nothing():
    service = make_service()
    presenter = make_presenter(ConfirmationChoice.CANCEL)
    delivery = make_delivery()

    result = await service.run(make_request(), presenter, delivery)

    assert result.state == PingState.CANCELLED
    delivery.send_to_channel.assert_not_called()
    presenter.show_progress.assert_not_called()
    assert not service.registry.is_active("1")
    assert service.cooldowns.get_expiry("1") is None


@pytest.mark.asyncio
async def test_confirmation_timeout():
    service = make_service(confirmation_timeout=0.01)
    presenter = make_presenter()

    async def never_answer(request):
        await asyncio.Event().wait()

    presenter.confirm = AsyncMock(side_effect=never_answer)
    delivery = make_delivery()

    result = await service.run(make_request(), presenter, delivery)

    assert result.state == PingState.TIMED_OUT
    delivery.send_to_channel.assert_not_called()
    assert not service.registry.is_active("1")
    assert service.cooldowns.get_expiry("1") is None


@pytest.mark.asyncio
async def test_presenter_timeout_and_errors_are_timeouts():
    service = make_service()

    result = await service.run(make_request(), make_presenter(ConfirmationChoice.TIMEOUT), make_delivery())
    assert result.state == PingState.TIMED_OUT

    presenter = make_presenter()
    presenter.confirm = AsyncMock(side_effect=RuntimeError("interaction expired"))
    result = await service.run(make_request(), presenter, make_delivery())
    assert result.state == PingState.TIMED_OUT
    assert not service.registry.is_active("1")


@pytest.mark.asyncio
async def test_rejected_while_on_cooldown():
    service = make_service()
    service.cooldowns.record("1", now=NOW_MS - 1500)
    presenter = make_presenter()

    result = await service.run(make_request(), presenter, make_delivery())

    assert result.state == PingState.REJECTED
    assert result.rejection == Rejection.ON_COOLDOWN
    assert result.remaining_seconds == 59
    presenter.confirm.assert_not_called()
    assert service.cooldowns.get_expiry("1") == NOW_MS - 1500 + 60000


@pytest.mark.asyncio
async def test_rejected_while_session_active():
    service = make_service()
    service.registry.try_acquire("1")
    presenter = make_presenter()

    result = await service.run(make_request(), presenter, make_delivery())

    assert result.rejection == Rejection.ALREADY_ACTIVE
    presenter.confirm.assert_not_called()
    # The marker belongs to the other run
    assert service.registry.is_active("1")


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides, rejection", [
    ({"target_id": None, "target_mention": None, "target": None}, Rejection.TARGET_NOT_FOUND),
    ({"target_id": "99"}, Rejection.SELF_TARGET),
    ({"guild_id": None, "guild_name": None}, Rejection.NOT_IN_GUILD),
])
async def test_validation_rejections(overrides, rejection):
    service = make_service()
    presenter = make_presenter()

    result = await service.run(make_request(**overrides), presenter, make_delivery())

    assert result.state == PingState.REJECTED
    assert result.rejection == rejection
    assert result.remaining_seconds is None
    presenter.confirm.assert_not_called()
    presenter.show_outcome.assert_called_once()
    assert service.registry.stats["active_users"] == 0


@pytest.mark.asyncio
async def test_marker_taken_during_confirmation():
    service = make_service()
    presenter = make_presenter()

    async def confirm(request):
        service.registry.try_acquire("1")
        return ConfirmationChoice.CONFIRM

    presenter.confirm = AsyncMock(side_effect=confirm)
    delivery = make_delivery()

    result = await service.run(make_request(), presenter, delivery)

    assert result.state == PingState.REJECTED
    assert result.rejection == Rejection.ALREADY_ACTIVE
    delivery.send_to_channel.assert_not_called()
    assert service.registry.stats["active_sessions"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("choice, state", [
    (ConfirmationChoice.CANCEL, PingState.CANCELLED),
    (ConfirmationChoice.TIMEOUT, PingState.TIMED_OUT),
])
async def test_sibling_prompt_ending_keeps_running_marker(choice, state):
    service = make_service()
    first_send = asyncio.Event()
    finish_running = asyncio.Event()
    answer_sibling = asyncio.Event()

    async def send_to_channel(channel, text):
        first_send.set()
        await finish_running.wait()

    running_delivery = make_delivery()
    running_delivery.send_to_channel = AsyncMock(side_effect=send_to_channel)

    async def answer_later(request):
        await answer_sibling.wait()
        return choice

    sibling_presenter = make_presenter()
    sibling_presenter.confirm = AsyncMock(side_effect=answer_later)

    sibling = asyncio.create_task(service.run(make_request(), sibling_presenter, make_delivery()))
    await asyncio.sleep(0)
    running = asyncio.create_task(service.run(make_request(amount=2), make_presenter(), running_delivery))
    await first_send.wait()

    answer_sibling.set()
    sibling_result = await sibling

    assert sibling_result.state == state
    assert service.registry.is_active("1")
    assert service.registry.session_for_owner("1") is not None
    assert service.validate(make_request()).rejection == Rejection.ALREADY_ACTIVE

    finish_running.set()
    running_result = await running

    assert running_result.state == PingState.COMPLETED
    assert running_result.completed == 2
    assert not service.registry.is_active("1")


@pytest.mark.asyncio
async def test_outcome_rendering_failure_does_not_escape():
    service = make_service()
    presenter = make_presenter()
    presenter.show_outcome = AsyncMock(side_effect=RuntimeError("unknown interaction"))

    result = await service.run(make_request(amount=2), presenter, make_delivery())

    assert result.state == PingState.COMPLETED
    assert not service.registry.is_active("1")


def test_stop_by_other_user_is_denied():
    service = make_service()
    key = service.registry.create_session("1", 5)

    assert service.stop("2", "1") == StopResult.PERMISSION_DENIED
    assert not service.registry.is_stopped(key)


def test_stop_without_session():
    service = make_service()

    assert service.stop("1", "1") == StopResult.NO_ACTIVE_SESSION
