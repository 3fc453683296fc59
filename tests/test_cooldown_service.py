import pytest

from services.cooldown_service import CooldownConfig, CooldownService, remaining_seconds


def test_allowed_without_cooldown():
    cooldowns = CooldownService()

    check = cooldowns.check("1", now=1000)

    assert check.allowed is True
    assert check.remaining_ms == 0


def test_rejected_during_cooldown():
    cooldowns = CooldownService(CooldownConfig(cooldown_ms=60000))
    cooldowns.record("1", now=1000)

    check = cooldowns.check("1", now=11000)

    assert check.allowed is False
    assert check.remaining_ms == 50000
    assert check.remaining_seconds == 50


def test_failed_check_has_no_side_effects():
    cooldowns = CooldownService()
    cooldowns.record("1", now=0)

    cooldowns.check("1", now=10)
    cooldowns.check("1", now=20)

    assert cooldowns.get_expiry("1") == 60000


def test_cooldown_is_stale_at_expiry():
    cooldowns = CooldownService()
    cooldowns.record("1", now=0, duration_ms=5000)

    assert cooldowns.check("1", now=4999).allowed is False
    assert cooldowns.check("1", now=5000).allowed is True
    assert cooldowns.get_expiry("1") is None


def test_cooldowns_are_per_user():
    cooldowns = CooldownService()
    cooldowns.record("1", now=0)

    assert cooldowns.check("2", now=0).allowed is True


def test_uses_injected_clock():
    now = [0]
    cooldowns = CooldownService(CooldownConfig(cooldown_ms=1000), clock=lambda: now[0])
    cooldowns.record("1")

    now[0] = 400
    assert cooldowns.check("1").remaining_ms == 600
    assert cooldowns.stats["users_on_cooldown"] == 1

    now[0] = 1000
    assert cooldowns.check("1").allowed is True


@pytest.mark.parametrize("remaining_ms, seconds", [
    (1, 1),
    (1000, 1),
    (1001, 2),
    (59999, 60),
])
def test_remaining_seconds_rounds_up(remaining_ms, seconds):
    assert remaining_seconds(remaining_ms) == seconds
