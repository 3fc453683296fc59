from models.ping_session import DeliveryMethod, SessionKey
from services.session_registry import SessionRegistry


def test_try_acquire_is_exclusive():
    registry = SessionRegistry()

    assert registry.try_acquire("1") is True
    assert registry.try_acquire("1") is False
    assert registry.try_acquire("2") is True

    registry.release("1")
    assert registry.try_acquire("1") is True


def test_release_is_idempotent():
    registry = SessionRegistry()

    registry.release("1")
    registry.try_acquire("1")
    registry.release("1")
    registry.release("1")

    assert not registry.is_active("1")


def test_create_session_starts_fresh():
    registry = SessionRegistry()

    key = registry.create_session("1", 10, DeliveryMethod.DIRECT_MESSAGE, "hello")
    session = registry.get_session(key)

    assert key.owner_id == "1"
    assert session.stop_requested is False
    assert session.completed == 0
    assert session.amount == 10
    assert session.method == DeliveryMethod.DIRECT_MESSAGE
    assert session.context == "hello"


def test_session_keys_are_unique_for_the_same_owner():
    registry = SessionRegistry()

    first = registry.create_session("1", 1)
    registry.destroy_session(first)
    second = registry.create_session("1", 1)

    assert first != second
    assert isinstance(second, SessionKey)
    assert registry.get_session(first) is None


def test_request_stop_finds_session_by_owner():
    registry = SessionRegistry()
    short = registry.create_session("1", 5)
    longer = registry.create_session("12", 5)

    assert registry.request_stop("1") is True
    assert registry.is_stopped(short)
    assert not registry.is_stopped(longer)

    # Repeated stops are harmless
    assert registry.request_stop("1") is True
    assert registry.stats["stopped_sessions"] == 1


def test_request_stop_without_session():
    registry = SessionRegistry()

    assert registry.request_stop("1") is False


def test_increment_and_destroy():
    registry = SessionRegistry()
    key = registry.create_session("1", 3)

    assert registry.increment_completed(key) == 1
    assert registry.increment_completed(key) == 2
    assert registry.get_session(key).remaining == 1

    registry.destroy_session(key)
    registry.destroy_session(key)

    assert registry.session_for_owner("1") is None
    assert registry.is_stopped(key)
    assert registry.request_stop("1") is False
    assert registry.stats["active_sessions"] == 0
    assert registry.stats["total_sessions"] == 1
