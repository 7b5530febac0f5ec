from datetime import timedelta

import pytest

from podium.errors import SessionExpired, SessionNotFound
from podium.sessions.registry import SessionRegistry
from podium.types.core import ManualClock


def _registry():
    clock = ManualClock()
    return SessionRegistry(clock=clock), clock


def test_create_sets_four_hour_ttl():
    reg, clock = _registry()
    s = reg.create()
    assert s.created_at == clock.now()
    assert s.expires_at - s.created_at == timedelta(hours=4)
    assert reg.get(s.id) == s


def test_ids_are_random_not_sequential():
    reg, _ = _registry()
    ids = {reg.create().id for _ in range(200)}
    assert len(ids) == 200
    assert all(i.startswith("ses_") and len(i) > 20 for i in ids)


def test_get_succeeds_before_and_fails_after_expiry():
    reg, clock = _registry()
    s = reg.create()

    clock.advance(1)
    assert reg.get(s.id) is not None

    clock.advance(hours=4)
    assert reg.get(s.id) is None
    # lazily evicted, not just hidden
    assert reg.count() == 0


def test_expiry_is_exclusive_at_expires_at():
    reg, clock = _registry()
    s = reg.create()
    clock.set(s.expires_at)
    assert reg.get(s.id) is None


def test_require_distinguishes_expired_internally():
    reg, clock = _registry()
    s = reg.create()
    clock.advance(hours=5)
    with pytest.raises(SessionExpired):
        reg.require(s.id)
    # second read: it is simply gone
    with pytest.raises(SessionNotFound):
        reg.require(s.id)


def test_delete_is_idempotent_and_notifies_listeners():
    reg, _ = _registry()
    seen = []
    reg.add_eviction_listener(seen.append)
    s = reg.create()

    assert reg.delete(s.id) is True
    assert reg.delete(s.id) is False
    assert reg.get(s.id) is None
    assert seen[0] == s.id


def test_lazy_expiry_notifies_listeners():
    reg, clock = _registry()
    seen = []
    reg.add_eviction_listener(seen.append)
    s = reg.create()
    clock.advance(hours=4, seconds=1)
    reg.get(s.id)
    assert seen == [s.id]


def test_failing_listener_does_not_block_others():
    reg, _ = _registry()
    seen = []

    def boom(_sid):
        raise RuntimeError("listener down")

    reg.add_eviction_listener(boom)
    reg.add_eviction_listener(seen.append)
    s = reg.create()
    reg.delete(s.id)
    assert seen == [s.id]


def test_evict_only_removes_expired():
    reg, clock = _registry()
    s = reg.create()
    assert reg.evict(s.id) is False
    clock.advance(hours=4)
    assert reg.expired_ids() == [s.id]
    assert reg.evict(s.id) is True
    assert reg.evict(s.id) is False
