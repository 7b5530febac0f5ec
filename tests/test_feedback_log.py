from datetime import timedelta

import pytest

from podium.errors import SessionNotFound, ValidationError
from podium.feedback.log import FeedbackLog
from podium.sessions.registry import SessionRegistry
from podium.types.core import ManualClock


def _setup(max_chars=2000):
    clock = ManualClock()
    reg = SessionRegistry(clock=clock)
    log = FeedbackLog(reg, max_chars=max_chars)
    return reg, log, clock


def test_append_trims_and_returns_item():
    reg, log, clock = _setup()
    s = reg.create()
    item = log.append(s.id, "  what about latency?  ")
    assert item.text == "what about latency?"
    assert item.session_id == s.id
    assert item.timestamp == clock.now()
    assert log.query(s.id) == [item]


def test_query_preserves_append_order():
    reg, log, clock = _setup()
    s = reg.create()
    items = []
    for n in range(5):
        items.append(log.append(s.id, f"msg {n}"))
        clock.advance(0.5)
    got = log.query(s.id)
    assert got == items
    assert [i.timestamp for i in got] == sorted(i.timestamp for i in got)


def test_query_since_returns_strictly_newer():
    # f1 at T0, f2 at T0+1s, since=T0 -> [f2]
    reg, log, clock = _setup()
    s = reg.create()
    t0 = clock.now()
    f1 = log.append(s.id, "f1")
    clock.advance(1)
    f2 = log.append(s.id, "f2")

    assert f1.timestamp == t0
    assert log.query(s.id, since=t0) == [f2]
    assert log.query(s.id, since=f2.timestamp) == []


def test_since_partitions_log_without_gaps_or_duplicates():
    reg, log, clock = _setup()
    s = reg.create()
    items = []
    for n in range(6):
        items.append(log.append(s.id, f"m{n}"))
        if n % 2:
            clock.advance(1)

    for cut in range(len(items)):
        newer = log.query(s.id, since=items[cut].timestamp)
        assert newer == items[cut + 1:]


def test_same_instant_appends_get_distinct_timestamps():
    reg, log, clock = _setup()
    s = reg.create()
    a = log.append(s.id, "a")
    b = log.append(s.id, "b")
    assert a.timestamp == clock.now()
    assert b.timestamp - a.timestamp == timedelta(microseconds=1)
    assert log.query(s.id, since=a.timestamp) == [b]


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None, 42])
def test_blank_or_non_string_text_is_rejected(text):
    reg, log, _ = _setup()
    s = reg.create()
    with pytest.raises(ValidationError):
        log.append(s.id, text)
    assert log.query(s.id) == []


def test_overlong_text_is_rejected():
    reg, log, _ = _setup(max_chars=10)
    s = reg.create()
    with pytest.raises(ValidationError):
        log.append(s.id, "x" * 11)
    assert log.append(s.id, "x" * 10).text == "x" * 10


def test_append_to_unknown_or_expired_session():
    reg, log, clock = _setup()
    with pytest.raises(SessionNotFound):
        log.append("ses_missing", "hello")

    s = reg.create()
    clock.advance(hours=4, seconds=1)
    with pytest.raises(SessionNotFound):
        log.append(s.id, "too late")


def test_query_on_invalid_session_is_empty():
    reg, log, clock = _setup()
    assert log.query("ses_missing") == []

    s = reg.create()
    log.append(s.id, "hi")
    clock.advance(hours=5)
    assert log.query(s.id) == []


def test_delete_drops_the_log():
    reg, log, _ = _setup()
    s = reg.create()
    log.append(s.id, "hi")
    reg.delete(s.id)
    assert log.count(s.id) == 0
    assert log.last_timestamp(s.id) is None
