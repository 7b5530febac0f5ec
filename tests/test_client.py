import json

import httpx
import pytest

from podium.client import FeedbackInbox, PodiumClient, SlidePoller, parse_sse
from podium.errors import RateLimited, SessionNotFound, ValidationError


def _mock(handler):
    return PodiumClient(base_url="http://podium.test", transport=httpx.MockTransport(handler))


def test_parse_sse_skips_keepalives_and_junk():
    lines = [
        ": keepalive",
        "",
        'data: {"type": "feedback", "payload": {"id": "fb_1"}}',
        "",
        "data: not json",
        "",
        ": keepalive",
        "",
    ]
    assert list(parse_sse(lines)) == [{"type": "feedback", "payload": {"id": "fb_1"}}]


def test_submit_feedback_maps_errors():
    def handler(request):
        body = json.loads(request.content)
        if request.url.path.endswith("/ses_gone/feedback"):
            return httpx.Response(404, json={"detail": "Session not found or expired"})
        if not body["text"].strip():
            return httpx.Response(400, json={"detail": "Feedback text is required"})
        if body["text"] == "spam":
            return httpx.Response(429, json={"detail": "slow down"})
        return httpx.Response(200, json={"success": True, "feedbackId": "fb_1"})

    client = _mock(handler)
    assert client.submit_feedback("ses_1", "hello") == "fb_1"
    with pytest.raises(ValidationError):
        client.submit_feedback("ses_1", "  ")
    with pytest.raises(RateLimited):
        client.submit_feedback("ses_1", "spam")
    with pytest.raises(SessionNotFound):
        client.submit_feedback("ses_gone", "hello")


def test_non_json_error_bodies_still_map_to_errors():
    def handler(request):
        if json.loads(request.content)["text"] == "spam":
            return httpx.Response(429, text="Too Many Requests")
        return httpx.Response(400, text="<html>bad gateway page</html>")

    client = _mock(handler)
    with pytest.raises(RateLimited, match="Too Many Requests"):
        client.submit_feedback("ses_1", "spam")
    with pytest.raises(ValidationError):
        client.submit_feedback("ses_1", "hello")


def test_get_session_returns_none_on_404():
    client = _mock(lambda request: httpx.Response(404, json={"detail": "x"}))
    assert client.get_session("ses_1") is None


def test_iter_feedback_yields_payloads():
    body = (
        ": keepalive\n\n"
        'data: {"type": "feedback", "payload": {"id": "fb_1", "text": "a"}}\n\n'
        'data: {"type": "other", "payload": {}}\n\n'
        'data: {"type": "feedback", "payload": {"id": "fb_2", "text": "b"}}\n\n'
    )

    def handler(request):
        assert request.url.params.get("since") == "2025-01-01T00:00:00+00:00"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    client = _mock(handler)
    got = list(client.iter_feedback("ses_1", since="2025-01-01T00:00:00+00:00"))
    assert [g["id"] for g in got] == ["fb_1", "fb_2"]


def test_inbox_dedupes_replayed_items():
    inbox = FeedbackInbox()
    a = {"id": "fb_1", "text": "a", "timestamp": "2025-01-01T00:00:00+00:00"}
    b = {"id": "fb_2", "text": "b", "timestamp": "2025-01-01T00:00:01+00:00"}

    assert inbox.add(a) is True
    assert inbox.add(b) is True
    assert inbox.add(dict(a)) is False
    assert [i["id"] for i in inbox.items()] == ["fb_2", "fb_1"]
    assert inbox.last_timestamp == b["timestamp"]
    assert inbox.unread_count == 2

    inbox.mark_read("fb_1")
    assert inbox.unread_count == 1
    inbox.dismiss("fb_2")
    assert inbox.unread_count == 0
    # dismissed items stay deduped
    assert inbox.add(b) is False


def test_slide_poller_fires_only_on_change():
    slides = [
        None,
        {"id": "a", "publishedAt": "t1", "payload": {}},
        {"id": "a", "publishedAt": "t1", "payload": {}},
        {"id": "b", "publishedAt": "t2", "payload": {}},
    ]

    def handler(request):
        return httpx.Response(200, json={"slide": slides.pop(0)})

    seen = []
    poller = SlidePoller(_mock(handler), "ses_1", on_change=seen.append, interval_s=0.01)
    assert [poller.poll_once() for _ in range(4)] == [True, True, False, True]
    assert [s["id"] if s else None for s in seen] == [None, "a", "b"]


def test_slide_poller_stops_when_session_is_gone():
    client = _mock(lambda request: httpx.Response(404, json={"detail": "Session not found or expired"}))
    poller = SlidePoller(client, "ses_1", on_change=lambda _s: None, interval_s=0.01)
    poller.start()
    poller._thread.join(timeout=2.0)
    assert poller.session_gone is True
    poller.stop()
