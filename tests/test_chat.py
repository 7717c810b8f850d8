"""Tests for POST /api/v1/chat (metered tier, SSE streamed).

The model stream is mocked at bizchat.services.chat_pipeline.stream_chat_completion
so no external calls are made. Verifies the SSE body, metering, the response
cache, persistence, error bodies, the mid-stream fallback, the stream
deadline and client disconnects.
"""

from unittest.mock import patch

import pytest

from bizchat.core.config import get_settings
from bizchat.core.errors import QuotaExceeded, RateLimited, UpstreamError
from bizchat.main import app
from bizchat.models.cached_response import CachedResponse
from bizchat.models.conversation import ChatConversation, ChatMessage
from bizchat.models.usage import UsageTracking
from bizchat.schemas.chat import ChatMessageTurn, ChatRequest
from bizchat.services.chat_pipeline import FALLBACK_SENTENCE, run_metered_chat
from bizchat.services.usage_service import get_message_count
from bizchat.utils.sse import iter_delta_content
from tests.factories import (
    FIXED_MONTH,
    FIXED_NOW,
    conversation_messages,
    create_acme,
    create_business,
    make_settings,
    set_usage,
)

PIPELINE_STREAM = "bizchat.services.chat_pipeline.stream_chat_completion"


def _chat(client, business_id, content="Do you deliver?", session_id="session-1", history=None):
    messages = list(history or []) + [{"role": "user", "content": content}]
    body = {"businessId": str(business_id), "messages": messages}
    if session_id is not None:
        body["sessionId"] = session_id
    return client.post("/api/v1/chat", json=body)


def _streamed_text(resp) -> str:
    return "".join(iter_delta_content([resp.text]))


def _failing_stream(exc, *fragments):
    def gen(*args, **kwargs):
        yield from fragments
        raise exc
    return gen


def test_acme_cache_miss_then_cache_hit(client, db_session, plans):
    """
    First question is generated and streamed (usage 1); the same question
    again is served from the cache without a model call (usage 2).
    """
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["We deliver ", "within 10 miles."]
        first = _chat(client, business.id, "Do you deliver?")

    assert first.status_code == 200
    assert first.headers["content-type"].startswith("text/event-stream")
    assert first.text.endswith("data: [DONE]\n\n")
    assert _streamed_text(first) == "We deliver within 10 miles."
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 1

    system_prompt, history, _ = mock_stream.call_args[0]
    assert "Acme" in system_prompt
    assert "Monday: 09:00 - 17:00" in system_prompt
    assert "Sunday: Closed" in system_prompt
    assert "Q: Do you deliver?\nA: Yes, within 10 miles" in system_prompt
    assert history == [{"role": "user", "content": "Do you deliver?"}]

    with patch(PIPELINE_STREAM) as mock_stream:
        second = _chat(client, business.id, "do you deliver")

    assert second.status_code == 200
    assert _streamed_text(second) == "We deliver within 10 miles."
    assert second.text.endswith("data: [DONE]\n\n")
    mock_stream.assert_not_called()
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 2

    cached = db_session.query(CachedResponse).filter(CachedResponse.business_id == business.id).one()
    db_session.refresh(cached)
    assert cached.hit_count == 1


def test_similar_question_is_served_from_cache(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Mon 9 to 5, closed Sundays."]
        _chat(client, business.id, "What are your opening hours?")
        resp = _chat(client, business.id, "What are your hours?")

    assert resp.status_code == 200
    assert _streamed_text(resp) == "Mon 9 to 5, closed Sundays."
    assert mock_stream.call_count == 1


def test_conversation_is_persisted(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Hello!"]
        _chat(client, business.id, "Hi", session_id="widget-42")

    messages = conversation_messages(db_session, business.id, "widget-42")
    assert [(m.role, m.content) for m in messages] == [("user", "Hi"), ("assistant", "Hello!")]


def test_assistant_persistence_can_be_disabled(client, db_session, plans):
    business = create_acme(db_session)
    app.dependency_overrides[get_settings] = lambda: make_settings(persist_assistant_messages=False)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Hello!"]
        _chat(client, business.id, "Hi", session_id="widget-42")

    messages = conversation_messages(db_session, business.id, "widget-42")
    assert [m.role for m in messages] == ["user"]


def test_without_session_id_nothing_is_persisted(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Hello!"]
        resp = _chat(client, business.id, "Hi", session_id=None)

    assert resp.status_code == 200
    assert db_session.query(ChatConversation).count() == 0
    assert db_session.query(ChatMessage).count() == 0
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 1


def test_full_history_is_sent_to_model(client, db_session, plans):
    business = create_acme(db_session)
    history = [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello! How can I help?"},
    ]

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Yes."]
        _chat(client, business.id, "Do you deliver?", history=history)

    sent = mock_stream.call_args[0][1]
    assert [m["role"] for m in sent] == ["user", "assistant", "user"]
    assert sent[-1]["content"] == "Do you deliver?"


def test_cache_disabled_always_calls_model(client, db_session, plans):
    business = create_acme(db_session)
    app.dependency_overrides[get_settings] = lambda: make_settings(cache_enabled=False)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Yes."]
        _chat(client, business.id, "Do you deliver?")
        _chat(client, business.id, "Do you deliver?")

    assert mock_stream.call_count == 2
    assert db_session.query(CachedResponse).count() == 0
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 2


def test_limit_reached_returns_429_and_does_not_charge(client, db_session, plans):
    business = create_acme(db_session)
    set_usage(db_session, business, 100)

    with patch(PIPELINE_STREAM) as mock_stream:
        resp = _chat(client, business.id)

    assert resp.status_code == 429
    data = resp.json()
    assert data["error"] == "LIMIT_REACHED"
    assert data["limitReached"] is True
    assert "monthly message limit" in data["message"]
    mock_stream.assert_not_called()
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 100


def test_limit_is_checked_before_cache(client, db_session, plans):
    """A cached answer is not served once the limit is reached."""
    business = create_acme(db_session)
    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Yes."]
        _chat(client, business.id)

    db_session.query(UsageTracking).filter(UsageTracking.business_id == business.id).update(
        {UsageTracking.message_count: 100}
    )
    db_session.commit()

    resp = _chat(client, business.id)

    assert resp.status_code == 429
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 100


def test_pro_plan_uses_pro_limit(client, db_session, plans):
    business = create_business(db_session, "Salon", plan="pro")
    set_usage(db_session, business, 100)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Open 10 to 7."]
        resp = _chat(client, business.id, "When are you open?")

    assert resp.status_code == 200
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 101


@pytest.mark.parametrize(
    "body, error",
    [
        ({"messages": [{"role": "user", "content": "Hi"}]}, "Business ID is required"),
        ({"businessId": "", "messages": [{"role": "user", "content": "Hi"}]}, "Business ID is required"),
        ({"businessId": "00000000-0000-0000-0000-000000000001"}, "Messages are required"),
        ({"businessId": "00000000-0000-0000-0000-000000000001", "messages": []}, "Messages are required"),
        (
            {"businessId": "00000000-0000-0000-0000-000000000001", "messages": [{"role": "assistant", "content": "Hi"}]},
            "No user message found",
        ),
        (
            {"businessId": "00000000-0000-0000-0000-000000000001", "messages": [{"role": "user", "content": "   "}]},
            "No user message found",
        ),
    ],
)
def test_missing_fields_return_400(client, body, error):
    resp = client.post("/api/v1/chat", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": error}


def test_malformed_body_returns_400(client):
    resp = client.post("/api/v1/chat", json={"businessId": "x", "messages": "not a list"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}


@pytest.mark.parametrize("business_id", ["00000000-0000-0000-0000-000000000001", "not-a-uuid"])
def test_unknown_business_returns_404(client, db_session, business_id):
    with patch(PIPELINE_STREAM) as mock_stream:
        resp = _chat(client, business_id)

    assert resp.status_code == 404
    assert resp.json() == {"error": "Business not found"}
    mock_stream.assert_not_called()


def test_upstream_rate_limit_returns_429_with_retry_after(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM, side_effect=_failing_stream(RateLimited(retry_after=30))):
        resp = _chat(client, business.id)

    assert resp.status_code == 429
    assert resp.headers["retry-after"] == "30"
    assert resp.json() == {"error": "Rate limits exceeded, please try again later.", "rateLimited": True}
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 0
    assert db_session.query(ChatMessage).count() == 0


def test_upstream_quota_returns_402(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM, side_effect=_failing_stream(QuotaExceeded())):
        resp = _chat(client, business.id)

    assert resp.status_code == 402
    assert resp.json()["quotaExceeded"] is True
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 0


def test_upstream_error_returns_500(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM, side_effect=_failing_stream(UpstreamError())):
        resp = _chat(client, business.id)

    assert resp.status_code == 500
    assert resp.json() == {"error": "AI service error"}
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 0


def test_empty_model_answer_is_upstream_error(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = []
        resp = _chat(client, business.id)

    assert resp.status_code == 500
    assert resp.json() == {"error": "AI service error"}
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 0


def test_mid_stream_failure_appends_fallback_and_is_not_cached(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM, side_effect=_failing_stream(UpstreamError(), "We deliver ")):
        resp = _chat(client, business.id)

    assert resp.status_code == 200
    assert _streamed_text(resp) == "We deliver " + FALLBACK_SENTENCE
    assert resp.text.endswith("data: [DONE]\n\n")
    # The answer started, so the message is charged
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 1
    assert db_session.query(CachedResponse).count() == 0

    messages = conversation_messages(db_session, business.id, "session-1")
    assert messages[-1].role == "assistant"
    assert messages[-1].content == "We deliver " + FALLBACK_SENTENCE


def test_stream_deadline_appends_fallback_and_is_not_cached(client, db_session, plans):
    business = create_acme(db_session)
    app.dependency_overrides[get_settings] = lambda: make_settings(stream_timeout_seconds=0)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["one ", "two ", "three "]
        resp = _chat(client, business.id)

    assert resp.status_code == 200
    text = _streamed_text(resp)
    assert text.startswith("one ")
    assert text.endswith(FALLBACK_SENTENCE)
    assert "three " not in text
    assert resp.text.endswith("data: [DONE]\n\n")
    assert db_session.query(CachedResponse).count() == 0
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 1


def test_client_disconnect_closes_upstream_and_writes_nothing(db_session, plans):
    business = create_acme(db_session)
    closed = []

    def upstream(*args, **kwargs):
        try:
            yield "We deliver "
            yield "within 10 miles."
        finally:
            closed.append(True)

    request = ChatRequest(
        business_id=str(business.id),
        session_id="session-1",
        messages=[ChatMessageTurn(role="user", content="Do you deliver?")],
    )
    with patch(PIPELINE_STREAM, side_effect=upstream):
        fragments = run_metered_chat(db_session, request, make_settings(), FIXED_NOW)
        assert next(fragments) == "We deliver "
        fragments.close()

    assert closed == [True]
    assert db_session.query(CachedResponse).count() == 0
    assert [m.role for m in conversation_messages(db_session, business.id, "session-1")] == ["user"]
    # The answer had started, so the message stays charged
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 1


def test_free_business_is_streamed_by_default(client, db_session, plans):
    business = create_acme(db_session)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Yes."]
        resp = _chat(client, business.id)

    assert resp.status_code == 200


def test_enforced_tier_sends_free_business_to_free_chat(client, db_session, plans):
    business = create_acme(db_session)
    app.dependency_overrides[get_settings] = lambda: make_settings(enforce_tier_on_metered=True)

    with patch(PIPELINE_STREAM) as mock_stream:
        resp = _chat(client, business.id)

    assert resp.status_code == 400
    assert resp.json() == {"error": "This endpoint is only for paid plans", "useFree": True}
    mock_stream.assert_not_called()
    assert get_message_count(db_session, business.id, FIXED_MONTH) == 0


def test_enforced_tier_streams_paid_business(client, db_session, plans):
    business = create_business(db_session, "Salon", plan="business")
    app.dependency_overrides[get_settings] = lambda: make_settings(enforce_tier_on_metered=True)

    with patch(PIPELINE_STREAM) as mock_stream:
        mock_stream.return_value = ["Open 10 to 7."]
        resp = _chat(client, business.id, "When are you open?")

    assert resp.status_code == 200
    assert _streamed_text(resp) == "Open 10 to 7."


def test_cors_preflight_allows_any_origin(client):
    resp = client.options(
        "/api/v1/chat",
        headers={
            "Origin": "https://customer-site.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"


def test_error_responses_carry_cors_header(client, db_session):
    resp = client.post(
        "/api/v1/chat",
        json={"messages": [{"role": "user", "content": "Hi"}]},
        headers={"Origin": "https://customer-site.example"},
    )

    assert resp.status_code == 400
    assert resp.headers["access-control-allow-origin"] == "*"


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    root = client.get("/").json()
    assert root["docs"] == "/docs"
