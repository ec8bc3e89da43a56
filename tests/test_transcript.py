import pytest

from teachback.errors import ConfigurationError, UpstreamError
from teachback.models.conversation import ConversationTurn
from teachback.services import http
from teachback.services import transcript as transcript_svc

from conftest import make_settings


def _fake_api(monkeypatch, list_data, detail_data=None, calls=None):
    def fake_get(url, headers, settings, what="GET request"):
        if calls is not None:
            calls.append((url, headers))
        if "/convai/conversations?" in url:
            return list_data
        return detail_data

    monkeypatch.setattr(http, "http_get_json", fake_get)


@pytest.mark.parametrize(
    "record, expected",
    [
        ({"role": "user", "text": "x"}, "user"),
        ({"role": "assistant", "text": "x"}, "assistant"),
        ({"role": "agent", "text": "x"}, "assistant"),
        ({"text": "x"}, "user"),
        ({"role": "narrator", "text": "x"}, "user"),
        ({"speaker": "agent", "text": "x"}, "assistant"),
        ({"is_user": False, "text": "x"}, "assistant"),
        ({"is_user": True, "text": "x"}, "user"),
        ({"role": "user", "is_user": False, "text": "x"}, "user"),
        ("plain string", "user"),
    ],
)
def test_resolve_role(record, expected):
    assert transcript_svc.resolve_role(record) == expected


def test_normalize_drops_records_without_text():
    raw = [
        {"role": "user", "text": "What is photosynthesis?"},
        {"role": "agent", "message": None},
        {"role": "agent", "message": "It's how plants convert light to energy."},
        {"role": "user", "content": "   "},
        "A bare string turn",
        42,
        {"role": "assistant", "content": "Good question."},
    ]
    turns = transcript_svc.normalize_messages(raw)
    assert turns == [
        ConversationTurn("user", "What is photosynthesis?"),
        ConversationTurn("assistant", "It's how plants convert light to energy."),
        ConversationTurn("user", "A bare string turn"),
        ConversationTurn("assistant", "Good question."),
    ]
    assert all(t.text for t in turns)


def test_text_field_priority():
    record = {"text": "from text", "message": "from message", "content": "from content"}
    assert transcript_svc.resolve_text(record) == "from text"
    assert transcript_svc.resolve_text({"message": "m", "content": "c"}) == "m"


def test_select_latest_prefers_newest_created_at():
    convs = [
        {"conversation_id": "old", "created_at": "2024-01-01T10:00:00Z"},
        {"conversation_id": "new", "created_at": "2024-03-01T10:00:00Z"},
        {"conversation_id": "mid", "updated_at": "2024-02-01T10:00:00Z"},
    ]
    assert transcript_svc.select_latest(convs)["conversation_id"] == "new"


def test_select_latest_updated_at_beats_older_created_at():
    convs = [
        {"conversation_id": "old", "created_at": "2024-01-01T00:00:00Z"},
        {"conversation_id": "upd", "updated_at": "2024-06-01T00:00:00Z"},
    ]
    assert transcript_svc.select_latest(convs)["conversation_id"] == "upd"


def test_select_latest_is_stable_on_ties_and_missing_timestamps():
    tied = [
        {"conversation_id": "first", "created_at": "2024-01-01T00:00:00Z"},
        {"conversation_id": "second", "created_at": "2024-01-01T00:00:00Z"},
    ]
    assert transcript_svc.select_latest(tied)["conversation_id"] == "first"

    missing = [{"conversation_id": "a"}, {"conversation_id": "b"}]
    assert transcript_svc.select_latest(missing)["conversation_id"] == "a"

    mixed = [{"conversation_id": "none"}, {"conversation_id": "dated", "start_time_unix_secs": 1700000000}]
    assert transcript_svc.select_latest(mixed)["conversation_id"] == "dated"

    garbage = [{"conversation_id": "x", "created_at": "yesterday"}, {"conversation_id": "y"}]
    assert transcript_svc.select_latest(garbage)["conversation_id"] == "x"


def test_fetch_latest_transcript_happy_path(monkeypatch):
    calls = []
    _fake_api(
        monkeypatch,
        {
            "conversations": [
                {"conversation_id": "c1", "created_at": "2024-01-01T00:00:00Z"},
                {"conversation_id": "c2", "created_at": "2024-05-01T00:00:00Z"},
            ]
        },
        {
            "transcript": [
                {"role": "user", "message": "What is photosynthesis?"},
                {"role": "agent", "message": "It's how plants convert light to energy."},
            ]
        },
        calls,
    )
    turns = transcript_svc.fetch_latest_transcript(make_settings())

    assert [t.role for t in turns] == ["user", "assistant"]
    assert calls[0][0] == "https://api.elevenlabs.io/v1/convai/conversations?agent_id=agent-123"
    assert calls[0][1] == {"xi-api-key": "test-key"}
    assert calls[1][0] == "https://api.elevenlabs.io/v1/convai/conversations/c2"


@pytest.mark.parametrize(
    "list_data",
    [
        [{"id": "c1"}],
        {"items": [{"id": "c1"}]},
        {"conversations": [{"conversation_id": "c1"}]},
    ],
)
def test_fetch_accepts_list_shapes(monkeypatch, list_data):
    _fake_api(monkeypatch, list_data, {"messages": [{"role": "user", "text": "hi"}]})
    assert transcript_svc.fetch_latest_transcript(make_settings()) == [ConversationTurn("user", "hi")]


def test_fetch_returns_empty_for_empty_list(monkeypatch):
    _fake_api(monkeypatch, {"conversations": []})
    assert transcript_svc.fetch_latest_transcript(make_settings()) == []


def test_fetch_returns_empty_without_identifier(monkeypatch):
    _fake_api(monkeypatch, [{"created_at": "2024-01-01T00:00:00Z"}])
    assert transcript_svc.fetch_latest_transcript(make_settings()) == []


def test_fetch_returns_empty_when_messages_not_a_list(monkeypatch):
    _fake_api(monkeypatch, [{"id": "c1"}], {"messages": "nope"})
    assert transcript_svc.fetch_latest_transcript(make_settings()) == []

    _fake_api(monkeypatch, [{"id": "c1"}], {"status": "done"})
    assert transcript_svc.fetch_latest_transcript(make_settings()) == []


def test_fetch_propagates_upstream_error(monkeypatch):
    def failing_get(url, headers, settings, what="GET request"):
        raise UpstreamError(what + " failed", status=401, body="unauthorized")

    monkeypatch.setattr(http, "http_get_json", failing_get)
    with pytest.raises(UpstreamError) as exc:
        transcript_svc.fetch_latest_transcript(make_settings())
    assert exc.value.status == 401


def test_fetch_requires_credentials():
    with pytest.raises(ConfigurationError):
        transcript_svc.fetch_latest_transcript(make_settings(elevenlabs_agent_id=None))


def test_fetch_detail_failure_after_list_succeeds(monkeypatch):
    urls = []

    def fake_get(url, headers, settings, what="GET request"):
        urls.append(url)
        if "/convai/conversations?" in url:
            return {"conversations": [{"conversation_id": "conv-9"}]}
        raise UpstreamError(what + " failed", status=404, body="conversation not found")

    monkeypatch.setattr(http, "http_get_json", fake_get)
    with pytest.raises(UpstreamError) as exc:
        transcript_svc.fetch_latest_transcript(make_settings())
    assert exc.value.status == 404
    assert len(urls) == 2
    assert urls[1].endswith("/convai/conversations/conv-9")
