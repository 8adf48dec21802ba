"""Tests for record classification and content helpers."""

from datetime import datetime, timezone

from aichat_trace.content import (
    classify_message,
    get_session_id,
    get_session_metadata,
    get_text_content,
    get_timestamp,
    get_tool_calls,
    get_usage,
    is_tool_result,
)
from aichat_trace.core import AssistantMessage, SessionMetadata, SystemMessage, UserMessage


class TestClassifyMessage:
    def test_user_with_string_content(self):
        msg = classify_message({"type": "user", "content": "hello"})
        assert isinstance(msg, UserMessage)
        assert msg.content == [{"type": "text", "text": "hello"}]

    def test_user_with_nested_envelope(self):
        msg = classify_message({
            "type": "user",
            "message": {"role": "user", "content": [{"type": "text", "text": "hello"}]},
        })
        assert isinstance(msg, UserMessage)
        assert msg.content == [{"type": "text", "text": "hello"}]

    def test_envelope_content_wins_over_top_level(self):
        msg = classify_message({
            "type": "user",
            "content": "outer",
            "message": {"role": "user", "content": "inner"},
        })
        assert get_text_content(msg) == "inner"

    def test_assistant_from_envelope(self):
        msg = classify_message({
            "type": "assistant",
            "message": {
                "id": "m1",
                "role": "assistant",
                "model": "claude-sonnet-4-5",
                "content": [{"type": "text", "text": "hi"}],
            },
        })
        assert isinstance(msg, AssistantMessage)
        assert msg.id == "m1"
        assert msg.model == "claude-sonnet-4-5"
        assert msg.content == [{"type": "text", "text": "hi"}]

    def test_assistant_without_type_field(self):
        msg = classify_message({"message": {"id": "m1", "role": "assistant", "content": "hi"}})
        assert isinstance(msg, AssistantMessage)
        assert msg.content == [{"type": "text", "text": "hi"}]

    def test_model_defaults_to_unknown(self):
        msg = classify_message({"message": {"id": "m1", "content": "hi"}})
        assert msg.model == "unknown"

    def test_system_message(self):
        msg = classify_message({"type": "system", "subtype": "turn_duration", "durationMs": 1234})
        assert isinstance(msg, SystemMessage)
        assert msg.subtype == "turn_duration"
        assert msg.duration_ms == 1234

    def test_meta_messages_are_dropped(self):
        assert classify_message({"type": "user", "content": "hello", "isMeta": True}) is None
        assert classify_message({
            "message": {"id": "m1", "role": "assistant", "content": "hi"},
            "isMeta": True,
        }) is None

    def test_unrecognised_records_are_dropped(self):
        assert classify_message({}) is None
        assert classify_message({"type": "file-history-snapshot", "files": []}) is None
        assert classify_message(["not", "an", "object"]) is None
        assert classify_message("plain string") is None

    def test_missing_or_odd_content_yields_empty_list(self):
        assert classify_message({"type": "user"}).content == []
        assert classify_message({"type": "user", "content": 42}).content == []

    def test_preserves_session_metadata(self):
        msg = classify_message({
            "type": "user",
            "content": "hello",
            "sessionId": "s1",
            "version": "1.0",
            "slug": "project",
            "cwd": "/home",
            "gitBranch": "main",
        })
        assert msg.session_id == "s1"
        assert msg.version == "1.0"
        assert msg.slug == "project"
        assert msg.cwd == "/home"
        assert msg.git_branch == "main"

    def test_preserves_usage(self):
        msg = classify_message({
            "message": {
                "id": "m1",
                "content": "hi",
                "usage": {"input_tokens": 100, "output_tokens": 50},
            },
        })
        assert msg.usage == {"input_tokens": 100, "output_tokens": 50}

    def test_top_level_timestamp_wins(self):
        msg = classify_message({
            "timestamp": "2025-01-15T10:00:00Z",
            "message": {"id": "m1", "content": "hi", "timestamp": "2025-01-15T09:00:00Z"},
        })
        assert msg.timestamp == "2025-01-15T10:00:00Z"

    def test_falls_back_to_nested_timestamp(self):
        msg = classify_message({
            "message": {"id": "m1", "content": "hi", "timestamp": "2025-01-15T09:00:00Z"},
        })
        assert msg.timestamp == "2025-01-15T09:00:00Z"

    def test_non_string_timestamp_is_absent(self):
        msg = classify_message({"type": "user", "content": "x", "timestamp": 1736935200})
        assert msg.timestamp is None


class TestContentHelpers:
    def test_is_tool_result(self):
        carrier = UserMessage(content=[{"type": "tool_result", "tool_use_id": "t1", "content": "ok"}])
        prompt = UserMessage(content=[{"type": "text", "text": "hi"}])
        assert is_tool_result(carrier) is True
        assert is_tool_result(prompt) is False
        assert is_tool_result(UserMessage()) is False

    def test_get_tool_calls(self):
        msg = AssistantMessage(id="m1", content=[
            {"type": "text", "text": "reading"},
            {"type": "tool_use", "id": "t1", "name": "Read", "input": {"path": "/a"}},
            {"type": "tool_use", "id": "t2", "name": "Bash", "input": {"command": "ls"}},
        ])
        assert [b["id"] for b in get_tool_calls(msg)] == ["t1", "t2"]
        assert get_tool_calls(AssistantMessage(id="m2")) == []

    def test_get_text_content_joins_text_blocks(self):
        msg = AssistantMessage(id="m1", content=[
            {"type": "text", "text": "first"},
            {"type": "thinking", "thinking": "hidden"},
            {"type": "tool_use", "id": "t1", "name": "Read", "input": {}},
            {"type": "text", "text": "second"},
        ])
        assert get_text_content(msg) == "first\nsecond"
        assert get_text_content(UserMessage()) == ""

    def test_get_timestamp(self):
        assert get_timestamp(UserMessage(timestamp="2025-01-15T10:00:00Z")) == datetime(
            2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc
        )
        assert get_timestamp(UserMessage()) is None
        assert get_timestamp(UserMessage(timestamp="yesterday")) is None

    def test_naive_timestamp_is_utc(self):
        ts = get_timestamp(UserMessage(timestamp="2025-01-15T10:00:00"))
        assert ts.tzinfo == timezone.utc

    def test_get_session_id(self):
        assert get_session_id(UserMessage(session_id="s1")) == "s1"
        assert get_session_id(AssistantMessage(id="m1")) is None


class TestGetUsage:
    def test_input_output_and_total(self):
        msg = AssistantMessage(id="m1", usage={
            "input_tokens": 100,
            "output_tokens": 50,
            "cache_read_input_tokens": 20,
        })
        assert get_usage(msg) == {
            "input": 100,
            "output": 50,
            "total": 150,
            "cache_read_input_tokens": 20,
        }

    def test_cache_creation_tokens(self):
        msg = AssistantMessage(id="m1", usage={
            "input_tokens": 10,
            "output_tokens": 5,
            "cache_creation_input_tokens": 300,
        })
        assert get_usage(msg)["cache_creation_input_tokens"] == 300

    def test_no_total_without_both_counts(self):
        msg = AssistantMessage(id="m1", usage={"output_tokens": 5})
        assert get_usage(msg) == {"output": 5}

    def test_none_without_numeric_fields(self):
        assert get_usage(AssistantMessage(id="m1")) is None
        assert get_usage(AssistantMessage(id="m1", usage={"service_tier": "standard"})) is None
        assert get_usage(AssistantMessage(id="m1", usage={"input_tokens": "100"})) is None


class TestSessionMetadata:
    def test_all_fields(self):
        msg = UserMessage(version="1.0.32", slug="my-project", cwd="/home/user/project", git_branch="main")
        assert get_session_metadata(msg) == SessionMetadata(
            version="1.0.32", slug="my-project", cwd="/home/user/project", git_branch="main",
        )

    def test_partial(self):
        metadata = get_session_metadata(UserMessage(version="1.0.32"))
        assert metadata.to_dict() == {"version": "1.0.32"}

    def test_none_when_absent(self):
        assert get_session_metadata(UserMessage()) is None
