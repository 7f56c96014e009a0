# tests/test_models.py
"""
Tests for the core data models.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from recipecore.models import (DEFAULT_HISTORY_LIMIT, GenerationRequest,
                               GenerationResult, Message, Role,
                               bounded_history)


class TestRole:
    def test_values(self):
        assert Role.SYSTEM.value == "system"
        assert Role.USER.value == "user"
        assert Role.ASSISTANT.value == "assistant"

    @pytest.mark.parametrize("raw", ["User", "USER", "user"])
    def test_case_insensitive(self, raw):
        assert Role(raw) is Role.USER

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Role("tool")


class TestMessage:
    def test_constructors(self):
        assert Message.system("s").role == "system"
        assert Message.user("u").role == "user"
        assert Message.assistant("a").role == "assistant"

    def test_is_immutable(self):
        message = Message.user("eggs")
        with pytest.raises(ValidationError):
            message.content = "spinach"

    def test_timestamp_defaults_to_utc(self):
        assert Message.user("x").timestamp.tzinfo is not None

    def test_naive_timestamp_is_made_utc(self):
        message = Message(role="user", content="x", timestamp=datetime(2024, 1, 1, 12, 0))
        assert message.timestamp.tzinfo == timezone.utc

    def test_epoch_millis_timestamp(self):
        message = Message(role="assistant", content="x", timestamp=1_700_000_000_000)
        assert message.timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_iso_z_timestamp(self):
        message = Message(role="user", content="x", timestamp="2024-05-01T10:00:00Z")
        assert message.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    def test_invalid_role_rejected(self):
        with pytest.raises(ValidationError):
            Message(role="tool", content="x")

    def test_json_round_trip_keeps_role(self):
        message = Message.assistant("done")
        restored = Message.model_validate(message.model_dump(mode="json"))
        assert restored.role == "assistant"
        assert restored.content == "done"


class TestBoundedHistory:
    def test_keeps_most_recent(self):
        messages = [Message.user(str(i)) for i in range(25)]
        kept = bounded_history(messages, DEFAULT_HISTORY_LIMIT)
        assert len(kept) == 20
        assert kept[0].content == "5"
        assert kept[-1].content == "24"

    def test_short_history_untouched(self):
        messages = [Message.user("a"), Message.assistant("b")]
        assert bounded_history(messages) == messages

    def test_non_positive_limit(self):
        assert bounded_history([Message.user("a")], 0) == []


class TestGenerationRequest:
    def test_cleaned_inputs_drop_blanks(self):
        request = GenerationRequest(session_id="s", raw_inputs=["  eggs ", "", "   ", "spinach"])
        assert request.cleaned_inputs == ["eggs", "spinach"]

    def test_cleaned_constraints(self):
        assert GenerationRequest(session_id="s", constraints="  vegan ").cleaned_constraints == "vegan"
        assert GenerationRequest(session_id="s", constraints="   ").cleaned_constraints is None

    def test_session_id_required(self):
        with pytest.raises(ValidationError):
            GenerationRequest(session_id="")


class TestGenerationResult:
    def test_defaults(self):
        result = GenerationResult(model_used="m", text="t")
        assert result.used_fallback is False
        assert result.rounds == 1
        assert result.note is None
