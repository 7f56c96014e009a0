# tests/test_exceptions.py
"""
Tests for the recipecore.exceptions module.

Covers inheritance, attributes and message formatting.
"""

import pytest

from recipecore.exceptions import (ConfigError, EmptyInputError,
                                   EmptyResponseError, PersistenceError,
                                   ProviderError, RecipeCoreError,
                                   SessionStorageError, StorageError,
                                   StreamTapError, UpstreamError)


class TestRecipeCoreError:
    def test_default_message(self):
        assert "unspecified error" in str(RecipeCoreError()).lower()

    def test_custom_message(self):
        assert str(RecipeCoreError("Custom error message")) == "Custom error message"

    @pytest.mark.parametrize("exc_cls", [
        ConfigError, ProviderError, EmptyResponseError, StorageError,
        SessionStorageError, EmptyInputError, UpstreamError, StreamTapError,
    ])
    def test_hierarchy(self, exc_cls):
        assert issubclass(exc_cls, RecipeCoreError)


class TestProviderError:
    def test_attributes(self):
        error = ProviderError("workers_ai", "Server Error (500)")
        assert error.provider_name == "workers_ai"
        assert error.detail == "Server Error (500)"
        assert "workers_ai" in str(error)
        assert "Server Error (500)" in str(error)

    def test_empty_response_is_provider_error(self):
        error = EmptyResponseError("fake")
        assert isinstance(error, ProviderError)
        assert "empty" in str(error).lower()


class TestStorageErrors:
    def test_persistence_error_carries_session_id(self):
        error = PersistenceError("sid-1", "disk full.")
        assert error.session_id == "sid-1"
        assert isinstance(error, StorageError)
        assert "sid-1" in str(error)

    def test_session_storage_error_default(self):
        assert "session storage" in str(SessionStorageError()).lower()


class TestEmptyInputError:
    def test_default_message_is_user_facing(self):
        assert str(EmptyInputError()) == "Provide at least one ingredient."


class TestUpstreamError:
    def test_carries_primary_cause(self):
        primary = ProviderError("fake", "boom")
        secondary = ProviderError("fake", "also boom")
        error = UpstreamError("model-a", cause=primary, fallback_model="model-b", fallback_error=secondary)
        assert error.primary_model == "model-a"
        assert error.cause is primary
        assert error.fallback_model == "model-b"
        assert error.fallback_error is secondary
        assert "model-a" in str(error)

    def test_short_cause_prefers_provider_detail(self):
        error = UpstreamError("m", cause=ProviderError("fake", "rate limited"))
        assert error.short_cause == "rate limited"

    def test_short_cause_is_single_line_and_bounded(self):
        error = UpstreamError("m", cause=RuntimeError("line one\nline two " + "x" * 500))
        assert "\n" not in error.short_cause
        assert len(error.short_cause) <= 300

    def test_short_cause_without_cause(self):
        assert UpstreamError("m").short_cause == "unknown error"


class TestStreamTapError:
    def test_keeps_cause(self):
        cause = ProviderError("fake", "reset")
        error = StreamTapError("failed early", cause=cause)
        assert error.cause is cause
        assert str(error) == "failed early"
