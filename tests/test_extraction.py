"""Tests for the Gemini extraction backend using a stand-in client."""

from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from luminarias.errors import ExtractionFailure, InvalidCredential, MissingCredential
from luminarias.extraction import (
    EXTRACTION_PROMPT,
    GENERIC_FAILURE_MESSAGE,
    INVALID_KEY_MESSAGE,
    GeminiBackend,
)


class FakeModels:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def generate_content(self, *, model, contents):
        self.calls.append((model, contents))
        if isinstance(self.result, Exception):
            raise self.result
        return SimpleNamespace(text=self.result)


def _backend(result):
    models = FakeModels(result)
    created = []

    def factory(credential):
        created.append(credential)
        return SimpleNamespace(models=models)

    return GeminiBackend(model="gemini-test", client_factory=factory), models, created


class TestGeminiBackend:
    """Tests for GeminiBackend.extract_code()."""

    def test_returns_trimmed_text(self):
        """Test the model answer is stripped."""
        backend, models, _ = _backend("  08390 \n")
        assert backend.extract_code(b"jpeg", "image/png", "key") == "08390"

        model, contents = models.calls[0]
        assert model == "gemini-test"
        assert contents[0].inline_data.data == b"jpeg"
        assert contents[0].inline_data.mime_type == "image/png"
        assert contents[1] == EXTRACTION_PROMPT

    def test_none_text_is_empty(self):
        """Test a response without text returns an empty string."""
        backend, _, _ = _backend(None)
        assert backend.extract_code(b"jpeg", "image/jpeg", "key") == ""

    def test_client_reused_per_credential(self):
        """Test one client is created per key."""
        backend, _, created = _backend("1")
        backend.extract_code(b"a", "image/jpeg", "key")
        backend.extract_code(b"b", "image/jpeg", "key")
        backend.extract_code(b"c", "image/jpeg", "other")
        assert created == ["key", "other"]

    def test_missing_credential(self):
        """Test an empty key is rejected before any call."""
        backend, models, created = _backend("1")
        with pytest.raises(MissingCredential):
            backend.extract_code(b"a", "image/jpeg", "")
        assert created == []
        assert models.calls == []

    def test_invalid_key(self):
        """Test the service's key rejection maps to InvalidCredential."""
        error = genai_errors.ClientError(
            400,
            {
                "error": {
                    "code": 400,
                    "message": "API key not valid. Please pass a valid API key.",
                    "status": "INVALID_ARGUMENT",
                }
            },
        )
        backend, _, _ = _backend(error)
        with pytest.raises(InvalidCredential) as exc_info:
            backend.extract_code(b"a", "image/jpeg", "bad")
        assert str(exc_info.value) == INVALID_KEY_MESSAGE
        assert isinstance(exc_info.value, ExtractionFailure)

    def test_other_api_error(self):
        """Test other API errors keep the service message."""
        error = genai_errors.ServerError(
            503,
            {"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}},
        )
        backend, _, _ = _backend(error)
        with pytest.raises(ExtractionFailure) as exc_info:
            backend.extract_code(b"a", "image/jpeg", "key")
        assert not isinstance(exc_info.value, InvalidCredential)
        assert str(exc_info.value).startswith(GENERIC_FAILURE_MESSAGE)
        assert "overloaded" in str(exc_info.value)

    def test_transport_error(self):
        """Test unexpected errors become a generic ExtractionFailure."""
        backend, _, _ = _backend(ConnectionError("reset"))
        with pytest.raises(ExtractionFailure) as exc_info:
            backend.extract_code(b"a", "image/jpeg", "key")
        assert str(exc_info.value) == GENERIC_FAILURE_MESSAGE
        assert isinstance(exc_info.value.__cause__, ConnectionError)
