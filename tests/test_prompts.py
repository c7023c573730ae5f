"""Tests for the Langfuse prompt compiler."""

from unittest.mock import MagicMock, patch

import pytest

from src import prompts
from src.errors import NotFoundError, UpstreamError
from src.prompts import classify_prompt_error, fetch_prompt, get_prompt


class ApiFailure(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


@pytest.fixture
def langfuse():
    client = MagicMock()
    with patch("src.prompts.langfuse_client", return_value=client):
        yield client


class TestFetchPrompt:
    def test_production_label_and_five_minute_cache(self, langfuse):
        fetch_prompt("outline-blog")

        langfuse.get_prompt.assert_called_once_with("outline-blog", label="production", cache_ttl_seconds=300)

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure(self, status, langfuse):
        langfuse.get_prompt.side_effect = ApiFailure(status)
        with pytest.raises(UpstreamError, match="authentication failed") as exc:
            fetch_prompt("outline-blog")
        assert exc.value.upstream_status == status

    def test_missing_prompt_lists_causes(self, langfuse):
        langfuse.get_prompt.side_effect = ApiFailure(404)
        with pytest.raises(NotFoundError) as exc:
            fetch_prompt("outline-whitepaper")
        assert 'Prompt "outline-whitepaper" not found' in exc.value.message
        assert "labelled" in exc.value.message

    def test_connection_error_mentions_host(self, langfuse):
        langfuse.get_prompt.side_effect = ConnectionError("refused")
        with pytest.raises(UpstreamError) as exc:
            fetch_prompt("outline-blog")
        assert "LANGFUSE_HOST" in exc.value.message
        assert "https://cloud.langfuse.com" in exc.value.message

    def test_other_status(self):
        error = classify_prompt_error("outline-blog", "production", ApiFailure(500))
        assert isinstance(error, UpstreamError)
        assert error.upstream_status == 500

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("LANGFUSE_SECRET_KEY")
        with pytest.raises(UpstreamError, match="Missing credentials"):
            prompts.langfuse_client()


class TestGetPrompt:
    def test_text_prompt_compiled_with_set_values(self, langfuse):
        prompt = langfuse.get_prompt.return_value
        prompt.compile.return_value = "Outline for pSEO"

        result = get_prompt("outline-blog", {"title": "pSEO", "personaName": None})

        assert result == "Outline for pSEO"
        prompt.compile.assert_called_once_with(title="pSEO")

    def test_chat_prompt_keeps_messages(self, langfuse):
        messages = [
            {"role": "system", "content": "You write blogs."},
            {"role": "user", "content": "Title: X"},
        ]
        langfuse.get_prompt.return_value.compile.return_value = messages

        assert get_prompt("draft-blog", {"title": "X"}) == messages

    def test_no_variables(self, langfuse):
        get_prompt("finalize-blog")
        langfuse.get_prompt.return_value.compile.assert_called_once_with()
