"""Tests for the generation client."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from src.claude import generate, to_messages
from src.errors import UpstreamError


def fake_response(*texts, input_tokens=12, output_tokens=30):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts]
        + [SimpleNamespace(type="tool_use", name="ignored")],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


class TestToMessages:
    def test_text_prompt_is_one_user_turn(self):
        assert to_messages("Write it") == (None, [{"role": "user", "content": "Write it"}])

    def test_chat_prompt_keeps_roles(self):
        system, messages = to_messages([
            {"role": "system", "content": "You write for CMOs."},
            {"role": "system", "content": "Plain language."},
            {"role": "user", "content": "Outline: X"},
            {"role": "assistant", "content": "Sure."},
            {"role": "user", "content": "Now the draft."},
        ])

        assert system == "You write for CMOs.\n\nPlain language."
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[-1]["content"] == "Now the draft."


class TestGenerate:
    @patch("src.claude.GenerationTrace")
    @patch("src.claude.get_client")
    def test_concatenates_text_and_reports_usage(self, mock_get_client, mock_trace):
        client = MagicMock()
        client.messages.create.return_value = fake_response("Part one. ", "Part two.")
        mock_get_client.return_value = client

        result = generate("Write it", record_id="rec1", step="outline", max_tokens=4096)

        assert result.text == "Part one. Part two."
        assert result.usage == {"input_tokens": 12, "output_tokens": 30, "total_tokens": 42}
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 4096
        assert kwargs["messages"] == [{"role": "user", "content": "Write it"}]
        assert "system" not in kwargs
        assert mock_trace.call_args.kwargs["step"] == "outline"
        assert mock_trace.call_args.kwargs["record_id"] == "rec1"
        mock_trace.return_value.finish.assert_called_once_with(output="Part one. Part two.", usage=result.usage)

    @patch("src.claude.GenerationTrace")
    @patch("src.claude.get_client")
    def test_chat_prompt_sends_system(self, mock_get_client, mock_trace):
        client = MagicMock()
        client.messages.create.return_value = fake_response("Draft")
        mock_get_client.return_value = client
        prompt = [
            {"role": "system", "content": "You write blogs."},
            {"role": "user", "content": "Title: X"},
        ]

        generate(prompt, record_id="rec1", step="draft")

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You write blogs."
        assert kwargs["messages"] == [{"role": "user", "content": "Title: X"}]
        assert mock_trace.call_args.kwargs["prompt"] == prompt

    @patch("src.claude.GenerationTrace")
    @patch("src.claude.get_client")
    def test_api_error_is_traced_and_wrapped(self, mock_get_client, mock_trace):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client = MagicMock()
        client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        mock_get_client.return_value = client

        with pytest.raises(UpstreamError) as exc:
            generate("Write it", record_id="rec1", step="draft")

        assert exc.value.service == "anthropic"
        assert "draft" in exc.value.message
        assert mock_trace.return_value.finish.call_args.kwargs["error"]
