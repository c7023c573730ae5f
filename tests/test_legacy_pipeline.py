"""Tests for the deprecated single-run pipeline."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.claude import GenerationResult
from src.content_pipeline.functions import get_functions_for_event
from src.content_pipeline.functions.content_pipeline import ContentPipeline

START = {"recordId": "rec1", "title": "T", "contentType": "blog"}


@pytest.fixture
def deps():
    with patch("src.content_pipeline.functions.content_pipeline.update_record") as update, \
            patch("src.content_pipeline.functions.content_pipeline.assemble_context", return_value={}), \
            patch("src.content_pipeline.functions.content_pipeline.get_prompt", return_value="prompt"), \
            patch("src.content_pipeline.functions.content_pipeline.generate") as gen, \
            patch("src.content_pipeline.functions.content_pipeline.wait_for_event", new_callable=AsyncMock) as wait:
        yield update, gen, wait


class TestRegistration:
    def test_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("ENABLE_LEGACY_PIPELINE", raising=False)
        ids = [fn.function_id for fn in get_functions_for_event("content/pipeline.start")]
        assert ids == ["generate-outline"]

    def test_enabled_by_flag(self, monkeypatch):
        monkeypatch.setenv("ENABLE_LEGACY_PIPELINE", "true")
        ids = [fn.function_id for fn in get_functions_for_event("content/pipeline.start")]
        assert "content-pipeline" in ids


class TestLegacyRun:
    @pytest.mark.asyncio
    async def test_full_run(self, deps):
        update, gen, wait = deps
        gen.side_effect = [GenerationResult(text="Outline"), GenerationResult(text="Draft")]
        wait.side_effect = [
            {"created_at": datetime(2026, 1, 2), "data": {"outline": "Edited outline"}},
            {"created_at": datetime(2026, 1, 3), "data": {"draft": "Edited draft"}},
        ]

        result = await ContentPipeline(db=MagicMock()).execute(START)

        assert result == {"recordId": "rec1", "status": "complete"}
        update.assert_any_call("rec1", {"Final Content": "Edited draft", "Status": "Complete"})
        assert gen.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_marks_error(self, deps):
        update, gen, wait = deps
        gen.return_value = GenerationResult(text="Outline")
        wait.return_value = None

        result = await ContentPipeline(db=MagicMock()).execute(START)

        assert result == {"recordId": "rec1", "status": "timeout", "stage": "outline"}
        update.assert_called_with("rec1", {"Status": "Error"})

    @pytest.mark.asyncio
    async def test_first_write_carries_run_id(self, deps):
        update, gen, wait = deps
        gen.return_value = GenerationResult(text="Outline")
        wait.return_value = None

        await ContentPipeline(db=MagicMock(), run_id="job-9").execute(START)

        assert update.call_args_list[0][0] == ("rec1", {"Status": "Generating", "Inngest Run ID": "job-9"})

    @pytest.mark.asyncio
    async def test_failure_handler_marks_error(self):
        with patch("src.content_pipeline.functions.base.update_record") as mock_update:
            await ContentPipeline(db=MagicMock()).on_failure(START, "UpstreamError: Claude down")

        mock_update.assert_called_once_with("rec1", {"Status": "Error"})

    @pytest.mark.asyncio
    async def test_failure_handler_without_record_does_nothing(self):
        with patch("src.content_pipeline.functions.base.update_record") as mock_update:
            await ContentPipeline(db=MagicMock()).on_failure({}, "ValidationError: bad payload")

        mock_update.assert_not_called()
