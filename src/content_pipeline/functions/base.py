"""
Base classes for pipeline functions.

A pipeline function:
- Subscribes to one event name (its trigger)
- Receives the event payload and runs to completion
- Is retried by the worker on any exception, up to `retries` times
- Gets on_failure() once retries are exhausted
- Records each attempt in the run log
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, Optional

from src.airtable import FIELD_STATUS, get_record, update_record
from src.claude import generate
from src.content_pipeline.state import RunStore
from src.content_pipeline.workflows.pipeline import ContentStatus, StageDefinition, has_moved_past
from src.prompts import get_prompt


async def run_blocking(func, *args, **kwargs):
    """Run a synchronous SDK call (Airtable, Anthropic, Langfuse) in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


class PipelineFunction(ABC):
    """Base class for everything the worker can run."""

    function_id: str = "base"
    trigger: str = ""
    retries: int = 3
    description: str = ""

    def __init__(
        self,
        db=None,
        run_id: Optional[str] = None,
        attempt: int = 0,
        event_time: Optional[datetime] = None,
    ):
        self.db = db
        self.run_id = run_id or uuid.uuid4().hex
        self.attempt = attempt
        self.event_time = event_time or datetime.utcnow()

    @classmethod
    def enabled(cls) -> bool:
        return True

    @abstractmethod
    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the function body for one event payload.

        Exceptions are not caught here; they go to the worker's retry policy.
        """

    async def run(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Wraps execute() with the run log."""
        if self.db is not None:
            RunStore.start(self.db, self.run_id, self.function_id, self.trigger, data, self.attempt)

        try:
            result = await self.execute(data)
        except Exception as e:
            if self.db is not None:
                RunStore.fail(self.db, self.run_id, self.attempt, f"{type(e).__name__}: {e}")
            raise

        if self.db is not None:
            RunStore.complete(self.db, self.run_id, self.attempt, result)
        return result

    async def on_failure(self, data: Dict[str, Any], error: str) -> None:
        """Called once after the final failed attempt."""
        return None


class StageFunction(PipelineFunction):
    """A content pipeline stage driven by one row of PIPELINE_STAGES."""

    stage: StageDefinition

    async def load_record(self, record_id: str) -> Dict[str, Any]:
        return await run_blocking(get_record, record_id)

    def skip_result(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Forward-only guard. Returns a "skipped" result when the item's status is
        already past this stage's output; None when the stage should run.
        """
        current = record.get("fields", {}).get(FIELD_STATUS)
        if has_moved_past(current, self.stage):
            print(f"[{self.stage.key.upper()}] {record['id']} is already at {current!r}, skipping")
            return {"recordId": record["id"], "status": "skipped", "currentStatus": current}
        return None

    async def generate_text(self, content_type: str, variables: Dict[str, Any], record_id: str) -> str:
        prompt = await run_blocking(get_prompt, self.stage.prompt_name(content_type), variables)
        result = await run_blocking(
            generate,
            prompt=prompt,
            record_id=record_id,
            step=self.stage.key,
            max_tokens=self.stage.max_tokens,
        )
        return result.text

    async def on_failure(self, data: Dict[str, Any], error: str) -> None:
        record_id = data.get("recordId")
        if record_id:
            await run_blocking(mark_error, record_id, f"{self.stage.label} failed: {error}")


def mark_error(record_id: str, reason: str):
    """Status only; the reason stays in the run log and the worker output."""
    print(f"[PIPELINE] Marking {record_id} as Error: {reason}")
    update_record(record_id, {FIELD_STATUS: ContentStatus.ERROR.value})
