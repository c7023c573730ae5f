"""
Content Pipeline (legacy, single run)

Runs outline -> draft -> finalize in one long-lived job, waiting in-process
for each approval event (30 day timeout). Kept for side-by-side comparison
with the staged functions and only subscribed when ENABLE_LEGACY_PIPELINE is
set. While enabled, the staged functions also react to the same events.
"""

from datetime import timedelta
from typing import Dict, Any

from src.airtable import FIELD_RUN_ID, FIELD_STATUS, update_record
from src.config import legacy_pipeline_enabled
from src.content_pipeline.functions.base import PipelineFunction, mark_error, run_blocking
from src.content_pipeline.runtime import wait_for_event
from src.content_pipeline.workflows.pipeline import (
    ContentStatus,
    EVENT_PIPELINE_START,
    PIPELINE_STAGES,
)
from src.claude import generate
from src.context import assemble_context
from src.prompts import get_prompt

APPROVAL_TIMEOUT = timedelta(days=30)
APPROVAL_POLL_INTERVAL = 30.0


class ContentPipeline(PipelineFunction):
    function_id = "content-pipeline"
    trigger = EVENT_PIPELINE_START
    retries = 3
    description = "Deprecated: whole pipeline in one run, waiting for approvals."

    @classmethod
    def enabled(cls) -> bool:
        return legacy_pipeline_enabled()

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        content_type = data["contentType"]

        context = await run_blocking(
            assemble_context,
            industry_id=data.get("industryId"),
            persona_id=data.get("personaId"),
            keywords=data.get("keywords"),
        )
        outputs = {"title": data["title"], "outline": "", "draft": "", "feedback": ""}
        since = self.event_time

        for stage in PIPELINE_STAGES:
            if stage.running_status:
                running = {FIELD_STATUS: stage.running_status.value}
                if stage is PIPELINE_STAGES[0]:
                    running[FIELD_RUN_ID] = self.run_id
                await run_blocking(update_record, record_id, running)

            if stage.skip_without_feedback and not outputs["feedback"].strip():
                text = outputs["draft"]
            else:
                prompt = await run_blocking(get_prompt, stage.prompt_name(content_type), {**context, **outputs})
                result = await run_blocking(
                    generate, prompt, record_id=record_id, step=stage.key, max_tokens=stage.max_tokens,
                )
                text = result.text

            await run_blocking(update_record, record_id, {
                stage.output_field: text,
                FIELD_STATUS: stage.done_status.value,
            })
            outputs[stage.key] = text

            if not stage.approval_event:
                break

            print(f"[LEGACY] {record_id} waiting for {stage.approval_event}")
            approval = await wait_for_event(
                self.db, stage.approval_event, record_id, since, APPROVAL_TIMEOUT,
                poll_interval=APPROVAL_POLL_INTERVAL,
            )
            if approval is None:
                await run_blocking(update_record, record_id, {FIELD_STATUS: ContentStatus.ERROR.value})
                print(f"[LEGACY] {record_id} timed out waiting for {stage.approval_event}")
                return {"recordId": record_id, "status": "timeout", "stage": stage.key}

            since = approval["created_at"]
            approved = approval.get("data", {})
            # Approval payloads carry the (possibly edited) text under the stage key.
            outputs[stage.key] = approved.get(stage.key) or text
            outputs["feedback"] = approved.get("feedback") or ""

        return {"recordId": record_id, "status": "complete"}

    async def on_failure(self, data: Dict[str, Any], error: str) -> None:
        record_id = data.get("recordId")
        if record_id:
            await run_blocking(mark_error, record_id, f"Content pipeline failed: {error}")
