"""
Finalize Content - last stage.

Triggered by content/draft.approved. With feedback the draft is revised by
the LLM; without it the approved draft becomes the final content as-is.
"""

from typing import Dict, Any

from src.airtable import (
    FIELD_CONTENT_TYPE,
    FIELD_INDUSTRY,
    FIELD_KEYWORDS,
    FIELD_PERSONA,
    FIELD_STATUS,
    FIELD_TITLE,
    linked_id,
    update_record,
)
from src.content_pipeline.events import require_text_field
from src.content_pipeline.functions.base import StageFunction, run_blocking
from src.content_pipeline.workflows.pipeline import STAGE_MAP
from src.context import assemble_context


class FinalizeContent(StageFunction):
    stage = STAGE_MAP["finalize"]
    function_id = "finalize-content"
    trigger = stage.trigger_event
    retries = stage.retries
    description = "Apply draft feedback (if any) and mark the item Complete."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        draft = data["draft"]
        feedback = (data.get("feedback") or "").strip()

        record = await self.load_record(record_id)
        skipped = self.skip_result(record)
        if skipped:
            return skipped

        if feedback or not self.stage.skip_without_feedback:
            fields = record.get("fields", {})
            content_type = require_text_field(fields, FIELD_CONTENT_TYPE, record_id)
            variables = await run_blocking(
                assemble_context,
                industry_id=linked_id(fields, FIELD_INDUSTRY),
                persona_id=linked_id(fields, FIELD_PERSONA),
                keywords=fields.get(FIELD_KEYWORDS),
            )
            variables.update({
                "title": fields.get(FIELD_TITLE) or "",
                "draft": draft,
                "feedback": feedback,
            })
            final_content = await self.generate_text(content_type, variables, record_id)
            revised = True
        else:
            final_content = draft
            revised = False

        await run_blocking(update_record, record_id, {
            self.stage.output_field: final_content,
            FIELD_STATUS: self.stage.done_status.value,
        })
        print(f"[FINALIZE] {record_id} complete ({'revised with feedback' if revised else 'draft used as-is'})")
        return {"recordId": record_id, "status": "complete", "revised": revised}
