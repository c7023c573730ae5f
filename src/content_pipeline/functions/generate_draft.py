"""
Generate Draft - second stage.

Triggered by content/outline.approved, whose payload already carries title,
content type and references. The record is read only for the status guard.
"""

from typing import Dict, Any

from src.airtable import FIELD_STATUS, update_record
from src.content_pipeline.functions.base import StageFunction, run_blocking
from src.content_pipeline.workflows.pipeline import STAGE_MAP
from src.context import assemble_context


class GenerateDraft(StageFunction):
    stage = STAGE_MAP["draft"]
    function_id = "generate-draft"
    trigger = stage.trigger_event
    retries = stage.retries
    description = "Write the full draft from the approved outline and move it to Draft Review."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        skipped = self.skip_result(await self.load_record(record_id))
        if skipped:
            return skipped

        await run_blocking(update_record, record_id, {FIELD_STATUS: self.stage.running_status.value})

        variables = await run_blocking(
            assemble_context,
            industry_id=data.get("industryId"),
            persona_id=data.get("personaId"),
            keywords=data.get("keywords"),
        )
        variables.update({
            "title": data["title"],
            "outline": data["outline"],
            "feedback": data.get("feedback") or "",
        })

        draft = await self.generate_text(data["contentType"], variables, record_id)

        await run_blocking(update_record, record_id, {
            self.stage.output_field: draft,
            FIELD_STATUS: self.stage.done_status.value,
        })
        print(f"[DRAFT] {record_id} draft ready ({len(draft)} chars)")
        return {"recordId": record_id, "status": "draft-ready"}
