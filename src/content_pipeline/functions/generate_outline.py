"""
Generate Outline - first stage.

Triggered by content/pipeline.start. Generates the outline, saves it and
finishes; the outline-approved webhook starts the next stage separately.
"""

from typing import Dict, Any

from src.airtable import (
    FIELD_CONTENT_TYPE,
    FIELD_INDUSTRY,
    FIELD_KEYWORDS,
    FIELD_PERSONA,
    FIELD_RUN_ID,
    FIELD_STATUS,
    FIELD_TITLE,
    linked_id,
    update_record,
)
from src.content_pipeline.functions.base import StageFunction, run_blocking
from src.content_pipeline.workflows.pipeline import STAGE_MAP
from src.context import assemble_context
from src.errors import ValidationError


class GenerateOutline(StageFunction):
    stage = STAGE_MAP["outline"]
    function_id = "generate-outline"
    trigger = stage.trigger_event
    retries = stage.retries
    description = "Generate an outline for a content item and move it to Outline Review."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        record = await self.load_record(record_id)
        skipped = self.skip_result(record)
        if skipped:
            return skipped

        await run_blocking(update_record, record_id, {
            FIELD_STATUS: self.stage.running_status.value,
            FIELD_RUN_ID: self.run_id,
        })

        # The event normally carries everything; fall back to the record.
        fields = record.get("fields", {})
        title = data.get("title") or fields.get(FIELD_TITLE)
        content_type = data.get("contentType") or fields.get(FIELD_CONTENT_TYPE)
        if not title or not content_type:
            raise ValidationError(f"Record {record_id} needs a Title and a Content Type to generate an outline")

        variables = await run_blocking(
            assemble_context,
            industry_id=data.get("industryId") or linked_id(fields, FIELD_INDUSTRY),
            persona_id=data.get("personaId") or linked_id(fields, FIELD_PERSONA),
            keywords=data.get("keywords") or fields.get(FIELD_KEYWORDS),
        )
        variables["title"] = title

        outline = await self.generate_text(content_type, variables, record_id)

        await run_blocking(update_record, record_id, {
            self.stage.output_field: outline,
            FIELD_STATUS: self.stage.done_status.value,
        })
        print(f"[OUTLINE] {record_id} outline ready ({len(outline)} chars)")
        return {"recordId": record_id, "status": "outline-ready"}
