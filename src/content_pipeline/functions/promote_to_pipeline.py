"""
Promote to Pipeline

Triggered by keyword/promote. Turns a reviewed Content Idea into a Content
Pipeline record (Status Draft) in the content base and links it back.
"""

import json
from typing import Dict, Any, Optional

from src.airtable import linked_id
from src.airtable_keywords import create_pipeline_record, get_idea_record, update_idea_record
from src.content_pipeline.events import EVENT_KEYWORD_PROMOTE
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.errors import ValidationError

DEFAULT_CONTENT_TYPE = "blog"


def select_title(fields: Dict[str, Any], index: int) -> Optional[str]:
    """Title Ideas[index], then Title, then the primary keyword."""
    raw = fields.get("Title Ideas")
    if raw:
        try:
            ideas = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError:
            print("[PROMOTE] Title Ideas is not valid JSON, falling back")
            ideas = []
        if isinstance(ideas, list) and 0 <= index < len(ideas):
            choice = ideas[index]
            if isinstance(choice, dict):
                choice = choice.get("title")
            if isinstance(choice, str) and choice.strip():
                return choice.strip()

    for name in ("Title", "Primary Keyword", "Keyword"):
        value = fields.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _or_na(value: Any) -> Any:
    return "N/A" if value is None or value == "" else value


def build_notes(fields: Dict[str, Any]) -> str:
    return "\n".join([
        f"SEO Score: {fields.get('SEO Score') or 'N/A'}",
        f"Search Volume: {fields.get('Search Volume') or 0}",
        f"Keyword Difficulty: {_or_na(fields.get('Keyword Difficulty'))}",
        f"Search Intent: {fields.get('Search Intent') or 'N/A'}",
        f"Content Angles: {fields.get('Content Angles') or 'N/A'}",
    ])


class PromoteToPipeline(PipelineFunction):
    function_id = "promote-to-pipeline"
    trigger = EVENT_KEYWORD_PROMOTE
    retries = 2
    description = "Create a Content Pipeline record from a Content Idea."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        index = data.get("selectedTitleIndex", 0)

        fields = (await run_blocking(get_idea_record, record_id)).get("fields", {})

        # A retry after the create succeeded must not create a second record.
        existing = fields.get("Promoted Record ID")
        if existing:
            print(f"[PROMOTE] {record_id} already promoted to {existing}")
            return {"status": "already-promoted", "ideaRecordId": record_id, "pipelineRecordId": existing}

        title = select_title(fields, index)
        if not title:
            raise ValidationError(f"Content Idea {record_id} has no title, primary keyword or keyword to promote")

        pipeline_record_id = await run_blocking(
            create_pipeline_record,
            title=title,
            content_type=fields.get("Content Type") or fields.get("Content Type Suggestion") or DEFAULT_CONTENT_TYPE,
            keywords=fields.get("Primary Keyword") or fields.get("Keyword") or title,
            industry_id=linked_id(fields, "Industry"),
            persona_id=linked_id(fields, "Persona"),
            notes=build_notes(fields),
        )

        await run_blocking(update_idea_record, record_id, {
            "Status": "Promoted",
            "Promoted Record ID": pipeline_record_id,
        })
        print(f"[PROMOTE] {record_id} -> {pipeline_record_id} ({title!r})")

        return {
            "status": "complete",
            "ideaRecordId": record_id,
            "pipelineRecordId": pipeline_record_id,
            "title": title,
        }
