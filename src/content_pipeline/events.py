"""
Internal event payloads.

Payload keys are camelCase because they are the same objects the webhook
callers post. Events for a stage carry everything that stage needs, so no
stage re-derives title or content type from a possibly stale webhook body.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.airtable import (
    FIELD_CONTENT_TYPE,
    FIELD_DRAFT,
    FIELD_DRAFT_FEEDBACK,
    FIELD_INDUSTRY,
    FIELD_KEYWORDS,
    FIELD_OUTLINE,
    FIELD_OUTLINE_FEEDBACK,
    FIELD_PERSONA,
    FIELD_TITLE,
    linked_id,
)
from src.errors import ValidationError

# Keyword subsystem events
EVENT_KEYWORD_RESEARCH = "keyword/research.start"
EVENT_KEYWORD_CLUSTER = "keyword/cluster.auto"
EVENT_KEYWORD_GENERATE_TITLE = "keyword/generate-title"
EVENT_KEYWORD_PROMOTE = "keyword/promote"
EVENT_KEYWORD_GAP_ANALYSIS = "keyword/gap-analysis.start"


# --- Content pipeline ---

class PipelineStartData(BaseModel):
    recordId: str = Field(..., min_length=1)
    title: str
    contentType: str
    industryId: Optional[str] = None
    personaId: Optional[str] = None
    keywords: Optional[str] = None


class OutlineApprovedRequest(BaseModel):
    recordId: str = Field(..., min_length=1)
    outline: str
    feedback: Optional[str] = None


class OutlineApprovedData(OutlineApprovedRequest):
    title: str
    contentType: str
    industryId: Optional[str] = None
    personaId: Optional[str] = None
    keywords: Optional[str] = None


class DraftApprovedData(BaseModel):
    recordId: str = Field(..., min_length=1)
    draft: str
    feedback: Optional[str] = None


class BatchTriggerData(BaseModel):
    recordIds: List[str]
    action: Literal["start", "continue"]


# --- Keyword subsystem ---

class KeywordResearchData(BaseModel):
    seedTopics: List[str] = Field(..., min_length=1)
    recordId: Optional[str] = None
    expandKeywords: bool = True
    limit: int = Field(30, ge=1, le=100)


class ClusterData(BaseModel):
    recordId: str = Field(..., min_length=1)
    seedTopic: str = Field(..., min_length=1)


class GenerateTitleData(BaseModel):
    recordId: str = Field(..., min_length=1)


class PromoteData(BaseModel):
    recordId: str = Field(..., min_length=1)
    selectedTitleIndex: int = Field(0, ge=0)


class GapScanData(BaseModel):
    scope: Literal["all", "industries", "personas", "problems"] = "all"


def event_data(model: BaseModel) -> Dict[str, Any]:
    """Payload dict with absent optionals left out."""
    return model.model_dump(exclude_none=True)


# --- Building events from a fetched record ---

def require_text_field(fields: Dict[str, Any], field_name: str, record_id: str) -> str:
    """
    Existence, type and non-blank checks, each with its own message so the
    caller can tell which upstream mistake happened.
    """
    value = fields.get(field_name)
    if value is None:
        raise ValidationError(f"{field_name} field is missing on record {record_id}")
    if not isinstance(value, str):
        raise ValidationError(
            f"{field_name} field must be a string on record {record_id} (got {type(value).__name__})"
        )
    if not value.strip():
        raise ValidationError(f"{field_name} field is empty on record {record_id}")
    return value.strip()


def _optional_text(fields: Dict[str, Any], field_name: str) -> Optional[str]:
    value = fields.get(field_name)
    if isinstance(value, str) and value.strip():
        return value
    return None


def pipeline_start_from_record(record: Dict[str, Any]) -> Dict[str, Any]:
    fields = record.get("fields", {})
    record_id = record["id"]
    data = PipelineStartData(
        recordId=record_id,
        title=require_text_field(fields, FIELD_TITLE, record_id),
        contentType=require_text_field(fields, FIELD_CONTENT_TYPE, record_id),
        industryId=linked_id(fields, FIELD_INDUSTRY),
        personaId=linked_id(fields, FIELD_PERSONA),
        keywords=_optional_text(fields, FIELD_KEYWORDS),
    )
    return event_data(data)


def outline_approved_from_record(
    record: Dict[str, Any],
    outline: Optional[str] = None,
    feedback: Optional[str] = None,
) -> Dict[str, Any]:
    """Merge the approval payload with the record's title, content type and references."""
    fields = record.get("fields", {})
    record_id = record["id"]
    title = require_text_field(fields, FIELD_TITLE, record_id)
    content_type = require_text_field(fields, FIELD_CONTENT_TYPE, record_id)

    if outline is None:
        outline = fields.get(FIELD_OUTLINE) or ""
        feedback = _optional_text(fields, FIELD_OUTLINE_FEEDBACK)

    data = OutlineApprovedData(
        recordId=record_id,
        outline=outline,
        feedback=feedback,
        title=title,
        contentType=content_type,
        industryId=linked_id(fields, FIELD_INDUSTRY),
        personaId=linked_id(fields, FIELD_PERSONA),
        keywords=_optional_text(fields, FIELD_KEYWORDS),
    )
    return event_data(data)


def draft_approved_from_record(record: Dict[str, Any]) -> Dict[str, Any]:
    fields = record.get("fields", {})
    data = DraftApprovedData(
        recordId=record["id"],
        draft=fields.get(FIELD_DRAFT) or "",
        feedback=_optional_text(fields, FIELD_DRAFT_FEEDBACK),
    )
    return event_data(data)
