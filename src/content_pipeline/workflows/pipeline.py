"""
Content Pipeline Definition

Three generation stages (outline, draft, finalize) with their trigger events,
prompts, statuses and approval hand-offs. This is the single source of truth
for the state machine; both the staged functions and the legacy single-run
pipeline are driven from it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Dict, Optional

from src.airtable import FIELD_DRAFT, FIELD_FINAL_CONTENT, FIELD_OUTLINE


class ContentStatus(str, Enum):
    DRAFT = "Draft"
    READY = "Ready"
    GENERATING = "Generating"
    OUTLINE_REVIEW = "Outline Review"
    OUTLINE_APPROVED = "Outline Approved"
    DRAFTING = "Drafting"
    DRAFT_REVIEW = "Draft Review"
    DRAFT_APPROVED = "Draft Approved"
    COMPLETE = "Complete"
    ERROR = "Error"


# Forward order; Error sits outside it and is reachable from anywhere.
STATUS_ORDER: List[ContentStatus] = [
    ContentStatus.DRAFT,
    ContentStatus.READY,
    ContentStatus.GENERATING,
    ContentStatus.OUTLINE_REVIEW,
    ContentStatus.OUTLINE_APPROVED,
    ContentStatus.DRAFTING,
    ContentStatus.DRAFT_REVIEW,
    ContentStatus.DRAFT_APPROVED,
    ContentStatus.COMPLETE,
]

EVENT_PIPELINE_START = "content/pipeline.start"
EVENT_OUTLINE_APPROVED = "content/outline.approved"
EVENT_DRAFT_APPROVED = "content/draft.approved"
EVENT_BATCH_TRIGGER = "content/batch.trigger"


@dataclass
class StageDefinition:
    key: str
    label: str
    trigger_event: str
    prompt_prefix: str  # compiled as "{prompt_prefix}-{contentType}"
    output_field: str
    done_status: ContentStatus
    running_status: Optional[ContentStatus] = None
    max_tokens: int = 4096
    retries: int = 3
    approval_event: Optional[str] = None  # event that hands the item to the next stage
    approved_status: Optional[ContentStatus] = None
    skip_without_feedback: bool = False  # no LLM call when feedback is blank

    def prompt_name(self, content_type: str) -> str:
        return f"{self.prompt_prefix}-{content_type}"


PIPELINE_STAGES: List[StageDefinition] = [
    StageDefinition(
        key="outline",
        label="Generate Outline",
        trigger_event=EVENT_PIPELINE_START,
        prompt_prefix="outline",
        output_field=FIELD_OUTLINE,
        running_status=ContentStatus.GENERATING,
        done_status=ContentStatus.OUTLINE_REVIEW,
        approval_event=EVENT_OUTLINE_APPROVED,
        approved_status=ContentStatus.OUTLINE_APPROVED,
    ),
    StageDefinition(
        key="draft",
        label="Generate Draft",
        trigger_event=EVENT_OUTLINE_APPROVED,
        prompt_prefix="draft",
        output_field=FIELD_DRAFT,
        running_status=ContentStatus.DRAFTING,
        done_status=ContentStatus.DRAFT_REVIEW,
        max_tokens=8192,
        approval_event=EVENT_DRAFT_APPROVED,
        approved_status=ContentStatus.DRAFT_APPROVED,
    ),
    StageDefinition(
        key="finalize",
        label="Finalize Content",
        trigger_event=EVENT_DRAFT_APPROVED,
        prompt_prefix="finalize",
        output_field=FIELD_FINAL_CONTENT,
        done_status=ContentStatus.COMPLETE,
        max_tokens=8192,
        skip_without_feedback=True,
    ),
]

STAGE_KEYS: List[str] = [s.key for s in PIPELINE_STAGES]
STAGE_MAP: Dict[str, StageDefinition] = {s.key: s for s in PIPELINE_STAGES}


def get_stage_index(stage_key: str) -> int:
    try:
        return STAGE_KEYS.index(stage_key)
    except ValueError:
        return -1


def get_next_stage(stage_key: str) -> Optional[str]:
    idx = get_stage_index(stage_key)
    if idx < 0 or idx >= len(STAGE_KEYS) - 1:
        return None
    return STAGE_KEYS[idx + 1]


def get_stage_for_event(event_name: str) -> Optional[StageDefinition]:
    for stage in PIPELINE_STAGES:
        if stage.trigger_event == event_name:
            return stage
    return None


def get_stage_awaiting_approval(status: str) -> Optional[StageDefinition]:
    """The stage whose output a human has approved when the item shows this status."""
    for stage in PIPELINE_STAGES:
        if stage.approved_status and stage.approved_status.value == status:
            return stage
    return None


def status_rank(status: Optional[str]) -> int:
    """Position in the forward order; -1 for Error, unknown or empty."""
    for i, s in enumerate(STATUS_ORDER):
        if s.value == status:
            return i
    return -1


def has_moved_past(current_status: Optional[str], stage: StageDefinition) -> bool:
    """
    True when the item has already moved past what this stage produces,
    i.e. running the stage now would move status backwards.
    """
    current = status_rank(current_status)
    if current < 0:
        return False
    return current > status_rank(stage.done_status.value)
