#!/usr/bin/env python3
"""
Webhook routes called by Airtable automations.

Each route validates the payload, enriches it from the content base where the
next stage needs more than Airtable sends, and queues one event. Nothing here
generates content; the worker does.
"""

import traceback
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from src.airtable import get_record
from src.config import get_dedupe_window_seconds
from src.content_pipeline.events import (
    BatchTriggerData,
    DraftApprovedData,
    OutlineApprovedRequest,
    PipelineStartData,
    event_data,
    outline_approved_from_record,
)
from src.content_pipeline.functions.batch_trigger import MAX_BATCH_SIZE
from src.content_pipeline.runtime import send_event
from src.content_pipeline.state import DeliveryGuard
from src.content_pipeline.workflows.pipeline import (
    EVENT_BATCH_TRIGGER,
    EVENT_DRAFT_APPROVED,
    EVENT_OUTLINE_APPROVED,
    EVENT_PIPELINE_START,
)
from src.database import get_db
from src.errors import LimitExceededError, PipelineError

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


def emit_once(db, event_name: str, data: Dict[str, Any], message: str) -> Dict[str, Any]:
    """Queue the event unless the same route fired for this record within the dedupe window."""
    record_id = data["recordId"]
    if not DeliveryGuard.claim(db, event_name, record_id, get_dedupe_window_seconds()):
        print(f"[WEBHOOK] Duplicate {event_name} for {record_id}, ignoring")
        return {"success": True, "duplicate": True, "message": message}

    try:
        send_event(db, event_name, data)
    except Exception:
        DeliveryGuard.release(db, event_name, record_id)
        raise
    return {"success": True, "message": message}


def _unexpected(route: str, e: Exception) -> HTTPException:
    print(f"[WEBHOOK] {route} failed: {e}")
    traceback.print_exc()
    return HTTPException(status_code=400, detail=f"{type(e).__name__}: {e}")


@router.post("/start")
async def start_pipeline(payload: PipelineStartData, db=Depends(get_db)):
    """Airtable: Status changed to Ready."""
    try:
        print(f"[WEBHOOK] start for {payload.recordId}")
        return emit_once(db, EVENT_PIPELINE_START, event_data(payload), "Pipeline started")
    except PipelineError:
        raise
    except Exception as e:
        raise _unexpected("start", e)


@router.post("/outline-approved")
async def outline_approved(payload: OutlineApprovedRequest, db=Depends(get_db)):
    """
    Airtable: Status changed to Outline Approved.

    Airtable only sends the outline and feedback, so title, content type and
    the linked industry/persona/keywords are read from the record. A record
    whose Title or Content Type is missing, not text, or blank is rejected
    with a message naming the field, and nothing is queued.
    """
    try:
        print(f"[WEBHOOK] outline-approved for {payload.recordId}")
        record = get_record(payload.recordId)
        data = outline_approved_from_record(record, outline=payload.outline, feedback=payload.feedback)
        return emit_once(db, EVENT_OUTLINE_APPROVED, data, "Continuing to draft")
    except PipelineError:
        raise
    except Exception as e:
        raise _unexpected("outline-approved", e)


@router.post("/draft-approved")
async def draft_approved(payload: DraftApprovedData, db=Depends(get_db)):
    """Airtable: Status changed to Draft Approved. The record must exist; the payload goes on as sent."""
    try:
        print(f"[WEBHOOK] draft-approved for {payload.recordId}")
        get_record(payload.recordId)
        return emit_once(db, EVENT_DRAFT_APPROVED, event_data(payload), "Finalizing content")
    except PipelineError:
        raise
    except Exception as e:
        raise _unexpected("draft-approved", e)


@router.post("/batch")
async def batch_trigger(payload: BatchTriggerData, db=Depends(get_db)):
    """Start or continue up to 100 records at once."""
    try:
        count = len(payload.recordIds)
        if count == 0:
            raise LimitExceededError("recordIds must be a non-empty array")
        if count > MAX_BATCH_SIZE:
            raise LimitExceededError(f"Maximum {MAX_BATCH_SIZE} records per batch")

        print(f"[WEBHOOK] batch {payload.action} for {count} records")
        send_event(db, EVENT_BATCH_TRIGGER, event_data(payload))
        return {"success": True, "message": f"Batch {payload.action} triggered for {count} records"}
    except PipelineError:
        raise
    except Exception as e:
        raise _unexpected("batch", e)
