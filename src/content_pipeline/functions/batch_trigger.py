"""
Batch Trigger - fan a list of content items out into independent events.

action "start":    one content/pipeline.start per item, items set to Generating
action "continue": items sitting in an approved status get that stage's
                   approval event rebuilt from the record; others are skipped
"""

from typing import Dict, Any, List

from src.airtable import FIELD_STATUS, batch_update_status, get_record
from src.content_pipeline.events import (
    draft_approved_from_record,
    outline_approved_from_record,
    pipeline_start_from_record,
)
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.content_pipeline.runtime import send_events
from src.content_pipeline.workflows.pipeline import (
    ContentStatus,
    EVENT_BATCH_TRIGGER,
    EVENT_OUTLINE_APPROVED,
    EVENT_PIPELINE_START,
    get_stage_awaiting_approval,
)

MAX_BATCH_SIZE = 100


class BatchTrigger(PipelineFunction):
    function_id = "batch-trigger"
    trigger = EVENT_BATCH_TRIGGER
    retries = 2
    description = "Start or continue the pipeline for many content items at once."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_ids: List[str] = data["recordIds"]
        action = data["action"]

        # Every fetch happens before anything is sent, so a bad id fails the
        # whole batch without emitting a partial set of events.
        records = [await run_blocking(get_record, record_id) for record_id in record_ids]

        if action == "start":
            return await self._start(records)
        if action == "continue":
            return self._continue(records)
        raise ValueError(f"Unknown batch action: {action}")

    async def _start(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        events = [{"name": EVENT_PIPELINE_START, "data": pipeline_start_from_record(r)} for r in records]
        record_ids = [r["id"] for r in records]

        # Status first: a fast outline run must not be overwritten back to Generating.
        updated = await run_blocking(batch_update_status, record_ids, ContentStatus.GENERATING.value)
        send_events(self.db, events)

        print(f"[BATCH] Started pipeline for {len(events)} records")
        return {"action": "start", "triggered": len(events), "statusUpdated": updated}

    def _continue(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        events = []
        skipped = []
        for record in records:
            status = record.get("fields", {}).get(FIELD_STATUS)
            stage = get_stage_awaiting_approval(status)
            if stage is None:
                skipped.append({"recordId": record["id"], "status": status})
                continue
            if stage.approval_event == EVENT_OUTLINE_APPROVED:
                payload = outline_approved_from_record(record)
            else:
                payload = draft_approved_from_record(record)
            events.append({"name": stage.approval_event, "data": payload})

        if events:
            send_events(self.db, events)

        print(f"[BATCH] Continued {len(events)} records, skipped {len(skipped)}")
        return {"action": "continue", "triggered": len(events), "skipped": skipped}
