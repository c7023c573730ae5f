"""
Keyword Research

Triggered by keyword/research.start. Researches each seed topic through
DataForSEO, fills the Keyword Bank and tracks the run as a Research Job.
"""

from datetime import datetime
from typing import Dict, Any, List, Optional

from src.airtable_keywords import (
    create_keyword_records,
    create_research_job,
    find_research_job,
    keyword_fields,
    update_keyword_record,
    update_research_job,
)
from src.content_pipeline.events import EVENT_KEYWORD_RESEARCH
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.dataforseo import DataForSEOClient
from src.errors import ValidationError

MIN_RELATED_VOLUME = 50


class KeywordResearch(PipelineFunction):
    function_id = "keyword-research"
    trigger = EVENT_KEYWORD_RESEARCH
    retries = 3
    description = "Research seed topics and add them and their related keywords to the Keyword Bank."

    def __init__(self, *args, seo_client: Optional[DataForSEOClient] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.seo_client = seo_client or DataForSEOClient()

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        seeds = [s.strip() for s in data.get("seedTopics", []) if isinstance(s, str) and s.strip()]
        if not seeds:
            raise ValidationError("seedTopics must contain at least one non-empty topic")

        record_id = data.get("recordId")
        limit = data.get("limit", 30)
        expand = data.get("expandKeywords", True)

        # Retries reuse the job created by the first attempt.
        job_record_id = await run_blocking(find_research_job, self.run_id)
        if not job_record_id:
            job_record_id = await run_blocking(create_research_job, seeds, job_id=self.run_id)

        if record_id:
            await run_blocking(update_keyword_record, record_id, {"Status": "Researching"})

        updated_ids: List[str] = []
        new_records: Dict[str, Dict[str, Any]] = {}

        for index, seed in enumerate(seeds):
            print(f"[KEYWORDS] Researching seed {seed!r} (limit {limit})")
            keywords = await self.seo_client.research_seed(seed, limit)

            seed_data = next((k for k in keywords if k.keyword.lower() == seed.lower()), None)
            if seed_data:
                fields = keyword_fields(seed_data, seed)
                if record_id and index == 0:
                    await run_blocking(update_keyword_record, record_id, fields)
                    updated_ids.append(record_id)
                else:
                    new_records.setdefault(seed.lower(), {**fields, "Source": "Manual"})

            if not expand:
                continue
            for kw in keywords:
                if kw.keyword.lower() == seed.lower() or kw.search_volume < MIN_RELATED_VOLUME:
                    continue
                new_records.setdefault(kw.keyword.lower(), {**keyword_fields(kw, seed), "Source": "Manual"})

        created_ids = await run_blocking(create_keyword_records, list(new_records.values()))
        total = len(updated_ids) + len(created_ids)

        await run_blocking(update_research_job, job_record_id, {
            "Status": "Complete",
            "Completed": _now_iso(),
            "Keywords Created": total,
        })
        print(f"[KEYWORDS] Research complete: {total} keywords for {len(seeds)} seed(s)")

        return {
            "status": "complete",
            "keywordsCreated": total,
            "recordIds": updated_ids + created_ids,
            "jobRecordId": job_record_id,
        }

    async def on_failure(self, data: Dict[str, Any], error: str) -> None:
        job_record_id = await run_blocking(find_research_job, self.run_id)
        if job_record_id:
            await run_blocking(update_research_job, job_record_id, {
                "Status": "Failed",
                "Completed": _now_iso(),
                "Error": error[:1000],
            })


def _now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"
