#!/usr/bin/env python3
"""
Airtable accessor for the keyword ideation base (Keyword Bank, Content Ideas,
Research Jobs). Promotion writes back into the content base.
"""

import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.airtable import (
    AirtableBase,
    CONTENT_TABLE,
    escape_formula_value,
    content_base,
)
from src.dataforseo import KeywordData
from src.errors import NotFoundError, UpstreamError

KEYWORD_BANK_TABLE = "Keyword Bank"
CONTENT_IDEAS_TABLE = "Content Ideas"
RESEARCH_JOBS_TABLE = "Research Jobs"

_keywords_base: Optional[AirtableBase] = None


def keywords_base() -> AirtableBase:
    global _keywords_base
    if _keywords_base is None:
        api_key = os.getenv("AIRTABLE_KEYWORDS_API_KEY") or os.getenv("AIRTABLE_API_KEY", "")
        _keywords_base = AirtableBase(api_key, os.getenv("AIRTABLE_KEYWORDS_BASE_ID", ""))
    return _keywords_base


def today() -> str:
    return datetime.utcnow().strftime("%Y-%m-%d")


def keyword_fields(data: KeywordData, seed_topic: str) -> Dict[str, Any]:
    """Keyword Bank fields for one researched keyword."""
    return {
        "Keyword": data.keyword,
        "Search Volume": data.search_volume,
        "Keyword Difficulty": data.keyword_difficulty,
        "CPC": data.cpc,
        "Search Intent": data.search_intent,
        "SERP Features": data.serp_features,
        "Trend": data.trend or "Stable",
        "Competitor URLs": json.dumps(data.competitor_urls),
        "Status": "New",
        "Seed Topic": seed_topic,
        "Research Date": today(),
    }


# --- Keyword Bank ---

def get_keyword_record(record_id: str) -> Dict[str, Any]:
    return keywords_base().find(KEYWORD_BANK_TABLE, record_id)


def update_keyword_record(record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return keywords_base().update(KEYWORD_BANK_TABLE, record_id, fields)


def create_keyword_records(fields_list: List[Dict[str, Any]]) -> List[str]:
    if not fields_list:
        return []
    created = keywords_base().create_many(KEYWORD_BANK_TABLE, fields_list)
    return [record["id"] for record in created]


def get_keywords_by_seed(seed_topic: str) -> List[Dict[str, Any]]:
    """Unclustered Keyword Bank entries researched from this seed."""
    seed = escape_formula_value(seed_topic)
    formula = f'AND({{Seed Topic}} = "{seed}", {{Cluster}} = BLANK(), {{Status}} != "Clustered")'
    return keywords_base().select(KEYWORD_BANK_TABLE, formula=formula)


# --- Content Ideas ---

def get_idea_record(record_id: str) -> Dict[str, Any]:
    try:
        return keywords_base().find(CONTENT_IDEAS_TABLE, record_id)
    except NotFoundError as e:
        raise NotFoundError(
            f'Content Idea "{record_id}" not found',
            causes=[
                "Does the record exist in Content Ideas?",
                "Is AIRTABLE_KEYWORDS_BASE_ID the keyword ideation base (not the content base)?",
                "Does the keywords API token have access to that base?",
            ],
        ) from e


def update_idea_record(record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    print(f"[KEYWORDS] Updating idea {record_id}: {', '.join(fields.keys())}")
    return keywords_base().update(CONTENT_IDEAS_TABLE, record_id, fields)


def create_idea_records(fields_list: List[Dict[str, Any]]) -> List[str]:
    if not fields_list:
        return []
    created = keywords_base().create_many(CONTENT_IDEAS_TABLE, fields_list)
    return [record["id"] for record in created]


def get_all_ideas() -> List[Dict[str, Any]]:
    return keywords_base().select(CONTENT_IDEAS_TABLE)


def get_existing_keywords() -> set:
    """Lower-cased keywords already tracked as Content Ideas."""
    existing = set()
    for idea in get_all_ideas():
        fields = idea.get("fields", {})
        for name in ("Keyword", "Primary Keyword"):
            value = fields.get(name)
            if isinstance(value, str) and value.strip():
                existing.add(value.strip().lower())
    return existing


# --- Research Jobs ---

def create_research_job(seed_keywords: List[str], job_id: str, source: str = "Manual") -> str:
    record = keywords_base().create(RESEARCH_JOBS_TABLE, {
        "Job ID": job_id,
        "Seed Keywords": ", ".join(seed_keywords),
        "Status": "Running",
        "Started": datetime.utcnow().isoformat() + "Z",
        "Source": source,
    })
    return record["id"]


def find_research_job(job_id: str) -> Optional[str]:
    if not job_id:
        return None
    formula = f'{{Job ID}} = "{escape_formula_value(job_id)}"'
    records = keywords_base().select(RESEARCH_JOBS_TABLE, formula=formula, max_records=1)
    return records[0]["id"] if records else None


def update_research_job(job_record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return keywords_base().update(RESEARCH_JOBS_TABLE, job_record_id, fields)


# --- Promotion into the content base ---

def create_pipeline_record(
    title: str,
    content_type: str,
    keywords: str,
    industry_id: Optional[str] = None,
    persona_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> str:
    """Create a Content Pipeline record in Draft, ready for a human to set Ready."""
    fields: Dict[str, Any] = {
        "Title": title,
        "Content Type": content_type,
        "Target Keywords": keywords,
        "Status": "Draft",
    }
    if industry_id:
        fields["Industry"] = [industry_id]
    if persona_id:
        fields["Persona"] = [persona_id]
    if notes:
        fields["Notes"] = notes

    try:
        record = content_base().create(CONTENT_TABLE, fields)
    except NotFoundError as e:
        raise NotFoundError(
            "Failed to create Content Pipeline record",
            causes=[
                "Is AIRTABLE_BASE_ID correct?",
                "Does the Content Pipeline table exist?",
                "Do the industry/persona IDs exist in the content base?",
            ],
        ) from e
    except UpstreamError as e:
        raise UpstreamError(f"Failed to create Content Pipeline record: {e}", service="airtable") from e
    return record["id"]
