#!/usr/bin/env python3
"""
Keyword ideation routes: research, clustering, titles, promotion, gap scans.
Same shared-secret auth as the content webhooks.
"""

import traceback

from fastapi import APIRouter, Depends, HTTPException

from src.content_pipeline.events import (
    ClusterData,
    EVENT_KEYWORD_CLUSTER,
    EVENT_KEYWORD_GAP_ANALYSIS,
    EVENT_KEYWORD_GENERATE_TITLE,
    EVENT_KEYWORD_PROMOTE,
    EVENT_KEYWORD_RESEARCH,
    GapScanData,
    GenerateTitleData,
    KeywordResearchData,
    PromoteData,
    event_data,
)
from src.content_pipeline.runtime import send_event
from src.database import get_db
from src.errors import PipelineError

router = APIRouter(prefix="/api/keyword", tags=["keyword"])


def _queue(db, route: str, event_name: str, data: dict, message: str) -> dict:
    try:
        print(f"[KEYWORDS] {route}: {data}")
        send_event(db, event_name, data)
        return {"success": True, "message": message}
    except PipelineError:
        raise
    except Exception as e:
        print(f"[KEYWORDS] {route} failed: {e}")
        traceback.print_exc()
        raise HTTPException(status_code=400, detail=f"{type(e).__name__}: {e}")


@router.post("/research")
async def research_keywords(payload: KeywordResearchData, db=Depends(get_db)):
    """Research seed topics into the Keyword Bank."""
    count = len(payload.seedTopics)
    return _queue(
        db, "research", EVENT_KEYWORD_RESEARCH, event_data(payload),
        f"Keyword research started for {count} seed topic(s)",
    )


@router.post("/cluster")
async def cluster_keywords(payload: ClusterData, db=Depends(get_db)):
    return _queue(db, "cluster", EVENT_KEYWORD_CLUSTER, event_data(payload), "Clustering started")


@router.post("/generate-title")
async def generate_title(payload: GenerateTitleData, db=Depends(get_db)):
    return _queue(db, "generate-title", EVENT_KEYWORD_GENERATE_TITLE, event_data(payload), "Title generation started")


# Older Airtable automations post to the plural path.
@router.post("/generate-titles", include_in_schema=False)
async def generate_titles(payload: GenerateTitleData, db=Depends(get_db)):
    return await generate_title(payload, db)


@router.post("/promote")
async def promote(payload: PromoteData, db=Depends(get_db)):
    """Create a Content Pipeline record from a reviewed idea."""
    return _queue(db, "promote", EVENT_KEYWORD_PROMOTE, event_data(payload), "Promotion started")


@router.post("/gap-scan")
async def gap_scan(payload: GapScanData, db=Depends(get_db)):
    return _queue(db, "gap-scan", EVENT_KEYWORD_GAP_ANALYSIS, event_data(payload), "Gap analysis started")
