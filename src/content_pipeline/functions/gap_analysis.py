"""
Gap Analysis

Triggered by keyword/gap-analysis.start. Generates keyword candidates from
solution x industry, solution x persona, how-to problem and comparison
patterns, drops those already tracked as Content Ideas, researches the rest
in batches and files the promising ones as new ideas for review.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from src.airtable_keywords import create_idea_records, get_existing_keywords, today
from src.content_pipeline.events import EVENT_KEYWORD_GAP_ANALYSIS
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.dataforseo import DataForSEOClient, KeywordData
from src.keyword_scoring import opportunity_score

INDUSTRIES = ["SaaS", "Fintech", "Healthcare", "E-commerce"]
PERSONAS = ["CTO", "CMO", "VP Marketing", "Founder"]
SOLUTIONS = ["pseo tools", "content systems", "landing page automation", "abm platform"]
PROBLEMS = [
    "scale content production",
    "improve seo rankings",
    "automate landing pages",
    "implement abm strategy",
]
COMPARISON_PAIRS = [
    ("pseo", "traditional seo"),
    ("pseo", "content marketing"),
    ("abm", "demand gen"),
    ("modular content", "custom content"),
]

MAX_CANDIDATES = 100
RESEARCH_BATCH_SIZE = 20
MIN_SEO_SCORE = 25


@dataclass
class KeywordCandidate:
    keyword: str
    content_type: str
    seed_topic: str


def generate_candidates(scope: str = "all") -> List[KeywordCandidate]:
    candidates = []

    if scope in ("all", "industries"):
        for industry in INDUSTRIES:
            for solution in SOLUTIONS:
                candidates.append(KeywordCandidate(
                    f"{solution} for {industry.lower()}", "industry_page", f"{solution} × {industry}",
                ))

    if scope in ("all", "personas"):
        for persona in PERSONAS:
            for solution in SOLUTIONS:
                candidates.append(KeywordCandidate(
                    f"{solution} for {persona.lower()}", "persona_page", f"{solution} × {persona}",
                ))

    if scope in ("all", "problems"):
        for problem in PROBLEMS:
            candidates.append(KeywordCandidate(f"how to {problem}", "how-to", problem))

    if scope == "all":
        for a, b in COMPARISON_PAIRS:
            candidates.append(KeywordCandidate(f"{a} vs {b}", "comparison", f"{a} vs {b}"))

    return candidates


def idea_fields(candidate: KeywordCandidate, data: KeywordData, seo_score: float) -> Dict[str, Any]:
    return {
        "Keyword": data.keyword,
        "Search Volume": data.search_volume,
        "Keyword Difficulty": data.keyword_difficulty,
        "CPC": data.cpc,
        "Search Intent": data.search_intent,
        "SERP Features": data.serp_features,
        "Related Keywords": json.dumps(data.related_keywords),
        "Competitor URLs": json.dumps(data.competitor_urls),
        "Content Type Suggestion": candidate.content_type,
        "SEO Score": seo_score,
        "Status": "Review",
        "Source": "Gap Scan",
        "Seed Topic": candidate.seed_topic,
        "Research Date": today(),
    }


class GapAnalysis(PipelineFunction):
    function_id = "gap-analysis"
    trigger = EVENT_KEYWORD_GAP_ANALYSIS
    retries = 1
    description = "Find untracked keyword opportunities and file them as Content Ideas."

    def __init__(self, *args, seo_client: Optional[DataForSEOClient] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.seo_client = seo_client or DataForSEOClient()

    async def _research(self, candidate: KeywordCandidate) -> Optional[KeywordData]:
        try:
            return await self.seo_client.research_keyword(candidate.keyword)
        except Exception as e:
            print(f"[GAP] Failed to research {candidate.keyword!r}: {e}")
            return None

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        scope = data.get("scope") or "all"

        existing = await run_blocking(get_existing_keywords)
        candidates = [c for c in generate_candidates(scope) if c.keyword.lower() not in existing]
        to_research = candidates[:MAX_CANDIDATES]
        print(f"[GAP] {len(candidates)} new candidates for scope {scope!r}, researching {len(to_research)}")

        created: List[str] = []
        skipped = 0
        for start in range(0, len(to_research), RESEARCH_BATCH_SIZE):
            batch = to_research[start:start + RESEARCH_BATCH_SIZE]
            results = await asyncio.gather(*(self._research(c) for c in batch))

            new_ideas = []
            for candidate, result in zip(batch, results):
                if result is None:
                    skipped += 1
                    continue
                score = opportunity_score(result.search_volume, result.keyword_difficulty, result.serp_features)
                if score < MIN_SEO_SCORE:
                    continue
                new_ideas.append(idea_fields(candidate, result, score))

            created.extend(await run_blocking(create_idea_records, new_ideas))

        print(f"[GAP] Created {len(created)} ideas ({skipped} research failures)")
        return {
            "status": "complete",
            "candidatesFound": len(candidates),
            "researched": len(to_research) - skipped,
            "ideasCreated": len(created),
            "recordIds": created,
        }
