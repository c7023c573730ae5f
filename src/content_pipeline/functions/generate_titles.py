"""
Generate Titles

Triggered by keyword/generate-title. Builds an SEO title shortlist and content
angles for a clustered Content Idea from its linked Keyword Bank entries.
"""

import json
from typing import Dict, Any, List

from src.airtable import linked_id
from src.airtable_keywords import get_idea_record, get_keyword_record, update_idea_record
from src.claude import generate
from src.content_pipeline.events import EVENT_KEYWORD_GENERATE_TITLE
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.dataforseo import difficulty_or_default
from src.keyword_scoring import cluster_metrics
from src.llm_json import extract_json

TITLES_MAX_TOKENS = 1500


def build_titles_prompt(idea_fields: Dict[str, Any], keywords: List[Dict[str, Any]], metrics: Dict[str, float]) -> str:
    primary = idea_fields.get("Primary Keyword") or keywords[0]["keyword"]
    keyword_lines = "\n".join(
        f'- "{kw["keyword"]}" ({kw["volume"]}/mo, KD {kw["difficulty"]})' for kw in keywords
    )

    sections = [
        "Generate SEO titles and content angles for a content cluster.",
        "",
        f"## Cluster: {idea_fields.get('Cluster Name') or primary}",
        f"Primary Keyword: {primary}",
        f"Content Type: {idea_fields.get('Content Type') or 'blog'}",
        f"Intent: {idea_fields.get('Search Intent') or 'Informational'}",
        f"Total Volume: {metrics['total_volume']}/mo, Avg Difficulty: {metrics['avg_difficulty']}",
        "",
        "## Keywords in Cluster",
        keyword_lines,
    ]

    for label, field_name in (("Industry", "Industry"), ("Persona", "Persona"), ("Problem", "Problem")):
        value = linked_id(idea_fields, field_name)
        if value:
            sections += ["", f"## {label}: {value}"]

    sections += [
        "",
        "## Output JSON only (no markdown, no explanation):",
        "{",
        '  "titles": ["3-5 SEO titles under 60 chars, each with the primary keyword"],',
        '  "angles": [{"hook": "Opening premise", "sections": ["Section 1", "Section 2"]}],',
        '  "competitorAnalysis": "What competitors do, how to differentiate"',
        "}",
    ]
    return "\n".join(sections)


def titles_from_answer(answer: Dict[str, Any]) -> List[str]:
    """Accepts "titles" as strings or {"title": ...} objects, or a single "title"."""
    titles = []
    for item in answer.get("titles") or []:
        if isinstance(item, dict):
            item = item.get("title")
        if isinstance(item, str) and item.strip():
            titles.append(item.strip())
    single = answer.get("title")
    if not titles and isinstance(single, str) and single.strip():
        titles.append(single.strip())
    return titles


class GenerateTitles(PipelineFunction):
    function_id = "generate-titles"
    trigger = EVENT_KEYWORD_GENERATE_TITLE
    retries = 2
    description = "Generate title ideas and content angles for a clustered Content Idea."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        idea = await run_blocking(get_idea_record, record_id)
        fields = idea.get("fields", {})

        await run_blocking(update_idea_record, record_id, {"Status": "Generating"})

        keyword_ids = fields.get("Keywords") or []
        if not keyword_ids:
            await run_blocking(update_idea_record, record_id, {"Status": "Draft"})
            return {"status": "error", "message": "No keywords linked to this Content Idea"}

        keywords = []
        for keyword_id in keyword_ids:
            kw_fields = (await run_blocking(get_keyword_record, keyword_id)).get("fields", {})
            keywords.append({
                "keyword": kw_fields.get("Keyword", ""),
                "volume": kw_fields.get("Search Volume") or 0,
                "difficulty": difficulty_or_default(kw_fields.get("Keyword Difficulty")),
            })
        metrics = cluster_metrics(keywords)

        response = await run_blocking(
            generate,
            prompt=build_titles_prompt(fields, keywords, metrics),
            record_id=record_id,
            step="generate-title",
            max_tokens=TITLES_MAX_TOKENS,
        )
        answer = extract_json(response.text, default={}, label="TITLES")

        if answer["parsed"]:
            titles = titles_from_answer(answer)
            update = {
                "Title": titles[0] if titles else "",
                "Title Ideas": json.dumps(titles),
                "Content Angles": json.dumps(answer.get("angles") or [], indent=2),
                "Competitor Analysis": answer.get("competitorAnalysis") or "",
                "Status": "Review",
            }
        else:
            titles = []
            update = {"Content Angles": answer["raw"], "Status": "Review"}

        await run_blocking(update_idea_record, record_id, update)
        print(f"[TITLES] {len(titles)} titles for {record_id}")

        return {
            "status": "complete",
            "recordId": record_id,
            "title": titles[0] if titles else "",
            "titles": titles,
            "metrics": metrics,
        }
