"""
Auto-Cluster

Triggered by keyword/cluster.auto when a Content Idea is set to Auto-Cluster.
Claude picks the keywords from the Keyword Bank that one piece of content can
cover, and those keywords are linked to the idea.
"""

from typing import Dict, Any, List

from src.airtable_keywords import get_keywords_by_seed, update_idea_record, update_keyword_record
from src.claude import generate
from src.content_pipeline.events import EVENT_KEYWORD_CLUSTER
from src.content_pipeline.functions.base import PipelineFunction, run_blocking
from src.dataforseo import difficulty_or_default
from src.keyword_scoring import cluster_metrics
from src.llm_json import extract_json

MAX_CLUSTER_SIZE = 6
CLUSTER_MAX_TOKENS = 500


def build_cluster_prompt(keywords: List[Dict[str, Any]]) -> str:
    keyword_lines = "\n".join(
        f'- ID: {kw["id"]} | "{kw["keyword"]}" ({kw["volume"]}/mo, KD {kw["difficulty"]}, {kw["intent"]})'
        for kw in keywords
    )
    return f"""You are an SEO strategist. Select the best keywords for a content cluster.

## Available Keywords
{keyword_lines}

## Instructions
1. Select 3-6 keywords that belong together (can be covered by ONE content piece)
2. Pick the primary keyword (best balance of volume + relevance)
3. Suggest a content type based on the keywords' intent
4. Identify the dominant search intent

## Output JSON only (no markdown, no explanation):
{{
  "selectedIds": ["id1", "id2", "id3"],
  "primaryKeyword": "the main keyword",
  "contentType": "blog|how-to|comparison|industry_page|persona_page",
  "intent": "Informational|Commercial|Transactional|Navigational"
}}"""


def candidate_from_record(record: Dict[str, Any]) -> Dict[str, Any]:
    fields = record.get("fields", {})
    return {
        "id": record["id"],
        "keyword": fields.get("Keyword", ""),
        "volume": fields.get("Search Volume") or 0,
        "difficulty": difficulty_or_default(fields.get("Keyword Difficulty")),
        "intent": fields.get("Search Intent") or "Informational",
    }


class AutoCluster(PipelineFunction):
    function_id = "auto-cluster"
    trigger = EVENT_KEYWORD_CLUSTER
    retries = 3
    description = "Group unclustered keywords of a seed topic under one Content Idea."

    async def execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record_id = data["recordId"]
        seed_topic = data["seedTopic"]

        await run_blocking(update_idea_record, record_id, {"Status": "Clustering"})

        records = await run_blocking(get_keywords_by_seed, seed_topic)
        candidates = [candidate_from_record(r) for r in records]
        if not candidates:
            await run_blocking(update_idea_record, record_id, {"Status": "Draft"})
            print(f"[CLUSTER] No unclustered keywords for seed {seed_topic!r}")
            return {"status": "no-keywords", "message": "No unclustered keywords found"}

        response = await run_blocking(
            generate,
            prompt=build_cluster_prompt(candidates),
            record_id=record_id,
            step="auto-cluster",
            max_tokens=CLUSTER_MAX_TOKENS,
        )
        cluster = extract_json(response.text, default={}, label="CLUSTER")
        if not cluster["parsed"]:
            await run_blocking(update_idea_record, record_id, {"Status": "Draft"})
            return {"status": "unparseable", "raw": cluster["raw"]}

        # Only ids that were actually offered can be linked.
        by_id = {c["id"]: c for c in candidates}
        selected: List[str] = []
        for keyword_id in cluster.get("selectedIds") or []:
            if keyword_id in by_id and keyword_id not in selected:
                selected.append(keyword_id)
        selected = selected[:MAX_CLUSTER_SIZE]

        for keyword_id in selected:
            await run_blocking(
                update_keyword_record, keyword_id, {"Cluster": [record_id], "Status": "Clustered"},
            )

        chosen = [by_id[k] for k in selected]
        metrics = cluster_metrics(chosen)
        primary = cluster.get("primaryKeyword") or (chosen or candidates)[0]["keyword"]

        await run_blocking(update_idea_record, record_id, {
            "Primary Keyword": primary,
            "Content Type": cluster.get("contentType") or "blog",
            "Search Intent": cluster.get("intent") or "Informational",
            "Keywords": selected,
            "Status": "Review",
        })
        print(f"[CLUSTER] Linked {len(selected)} keywords to {record_id} ({primary!r})")

        return {
            "status": "complete",
            "keywordsClustered": len(selected),
            "clusterName": primary,
            "metrics": metrics,
        }
