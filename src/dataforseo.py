#!/usr/bin/env python3
"""
DataForSEO API client - keyword volume, suggestions, SERP data and difficulty.

All calls share one process-wide semaphore so the keyword functions never
exceed the API's concurrent request allowance.
"""

import asyncio
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from src.errors import UpstreamError

DATAFORSEO_API_URL = "https://api.dataforseo.com/v3"
SUCCESS_CODE = 20000
MAX_CONCURRENT_REQUESTS = 5

DEFAULT_LOCATION = 2840  # United States
DEFAULT_LANGUAGE = "en"
DEFAULT_DIFFICULTY = 50

SERP_FEATURES = {
    "featured_snippet": "Featured Snippet",
    "people_also_ask": "PAA",
    "video": "Video",
    "local_pack": "Local Pack",
    "knowledge_graph": "Knowledge Graph",
    "shopping": "Shopping",
}

TRANSACTIONAL_PATTERN = re.compile(r"\b(buy|purchase|pricing|cost|cheap|deal|order|shop)")
COMMERCIAL_PATTERN = re.compile(r"\b(best|top|review|compare|vs|alternative|tool|software|platform)")
NAVIGATIONAL_PATTERN = re.compile(r"\b(login|sign in|official|website)")

_request_semaphore = asyncio.Semaphore(MAX_CONCURRENT_REQUESTS)


@dataclass
class KeywordData:
    keyword: str
    search_volume: int = 0
    cpc: float = 0.0
    competition: float = 0.0
    keyword_difficulty: int = DEFAULT_DIFFICULTY
    search_intent: str = "Informational"
    serp_features: List[str] = field(default_factory=list)
    related_keywords: List[str] = field(default_factory=list)
    competitor_urls: List[str] = field(default_factory=list)
    trend: str = "Stable"


def difficulty_or_default(value: Optional[int]) -> int:
    """A missing difficulty becomes DEFAULT_DIFFICULTY; a real 0 is kept."""
    return DEFAULT_DIFFICULTY if value is None else value


def infer_search_intent(keyword: str, item_types: Optional[List[str]] = None) -> str:
    """Heuristic intent: keyword wording first, then SERP item types."""
    kw = keyword.lower()
    if TRANSACTIONAL_PATTERN.search(kw):
        return "Transactional"
    if COMMERCIAL_PATTERN.search(kw):
        return "Commercial"
    if NAVIGATIONAL_PATTERN.search(kw):
        return "Navigational"

    item_types = item_types or []
    if "shopping" in item_types:
        return "Transactional"
    if "featured_snippet" in item_types or "people_also_ask" in item_types:
        return "Informational"
    return "Informational"


def compute_trend(monthly_searches: Optional[List[Dict[str, Any]]]) -> str:
    """Rising / Declining when the last 3 months differ from the 3 before by more than 20%."""
    months = [
        m for m in (monthly_searches or [])
        if m.get("year") and m.get("month") and m.get("search_volume") is not None
    ]
    if len(months) < 6:
        return "Stable"

    months.sort(key=lambda m: (m["year"], m["month"]), reverse=True)
    recent = sum(m["search_volume"] for m in months[:3]) / 3
    previous = sum(m["search_volume"] for m in months[3:6]) / 3
    if previous <= 0:
        return "Rising" if recent > 0 else "Stable"

    change = (recent - previous) / previous
    if change > 0.2:
        return "Rising"
    if change < -0.2:
        return "Declining"
    return "Stable"


class DataForSEOClient:

    def __init__(
        self,
        login: Optional[str] = None,
        password: Optional[str] = None,
        base_url: str = DATAFORSEO_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.login = login if login is not None else os.getenv("DATAFORSEO_LOGIN", "")
        self.password = password if password is not None else os.getenv("DATAFORSEO_PASSWORD", "")
        self.base_url = base_url
        self.transport = transport

    async def _request(self, endpoint: str, payload: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not self.login or not self.password:
            raise UpstreamError(
                "DataForSEO credentials missing. Set DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD.",
                service="dataforseo",
            )

        async with _request_semaphore:
            try:
                async with httpx.AsyncClient(timeout=60.0, transport=self.transport) as client:
                    response = await client.post(
                        f"{self.base_url}{endpoint}",
                        json=payload,
                        auth=(self.login, self.password),
                    )
            except httpx.HTTPError as e:
                raise UpstreamError(f"DataForSEO request to {endpoint} failed: {e}", service="dataforseo") from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"DataForSEO API error: {response.status_code} {response.reason_phrase}",
                service="dataforseo",
                upstream_status=response.status_code,
            )

        result = response.json()
        if result.get("status_code") != SUCCESS_CODE:
            raise UpstreamError(
                f"DataForSEO error: {result.get('status_message') or 'Unknown error'} "
                f"(code: {result.get('status_code')})",
                service="dataforseo",
            )
        return result

    @staticmethod
    def _task_result(result: Dict[str, Any]) -> List[Dict[str, Any]]:
        tasks = result.get("tasks") or [{}]
        return tasks[0].get("result") or []

    async def get_search_volume(self, keywords: List[str], location: int = DEFAULT_LOCATION) -> Dict[str, Dict[str, Any]]:
        result = await self._request("/keywords_data/google/search_volume/live", [{
            "keywords": keywords,
            "location_code": location,
            "language_code": DEFAULT_LANGUAGE,
        }])
        metrics = {}
        for item in self._task_result(result):
            metrics[item["keyword"]] = {
                "search_volume": item.get("search_volume") or 0,
                "cpc": item.get("cpc") or 0,
                "competition": item.get("competition") or 0,
                "monthly_searches": item.get("monthly_searches") or [],
            }
        return metrics

    async def get_keyword_suggestions(self, seed: str, limit: int = 50) -> List[str]:
        result = await self._request("/dataforseo_labs/google/keyword_suggestions/live", [{
            "keyword": seed,
            "location_code": DEFAULT_LOCATION,
            "language_code": DEFAULT_LANGUAGE,
            "include_serp_info": False,
            "include_seed_keyword": True,
            "limit": limit,
        }])
        task_result = self._task_result(result)
        items = (task_result[0].get("items") if task_result else None) or []
        return [item["keyword"] for item in items if item.get("keyword")]

    async def get_serp_data(self, keyword: str) -> Dict[str, Any]:
        result = await self._request("/serp/google/organic/live/regular", [{
            "keyword": keyword,
            "location_code": DEFAULT_LOCATION,
            "language_code": DEFAULT_LANGUAGE,
            "device": "desktop",
            "depth": 10,
        }])
        task_result = self._task_result(result)
        serp = task_result[0] if task_result else {}
        item_types = serp.get("item_types") or []

        features = [label for key, label in SERP_FEATURES.items() if key in item_types]
        competitor_urls = [
            item.get("url") for item in (serp.get("items") or [])
            if item.get("type") == "organic" and item.get("url")
        ][:5]

        return {
            "serp_features": features,
            "competitor_urls": competitor_urls,
            "search_intent": infer_search_intent(keyword, item_types),
            "item_types": item_types,
        }

    async def get_keyword_difficulty(self, keywords: List[str]) -> Dict[str, int]:
        result = await self._request("/dataforseo_labs/google/keyword_difficulty/live", [{
            "keywords": keywords,
            "location_code": DEFAULT_LOCATION,
            "language_code": DEFAULT_LANGUAGE,
        }])
        return {
            item["keyword"]: difficulty_or_default(item.get("keyword_difficulty"))
            for item in self._task_result(result)
        }

    async def research_keyword(self, keyword: str) -> KeywordData:
        """Volume, SERP, difficulty and related keywords for one keyword, fetched in parallel."""
        volumes, serp, difficulties, related = await asyncio.gather(
            self.get_search_volume([keyword]),
            self.get_serp_data(keyword),
            self.get_keyword_difficulty([keyword]),
            self.get_keyword_suggestions(keyword, 20),
        )
        volume = volumes.get(keyword, {})
        return KeywordData(
            keyword=keyword,
            search_volume=volume.get("search_volume", 0),
            cpc=volume.get("cpc", 0),
            competition=volume.get("competition", 0),
            keyword_difficulty=difficulties.get(keyword, DEFAULT_DIFFICULTY),
            search_intent=serp["search_intent"],
            serp_features=serp["serp_features"],
            related_keywords=[k for k in related if k.lower() != keyword.lower()],
            competitor_urls=serp["competitor_urls"],
            trend=compute_trend(volume.get("monthly_searches")),
        )

    async def research_seed(self, seed: str, limit: int = 30) -> List[KeywordData]:
        """
        The seed plus up to `limit` suggestions, each with volume and difficulty.
        Only the seed gets SERP data (one SERP call per research run).
        """
        suggestions = await self.get_keyword_suggestions(seed, limit)
        keywords = [seed] + [k for k in suggestions if k.lower() != seed.lower()]

        volumes, difficulties, serp = await asyncio.gather(
            self.get_search_volume(keywords),
            self.get_keyword_difficulty(keywords),
            self.get_serp_data(seed),
        )

        results = []
        for kw in keywords:
            volume = volumes.get(kw, {})
            is_seed = kw.lower() == seed.lower()
            results.append(KeywordData(
                keyword=kw,
                search_volume=volume.get("search_volume", 0),
                cpc=volume.get("cpc", 0),
                competition=volume.get("competition", 0),
                keyword_difficulty=difficulties.get(kw, DEFAULT_DIFFICULTY),
                search_intent=serp["search_intent"] if is_seed else infer_search_intent(kw),
                serp_features=serp["serp_features"] if is_seed else [],
                related_keywords=[k for k in keywords if k != kw][:20] if is_seed else [],
                competitor_urls=serp["competitor_urls"] if is_seed else [],
                trend=compute_trend(volume.get("monthly_searches")),
            ))
        return results
