#!/usr/bin/env python3
"""
Keyword opportunity scoring - pure functions, no I/O.
"""

from typing import Any, Dict, Iterable, List, Optional

FEATURE_BONUS = {
    "Featured Snippet": 5.0,
    "PAA": 3.0,
    "Video": 2.0,
}
MAX_FEATURE_BONUS = 10.0
MAX_VOLUME_POINTS = 50.0


def opportunity_score(
    volume: float,
    difficulty: float,
    serp_features: Optional[Iterable[str]] = None,
) -> float:
    """
    Capped-volume opportunity score:
      volume points     = min(volume / 100, 50)
      difficulty points = 50 - difficulty / 2   (difficulty clamped to 0..100)
      + SERP feature bonus (snippet +5, PAA +3, video +2, capped at 10)
    """
    volume = max(volume or 0, 0)
    difficulty = min(max(difficulty if difficulty is not None else 50, 0), 100)

    volume_points = min(volume / 100, MAX_VOLUME_POINTS)
    difficulty_points = 50 - difficulty / 2
    bonus = min(sum(FEATURE_BONUS.get(f, 0.0) for f in (serp_features or [])), MAX_FEATURE_BONUS)

    return round(volume_points + difficulty_points + bonus, 1)


def volume_difficulty_ratio(volume: float, difficulty: float) -> float:
    """Cluster score: volume / (difficulty + 1)."""
    volume = max(volume or 0, 0)
    difficulty = max(difficulty if difficulty is not None else 50, 0)
    return round(volume / (difficulty + 1), 2)


def cluster_metrics(keywords: List[Dict[str, Any]]) -> Dict[str, float]:
    """
    Aggregate metrics for a cluster of keyword dicts with "volume" and "difficulty".
    """
    if not keywords:
        return {"total_volume": 0, "avg_difficulty": 0.0, "seo_score": 0.0}

    total_volume = sum(k.get("volume") or 0 for k in keywords)
    avg_difficulty = round(sum(k.get("difficulty") or 0 for k in keywords) / len(keywords), 1)
    return {
        "total_volume": total_volume,
        "avg_difficulty": avg_difficulty,
        "seo_score": volume_difficulty_ratio(total_volume, avg_difficulty),
    }
