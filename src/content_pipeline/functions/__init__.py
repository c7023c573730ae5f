"""
Pipeline Functions

Each function subscribes to one event and is run by the worker for every
matching event. Stage functions share the transition table in
workflows/pipeline.py.
"""

from typing import List, Type

from src.content_pipeline.functions.base import PipelineFunction
from src.content_pipeline.functions.generate_outline import GenerateOutline
from src.content_pipeline.functions.generate_draft import GenerateDraft
from src.content_pipeline.functions.finalize_content import FinalizeContent
from src.content_pipeline.functions.batch_trigger import BatchTrigger
from src.content_pipeline.functions.content_pipeline import ContentPipeline
from src.content_pipeline.functions.keyword_research import KeywordResearch
from src.content_pipeline.functions.auto_cluster import AutoCluster
from src.content_pipeline.functions.generate_titles import GenerateTitles
from src.content_pipeline.functions.promote_to_pipeline import PromoteToPipeline
from src.content_pipeline.functions.gap_analysis import GapAnalysis

# Registry: function_id -> class
FUNCTION_REGISTRY = {
    "generate-outline": GenerateOutline,
    "generate-draft": GenerateDraft,
    "finalize-content": FinalizeContent,
    "batch-trigger": BatchTrigger,
    "content-pipeline": ContentPipeline,  # deprecated, ENABLE_LEGACY_PIPELINE
    "keyword-research": KeywordResearch,
    "auto-cluster": AutoCluster,
    "generate-titles": GenerateTitles,
    "promote-to-pipeline": PromoteToPipeline,
    "gap-analysis": GapAnalysis,
}


def get_function(function_id: str, db=None, run_id=None, attempt: int = 0, event_time=None) -> PipelineFunction:
    """Factory: instantiate a function by id."""
    cls = FUNCTION_REGISTRY.get(function_id)
    if not cls:
        raise ValueError(f"Unknown function: {function_id}")
    return cls(db=db, run_id=run_id, attempt=attempt, event_time=event_time)


def get_functions_for_event(event_name: str) -> List[Type[PipelineFunction]]:
    """Enabled functions subscribed to an event."""
    return [cls for cls in FUNCTION_REGISTRY.values() if cls.trigger == event_name and cls.enabled()]
