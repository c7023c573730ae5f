#!/usr/bin/env python3
"""
Prompt compiler backed by Langfuse prompt management.

Prompts are fetched with the Langfuse SDK, which caches each name/label for
five minutes, and compiled with their {{variable}} placeholders filled.
Text prompts compile to a string, chat prompts to a list of role/content
messages.
"""

import os
from typing import Any, Dict, List, Optional, Union

from langfuse import Langfuse

from src.config import DEFAULT_LANGFUSE_HOST, get_langfuse_host
from src.errors import NotFoundError, PipelineError, UpstreamError

PROMPT_CACHE_TTL_SECONDS = 300
DEFAULT_LABEL = "production"

CompiledPrompt = Union[str, List[Dict[str, Any]]]

_langfuse: Optional[Langfuse] = None


def langfuse_client() -> Langfuse:
    """Shared SDK client; raises UpstreamError when the keys are not set."""
    global _langfuse
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY", "")
    if not public_key or not secret_key:
        raise UpstreamError(
            "Missing credentials. LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY must be set.",
            service="langfuse",
        )
    if _langfuse is None:
        _langfuse = Langfuse(public_key=public_key, secret_key=secret_key, host=get_langfuse_host())
    return _langfuse


def classify_prompt_error(name: str, label: str, error: Exception) -> PipelineError:
    """Map an SDK failure onto NotFoundError / UpstreamError with a hint about the cause."""
    status = getattr(error, "status_code", None)
    if status == 404:
        return NotFoundError(
            f'Prompt "{name}" not found in Langfuse',
            causes=[
                "Does a prompt with exactly this name exist in the project?",
                f'Does it have a version labelled "{label}"?',
                "Do the API keys belong to the project that holds the prompt?",
            ],
        )
    if status in (401, 403):
        return UpstreamError(
            f"Langfuse authentication failed ({status}). "
            "Check that LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY are correct and belong to the project at "
            f"{get_langfuse_host()}.",
            service="langfuse",
            upstream_status=status,
        )
    if status is None:
        return UpstreamError(
            f"Connection error: {error}. Check that LANGFUSE_HOST is correct. Default is {DEFAULT_LANGFUSE_HOST}",
            service="langfuse",
        )
    return UpstreamError(
        f'Langfuse error {status} fetching prompt "{name}": {error}',
        service="langfuse",
        upstream_status=status,
    )


def fetch_prompt(name: str, label: str = DEFAULT_LABEL, cache_ttl_seconds: int = PROMPT_CACHE_TTL_SECONDS):
    """The SDK prompt client for name/label, classifying failures."""
    langfuse = langfuse_client()
    try:
        return langfuse.get_prompt(name, label=label, cache_ttl_seconds=cache_ttl_seconds)
    except Exception as e:
        raise classify_prompt_error(name, label, e) from e


def get_prompt(name: str, variables: Optional[Dict[str, Any]] = None, label: str = DEFAULT_LABEL) -> CompiledPrompt:
    """Fetch (cached for 5 minutes) and compile a named prompt."""
    prompt = fetch_prompt(name, label)
    # Unset values keep their {{placeholder}}.
    values = {key: value for key, value in (variables or {}).items() if value is not None}
    return prompt.compile(**values)
