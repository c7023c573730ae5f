#!/usr/bin/env python3
"""
Generation client: one prompt in, text + token usage out, traced to Langfuse.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import anthropic

from src.config import CLAUDE_MODEL
from src.errors import UpstreamError
from src.prompts import CompiledPrompt
from src.tracing import GenerationTrace

DEFAULT_MAX_TOKENS = 4096

_client: Optional[anthropic.Anthropic] = None


@dataclass
class GenerationResult:
    text: str
    usage: Dict[str, int] = field(default_factory=dict)
    model: str = CLAUDE_MODEL


def get_client() -> anthropic.Anthropic:
    global _client
    if _client is None:
        api_key = os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise UpstreamError("Anthropic API key not configured (ANTHROPIC_API_KEY)", service="anthropic")
        _client = anthropic.Anthropic(api_key=api_key)
    return _client


def to_messages(prompt: CompiledPrompt) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    A text prompt becomes one user message. A chat prompt keeps its user and
    assistant turns; system messages go to the system parameter.
    """
    if isinstance(prompt, str):
        return None, [{"role": "user", "content": prompt}]

    system = "\n\n".join(m.get("content", "") for m in prompt if m.get("role") == "system")
    messages = [
        {"role": m["role"], "content": m.get("content", "")}
        for m in prompt
        if m.get("role") in ("user", "assistant")
    ]
    return system or None, messages


def generate(
    prompt: CompiledPrompt,
    record_id: Optional[str] = None,
    step: str = "generate",
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> GenerationResult:
    """Call Claude with a compiled prompt."""
    print(f"[CLAUDE] {step} for {record_id or '-'} (max_tokens={max_tokens})")
    system, messages = to_messages(prompt)
    options: Dict[str, Any] = {"system": system} if system else {}

    trace = GenerationTrace(step=step, model=CLAUDE_MODEL, prompt=prompt, record_id=record_id)
    try:
        response = get_client().messages.create(
            model=CLAUDE_MODEL,
            max_tokens=max_tokens,
            messages=messages,
            **options,
        )
    except anthropic.APIError as e:
        trace.finish(error=str(e))
        raise UpstreamError(f"Claude request failed during {step}: {e}", service="anthropic") from e

    text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
    input_tokens = response.usage.input_tokens if response.usage else 0
    output_tokens = response.usage.output_tokens if response.usage else 0
    usage = {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }

    trace.finish(output=text, usage=usage)
    print(f"[CLAUDE] {step} done: {usage['total_tokens']} tokens")
    return GenerationResult(text=text, usage=usage)
