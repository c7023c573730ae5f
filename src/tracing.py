"""
LLM call tracing to Langfuse through the SDK.

One trace per generation named "generate-{step}", with a single generation
observation carrying model, prompt, output and token usage. Tracing is
best-effort: failures are printed, never raised.
"""

from typing import Any, Dict, Optional

from src.errors import UpstreamError
from src.prompts import langfuse_client


class GenerationTrace:
    """Open a generation observation on creation; close it with finish()."""

    def __init__(self, step: str, model: str, prompt: Any, record_id: Optional[str] = None):
        self.step = step
        self._generation = None
        metadata = {"recordId": record_id}

        try:
            langfuse = langfuse_client()
        except UpstreamError:
            return

        try:
            self._generation = langfuse.start_generation(
                name=step, model=model, input=prompt, metadata=metadata,
            )
            self._generation.update_trace(name=f"generate-{step}", metadata=metadata, tags=[step])
        except Exception as e:
            print(f"[LANGFUSE] Could not start trace for {step}: {e}")
            self._generation = None

    @property
    def active(self) -> bool:
        return self._generation is not None

    def finish(
        self,
        output: Optional[str] = None,
        usage: Optional[Dict[str, int]] = None,
        error: Optional[str] = None,
    ):
        if self._generation is None:
            return
        try:
            if error:
                self._generation.update(level="ERROR", status_message=error)
            else:
                usage = usage or {}
                self._generation.update(
                    output=output,
                    usage_details={
                        "input": usage.get("input_tokens", 0),
                        "output": usage.get("output_tokens", 0),
                        "total": usage.get("total_tokens", 0),
                    },
                )
            self._generation.end()
        except Exception as e:
            print(f"[LANGFUSE] Could not record trace for {self.step}: {e}")
        finally:
            self._generation = None
