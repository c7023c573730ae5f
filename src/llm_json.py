"""
Best-effort JSON extraction from free-text LLM answers.
"""

import json
import re
from typing import Any, Dict, Optional

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str, default: Optional[Dict[str, Any]] = None, label: str = "LLM") -> Dict[str, Any]:
    """
    Parse the largest {...} span of `text`.

    On failure returns a copy of `default` with the raw text under "raw" and
    "parsed": False, so callers can keep going and keep the answer for audit.
    """
    match = _JSON_OBJECT.search(text or "")
    if match:
        try:
            parsed = json.loads(match.group())
            if isinstance(parsed, dict):
                parsed["parsed"] = True
                return parsed
            error = f"expected a JSON object, got {type(parsed).__name__}"
        except json.JSONDecodeError as e:
            error = str(e)
    else:
        error = "no JSON object found"

    print(f"[{label}] Could not parse JSON from response ({error}); using defaults")
    fallback = dict(default or {})
    fallback["raw"] = text
    fallback["parsed"] = False
    return fallback
