#!/usr/bin/env python3
"""
Context assembly for prompt variables.

Three sources, later overriding earlier:
1. Static markdown files in the context directory, cached for the process lifetime
2. Active rows of the Context Artifacts table, keyed by their Type
3. Industry / Persona fields of the content item
"""

import os
import re
import threading
from typing import Dict, List, Optional

from src.airtable import get_active_artifacts, get_industry, get_persona
from src.config import get_context_dir

STATIC_CONTEXT_FILES = [
    "company-profile",
    "voice-guidelines",
    "product-overview",
    "differentiators",
]

DEFAULT_INDUSTRY_NAME = "General"
DEFAULT_PERSONA_NAME = "General audience"


def to_variable_name(key: str) -> str:
    """'voice-guidelines', 'voice_guidelines' and 'Voice Guidelines' all become 'voiceGuidelines'."""
    words = [w for w in re.split(r"[\s_\-]+", key.strip()) if w]
    if not words:
        return ""
    first, rest = words[0], words[1:]
    if len(words) == 1 and first[:1].islower():
        return first
    return first.lower() + "".join(w[:1].upper() + w[1:].lower() for w in rest)


class ContextCache:
    """Read-through cache of static context files; cleared only by invalidate()."""

    def __init__(self, context_dir: Optional[str] = None):
        self._context_dir = context_dir
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def context_dir(self) -> str:
        return self._context_dir or get_context_dir()

    def load(self, name: str) -> str:
        with self._lock:
            if name in self._cache:
                return self._cache[name]

        path = os.path.join(self.context_dir, f"{name}.md")
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except FileNotFoundError:
            print(f"[CONTEXT] Warning: context file not found: {path}")
            return ""

        with self._lock:
            self._cache[name] = content
        return content

    def load_bundle(self, names: List[str]) -> Dict[str, str]:
        return {name: self.load(name) for name in names}

    def invalidate(self):
        with self._lock:
            self._cache.clear()
        print("[CONTEXT] Cache cleared")

    def list_files(self) -> List[str]:
        try:
            entries = os.listdir(self.context_dir)
        except FileNotFoundError:
            return []
        return sorted(e[:-3] for e in entries if e.endswith(".md"))

    def cached_names(self) -> List[str]:
        with self._lock:
            return sorted(self._cache.keys())


context_cache = ContextCache()


def assemble_context(
    industry_id: Optional[str] = None,
    persona_id: Optional[str] = None,
    keywords: Optional[str] = None,
    cache: Optional[ContextCache] = None,
) -> Dict[str, str]:
    """Build the prompt variable mapping for one content item."""
    cache = cache or context_cache
    variables: Dict[str, str] = {}

    for name, content in cache.load_bundle(STATIC_CONTEXT_FILES).items():
        variables[to_variable_name(name)] = content

    for artifact_type, content in get_active_artifacts().items():
        key = to_variable_name(artifact_type)
        if key:
            variables[key] = content or ""

    industry = get_industry(industry_id) if industry_id else None
    persona = get_persona(persona_id) if persona_id else None

    variables.update({
        "industryName": (industry.name if industry else "") or DEFAULT_INDUSTRY_NAME,
        "industryDescription": industry.description if industry else "",
        "industryPainPoints": industry.pain_points if industry else "",
        "industryTerminology": industry.terminology if industry else "",
        "personaName": (persona.name if persona else "") or DEFAULT_PERSONA_NAME,
        "personaTitle": persona.title if persona else "",
        "personaGoals": persona.goals if persona else "",
        "personaPainPoints": persona.pain_points if persona else "",
        "personaObjections": persona.objections if persona else "",
        "keywords": keywords or "",
    })
    return variables
