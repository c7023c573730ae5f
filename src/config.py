#!/usr/bin/env python3
"""
Environment configuration for the content pipeline service.

Values come from the process environment (optionally a .env file). Anything
that tests need to override is read through a function instead of a
module-level constant.
"""

import os
from typing import Dict, Any, List
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/")
MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME", "content_pipeline")

CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-20250514")
DEFAULT_LANGFUSE_HOST = "https://cloud.langfuse.com"

PORT = int(os.getenv("PORT", "3000"))

REQUIRED_ENV_VARS = [
    "WEBHOOK_SECRET",
    "AIRTABLE_API_KEY",
    "AIRTABLE_BASE_ID",
    "ANTHROPIC_API_KEY",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "MONGODB_URI",
]

OPTIONAL_ENV_VARS = [
    "MONGODB_DB_NAME",
    "LANGFUSE_HOST",
    "AIRTABLE_KEYWORDS_BASE_ID",
    "AIRTABLE_KEYWORDS_API_KEY",
    "DATAFORSEO_LOGIN",
    "DATAFORSEO_PASSWORD",
    "CLAUDE_MODEL",
    "CONTEXT_DIR",
    "WEBHOOK_DEDUPE_WINDOW_SECONDS",
    "ENABLE_LEGACY_PIPELINE",
    "WORKER_CONCURRENCY",
    "WORKER_POLL_INTERVAL",
]


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        print(f"[CONFIG] {name}={value!r} is not an integer, using {default}")
        return default


def get_webhook_secret() -> str:
    return os.getenv("WEBHOOK_SECRET", "")


def get_langfuse_host() -> str:
    host = os.getenv("LANGFUSE_HOST") or os.getenv("LANGFUSE_BASE_URL") or DEFAULT_LANGFUSE_HOST
    return host.rstrip("/")


def get_context_dir() -> str:
    return os.getenv("CONTEXT_DIR") or os.path.join(os.getcwd(), "context")


def get_dedupe_window_seconds() -> int:
    return env_int("WEBHOOK_DEDUPE_WINDOW_SECONDS", 60)


def legacy_pipeline_enabled() -> bool:
    return env_flag("ENABLE_LEGACY_PIPELINE", False)


def prefix(value: str, length: int = 6):
    """First few characters of a secret, safe to show in diagnostics."""
    return value[:length] if value else None


def check_environment() -> Dict[str, Any]:
    """
    Report missing and suspicious configuration at startup.

    Never raises: a half-configured service should still boot so the
    diagnostics endpoints can be used to fix it.
    """
    missing: List[str] = [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]
    warnings: List[str] = []

    airtable_key = os.getenv("AIRTABLE_API_KEY", "")
    if airtable_key and not airtable_key.startswith("pat"):
        warnings.append('AIRTABLE_API_KEY should be a personal access token starting with "pat"')

    base_id = os.getenv("AIRTABLE_BASE_ID", "")
    if base_id and not base_id.startswith("app"):
        warnings.append('AIRTABLE_BASE_ID should start with "app"')

    public_key = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    if public_key and not public_key.startswith("pk-lf-"):
        warnings.append('LANGFUSE_PUBLIC_KEY should start with "pk-lf-"')

    secret_key = os.getenv("LANGFUSE_SECRET_KEY", "")
    if secret_key and not secret_key.startswith("sk-lf-"):
        warnings.append('LANGFUSE_SECRET_KEY should start with "sk-lf-"')

    parsed = urlparse(get_langfuse_host())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        warnings.append(f"LANGFUSE_HOST must be an http(s) URL. Got: {get_langfuse_host()}")

    if missing:
        print(f"[CONFIG] Missing required environment variables: {', '.join(missing)}")
    for warning in warnings:
        print(f"[CONFIG] Warning: {warning}")
    if missing or warnings:
        print("[CONFIG]    Visit /api/diagnostics/airtable to test the Airtable connection")
        print("[CONFIG]    Visit /api/diagnostics/langfuse to test the Langfuse connection")
    else:
        print("[CONFIG] Environment looks complete")

    if not os.getenv("AIRTABLE_KEYWORDS_BASE_ID"):
        print("[CONFIG] AIRTABLE_KEYWORDS_BASE_ID not set - keyword research routes will fail")
    if not (os.getenv("DATAFORSEO_LOGIN") and os.getenv("DATAFORSEO_PASSWORD")):
        print("[CONFIG] DATAFORSEO_LOGIN/DATAFORSEO_PASSWORD not set - keyword research will fail")

    return {"missing": missing, "warnings": warnings}
