#!/usr/bin/env python3
"""
Diagnostics routes for configuration problems: which credentials are set,
whether Airtable tables and Langfuse prompts are reachable, and what the
worker recently ran.

These never raise for a failed check; each check reports its own error.
"""

import os
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends

from src.airtable import (
    ARTIFACTS_TABLE,
    CONTENT_TABLE,
    FIELD_TITLE,
    INDUSTRIES_TABLE,
    PERSONAS_TABLE,
    content_base,
)
from src.config import DEFAULT_LANGFUSE_HOST, get_langfuse_host, prefix
from src.content_pipeline.state import RunStore
from src.database import get_db
from src.errors import NotFoundError, PipelineError
from src.prompts import fetch_prompt

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])

KNOWN_TABLES = [CONTENT_TABLE, INDUSTRIES_TABLE, PERSONAS_TABLE, ARTIFACTS_TABLE]
PROBE_PROMPT_NAME = "__diagnostics-connection-test__"


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


# --- Airtable ---

def airtable_env() -> Dict[str, Any]:
    api_key = os.getenv("AIRTABLE_API_KEY", "")
    base_id = os.getenv("AIRTABLE_BASE_ID", "")
    return {
        "hasApiKey": bool(api_key),
        "hasBaseId": bool(base_id),
        "apiKeyPrefix": prefix(api_key),
        "baseIdPrefix": prefix(base_id),
    }


def airtable_table_access() -> Dict[str, Any]:
    try:
        records = content_base().select(CONTENT_TABLE, max_records=1)
        return {"success": True, "tableName": CONTENT_TABLE, "sampleRecords": len(records)}
    except PipelineError as e:
        return {"success": False, "tableName": CONTENT_TABLE, "error": e.message}


def airtable_record_access(record_id: str) -> Dict[str, Any]:
    try:
        record = content_base().find(CONTENT_TABLE, record_id)
    except PipelineError as e:
        return {"success": False, "recordId": record_id, "error": e.message}
    title = record.get("fields", {}).get(FIELD_TITLE)
    return {"success": True, "recordId": record["id"], "recordTitle": title or "No title found"}


def airtable_available_tables() -> list:
    found = []
    for table in KNOWN_TABLES:
        try:
            content_base().select(table, max_records=1)
            found.append(table)
        except PipelineError as e:
            print(f"[DIAGNOSTICS] Table {table!r} not reachable: {e.message}")
    return found


def run_airtable_diagnostics(record_id: Optional[str] = None) -> Dict[str, Any]:
    results = {
        "env": airtable_env(),
        "tableAccess": airtable_table_access(),
        "availableTables": airtable_available_tables(),
    }
    if record_id:
        results["recordAccess"] = airtable_record_access(record_id)
    return results


# --- Langfuse ---

def langfuse_env() -> Dict[str, Any]:
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY", "")
    host = os.getenv("LANGFUSE_HOST") or os.getenv("LANGFUSE_BASE_URL")
    return {
        "hasPublicKey": bool(public_key),
        "hasSecretKey": bool(secret_key),
        "hasHost": bool(host),
        "publicKeyPrefix": prefix(public_key),
        "secretKeyPrefix": prefix(secret_key),
        "host": host or None,
    }


def langfuse_credential_formats() -> Dict[str, Any]:
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY", "")
    host = get_langfuse_host()
    errors = []

    public_key_valid = not public_key or public_key.startswith("pk-lf-")
    if not public_key_valid:
        errors.append(f'LANGFUSE_PUBLIC_KEY should start with "pk-lf-". Got: {public_key[:10]}...')

    secret_key_valid = not secret_key or secret_key.startswith("sk-lf-")
    if not secret_key_valid:
        errors.append(f'LANGFUSE_SECRET_KEY should start with "sk-lf-". Got: {secret_key[:10]}...')

    parsed = urlparse(host)
    host_valid = parsed.scheme in ("http", "https") and bool(parsed.netloc)
    if not host_valid:
        errors.append(f"LANGFUSE_HOST must be an http:// or https:// URL. Got: {host}")

    return {
        "publicKeyValid": public_key_valid,
        "secretKeyValid": secret_key_valid,
        "hostValid": host_valid,
        "errors": errors,
    }


def langfuse_connection() -> Dict[str, Any]:
    """A 404 for a prompt that cannot exist still proves the keys were accepted."""
    try:
        fetch_prompt(PROBE_PROMPT_NAME, cache_ttl_seconds=0)
    except NotFoundError:
        return {"success": True, "message": f"Authenticated against {get_langfuse_host()}"}
    except PipelineError as e:
        return {"success": False, "error": e.message, "defaultHost": DEFAULT_LANGFUSE_HOST}
    return {"success": True, "message": f"Authenticated against {get_langfuse_host()}"}


def langfuse_prompt_access(prompt_name: str) -> Dict[str, Any]:
    try:
        prompt = fetch_prompt(prompt_name, cache_ttl_seconds=0)
    except PipelineError as e:
        return {"success": False, "promptName": prompt_name, "error": e.message}
    return {
        "success": True,
        "promptName": prompt_name,
        "version": prompt.version,
        "type": "chat" if isinstance(prompt.prompt, list) else "text",
        "labels": list(prompt.labels or []),
    }


def run_langfuse_diagnostics(prompt_name: Optional[str] = None) -> Dict[str, Any]:
    results = {
        "env": langfuse_env(),
        "credentialFormats": langfuse_credential_formats(),
        "connection": langfuse_connection(),
    }
    if prompt_name:
        results["promptAccess"] = langfuse_prompt_access(prompt_name)
    return results


# --- Routes ---

@router.get("/airtable")
async def airtable_diagnostics(recordId: Optional[str] = None):
    """Usage: GET /api/diagnostics/airtable?recordId=recXXXXXXXXXXXXX (optional)"""
    return {"success": True, "diagnostics": run_airtable_diagnostics(recordId), "timestamp": _timestamp()}


@router.get("/langfuse")
async def langfuse_diagnostics(promptName: Optional[str] = None):
    """Usage: GET /api/diagnostics/langfuse?promptName=outline-blog (optional)"""
    return {"success": True, "diagnostics": run_langfuse_diagnostics(promptName), "timestamp": _timestamp()}


@router.get("/runs")
async def recent_runs(recordId: Optional[str] = None, limit: int = 20, db=Depends(get_db)):
    """Recent worker runs, newest first."""
    runs = RunStore.list_runs(db, record_id=recordId, limit=min(max(limit, 1), 200))
    return {"success": True, "diagnostics": {"runs": runs, "count": len(runs)}, "timestamp": _timestamp()}
