#!/usr/bin/env python3
"""
Airtable record accessor for the content base.

Wraps pyairtable. Records are plain dicts shaped like the API returns them:
{"id": "rec...", "fields": {...}}. pyairtable splits batch writes into
requests of at most 10 records.
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from pyairtable import Api, Table

from src.errors import NotFoundError, UpstreamError

REQUEST_TIMEOUT = (10, 30)  # connect, read seconds

# Content base tables
CONTENT_TABLE = "Content Pipeline"
INDUSTRIES_TABLE = "Industries"
PERSONAS_TABLE = "Personas"
ARTIFACTS_TABLE = "Context Artifacts"

# Content Pipeline fields
FIELD_TITLE = "Title"
FIELD_INDUSTRY = "Industry"
FIELD_PERSONA = "Persona"
FIELD_CONTENT_TYPE = "Content Type"
FIELD_KEYWORDS = "Target Keywords"
FIELD_STATUS = "Status"
FIELD_OUTLINE = "Outline"
FIELD_OUTLINE_FEEDBACK = "Outline Feedback"
FIELD_DRAFT = "Draft"
FIELD_DRAFT_FEEDBACK = "Draft Feedback"
FIELD_FINAL_CONTENT = "Final Content"
FIELD_RUN_ID = os.getenv("AIRTABLE_RUN_ID_FIELD") or "Inngest Run ID"


@dataclass
class Industry:
    id: str
    name: str = ""
    description: str = ""
    pain_points: str = ""
    terminology: str = ""


@dataclass
class Persona:
    id: str
    name: str = ""
    title: str = ""
    goals: str = ""
    pain_points: str = ""
    objections: str = ""


def escape_formula_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class AirtableBase:
    """One Airtable base. Failures come back as NotFoundError / UpstreamError."""

    def __init__(self, api_key: str, base_id: str, api: Optional[Api] = None):
        self.api_key = api_key
        self.base_id = base_id
        self._api = api

    def table(self, name: str) -> Table:
        if self._api is None:
            self._api = Api(self.api_key, timeout=REQUEST_TIMEOUT)
        return self._api.table(self.base_id, name)

    def _call(self, table: str, action: Callable[[Table], Any], record_id: Optional[str] = None) -> Any:
        if not self.api_key or not self.base_id:
            raise UpstreamError(
                "Airtable is not configured. Set the API key and base ID environment variables.",
                service="airtable",
            )

        try:
            return action(self.table(table))
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise self._classify(table, record_id, status, e) from e
        except requests.RequestException as e:
            raise UpstreamError(f"Airtable request failed: {e}", service="airtable") from e

    def _classify(self, table: str, record_id: Optional[str], status: Optional[int], error: Exception):
        if status == 404:
            target = f'record "{record_id}" in table "{table}"' if record_id else f'table "{table}"'
            return NotFoundError(
                f"Airtable could not find {target}",
                causes=[
                    "Does the record exist and is the ID correct?",
                    f'Is the table named exactly "{table}" (case-sensitive)?',
                    f"Is the base ID {self.base_id} the right base?",
                    "Does your API token have access to this base?",
                ],
            )
        if status in (401, 403):
            return UpstreamError(
                f"Airtable rejected the API token ({status}). "
                "Check that it has data.records:read and data.records:write scopes for this base.",
                service="airtable",
                upstream_status=status,
            )
        return UpstreamError(f"Airtable error {status}: {str(error)[:500]}", service="airtable", upstream_status=status)

    def find(self, table: str, record_id: str) -> Dict[str, Any]:
        return self._call(table, lambda t: t.get(record_id), record_id)

    def update(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(table, lambda t: t.update(record_id, fields), record_id)

    def update_many(self, table: str, updates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Update [{"id": ..., "fields": {...}}, ...]."""
        if not updates:
            return []
        return self._call(table, lambda t: t.batch_update(updates))

    def create_many(self, table: str, fields_list: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not fields_list:
            return []
        return self._call(table, lambda t: t.batch_create(fields_list))

    def create(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(table, lambda t: t.create(fields))

    def select(
        self,
        table: str,
        formula: Optional[str] = None,
        max_records: Optional[int] = None,
        fields: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """All matching records; pyairtable follows the pagination offsets."""
        options: Dict[str, Any] = {}
        if formula:
            options["formula"] = formula
        if max_records:
            options["max_records"] = max_records
        if fields:
            options["fields"] = fields
        return self._call(table, lambda t: t.all(**options))


_content_base: Optional[AirtableBase] = None


def content_base() -> AirtableBase:
    global _content_base
    if _content_base is None:
        _content_base = AirtableBase(os.getenv("AIRTABLE_API_KEY", ""), os.getenv("AIRTABLE_BASE_ID", ""))
    return _content_base


# --- Content Pipeline ---

def get_record(record_id: str) -> Dict[str, Any]:
    return content_base().find(CONTENT_TABLE, record_id)


def update_record(record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    print(f"[AIRTABLE] Updating {record_id}: {', '.join(fields.keys())}")
    return content_base().update(CONTENT_TABLE, record_id, fields)


def batch_update_status(record_ids: List[str], status: str) -> int:
    """Set Status on every record, at most 10 per API call. Returns the number updated."""
    updates = [{"id": record_id, "fields": {FIELD_STATUS: status}} for record_id in record_ids]
    updated = content_base().update_many(CONTENT_TABLE, updates)
    print(f"[AIRTABLE] Set Status={status!r} on {len(updated)} records")
    return len(updated)


def linked_id(fields: Dict[str, Any], field_name: str) -> Optional[str]:
    """First id of a linked-record field, or None."""
    value = fields.get(field_name)
    if isinstance(value, list):
        return value[0] if value else None
    return value or None


# --- Reference entities ---

def get_industry(industry_id: str) -> Industry:
    record = content_base().find(INDUSTRIES_TABLE, industry_id)
    fields = record.get("fields", {})
    return Industry(
        id=record["id"],
        name=fields.get("Name", ""),
        description=fields.get("Description", ""),
        pain_points=fields.get("Pain Points", ""),
        terminology=fields.get("Terminology", ""),
    )


def get_persona(persona_id: str) -> Persona:
    record = content_base().find(PERSONAS_TABLE, persona_id)
    fields = record.get("fields", {})
    return Persona(
        id=record["id"],
        name=fields.get("Name", ""),
        title=fields.get("Title", ""),
        goals=fields.get("Goals", ""),
        pain_points=fields.get("Pain Points", ""),
        objections=fields.get("Objections", ""),
    )


def get_active_artifacts() -> Dict[str, str]:
    """Active context artifacts keyed by their Type tag."""
    records = content_base().select(ARTIFACTS_TABLE, formula="{Active} = 1")
    artifacts: Dict[str, str] = {}
    for record in records:
        fields = record.get("fields", {})
        artifact_type = fields.get("Type")
        if artifact_type:
            artifacts[artifact_type] = fields.get("Content", "")
    return artifacts
