"""
Shared fixtures for the content pipeline test suite.

Environment variables are set before any project module is imported, so the
app boots without a .env file and nothing talks to a real service.
"""

import os

os.environ.setdefault("WEBHOOK_SECRET", "test-secret")
os.environ.setdefault("AIRTABLE_API_KEY", "patTestKey")
os.environ.setdefault("AIRTABLE_BASE_ID", "appTestBase")
os.environ.setdefault("AIRTABLE_KEYWORDS_BASE_ID", "appKeywordBase")
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test")
os.environ.setdefault("LANGFUSE_PUBLIC_KEY", "pk-lf-test")
os.environ.setdefault("LANGFUSE_SECRET_KEY", "sk-lf-test")
os.environ.setdefault("LANGFUSE_HOST", "https://langfuse.test")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")
os.environ.setdefault("DATAFORSEO_LOGIN", "login")
os.environ.setdefault("DATAFORSEO_PASSWORD", "password")

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app import app
from src.database import get_db

WEBHOOK_HEADERS = {"X-Webhook-Secret": "test-secret"}


@pytest.fixture
def fake_db():
    """MagicMock standing in for the pymongo database."""
    return MagicMock()


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_db] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return dict(WEBHOOK_HEADERS)


def make_record(record_id="recABC123", **fields):
    return {"id": record_id, "fields": fields}


@pytest.fixture
def content_record():
    return make_record(
        "recABC123",
        **{
            "Title": "How pSEO scales content",
            "Content Type": "blog",
            "Industry": ["recIND1"],
            "Persona": ["recPER1"],
            "Target Keywords": "pseo, programmatic seo",
            "Status": "Outline Approved",
            "Outline": "1. Intro\n2. Body",
            "Outline Feedback": "Shorter intro",
        },
    )


@pytest.fixture
def record_factory():
    return make_record
