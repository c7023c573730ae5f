"""
MongoDB handle for the pipeline runtime (event log, job queue, run log,
webhook delivery guard). The client connects lazily on first operation.
"""

from pymongo import MongoClient

from src.config import MONGODB_URI, MONGODB_DB_NAME

client = MongoClient(MONGODB_URI)
db = client[MONGODB_DB_NAME]


def get_db():
    """FastAPI dependency; overridden in tests."""
    return db
