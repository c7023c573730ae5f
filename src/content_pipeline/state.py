"""
Persistent runtime state in MongoDB.

- Run log: one document per function attempt (inputs, outputs, errors), the
  place an operator looks when a record is stuck.
- Delivery guard: remembers recent webhook deliveries so a duplicate webhook
  for the same record does not start the same stage twice.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from pymongo.errors import DuplicateKeyError


def ensure_indexes(db):
    db.pipeline_runs.create_index("run_id")
    db.pipeline_runs.create_index([("record_id", 1), ("started_at", -1)])
    db.webhook_deliveries.create_index("key", unique=True)
    db.webhook_deliveries.create_index("expires_at", expireAfterSeconds=0)


# --- Run log ---

class RunStore:
    """Run history for pipeline functions."""

    @staticmethod
    def start(db, run_id: str, function_id: str, event_name: str, data: dict, attempt: int = 0) -> str:
        now = datetime.utcnow()
        result = db.pipeline_runs.insert_one({
            "run_id": run_id,
            "function_id": function_id,
            "event_name": event_name,
            "record_id": data.get("recordId"),
            "input": data,
            "attempt": attempt,
            "status": "running",
            "started_at": now,
        })
        return str(result.inserted_id)

    @staticmethod
    def complete(db, run_id: str, attempt: int, output: Optional[dict]):
        db.pipeline_runs.update_one(
            {"run_id": run_id, "attempt": attempt},
            {"$set": {"status": "completed", "output": output or {}, "completed_at": datetime.utcnow()}},
        )

    @staticmethod
    def fail(db, run_id: str, attempt: int, error: str):
        db.pipeline_runs.update_one(
            {"run_id": run_id, "attempt": attempt},
            {"$set": {"status": "failed", "error": error, "completed_at": datetime.utcnow()}},
        )

    @staticmethod
    def list_runs(db, record_id: Optional[str] = None, limit: int = 50) -> List[dict]:
        """Most recent runs first, optionally for one content item."""
        query: Dict[str, Any] = {}
        if record_id:
            query["record_id"] = record_id
        runs = list(db.pipeline_runs.find(query).sort("started_at", -1).limit(limit))
        for r in runs:
            r["_id"] = str(r["_id"])
        return runs


# --- Webhook delivery guard ---

class DeliveryGuard:
    """
    At most one accepted delivery per (event name, record id) within a window.

    The unique index on "key" makes the claim atomic across app instances;
    the TTL index on "expires_at" lets Mongo drop old claims.
    """

    @staticmethod
    def delivery_key(event_name: str, record_id: str) -> str:
        return f"{event_name}:{record_id}"

    @staticmethod
    def claim(db, event_name: str, record_id: str, window_seconds: int) -> bool:
        """True if this delivery is new; False if a matching one arrived within the window."""
        if window_seconds <= 0:
            return True

        now = datetime.utcnow()
        key = DeliveryGuard.delivery_key(event_name, record_id)

        # TTL cleanup runs about once a minute, so expire stale claims eagerly.
        db.webhook_deliveries.delete_one({"key": key, "expires_at": {"$lte": now}})
        try:
            db.webhook_deliveries.insert_one({
                "key": key,
                "event_name": event_name,
                "record_id": record_id,
                "received_at": now,
                "expires_at": now + timedelta(seconds=window_seconds),
            })
        except DuplicateKeyError:
            return False
        return True

    @staticmethod
    def release(db, event_name: str, record_id: str):
        """Forget a claim, e.g. when the request failed after claiming."""
        db.webhook_deliveries.delete_one({"key": DeliveryGuard.delivery_key(event_name, record_id)})
