#!/usr/bin/env python3
"""
Pipeline Runtime - durable events and a polling worker on MongoDB.

send_event() stores the event and queues one job per subscribed function.
The worker claims due jobs atomically, runs them, re-queues failures with
exponential backoff and calls the function's failure handler once its
retries are exhausted. A running job holds a lease that its worker renews;
when the lease lapses another worker takes the job back as a failed attempt.

Run as a standalone process: python worker.py
"""

import asyncio
import traceback
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId

from src.config import env_int
from src.content_pipeline.state import ensure_indexes as state_indexes

WORKER_ID = f"worker-{uuid.uuid4().hex[:8]}"
RETRY_BASE_DELAY = 30  # seconds, doubled per attempt
DEFAULT_LEASE_SECONDS = 300


def ensure_indexes(db):
    db.pipeline_events.create_index([("name", 1), ("data.recordId", 1), ("created_at", 1)])
    db.pipeline_jobs.create_index([("status", 1), ("run_after", 1)])
    db.pipeline_jobs.create_index("event_id")
    db.pipeline_jobs.create_index([("status", 1), ("lease_expires_at", 1)])
    state_indexes(db)


# --- Events ---

def send_events(db, events: List[Dict[str, Any]]) -> List[str]:
    """Store events ({"name", "data"}) and queue a job for every subscribed function."""
    from src.content_pipeline.functions import get_functions_for_event

    event_ids = []
    for event in events:
        now = datetime.utcnow()
        name = event["name"]
        data = dict(event["data"])
        result = db.pipeline_events.insert_one({"name": name, "data": data, "created_at": now})
        event_id = str(result.inserted_id)

        jobs = [
            {
                "event_id": event_id,
                "event_name": name,
                "function_id": fn.function_id,
                "data": data,
                "status": "queued",
                "attempt": 0,
                "max_attempts": fn.retries + 1,
                "run_after": now,
                "created_at": now,
            }
            for fn in get_functions_for_event(name)
        ]
        if jobs:
            db.pipeline_jobs.insert_many(jobs)

        print(f"[EVENTS] {name} ({event_id}) for {data.get('recordId', '-')} -> "
              f"{', '.join(j['function_id'] for j in jobs) or 'no subscribers'}")
        event_ids.append(event_id)
    return event_ids


def send_event(db, name: str, data: Dict[str, Any]) -> str:
    return send_events(db, [{"name": name, "data": data}])[0]


async def wait_for_event(
    db,
    name: str,
    record_id: str,
    since: datetime,
    timeout: timedelta,
    poll_interval: float = 5.0,
) -> Optional[dict]:
    """
    Wait for the first event named `name` for this record stored after `since`.
    Returns the event document, or None once `timeout` has elapsed.
    """
    deadline = datetime.utcnow() + timeout
    query = {"name": name, "data.recordId": record_id, "created_at": {"$gt": since}}
    while True:
        event = db.pipeline_events.find_one(query, sort=[("created_at", 1)])
        if event:
            return event
        if datetime.utcnow() >= deadline:
            return None
        await asyncio.sleep(poll_interval)


# --- Worker ---

def lease_seconds() -> int:
    return env_int("WORKER_LEASE_SECONDS", DEFAULT_LEASE_SECONDS)


def claim_job(db) -> Optional[dict]:
    """Attempt to claim a queued job using atomic find_one_and_update."""
    now = datetime.utcnow()
    job = db.pipeline_jobs.find_one_and_update(
        {
            "status": "queued",
            "run_after": {"$lte": now},
        },
        {
            "$set": {
                "status": "running",
                "claimed_by": WORKER_ID,
                "started_at": now,
                "lease_expires_at": now + timedelta(seconds=lease_seconds()),
            }
        },
        sort=[("run_after", 1)],
        return_document=True,
    )
    if job:
        job["_id"] = str(job["_id"])
        print(f"[{WORKER_ID}] Claimed job {job['_id']} ({job['function_id']} <- {job['event_name']}, "
              f"attempt {job.get('attempt', 0) + 1}/{job.get('max_attempts', 1)})")
    return job


async def _renew_lease(db, job_id: str):
    """Push lease_expires_at forward while this worker still owns the job."""
    lease = lease_seconds()
    while True:
        await asyncio.sleep(lease / 3)
        db.pipeline_jobs.update_one(
            {"_id": ObjectId(job_id), "status": "running", "claimed_by": WORKER_ID},
            {"$set": {"lease_expires_at": datetime.utcnow() + timedelta(seconds=lease)}},
        )


async def recover_stale_jobs(db) -> int:
    """
    Take back jobs whose worker stopped renewing the lease (crash, restart).
    Each one counts as a failed attempt: re-queued with backoff, or failed
    and handed to the function's failure handler when out of attempts.
    """
    recovered = 0
    while True:
        now = datetime.utcnow()
        job = db.pipeline_jobs.find_one_and_update(
            {"status": "running", "lease_expires_at": {"$lt": now}},
            {"$set": {"status": "recovering", "claimed_by": WORKER_ID}},
            return_document=False,
        )
        if not job:
            return recovered
        job["_id"] = str(job["_id"])
        print(f"[{WORKER_ID}] Lease expired on job {job['_id']} ({job['function_id']}), "
              f"last claimed by {job.get('claimed_by')}")
        await _handle_failure(db, job, f"Worker lease expired (claimed by {job.get('claimed_by')})")
        recovered += 1


async def execute_job(db, job: dict):
    """Run one claimed job and record the outcome."""
    from src.content_pipeline.functions import get_function

    job_id = job["_id"]
    function_id = job["function_id"]

    try:
        fn = get_function(
            function_id,
            db=db,
            run_id=job_id,
            attempt=job.get("attempt", 0),
            event_time=job.get("created_at"),
        )
    except ValueError as e:
        _fail_job(db, job_id, str(e))
        return

    heartbeat = asyncio.create_task(_renew_lease(db, job_id))
    try:
        output = await fn.run(job["data"])

        db.pipeline_jobs.update_one(
            {"_id": ObjectId(job_id)},
            {"$set": {"status": "completed", "output_data": output or {}, "completed_at": datetime.utcnow()}}
        )
        print(f"[{WORKER_ID}] Job {job_id} ({function_id}) completed")

    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        print(f"[{WORKER_ID}] Job {job_id} ({function_id}) failed: {error_msg}")
        traceback.print_exc()
        await _handle_failure(db, job, error_msg, fn)
    finally:
        heartbeat.cancel()


async def _handle_failure(db, job: dict, error_msg: str, fn=None):
    """Count a failed attempt: re-queue with backoff, or fail and run the failure handler."""
    job_id = job["_id"]
    function_id = job["function_id"]
    attempt = job.get("attempt", 0) + 1
    max_attempts = job.get("max_attempts", 1)

    if attempt < max_attempts:
        delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
        db.pipeline_jobs.update_one(
            {"_id": ObjectId(job_id)},
            {"$set": {
                "status": "queued",
                "claimed_by": None,
                "lease_expires_at": None,
                "attempt": attempt,
                "run_after": datetime.utcnow() + timedelta(seconds=delay),
                "error": error_msg,
            }}
        )
        print(f"[{WORKER_ID}] Retrying {function_id} in {delay}s (attempt {attempt + 1}/{max_attempts})")
        return

    _fail_job(db, job_id, error_msg)
    try:
        if fn is None:
            from src.content_pipeline.functions import get_function
            fn = get_function(function_id, db=db, run_id=job_id, attempt=attempt - 1,
                              event_time=job.get("created_at"))
        await fn.on_failure(job["data"], error_msg)
    except Exception as handler_error:
        print(f"[{WORKER_ID}] Failure handler for {function_id} raised: {handler_error}")
        traceback.print_exc()


def _fail_job(db, job_id: str, error: str):
    db.pipeline_jobs.update_one(
        {"_id": ObjectId(job_id)},
        {"$set": {"status": "failed", "error": error, "completed_at": datetime.utcnow()}}
    )


async def poll_and_execute(db=None):
    """Main worker loop: poll for jobs, claim, run them as concurrent tasks."""
    if db is None:
        from src.database import db as default_db
        db = default_db

    concurrency = env_int("WORKER_CONCURRENCY", 4)
    poll_interval = env_int("WORKER_POLL_INTERVAL", 2)
    print(f"[{WORKER_ID}] Pipeline worker started, concurrency {concurrency}, polling every {poll_interval}s, "
          f"lease {lease_seconds()}s")

    ensure_indexes(db)
    await recover_stale_jobs(db)
    running = set()

    while True:
        try:
            if len(running) >= concurrency:
                await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                continue

            job = claim_job(db)
            if job:
                task = asyncio.create_task(execute_job(db, job))
                running.add(task)
                task.add_done_callback(running.discard)
            else:
                await recover_stale_jobs(db)
                await asyncio.sleep(poll_interval)
        except KeyboardInterrupt:
            print(f"[{WORKER_ID}] Shutting down")
            break
        except Exception as e:
            print(f"[{WORKER_ID}] Poll error: {e}")
            traceback.print_exc()
            await asyncio.sleep(poll_interval)
