"""Tests for the MongoDB-backed event queue and worker."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId

from src.content_pipeline import runtime

JOB_ID = str(ObjectId())


def job(function_id="generate-outline", attempt=0, max_attempts=4):
    return {
        "_id": JOB_ID,
        "event_name": "content/pipeline.start",
        "function_id": function_id,
        "data": {"recordId": "rec1"},
        "attempt": attempt,
        "max_attempts": max_attempts,
        "created_at": datetime(2026, 1, 1),
    }


class TestSendEvents:
    def test_queues_one_job_per_subscriber(self, monkeypatch):
        monkeypatch.delenv("ENABLE_LEGACY_PIPELINE", raising=False)
        db = MagicMock()
        db.pipeline_events.insert_one.return_value.inserted_id = ObjectId()

        runtime.send_event(db, "content/pipeline.start", {"recordId": "rec1"})

        jobs = db.pipeline_jobs.insert_many.call_args[0][0]
        assert [j["function_id"] for j in jobs] == ["generate-outline"]
        assert jobs[0]["status"] == "queued"
        assert jobs[0]["max_attempts"] == 4

    def test_event_without_subscribers_is_still_stored(self):
        db = MagicMock()
        db.pipeline_events.insert_one.return_value.inserted_id = ObjectId()

        runtime.send_event(db, "content/unknown", {"recordId": "rec1"})

        db.pipeline_events.insert_one.assert_called_once()
        db.pipeline_jobs.insert_many.assert_not_called()


class TestClaimJob:
    def test_claims_due_queued_job(self):
        db = MagicMock()
        db.pipeline_jobs.find_one_and_update.return_value = dict(job(), _id=ObjectId(JOB_ID))

        claimed = runtime.claim_job(db)

        assert claimed["_id"] == JOB_ID
        query = db.pipeline_jobs.find_one_and_update.call_args[0][0]
        assert query["status"] == "queued"
        assert "$lte" in query["run_after"]

    def test_claim_sets_lease(self, monkeypatch):
        monkeypatch.setenv("WORKER_LEASE_SECONDS", "120")
        db = MagicMock()
        db.pipeline_jobs.find_one_and_update.return_value = dict(job(), _id=ObjectId(JOB_ID))

        before = datetime.utcnow()
        runtime.claim_job(db)

        update = db.pipeline_jobs.find_one_and_update.call_args[0][1]["$set"]
        assert update["claimed_by"] == runtime.WORKER_ID
        assert update["lease_expires_at"] >= before + timedelta(seconds=120)

    def test_nothing_to_claim(self):
        db = MagicMock()
        db.pipeline_jobs.find_one_and_update.return_value = None
        assert runtime.claim_job(db) is None


class TestExecuteJob:
    @pytest.mark.asyncio
    @patch("src.content_pipeline.functions.get_function")
    async def test_success(self, mock_get_function):
        fn = MagicMock(retries=3)
        fn.run = AsyncMock(return_value={"status": "outline-ready"})
        mock_get_function.return_value = fn
        db = MagicMock()

        await runtime.execute_job(db, job())

        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "completed"
        assert update["output_data"] == {"status": "outline-ready"}
        assert mock_get_function.call_args.kwargs["run_id"] == JOB_ID

    @pytest.mark.asyncio
    @patch("src.content_pipeline.functions.get_function")
    async def test_failure_requeues_with_backoff(self, mock_get_function):
        fn = MagicMock(retries=3)
        fn.run = AsyncMock(side_effect=RuntimeError("boom"))
        fn.on_failure = AsyncMock()
        mock_get_function.return_value = fn
        db = MagicMock()

        before = datetime.utcnow()
        await runtime.execute_job(db, job(attempt=1))

        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "queued"
        assert update["attempt"] == 2
        assert update["run_after"] >= before + timedelta(seconds=60)
        fn.on_failure.assert_not_called()

    @pytest.mark.asyncio
    @patch("src.content_pipeline.functions.get_function")
    async def test_exhausted_calls_failure_handler(self, mock_get_function):
        fn = MagicMock(retries=3)
        fn.run = AsyncMock(side_effect=RuntimeError("boom"))
        fn.on_failure = AsyncMock()
        mock_get_function.return_value = fn
        db = MagicMock()

        await runtime.execute_job(db, job(attempt=3, max_attempts=4))

        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "failed"
        fn.on_failure.assert_awaited_once_with({"recordId": "rec1"}, "RuntimeError: boom")

    @pytest.mark.asyncio
    async def test_unknown_function_fails_job(self):
        db = MagicMock()
        await runtime.execute_job(db, job(function_id="no-such-function"))
        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "failed"
        assert "Unknown function" in update["error"]


class TestWaitForEvent:
    @pytest.mark.asyncio
    async def test_returns_matching_event(self):
        db = MagicMock()
        event = {"name": "content/outline.approved", "data": {"recordId": "rec1"}}
        db.pipeline_events.find_one.return_value = event
        since = datetime(2026, 1, 1)

        found = await runtime.wait_for_event(db, "content/outline.approved", "rec1", since, timedelta(days=30))

        assert found is event
        query = db.pipeline_events.find_one.call_args[0][0]
        assert query == {"name": "content/outline.approved", "data.recordId": "rec1", "created_at": {"$gt": since}}

    @pytest.mark.asyncio
    async def test_times_out(self):
        db = MagicMock()
        db.pipeline_events.find_one.return_value = None

        found = await runtime.wait_for_event(
            db, "content/outline.approved", "rec1", datetime(2026, 1, 1), timedelta(0), poll_interval=0,
        )
        assert found is None


class TestRecoverStaleJobs:
    @pytest.mark.asyncio
    async def test_expired_lease_requeues_as_failed_attempt(self):
        db = MagicMock()
        stale = dict(job(attempt=0), _id=ObjectId(JOB_ID), status="running", claimed_by="worker-dead")
        db.pipeline_jobs.find_one_and_update.side_effect = [stale, None]

        recovered = await runtime.recover_stale_jobs(db)

        assert recovered == 1
        query = db.pipeline_jobs.find_one_and_update.call_args_list[0][0][0]
        assert query["status"] == "running"
        assert "$lt" in query["lease_expires_at"]
        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "queued"
        assert update["attempt"] == 1
        assert "lease expired" in update["error"]

    @pytest.mark.asyncio
    @patch("src.content_pipeline.functions.get_function")
    async def test_expired_lease_on_last_attempt_runs_failure_handler(self, mock_get_function):
        fn = MagicMock()
        fn.on_failure = AsyncMock()
        mock_get_function.return_value = fn
        db = MagicMock()
        stale = dict(job(attempt=3, max_attempts=4), _id=ObjectId(JOB_ID), status="running", claimed_by="worker-dead")
        db.pipeline_jobs.find_one_and_update.side_effect = [stale, None]

        await runtime.recover_stale_jobs(db)

        update = db.pipeline_jobs.update_one.call_args[0][1]["$set"]
        assert update["status"] == "failed"
        assert mock_get_function.call_args[0][0] == "generate-outline"
        fn.on_failure.assert_awaited_once()
        assert fn.on_failure.call_args[0][0] == {"recordId": "rec1"}

    @pytest.mark.asyncio
    async def test_nothing_stale(self):
        db = MagicMock()
        db.pipeline_jobs.find_one_and_update.return_value = None

        assert await runtime.recover_stale_jobs(db) == 0
        db.pipeline_jobs.update_one.assert_not_called()


class TestRenewLease:
    @pytest.mark.asyncio
    async def test_renews_only_while_owned(self, monkeypatch):
        monkeypatch.setenv("WORKER_LEASE_SECONDS", "3")
        db = MagicMock()
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) > 1:
                raise asyncio.CancelledError()

        with patch.object(runtime.asyncio, "sleep", fake_sleep):
            with pytest.raises(asyncio.CancelledError):
                await runtime._renew_lease(db, JOB_ID)

        assert sleeps[0] == 1
        query = db.pipeline_jobs.update_one.call_args[0][0]
        assert query == {"_id": ObjectId(JOB_ID), "status": "running", "claimed_by": runtime.WORKER_ID}
