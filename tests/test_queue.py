"""Behaviour of the relational job queue: claim, complete, fail and delays."""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from callreview.models.job import JobStage, JobStatus
from callreview.queue.postgres import PostgresJobQueue
from callreview.queue.types import MAX_ERROR_LENGTH, NewJob

from fakes import pipeline_harness


def _job(org_id, call_id=None, stage=JobStage.EXTRACT_AUDIO, **kwargs) -> NewJob:
    return NewJob(
        org_id=org_id,
        call_id=call_id or uuid4(),
        stage=stage,
        payload=kwargs.pop("payload", {"fileName": "call.mp3"}),
        **kwargs,
    )


def test_claim_marks_job_processing_and_is_exclusive():
    async def scenario():
        async with pipeline_harness() as h:
            queued = await h.queue.enqueue(_job(h.org_id))
            assert queued.status is JobStatus.QUEUED
            assert queued.attempts == 0

            claimed = await h.queue.claim("worker-a")
            assert claimed is not None
            assert claimed.id == queued.id
            assert claimed.status is JobStatus.PROCESSING
            assert claimed.locked_by == "worker-a"
            assert claimed.locked_at == h.clock()
            assert claimed.payload == {"fileName": "call.mp3"}

            assert await h.queue.claim("worker-b") is None

    asyncio.run(scenario())


def test_claim_on_empty_queue_returns_none():
    async def scenario():
        async with pipeline_harness() as h:
            assert await h.queue.claim("worker-a") is None

    asyncio.run(scenario())


def test_delayed_job_is_not_claimable_before_available_at():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue_at(_job(h.org_id), h.clock() + timedelta(seconds=30))
            assert await h.queue.claim("worker-a") is None

            h.clock.advance(29)
            assert await h.queue.claim("worker-a") is None

            h.clock.advance(1)
            assert await h.queue.claim("worker-a") is not None

    asyncio.run(scenario())


def test_claim_takes_oldest_available_job_first():
    async def scenario():
        async with pipeline_harness() as h:
            later = await h.queue.enqueue_at(_job(h.org_id), h.clock() - timedelta(seconds=5))
            earlier = await h.queue.enqueue_at(_job(h.org_id), h.clock() - timedelta(seconds=60))

            first = await h.queue.claim("worker-a")
            second = await h.queue.claim("worker-a")
            assert [first.id, second.id] == [earlier.id, later.id]

    asyncio.run(scenario())


def test_claim_can_be_narrowed_to_call_and_stage():
    async def scenario():
        async with pipeline_harness() as h:
            call_id = uuid4()
            await h.queue.enqueue(_job(h.org_id))
            await h.queue.enqueue(_job(h.org_id, call_id, stage=JobStage.ANALYZE))
            wanted = await h.queue.enqueue(_job(h.org_id, call_id, stage=JobStage.TRANSCRIBE_POLL))

            claimed = await h.queue.claim(
                "driver", call_id=call_id, stage=JobStage.TRANSCRIBE_POLL
            )
            assert claimed is not None
            assert claimed.id == wanted.id
            assert await h.queue.claim(
                "driver", call_id=call_id, stage=JobStage.TRANSCRIBE_POLL
            ) is None

    asyncio.run(scenario())


def test_complete_marks_done_and_job_is_never_claimed_again():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue(_job(h.org_id))
            claimed = await h.queue.claim("worker-a")
            await h.queue.complete(claimed.id)

            stored = await h.queue.get(claimed.id)
            assert stored.status is JobStatus.DONE
            h.clock.advance(3600)
            assert await h.queue.claim("worker-a") is None

    asyncio.run(scenario())


def test_fail_requeues_with_backoff_until_attempts_run_out():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue(_job(h.org_id, max_attempts=2))
            claimed = await h.queue.claim("worker-a")

            status = await h.queue.fail(claimed.id, "boom", 30)
            assert status is JobStatus.QUEUED
            stored = await h.queue.get(claimed.id)
            assert stored.attempts == 1
            assert stored.last_error == "boom"
            assert stored.available_at == h.clock() + timedelta(seconds=30)
            assert await h.queue.claim("worker-a") is None

            h.clock.advance(30)
            retried = await h.queue.claim("worker-a")
            assert retried.id == claimed.id
            retry_available_at = retried.available_at

            status = await h.queue.fail(retried.id, "boom again", 60)
            assert status is JobStatus.FAILED
            stored = await h.queue.get(claimed.id)
            assert stored.status is JobStatus.FAILED
            assert stored.attempts == 2
            assert stored.available_at == retry_available_at
            assert stored.last_error == "boom again"

    asyncio.run(scenario())


def test_terminal_fail_skips_remaining_attempts():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue(_job(h.org_id, max_attempts=5))
            claimed = await h.queue.claim("worker-a")

            status = await h.queue.fail(claimed.id, "unsupported", 30, terminal=True)
            assert status is JobStatus.FAILED
            stored = await h.queue.get(claimed.id)
            assert stored.attempts == 1
            assert stored.available_at == claimed.available_at

    asyncio.run(scenario())


def test_fail_truncates_long_errors():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue(_job(h.org_id))
            claimed = await h.queue.claim("worker-a")
            await h.queue.fail(claimed.id, "x" * (MAX_ERROR_LENGTH + 500), 30)
            stored = await h.queue.get(claimed.id)
            assert len(stored.last_error) == MAX_ERROR_LENGTH

    asyncio.run(scenario())


def test_fail_unknown_job_returns_none():
    async def scenario():
        async with pipeline_harness() as h:
            assert await h.queue.fail(uuid4(), "missing", 30) is None

    asyncio.run(scenario())


def test_counts_by_status_reports_every_status():
    async def scenario():
        async with pipeline_harness() as h:
            await h.queue.enqueue(_job(h.org_id))
            await h.queue.enqueue(_job(h.org_id))
            claimed = await h.queue.claim("worker-a")
            await h.queue.complete(claimed.id)

            counts = await h.queue.counts_by_status()
            assert counts == {"queued": 1, "processing": 0, "done": 1, "failed": 0}

    asyncio.run(scenario())


requires_postgres = pytest.mark.skipif(
    not os.getenv("TEST_DATABASE_URL"),
    reason="set TEST_DATABASE_URL to a PostgreSQL database to run",
)


def test_enqueue_in_delays_from_the_queue_clock():
    async def scenario():
        async with pipeline_harness() as h:
            delayed = await h.queue.enqueue_in(_job(h.org_id), 10)
            assert delayed.available_at == h.clock() + timedelta(seconds=10)
            assert await h.queue.claim("worker-a") is None

            h.clock.advance(10)
            assert (await h.queue.claim("worker-a")).id == delayed.id

    asyncio.run(scenario())


def test_jobs_without_max_attempts_take_the_queue_default():
    async def scenario():
        async with pipeline_harness() as h:
            queue = PostgresJobQueue(h.session_factory, clock=h.clock, default_max_attempts=3)
            default = await queue.enqueue(_job(h.org_id))
            explicit = await queue.enqueue(_job(h.org_id, max_attempts=9))
            assert default.max_attempts == 3
            assert explicit.max_attempts == 9

    asyncio.run(scenario())


def test_production_statements_use_the_database_clock():
    queue = PostgresJobQueue(None)
    compiled = queue._claim_statement("worker-a").compile(dialect=postgresql.dialect())
    sql = str(compiled)

    assert "now()" in sql
    assert "FOR UPDATE SKIP LOCKED" in sql
    assert not any(isinstance(value, datetime) for value in compiled.params.values())


@requires_postgres
def test_concurrent_claims_never_share_a_job_on_postgres():
    from sqlalchemy.ext.asyncio import create_async_engine

    from callreview.database import create_session_factory
    from callreview.models import Base

    async def scenario():
        engine = create_async_engine(os.environ["TEST_DATABASE_URL"])
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            queue = PostgresJobQueue(create_session_factory(engine))
            org_id, call_id = uuid4(), uuid4()
            for _ in range(20):
                await queue.enqueue(_job(org_id, call_id))

            async def drain(worker_id):
                claimed = []
                while True:
                    job = await queue.claim(worker_id, call_id=call_id)
                    if job is None:
                        return claimed
                    claimed.append(job.id)

            results = await asyncio.gather(*(drain(f"worker-{n}") for n in range(4)))
            all_ids = [job_id for ids in results for job_id in ids]
            assert len(all_ids) == 20
            assert len(set(all_ids)) == 20
        finally:
            await engine.dispose()

    asyncio.run(scenario())


@requires_postgres
def test_delayed_jobs_wait_for_the_database_clock_on_postgres():
    from sqlalchemy.ext.asyncio import create_async_engine

    from callreview.database import create_session_factory
    from callreview.models import Base

    async def scenario():
        engine = create_async_engine(os.environ["TEST_DATABASE_URL"])
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            session_factory = create_session_factory(engine)
            producer = PostgresJobQueue(session_factory)
            other_host = PostgresJobQueue(session_factory)
            call_id = uuid4()

            delayed = await producer.enqueue_in(_job(uuid4(), call_id), 30)
            assert await other_host.claim("worker-b", call_id=call_id) is None

            immediate = await producer.enqueue(_job(uuid4(), call_id))
            claimed = await other_host.claim("worker-b", call_id=call_id)
            assert claimed.id == immediate.id
            assert claimed.id != delayed.id
        finally:
            await engine.dispose()

    asyncio.run(scenario())
