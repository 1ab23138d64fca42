"""Relational job queue with exclusive claim, retry and delayed enqueue.

The claim is a single ``UPDATE ... WHERE id IN (SELECT ... FOR UPDATE SKIP
LOCKED LIMIT 1) RETURNING *`` statement, so concurrent workers polling the same
table never receive the same row. On PostgreSQL the row lock is what makes
this exclusive; other dialects (SQLite in tests) ignore the locking clause and
rely on their own write serialization.

Eligibility and backoff are computed from the database clock (``now()``), so
workers on hosts with drifting clocks agree on when a job becomes available.
Tests inject a ``clock`` instead, which is bound as a literal timestamp.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Interval, case, func, insert, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.dml import Update
from sqlalchemy.sql.elements import ColumnElement

from callreview.models.job import JobStage, JobStatus, ProcessingJob

from .types import DEFAULT_MAX_ATTEMPTS, MAX_ERROR_LENGTH, NewJob, QueueJob

logger = logging.getLogger(__name__)

_jobs = ProcessingJob.__table__


class PostgresJobQueue:
    """Durable work queue backed by the ``processing_jobs`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Optional[Callable[[], datetime]] = None,
        default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self.default_max_attempts = default_max_attempts

    def _now(self) -> ColumnElement[datetime]:
        if self._clock is None:
            return func.now()
        return literal(self._clock(), DateTime(timezone=True))

    def _now_plus(self, seconds: float) -> ColumnElement[datetime]:
        delay = timedelta(seconds=seconds)
        if self._clock is None:
            return func.now() + literal(delay, Interval())
        return literal(self._clock() + delay, DateTime(timezone=True))

    async def enqueue(self, job: NewJob) -> QueueJob:
        """Insert a job that is eligible immediately."""

        return await self._insert(job, self._now())

    async def enqueue_at(self, job: NewJob, available_at: datetime) -> QueueJob:
        """Insert a job that becomes eligible at ``available_at``."""

        return await self._insert(job, literal(available_at, DateTime(timezone=True)))

    async def enqueue_in(self, job: NewJob, delay_seconds: float) -> QueueJob:
        """Insert a job that becomes eligible ``delay_seconds`` from now."""

        return await self._insert(job, self._now_plus(max(0.0, delay_seconds)))

    async def _insert(self, job: NewJob, available_at: ColumnElement[datetime]) -> QueueJob:
        now = self._now()
        stmt = (
            insert(_jobs)
            .values(
                id=uuid4(),
                org_id=job.org_id,
                call_id=job.call_id,
                stage=JobStage(job.stage).value,
                status=JobStatus.QUEUED.value,
                payload=dict(job.payload),
                attempts=0,
                max_attempts=job.max_attempts or self.default_max_attempts,
                available_at=available_at,
                created_at=now,
                updated_at=now,
            )
            .returning(*_jobs.c)
        )
        async with self._session_factory() as session, session.begin():
            row = (await session.execute(stmt)).mappings().one()
        queued = QueueJob.from_row(row)
        logger.info(
            "Enqueued job id=%s stage=%s call_id=%s available_at=%s",
            queued.id,
            queued.stage.value,
            queued.call_id,
            queued.available_at.isoformat(),
        )
        return queued

    async def claim(
        self,
        worker_id: str,
        *,
        call_id: UUID | None = None,
        stage: JobStage | None = None,
    ) -> QueueJob | None:
        """Atomically take the oldest eligible job, or return None.

        ``call_id`` and ``stage`` narrow the candidate set for drivers that
        work a single call synchronously.
        """

        stmt = self._claim_statement(worker_id, call_id=call_id, stage=stage)
        async with self._session_factory() as session, session.begin():
            row = (await session.execute(stmt)).mappings().first()
        if row is None:
            return None
        return QueueJob.from_row(row)

    def _claim_statement(
        self,
        worker_id: str,
        *,
        call_id: UUID | None = None,
        stage: JobStage | None = None,
    ) -> Update:
        now = self._now()
        candidate = (
            select(_jobs.c.id)
            .where(
                _jobs.c.status == JobStatus.QUEUED.value,
                _jobs.c.available_at <= now,
            )
            .order_by(_jobs.c.available_at.asc(), _jobs.c.created_at.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        if call_id is not None:
            candidate = candidate.where(_jobs.c.call_id == call_id)
        if stage is not None:
            candidate = candidate.where(_jobs.c.stage == JobStage(stage).value)

        return (
            update(_jobs)
            .where(_jobs.c.id.in_(candidate.scalar_subquery()))
            .values(
                status=JobStatus.PROCESSING.value,
                locked_by=worker_id,
                locked_at=now,
                updated_at=now,
            )
            .returning(*_jobs.c)
        )

    async def complete(self, job_id: UUID) -> None:
        """Mark a claimed job as done."""

        now = self._now()
        stmt = (
            update(_jobs)
            .where(_jobs.c.id == job_id)
            .values(status=JobStatus.DONE.value, updated_at=now)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

    async def fail(
        self,
        job_id: UUID,
        error: str,
        backoff_seconds: float,
        *,
        terminal: bool = False,
    ) -> JobStatus | None:
        """Record a failed attempt and either requeue with backoff or fail terminally.

        The job turns ``failed`` when ``attempts + 1 >= max_attempts`` (or when
        ``terminal`` is set); ``available_at`` is left untouched in that case.
        Returns the resulting status, or None when the job does not exist.
        """

        now = self._now()
        retry_at = self._now_plus(max(0, int(backoff_seconds)))
        message = (error or "")[:MAX_ERROR_LENGTH]

        if terminal:
            exhausted = literal(True)
        else:
            exhausted = _jobs.c.attempts + 1 >= _jobs.c.max_attempts

        stmt = (
            update(_jobs)
            .where(_jobs.c.id == job_id)
            .values(
                status=case(
                    (exhausted, JobStatus.FAILED.value),
                    else_=JobStatus.QUEUED.value,
                ),
                attempts=_jobs.c.attempts + 1,
                available_at=case(
                    (exhausted, _jobs.c.available_at),
                    else_=retry_at,
                ),
                last_error=message,
                updated_at=now,
            )
            .returning(_jobs.c.status)
        )
        async with self._session_factory() as session, session.begin():
            status = (await session.execute(stmt)).scalar_one_or_none()
        if status is None:
            logger.warning("Cannot fail unknown job id=%s", job_id)
            return None
        return JobStatus(status)

    async def get(self, job_id: UUID) -> QueueJob | None:
        """Load a job snapshot by id."""

        async with self._session_factory() as session:
            row = (
                await session.execute(select(_jobs).where(_jobs.c.id == job_id))
            ).mappings().first()
        return QueueJob.from_row(row) if row is not None else None

    async def counts_by_status(self) -> dict[str, int]:
        """Return the number of jobs per status for health reporting."""

        stmt = select(_jobs.c.status, func.count()).group_by(_jobs.c.status)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
        counts = {status.value: 0 for status in JobStatus}
        for status, count in rows:
            counts[status] = int(count)
        return counts


__all__ = ["PostgresJobQueue"]
