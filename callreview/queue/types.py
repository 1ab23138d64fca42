"""Value objects exchanged with the job queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import UUID

from callreview.models.job import JobStage, JobStatus

DEFAULT_MAX_ATTEMPTS = 5
MAX_ERROR_LENGTH = 2000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from drivers that drop tzinfo."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class NewJob:
    """Job description handed to ``enqueue``/``enqueue_at``/``enqueue_in``.

    ``max_attempts`` left as None takes the queue's configured default.
    """

    org_id: UUID
    call_id: UUID
    stage: JobStage
    payload: Mapping[str, Any] = field(default_factory=dict)
    max_attempts: Optional[int] = None


@dataclass(frozen=True)
class QueueJob:
    """Immutable snapshot of a job row as returned by ``claim``."""

    id: UUID
    org_id: UUID
    call_id: UUID
    stage: JobStage
    status: JobStatus
    payload: Mapping[str, Any]
    attempts: int
    max_attempts: int
    available_at: datetime
    locked_by: str | None = None
    locked_at: datetime | None = None
    last_error: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "QueueJob":
        return cls(
            id=row["id"],
            org_id=row["org_id"],
            call_id=row["call_id"],
            stage=JobStage(row["stage"]),
            status=JobStatus(row["status"]),
            payload=dict(row["payload"] or {}),
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            available_at=as_utc(row["available_at"]),
            locked_by=row.get("locked_by"),
            locked_at=as_utc(row.get("locked_at")),
            last_error=row.get("last_error"),
        )


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "MAX_ERROR_LENGTH",
    "NewJob",
    "QueueJob",
    "as_utc",
    "utcnow",
]
