"""Processing job rows used as the durable work queue."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, Uuid, func

from .base import Base, JsonType


class JobStage(str, Enum):
    """Closed set of pipeline stages a job can target."""

    EXTRACT_AUDIO = "extract_audio"
    TRANSCRIBE_START = "transcribe_start"
    TRANSCRIBE_POLL = "transcribe_poll"
    ANALYZE = "analyze"
    PERSIST_ANALYSIS = "persist_analysis"


class JobStatus(str, Enum):
    """Lifecycle states of a processing job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class ProcessingJob(Base):
    """One unit of pipeline work for a call."""

    __tablename__ = "processing_jobs"
    __table_args__ = (
        Index("ix_processing_jobs_status_available_at", "status", "available_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, nullable=False, index=True)
    call_id = Column(Uuid, nullable=False, index=True)
    stage = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=JobStatus.QUEUED.value)
    payload = Column(JsonType, nullable=False, default=dict)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=5)
    available_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    locked_by = Column(String(255), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


__all__ = ["ProcessingJob", "JobStage", "JobStatus"]
