"""Call records the pipeline reports progress on."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Uuid, func

from .base import Base


class CallStatus(str, Enum):
    """Lifecycle states of an uploaded call."""

    QUEUED = "queued"
    PROCESSING = "processing"
    TRANSCRIBED = "transcribed"
    ANALYZED = "analyzed"
    FAILED = "failed"


class Call(Base):
    __tablename__ = "calls"

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, nullable=False, index=True)
    source_filename = Column(String(512), nullable=True)
    status = Column(String(32), nullable=False, default=CallStatus.QUEUED.value)
    upload_status = Column(String(32), nullable=True)
    upload_progress = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


__all__ = ["Call", "CallStatus"]
