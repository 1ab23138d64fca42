"""Registered pointers to blobs produced by pipeline stages."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import BigInteger, Column, DateTime, String, UniqueConstraint, Uuid, func

from .base import Base


class ArtifactKind(str, Enum):
    AUDIO = "audio"
    TRANSCRIPT = "transcript"
    ANALYSIS = "analysis"


class Artifact(Base):
    """Stored output of a stage; registration is idempotent per path."""

    __tablename__ = "artifacts"
    __table_args__ = (
        UniqueConstraint("call_id", "kind", "storage_path", name="uq_artifacts_call_kind_path"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, nullable=False, index=True)
    call_id = Column(Uuid, nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    storage_path = Column(String(1024), nullable=False)
    content_type = Column(String(255), nullable=True)
    size_bytes = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


__all__ = ["Artifact", "ArtifactKind"]
