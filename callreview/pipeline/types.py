"""Dependencies handed to every stage handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callreview.queue.postgres import PostgresJobQueue
from callreview.queue.types import QueueJob
from callreview.services.analysis_prompt import AnalysisPrompt
from callreview.services.llm_client import AnalysisGenerator
from callreview.services.repositories import ArtifactRepository, CallRepository
from callreview.services.speechkit import TranscriptionProvider
from callreview.services.storage import BlobStore
from callreview.services.transcoder import FfmpegTranscoder

# Stage handlers log here; the entry point routes it to its own file.
pipeline_logger = logging.getLogger("callreview.pipeline")


@dataclass
class StageContext:
    """Explicitly constructed collaborators owned by the process entry point."""

    queue: PostgresJobQueue
    storage: BlobStore
    bucket: str
    transcoder: FfmpegTranscoder
    provider: TranscriptionProvider
    generator: AnalysisGenerator
    prompt: AnalysisPrompt
    session_factory: async_sessionmaker[AsyncSession]
    artifacts: ArtifactRepository
    calls: CallRepository
    poll_interval_seconds: float = 10.0
    max_poll_attempts: int = 50
    scratch_dir: Optional[str] = None


StageHandler = Callable[[QueueJob, StageContext], Awaitable[None]]


__all__ = ["StageContext", "StageHandler", "pipeline_logger"]
