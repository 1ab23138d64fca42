"""Synchronous transcription driver for a single call.

Runs the call's queued ``transcribe_poll`` jobs in-process until the
transcript artifact appears or a wall-clock deadline passes. Used by operator
scripts when no worker is running.
"""

from __future__ import annotations

import asyncio
import logging
import time
from uuid import UUID

from callreview.errors import TranscriptionTimeoutError
from callreview.models.artifact import ArtifactKind
from callreview.models.call import CallStatus
from callreview.models.job import JobStage
from callreview.pipeline.types import StageContext

from .loop import process_job

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 30 * 60.0


async def drive_transcription(
    context: StageContext,
    call_id: UUID,
    *,
    worker_id: str,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> None:
    """Poll until the call has a transcript; raise when the deadline passes."""

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = await context.queue.claim(
            worker_id, call_id=call_id, stage=JobStage.TRANSCRIBE_POLL
        )
        if job is None:
            logger.info("No eligible transcribe_poll job for call %s yet, waiting", call_id)
            await asyncio.sleep(poll_interval)
            continue

        logger.info("Polling job %s (attempt %s/%s)", job.id, job.attempts + 1, job.max_attempts)
        await process_job(context.queue, job, context)

        if await context.artifacts.exists(call_id, ArtifactKind.TRANSCRIPT):
            await context.calls.update_status(call_id, CallStatus.TRANSCRIBED)
            logger.info("Transcription completed for call %s", call_id)
            return

        logger.info("Transcription for call %s still running, waiting", call_id)
        await asyncio.sleep(poll_interval)

    raise TranscriptionTimeoutError(f"polling timed out for call {call_id}")


__all__ = ["drive_transcription"]
