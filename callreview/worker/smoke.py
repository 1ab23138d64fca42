"""In-process smoke run of the front of the pipeline for one call.

Uploads a local audio file (or a generated tone) as the call's raw upload,
enqueues ``extract_audio`` with empty transcripts allowed, then runs
``extract_audio`` and ``transcribe_start`` directly. Polling is left to a
worker or to ``drive_transcription`` unless ``wait`` is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select

from callreview.errors import PipelineError, UnsupportedUploadError
from callreview.models.artifact import Artifact
from callreview.models.job import JobStage
from callreview.pipeline.ingestion import UploadKind, infer_processing_kind, resolve_content_type
from callreview.pipeline.paths import StoragePaths
from callreview.pipeline.types import StageContext
from callreview.pipeline.workspace import scratch_directory
from callreview.queue.types import NewJob

from .driver import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_TIMEOUT_SECONDS, drive_transcription
from .loop import process_job

logger = logging.getLogger(__name__)

SAMPLE_FILE_NAME = "smoke.wav"
SMOKE_STAGES = (JobStage.EXTRACT_AUDIO, JobStage.TRANSCRIBE_START)


@dataclass(frozen=True)
class SmokeResult:
    call_id: UUID
    file_name: str
    artifacts: list[tuple[str, str]] = field(default_factory=list)


async def run_smoke_pipeline(
    context: StageContext,
    *,
    org_id: UUID,
    call_id: Optional[UUID] = None,
    audio_file: Optional[str] = None,
    file_name: Optional[str] = None,
    worker_id: str = "smoke",
    wait: bool = False,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> SmokeResult:
    call_id = call_id or uuid4()
    if audio_file is not None:
        file_name = file_name or Path(audio_file).name
    else:
        file_name = file_name or SAMPLE_FILE_NAME
    if infer_processing_kind(file_name) is not UploadKind.AUDIO:
        raise UnsupportedUploadError(f"smoke runs need an audio file: {file_name}")
    content_type = resolve_content_type(file_name, None)

    with scratch_directory(context.scratch_dir) as work_dir:
        if audio_file is None:
            local_audio = work_dir / file_name
            await context.transcoder.synthesize_tone(str(local_audio))
        else:
            local_audio = Path(audio_file)
        await context.storage.upload(
            context.bucket,
            StoragePaths.raw(org_id, call_id, file_name),
            str(local_audio),
            content_type,
        )

    await context.calls.ensure(org_id=org_id, call_id=call_id, source_filename=file_name)
    await context.queue.enqueue(
        NewJob(
            org_id=org_id,
            call_id=call_id,
            stage=JobStage.EXTRACT_AUDIO,
            payload={
                "fileName": file_name,
                "contentType": content_type,
                "allowEmptyTranscript": True,
            },
        )
    )
    logger.info("Smoke run for call %s started with %s", call_id, file_name)

    for stage in SMOKE_STAGES:
        job = await context.queue.claim(worker_id, call_id=call_id, stage=stage)
        if job is None:
            raise PipelineError(f"no queued {stage.value} job for call {call_id}")
        if not await process_job(context.queue, job, context):
            stored = await context.queue.get(job.id)
            error = stored.last_error if stored is not None else "unknown error"
            raise PipelineError(f"smoke stage {stage.value} failed: {error}")

    if wait:
        await drive_transcription(
            context,
            call_id,
            worker_id=worker_id,
            poll_interval=poll_interval,
            timeout=timeout,
        )

    async with context.session_factory() as session:
        rows = (
            await session.execute(
                select(Artifact.kind, Artifact.storage_path)
                .where(Artifact.call_id == call_id)
                .order_by(Artifact.kind)
            )
        ).all()
    return SmokeResult(
        call_id=call_id,
        file_name=file_name,
        artifacts=[(kind, path) for kind, path in rows],
    )


__all__ = ["SmokeResult", "run_smoke_pipeline", "SAMPLE_FILE_NAME"]
