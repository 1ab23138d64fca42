"""Transcribe-poll stage: wait for the recognition operation and store the transcript."""

from __future__ import annotations

import json
from pathlib import PurePosixPath

from callreview.errors import (
    EmptyTranscriptError,
    TranscriptionOperationError,
    TranscriptionTimeoutError,
)
from callreview.models.artifact import ArtifactKind
from callreview.models.call import CallStatus
from callreview.models.job import JobStage
from callreview.queue.types import NewJob, QueueJob
from callreview.services.speechkit import PROVIDER_NAME, RecognitionResult
from callreview.services.storage import remove_if_exists
from callreview.services.transcripts import TranscriptSegment
from callreview.telemetry.metrics import observe_reschedule

from ..payloads import AnalyzePayload, TranscribePollPayload, parse_payload
from ..types import StageContext, pipeline_logger as logger
from ..workspace import scratch_directory, write_json_file
from .transcribe_start import MANUAL_OPERATION_ID, POLL_JOB_MAX_ATTEMPTS

JSON_CONTENT_TYPE = "application/json"


async def run_transcribe_poll(job: QueueJob, ctx: StageContext) -> None:
    payload = parse_payload(TranscribePollPayload, JobStage.TRANSCRIBE_POLL, job.payload)
    transcript_path = payload.transcript_object_path
    ogg_path = payload.transcript_audio_object_path

    if await ctx.storage.exists(ctx.bucket, transcript_path):
        logger.info(
            "transcribe_poll job=%s call_id=%s: transcript already present",
            job.id,
            job.call_id,
        )
        await remove_if_exists(ctx.storage, ctx.bucket, ogg_path)
        return

    if payload.operation_id == MANUAL_OPERATION_ID:
        result = _manual_result(payload.transcript_text)
        provider_name = MANUAL_OPERATION_ID
    else:
        status = await ctx.provider.poll_status(payload.operation_id)
        if not status.done:
            await _reschedule(job, payload, ctx)
            return
        if status.error:
            raise TranscriptionOperationError(
                f"SpeechKit operation failed: {json.dumps(status.error, ensure_ascii=False)}"
            )
        result = await ctx.provider.fetch_result(payload.operation_id)
        provider_name = PROVIDER_NAME

    if not result.text and not payload.allow_empty_transcript:
        raise EmptyTranscriptError("SpeechKit returned empty transcript")

    document = {
        "language": ctx.provider.language,
        "provider": provider_name,
        "segments": [segment.to_document() for segment in result.segments],
    }
    with scratch_directory(ctx.scratch_dir) as work_dir:
        local_transcript = work_dir / f"{job.call_id}.json"
        size_bytes = write_json_file(local_transcript, document)
        await ctx.storage.upload(
            ctx.bucket, transcript_path, str(local_transcript), JSON_CONTENT_TYPE
        )

    await ctx.artifacts.register(
        org_id=job.org_id,
        call_id=job.call_id,
        kind=ArtifactKind.TRANSCRIPT,
        storage_path=transcript_path,
        content_type=JSON_CONTENT_TYPE,
        size_bytes=size_bytes,
    )
    await remove_if_exists(ctx.storage, ctx.bucket, ogg_path)
    await ctx.calls.update_status(job.call_id, CallStatus.TRANSCRIBED)
    logger.info(
        "transcribe_poll job=%s call_id=%s: transcript stored with %s segments",
        job.id,
        job.call_id,
        len(result.segments),
    )

    analyze_payload = AnalyzePayload(
        transcript_object_path=transcript_path,
        transcript_file_name=PurePosixPath(transcript_path).name,
        sales_rep_name=payload.sales_rep_name,
        source=payload.source,
    )
    await ctx.queue.enqueue(
        NewJob(
            org_id=job.org_id,
            call_id=job.call_id,
            stage=JobStage.ANALYZE,
            payload=analyze_payload.to_payload(),
        )
    )


def _manual_result(text: str | None) -> RecognitionResult:
    cleaned = (text or "").strip()
    if not cleaned:
        return RecognitionResult(text="", segments=[])
    return RecognitionResult(
        text=cleaned,
        segments=[TranscriptSegment(None, None, None, cleaned)],
    )


async def _reschedule(job: QueueJob, payload: TranscribePollPayload, ctx: StageContext) -> None:
    poll_count = payload.poll_count + 1
    if poll_count >= ctx.max_poll_attempts:
        raise TranscriptionTimeoutError(
            f"SpeechKit operation {payload.operation_id} not done after {poll_count} polls"
        )
    retry = payload.model_copy(update={"poll_count": poll_count})
    await ctx.queue.enqueue_in(
        NewJob(
            org_id=job.org_id,
            call_id=job.call_id,
            stage=JobStage.TRANSCRIBE_POLL,
            payload=retry.to_payload(),
            max_attempts=POLL_JOB_MAX_ATTEMPTS,
        ),
        ctx.poll_interval_seconds,
    )
    observe_reschedule(JobStage.TRANSCRIBE_POLL.value)
    logger.info(
        "transcribe_poll job=%s call_id=%s: operation %s pending (poll %s)",
        job.id,
        job.call_id,
        payload.operation_id,
        poll_count,
    )


__all__ = ["run_transcribe_poll"]
