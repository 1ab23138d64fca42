"""Transcribe-start stage: submit the call audio for asynchronous recognition."""

from __future__ import annotations


from callreview.errors import TranscriptionTimeoutError
from callreview.models.job import JobStage
from callreview.queue.types import NewJob, QueueJob
from callreview.services.storage import remove_if_exists
from callreview.telemetry.metrics import observe_reschedule

from ..paths import StoragePaths
from ..payloads import TranscribePollPayload, TranscribeStartPayload, parse_payload
from ..types import StageContext, pipeline_logger as logger
from ..workspace import scratch_directory

MANUAL_OPERATION_ID = "manual"
POLL_JOB_MAX_ATTEMPTS = 50
OGG_CONTENT_TYPE = "audio/ogg"


async def run_transcribe_start(job: QueueJob, ctx: StageContext) -> None:
    payload = parse_payload(TranscribeStartPayload, JobStage.TRANSCRIBE_START, job.payload)

    audio_path = payload.audio_object_path or StoragePaths.audio(job.org_id, job.call_id)
    transcript_path = StoragePaths.transcript(job.org_id, job.call_id)
    ogg_path = StoragePaths.transcript_audio(job.org_id, job.call_id)

    if await ctx.storage.exists(ctx.bucket, transcript_path):
        logger.info(
            "transcribe_start job=%s call_id=%s: transcript already present",
            job.id,
            job.call_id,
        )
        await remove_if_exists(ctx.storage, ctx.bucket, ogg_path)
        return

    if payload.transcript_text:
        logger.info(
            "transcribe_start job=%s call_id=%s: using supplied transcript text",
            job.id,
            job.call_id,
        )
        await _schedule_poll(job, payload, ctx, MANUAL_OPERATION_ID, transcript_path, ogg_path)
        return

    if not await ctx.storage.exists(ctx.bucket, audio_path):
        attempt = payload.reschedule_count + 1
        if attempt > ctx.max_poll_attempts:
            raise TranscriptionTimeoutError(
                f"audio artifact {audio_path} still missing after {payload.reschedule_count} checks"
            )
        retry = payload.model_copy(update={"reschedule_count": attempt})
        await ctx.queue.enqueue_in(
            NewJob(
                org_id=job.org_id,
                call_id=job.call_id,
                stage=JobStage.TRANSCRIBE_START,
                payload=retry.to_payload(),
                max_attempts=job.max_attempts,
            ),
            ctx.poll_interval_seconds,
        )
        observe_reschedule(JobStage.TRANSCRIBE_START.value)
        logger.info(
            "transcribe_start job=%s call_id=%s: audio not visible yet, recheck %s",
            job.id,
            job.call_id,
            attempt,
        )
        return

    with scratch_directory(ctx.scratch_dir) as work_dir:
        local_audio = work_dir / f"{job.call_id}.mp3"
        local_ogg = work_dir / f"{job.call_id}.ogg"
        await ctx.storage.download(ctx.bucket, audio_path, str(local_audio))
        await ctx.transcoder.to_ogg_opus(str(local_audio), str(local_ogg))
        await ctx.storage.upload(ctx.bucket, ogg_path, str(local_ogg), OGG_CONTENT_TYPE)

    operation_id = await ctx.provider.start_async(ctx.storage.uri(ctx.bucket, ogg_path))
    logger.info(
        "transcribe_start job=%s call_id=%s: operation %s started",
        job.id,
        job.call_id,
        operation_id,
    )
    await _schedule_poll(job, payload, ctx, operation_id, transcript_path, ogg_path)


async def _schedule_poll(
    job: QueueJob,
    payload: TranscribeStartPayload,
    ctx: StageContext,
    operation_id: str,
    transcript_path: str,
    ogg_path: str,
) -> None:
    poll_payload = TranscribePollPayload(
        operation_id=operation_id,
        transcript_object_path=transcript_path,
        transcript_audio_object_path=ogg_path,
        transcript_text=payload.transcript_text,
        allow_empty_transcript=payload.allow_empty_transcript,
        sales_rep_name=payload.sales_rep_name,
        source=payload.source,
    )
    await ctx.queue.enqueue_in(
        NewJob(
            org_id=job.org_id,
            call_id=job.call_id,
            stage=JobStage.TRANSCRIBE_POLL,
            payload=poll_payload.to_payload(),
            max_attempts=POLL_JOB_MAX_ATTEMPTS,
        ),
        ctx.poll_interval_seconds,
    )


__all__ = ["run_transcribe_start", "MANUAL_OPERATION_ID", "POLL_JOB_MAX_ATTEMPTS"]
