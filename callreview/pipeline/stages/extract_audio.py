"""Extract-audio stage: normalize the raw upload into the call's MP3 artifact."""

from __future__ import annotations

from pathlib import PurePosixPath

from callreview.errors import UnsupportedUploadError
from callreview.models.artifact import ArtifactKind
from callreview.models.job import JobStage
from callreview.queue.types import NewJob, QueueJob
from callreview.services.storage import remove_if_exists

from ..ingestion import UploadKind, get_extension, infer_processing_kind, resolve_content_type
from ..paths import StoragePaths
from ..payloads import ExtractAudioPayload, parse_payload
from ..types import StageContext, pipeline_logger as logger
from ..workspace import scratch_directory

MP3_CONTENT_TYPE = "audio/mpeg"


async def run_extract_audio(job: QueueJob, ctx: StageContext) -> None:
    payload = parse_payload(ExtractAudioPayload, JobStage.EXTRACT_AUDIO, job.payload)
    file_name = payload.file_name

    kind = infer_processing_kind(file_name)
    if kind is UploadKind.VIDEO:
        raise UnsupportedUploadError(
            f"video uploads must be extracted client-side before upload: {file_name}"
        )
    if kind is not UploadKind.AUDIO:
        raise UnsupportedUploadError(f"unsupported file type for extract_audio: {file_name}")

    raw_path = StoragePaths.raw(job.org_id, job.call_id, file_name)
    audio_path = StoragePaths.audio(job.org_id, job.call_id)
    transcript_path = StoragePaths.transcript(job.org_id, job.call_id)

    if await ctx.storage.exists(ctx.bucket, audio_path):
        logger.info(
            "extract_audio job=%s call_id=%s: audio artifact already present, cleaning up",
            job.id,
            job.call_id,
        )
        await remove_if_exists(ctx.storage, ctx.bucket, raw_path)
        if not await ctx.storage.exists(ctx.bucket, transcript_path):
            await _enqueue_transcription(job, payload, ctx)
        return

    with scratch_directory(ctx.scratch_dir) as work_dir:
        local_raw = work_dir / PurePosixPath(file_name).name
        await ctx.storage.download(ctx.bucket, raw_path, str(local_raw))

        if get_extension(file_name) == ".mp3":
            local_audio = local_raw
            content_type = resolve_content_type(file_name, payload.content_type)
        else:
            local_audio = work_dir / f"{job.call_id}.mp3"
            await ctx.transcoder.to_mp3_mono_16k(str(local_raw), str(local_audio))
            content_type = MP3_CONTENT_TYPE

        await ctx.storage.upload(ctx.bucket, audio_path, str(local_audio), content_type)
        size_bytes = local_audio.stat().st_size

    await ctx.artifacts.register(
        org_id=job.org_id,
        call_id=job.call_id,
        kind=ArtifactKind.AUDIO,
        storage_path=audio_path,
        content_type=content_type,
        size_bytes=size_bytes,
    )
    await ctx.storage.remove(ctx.bucket, raw_path)
    logger.info(
        "extract_audio job=%s call_id=%s: stored %s (%s bytes)",
        job.id,
        job.call_id,
        audio_path,
        size_bytes,
    )
    await _enqueue_transcription(job, payload, ctx)


async def _enqueue_transcription(
    job: QueueJob,
    payload: ExtractAudioPayload,
    ctx: StageContext,
) -> None:
    await ctx.queue.enqueue(
        NewJob(
            org_id=job.org_id,
            call_id=job.call_id,
            stage=JobStage.TRANSCRIBE_START,
            payload=payload.to_payload(),
        )
    )


__all__ = ["run_extract_audio"]
