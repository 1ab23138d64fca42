"""Analyze stage: generate the structured call review from the transcript."""

from __future__ import annotations

from pathlib import PurePosixPath

from callreview.models.artifact import ArtifactKind
from callreview.models.job import JobStage
from callreview.queue.types import NewJob, QueueJob
from callreview.services.analysis_schema import SALES_CALL_REVIEW_SCHEMA

from ..paths import StoragePaths
from ..payloads import AnalyzePayload, PersistAnalysisPayload, parse_payload
from ..types import StageContext, pipeline_logger as logger
from ..workspace import scratch_directory, write_json_file

UNKNOWN_SALES_REP = "Unknown"
JSON_CONTENT_TYPE = "application/json"
RAW_TEXT_KEY = "raw_text"
# Legacy encoding of plain-text transcripts exported from Russian-locale tools.
FALLBACK_TRANSCRIPT_ENCODING = "cp1251"


def _truncate(value: str, max_length: int = 500) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


def read_transcript_text(data: bytes) -> str:
    """Decode an uploaded transcript, tolerating non-UTF-8 text exports."""

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode(FALLBACK_TRANSCRIPT_ENCODING, errors="replace")


async def run_analyze(job: QueueJob, ctx: StageContext) -> None:
    payload = parse_payload(AnalyzePayload, JobStage.ANALYZE, job.payload)
    analysis_path = StoragePaths.analysis(job.org_id, job.call_id, job.id)
    transcript_path = payload.transcript_object_path
    transcript_file_name = (
        payload.transcript_file_name
        or PurePosixPath(transcript_path).name
        or f"{job.call_id}.json"
    )

    if await ctx.storage.exists(ctx.bucket, analysis_path):
        logger.info(
            "analyze job=%s call_id=%s: analysis already stored, enqueueing persistence",
            job.id,
            job.call_id,
        )
        await _enqueue_persist(job, payload, ctx, analysis_path, transcript_file_name)
        return

    sales_rep_name = payload.sales_rep_name or UNKNOWN_SALES_REP

    with scratch_directory(ctx.scratch_dir) as work_dir:
        local_transcript = work_dir / f"{job.call_id}.json"
        local_analysis = work_dir / f"{job.call_id}.analysis.json"
        await ctx.storage.download(ctx.bucket, transcript_path, str(local_transcript))
        transcript_text = read_transcript_text(local_transcript.read_bytes())

        user_prompt = ctx.prompt.render_user_prompt(
            transcript_filename=transcript_file_name,
            sales_rep_name=sales_rep_name,
            transcript_text=transcript_text,
            call_id=str(job.call_id),
            source=payload.source,
        )
        result = await ctx.generator.generate(
            ctx.prompt.system_prompt,
            user_prompt,
            SALES_CALL_REVIEW_SCHEMA,
        )
        if result.parsed is not None:
            output = result.parsed
        else:
            logger.warning(
                "analyze job=%s call_id=%s: model output was not JSON: %s",
                job.id,
                job.call_id,
                _truncate(result.text),
            )
            output = {RAW_TEXT_KEY: result.text}

        size_bytes = write_json_file(local_analysis, output)
        await ctx.storage.upload(
            ctx.bucket, analysis_path, str(local_analysis), JSON_CONTENT_TYPE
        )

    await ctx.artifacts.register(
        org_id=job.org_id,
        call_id=job.call_id,
        kind=ArtifactKind.ANALYSIS,
        storage_path=analysis_path,
        content_type=JSON_CONTENT_TYPE,
        size_bytes=size_bytes,
    )
    logger.info(
        "analyze job=%s call_id=%s: analysis stored at %s",
        job.id,
        job.call_id,
        analysis_path,
    )
    await _enqueue_persist(job, payload, ctx, analysis_path, transcript_file_name)


async def _enqueue_persist(
    job: QueueJob,
    payload: AnalyzePayload,
    ctx: StageContext,
    analysis_path: str,
    transcript_file_name: str,
) -> None:
    persist_payload = PersistAnalysisPayload(
        analysis_object_path=analysis_path,
        transcript_object_path=payload.transcript_object_path,
        transcript_file_name=transcript_file_name,
        sales_rep_name=payload.sales_rep_name,
        source=payload.source,
    )
    await ctx.queue.enqueue(
        NewJob(
            org_id=job.org_id,
            call_id=job.call_id,
            stage=JobStage.PERSIST_ANALYSIS,
            payload=persist_payload.to_payload(),
        )
    )


__all__ = ["run_analyze", "read_transcript_text", "UNKNOWN_SALES_REP", "RAW_TEXT_KEY"]
