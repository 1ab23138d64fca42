"""Entry point used by the upload layer to start a call's pipeline."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from callreview.errors import UnsupportedUploadError
from callreview.models.job import JobStage
from callreview.pipeline.ingestion import UploadKind, infer_processing_kind, validate_upload
from callreview.pipeline.paths import StoragePaths
from callreview.pipeline.payloads import AnalyzePayload, ExtractAudioPayload
from callreview.queue.postgres import PostgresJobQueue
from callreview.queue.types import NewJob, QueueJob

logger = logging.getLogger(__name__)


async def enqueue_processing_stages(
    queue: PostgresJobQueue,
    *,
    org_id: UUID,
    call_id: UUID,
    file_name: str,
    content_type: Optional[str] = None,
    sales_rep_name: Optional[str] = None,
    source: Optional[str] = None,
    source_file_name: Optional[str] = None,
    source_kind: Optional[str] = None,
) -> QueueJob:
    """Enqueue the first stage appropriate for an uploaded object.

    Transcripts go straight to analysis on the raw object; audio goes through
    extraction. Video and unknown types are rejected. When the file the user
    originally picked is known, the upload must be consistent with it (video
    arrives as client-extracted ``.audio.`` audio).
    """

    kind = infer_processing_kind(file_name)

    if kind is UploadKind.TRANSCRIPT:
        payload = AnalyzePayload(
            transcript_object_path=StoragePaths.raw(org_id, call_id, file_name),
            transcript_file_name=file_name,
            sales_rep_name=sales_rep_name,
            source=source,
        )
        stage = JobStage.ANALYZE
    elif kind is UploadKind.AUDIO:
        payload = ExtractAudioPayload(
            file_name=file_name,
            content_type=content_type,
            sales_rep_name=sales_rep_name,
            source=source,
        )
        stage = JobStage.EXTRACT_AUDIO
    elif kind is UploadKind.VIDEO:
        raise UnsupportedUploadError(
            f"video uploads must be extracted client-side before upload: {file_name}"
        )
    else:
        raise UnsupportedUploadError(f"unsupported upload file type: {file_name}")

    if source_file_name or source_kind:
        check = validate_upload(
            file_name, source_file_name=source_file_name, declared_source_kind=source_kind
        )
        if not check.ok:
            raise UnsupportedUploadError(f"{'; '.join(check.errors)}: {file_name}")

    job = await queue.enqueue(
        NewJob(org_id=org_id, call_id=call_id, stage=stage, payload=payload.to_payload())
    )
    logger.info("Started pipeline for call_id=%s at %s (%s)", call_id, stage.value, file_name)
    return job


__all__ = ["enqueue_processing_stages"]
