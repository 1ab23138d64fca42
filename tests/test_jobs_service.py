"""Pipeline entry: first stage chosen from the uploaded file type."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from callreview.errors import UnsupportedUploadError
from callreview.models import JobStage
from callreview.pipeline.paths import StoragePaths
from callreview.services.jobs import enqueue_processing_stages

from fakes import pipeline_harness


def test_audio_upload_starts_with_extraction():
    async def scenario():
        async with pipeline_harness() as h:
            call_id = uuid4()
            job = await enqueue_processing_stages(
                h.queue,
                org_id=h.org_id,
                call_id=call_id,
                file_name="call.wav",
                content_type="audio/wav",
                sales_rep_name="Anna",
            )
            assert job.stage is JobStage.EXTRACT_AUDIO
            assert job.payload == {
                "fileName": "call.wav",
                "contentType": "audio/wav",
                "salesRepName": "Anna",
            }

    asyncio.run(scenario())


def test_transcript_upload_goes_straight_to_analysis():
    async def scenario():
        async with pipeline_harness() as h:
            call_id = uuid4()
            job = await enqueue_processing_stages(
                h.queue, org_id=h.org_id, call_id=call_id, file_name="notes.txt", source="phone"
            )
            assert job.stage is JobStage.ANALYZE
            assert job.payload["transcriptObjectPath"] == StoragePaths.raw(
                h.org_id, call_id, "notes.txt"
            )
            assert job.payload["transcriptFileName"] == "notes.txt"
            assert job.payload["source"] == "phone"

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "file_name, message",
    [
        ("meeting.mp4", "video uploads must be extracted client-side before upload: meeting.mp4"),
        ("slides.pdf", "unsupported upload file type: slides.pdf"),
    ],
)
def test_unsupported_uploads_are_rejected_without_enqueueing(file_name, message):
    async def scenario():
        async with pipeline_harness() as h:
            with pytest.raises(UnsupportedUploadError) as excinfo:
                await enqueue_processing_stages(
                    h.queue, org_id=h.org_id, call_id=uuid4(), file_name=file_name
                )
            assert str(excinfo.value) == message
            assert await h.pending() == []

    asyncio.run(scenario())


def test_client_extracted_video_audio_is_accepted_with_its_source():
    async def scenario():
        async with pipeline_harness() as h:
            job = await enqueue_processing_stages(
                h.queue,
                org_id=h.org_id,
                call_id=uuid4(),
                file_name="meeting.audio.m4a",
                source_file_name="meeting.mp4",
            )
            assert job.stage is JobStage.EXTRACT_AUDIO
            assert job.payload["fileName"] == "meeting.audio.m4a"

    asyncio.run(scenario())


def test_upload_inconsistent_with_its_source_is_rejected():
    async def scenario():
        async with pipeline_harness() as h:
            with pytest.raises(UnsupportedUploadError) as excinfo:
                await enqueue_processing_stages(
                    h.queue,
                    org_id=h.org_id,
                    call_id=uuid4(),
                    file_name="call.mp3",
                    source_file_name="notes.txt",
                )
            assert str(excinfo.value) == "transcript uploads must provide a transcript file: call.mp3"
            assert await h.pending() == []

    asyncio.run(scenario())
