"""In-process smoke run of extract_audio and transcribe_start."""

from __future__ import annotations

import asyncio

import pytest

from callreview.errors import PipelineError, TranscriptionError, UnsupportedUploadError
from callreview.models import JobStage
from callreview.pipeline.paths import StoragePaths
from callreview.worker.smoke import SAMPLE_FILE_NAME, run_smoke_pipeline

from fakes import FakeProvider, pipeline_harness


class FailingProvider(FakeProvider):
    async def start_async(self, audio_uri, options=None):
        raise TranscriptionError("SpeechKit request failed with status 403: forbidden")


def test_generated_tone_runs_through_transcription_start():
    async def scenario():
        async with pipeline_harness() as h:
            result = await run_smoke_pipeline(h.context, org_id=h.org_id)

            call_id = result.call_id
            assert result.file_name == SAMPLE_FILE_NAME
            assert result.artifacts == [("audio", StoragePaths.audio(h.org_id, call_id))]
            assert [call[0] for call in h.transcoder.calls] == ["tone", "mp3", "ogg"]
            assert StoragePaths.raw(h.org_id, call_id, SAMPLE_FILE_NAME) not in h.storage.objects
            assert h.provider.started == [
                h.storage.uri(h.context.bucket, StoragePaths.transcript_audio(h.org_id, call_id))
            ]
            assert await h.call_status(call_id) == "queued"

            [poll] = await h.pending(JobStage.TRANSCRIBE_POLL)
            assert poll.payload["allowEmptyTranscript"] is True
            assert poll.payload["operationId"] == "op-1"

    asyncio.run(scenario())


def test_local_mp3_is_stored_without_transcoding(tmp_path):
    audio_file = tmp_path / "call.mp3"
    audio_file.write_bytes(b"ID3 recorded call")

    async def scenario():
        async with pipeline_harness() as h:
            result = await run_smoke_pipeline(h.context, org_id=h.org_id, audio_file=str(audio_file))

            assert result.file_name == "call.mp3"
            stored = h.storage.objects[StoragePaths.audio(h.org_id, result.call_id)]
            assert stored == b"ID3 recorded call"
            assert [call[0] for call in h.transcoder.calls] == ["ogg"]

    asyncio.run(scenario())


def test_non_audio_files_are_refused_before_upload():
    async def scenario():
        async with pipeline_harness() as h:
            with pytest.raises(UnsupportedUploadError):
                await run_smoke_pipeline(h.context, org_id=h.org_id, file_name="notes.txt")
            assert h.storage.objects == {}
            assert await h.pending() == []

    asyncio.run(scenario())


def test_stage_failure_is_reported_with_the_recorded_error():
    async def scenario():
        async with pipeline_harness(provider=FailingProvider()) as h:
            with pytest.raises(PipelineError, match="smoke stage transcribe_start failed: .*403"):
                await run_smoke_pipeline(h.context, org_id=h.org_id)

    asyncio.run(scenario())
