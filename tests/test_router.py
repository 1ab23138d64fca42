"""Stage dispatch and the end-to-end flow through the worker loop."""

from __future__ import annotations

import asyncio
import json

from callreview.models import CallStatus, JobStage, JobStatus
from callreview.pipeline.paths import StoragePaths
from callreview.pipeline.router import STAGE_HANDLERS
from callreview.services.jobs import enqueue_processing_stages
from callreview.services.llm_client import GenerationResult
from callreview.services.speechkit import RecognitionResult
from callreview.services.transcripts import TranscriptSegment
from callreview.worker.loop import process_job

from fakes import FakeGenerator, FakeProvider, pipeline_harness, sample_analysis


def test_every_stage_is_routed():
    assert set(STAGE_HANDLERS) == set(JobStage)


def test_audio_upload_flows_through_every_stage():
    provider = FakeProvider(
        result=RecognitionResult(
            text="hello", segments=[TranscriptSegment(0.0, 1.0, "SPK1", "hello")]
        )
    )
    analysis = sample_analysis()
    generator = FakeGenerator(GenerationResult(text=json.dumps(analysis), parsed=analysis))

    async def scenario():
        async with pipeline_harness(provider=provider, generator=generator) as h:
            call_id = await h.add_call()
            h.storage.put(StoragePaths.raw(h.org_id, call_id, "call.mp3"), b"mp3")
            await enqueue_processing_stages(
                h.queue, org_id=h.org_id, call_id=call_id, file_name="call.mp3"
            )

            stages = []
            for _ in range(10):
                job = await h.queue.claim("worker-a")
                if job is None:
                    h.clock.advance(h.context.poll_interval_seconds)
                    job = await h.queue.claim("worker-a")
                if job is None:
                    break
                stages.append(job.stage)
                assert await process_job(h.queue, job, h.context) is True

            assert stages == [
                JobStage.EXTRACT_AUDIO,
                JobStage.TRANSCRIBE_START,
                JobStage.TRANSCRIBE_POLL,
                JobStage.ANALYZE,
                JobStage.PERSIST_ANALYSIS,
            ]
            counts = await h.queue.counts_by_status()
            assert counts[JobStatus.DONE.value] == 5
            assert await h.call_status(call_id) == CallStatus.ANALYZED.value
            assert StoragePaths.transcript_audio(h.org_id, call_id) not in h.storage.objects

    asyncio.run(scenario())
