"""Dispatch table from job stage to stage handler."""

from __future__ import annotations

from typing import Mapping

from callreview.models.job import JobStage
from callreview.queue.types import QueueJob

from .stages.analyze import run_analyze
from .stages.extract_audio import run_extract_audio
from .stages.persist_analysis import run_persist_analysis
from .stages.transcribe_poll import run_transcribe_poll
from .stages.transcribe_start import run_transcribe_start
from .types import StageContext, StageHandler

STAGE_HANDLERS: Mapping[JobStage, StageHandler] = {
    JobStage.EXTRACT_AUDIO: run_extract_audio,
    JobStage.TRANSCRIBE_START: run_transcribe_start,
    JobStage.TRANSCRIBE_POLL: run_transcribe_poll,
    JobStage.ANALYZE: run_analyze,
    JobStage.PERSIST_ANALYSIS: run_persist_analysis,
}

_unrouted = set(JobStage) - set(STAGE_HANDLERS)
if _unrouted:
    raise RuntimeError(
        "No handler registered for stages: "
        + ", ".join(sorted(stage.value for stage in _unrouted))
    )


async def run_stage(job: QueueJob, context: StageContext) -> None:
    """Execute the handler registered for ``job.stage``."""

    handler = STAGE_HANDLERS[JobStage(job.stage)]
    await handler(job, context)


__all__ = ["STAGE_HANDLERS", "run_stage"]
