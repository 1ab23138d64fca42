"""Claim-execute-complete/fail cycle run by every worker instance.

Stage errors never escape the loop: each one becomes a ``fail()`` call with
an exponential backoff. Errors raised by the queue itself (lost database
connectivity on claim, complete or fail) propagate and end the process.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from callreview.errors import PipelineError
from callreview.models.job import JobStatus
from callreview.pipeline.router import run_stage
from callreview.pipeline.types import StageContext
from callreview.queue.postgres import PostgresJobQueue
from callreview.queue.types import QueueJob
from callreview.telemetry.metrics import observe_claim, observe_failure, observe_stage

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_BASE_SECONDS = 30
DEFAULT_BACKOFF_CAP_SECONDS = 600


def compute_backoff(
    attempts: int,
    base: int = DEFAULT_BACKOFF_BASE_SECONDS,
    cap: int = DEFAULT_BACKOFF_CAP_SECONDS,
) -> int:
    """``min(cap, base * 2**attempts)`` seconds."""

    return min(cap, base * 2 ** max(attempts, 0))


async def process_job(
    queue: PostgresJobQueue,
    job: QueueJob,
    context: StageContext,
    *,
    backoff_base: int = DEFAULT_BACKOFF_BASE_SECONDS,
    backoff_cap: int = DEFAULT_BACKOFF_CAP_SECONDS,
    fail_fast_permanent_errors: bool = True,
) -> bool:
    """Run one claimed job to completion or failure; True when it succeeded."""

    stage = job.stage.value
    started = time.perf_counter()
    try:
        await run_stage(job, context)
    except Exception as exc:
        duration = time.perf_counter() - started
        observe_stage(stage, "error", duration)
        terminal = fail_fast_permanent_errors and isinstance(exc, PipelineError) and exc.permanent
        backoff = compute_backoff(job.attempts, backoff_base, backoff_cap)
        message = str(exc) or exc.__class__.__name__
        logger.warning(
            "Job %s stage=%s call_id=%s attempt=%s/%s failed: %s",
            job.id,
            stage,
            job.call_id,
            job.attempts + 1,
            job.max_attempts,
            message,
            exc_info=not isinstance(exc, PipelineError),
        )
        status = await queue.fail(job.id, message, backoff, terminal=terminal)
        observe_failure(stage, status is JobStatus.FAILED)
        if status is JobStatus.FAILED:
            logger.error("Job %s stage=%s call_id=%s failed terminally", job.id, stage, job.call_id)
        return False

    await queue.complete(job.id)
    observe_stage(stage, "success", time.perf_counter() - started)
    logger.info(
        "Job %s stage=%s call_id=%s done in %.2fs",
        job.id,
        stage,
        job.call_id,
        time.perf_counter() - started,
    )
    return True


async def _idle(seconds: float, stop_event: Optional[asyncio.Event]) -> None:
    if stop_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return


async def worker_loop(
    queue: PostgresJobQueue,
    context: StageContext,
    worker_id: str,
    *,
    idle_sleep: float = 1.0,
    stop_event: Optional[asyncio.Event] = None,
    backoff_base: int = DEFAULT_BACKOFF_BASE_SECONDS,
    backoff_cap: int = DEFAULT_BACKOFF_CAP_SECONDS,
    fail_fast_permanent_errors: bool = True,
) -> None:
    """Claim and execute jobs until ``stop_event`` is set."""

    logger.info("Worker %s started", worker_id)
    while stop_event is None or not stop_event.is_set():
        job = await queue.claim(worker_id)
        if job is None:
            await _idle(idle_sleep, stop_event)
            continue

        observe_claim(job.stage.value)
        logger.info(
            "Worker %s claimed job %s stage=%s org_id=%s call_id=%s",
            worker_id,
            job.id,
            job.stage.value,
            job.org_id,
            job.call_id,
        )
        await process_job(
            queue,
            job,
            context,
            backoff_base=backoff_base,
            backoff_cap=backoff_cap,
            fail_fast_permanent_errors=fail_fast_permanent_errors,
        )
    logger.info("Worker %s stopped", worker_id)


__all__ = ["compute_backoff", "process_job", "worker_loop"]
