"""Process entry point: build every collaborator once and run the worker loops."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass
from typing import AsyncIterator, Iterator

import httpx
import uvicorn
from sqlalchemy.ext.asyncio import AsyncEngine

from callreview.config.settings import Settings, settings as default_settings
from callreview.database import (
    create_engine_from_settings,
    create_session_factory,
    dispose_engine,
    init_models,
)
from callreview.main import configure_logging, create_ops_app
from callreview.pipeline.types import StageContext
from callreview.queue.postgres import PostgresJobQueue
from callreview.services.analysis_prompt import AnalysisPrompt
from callreview.services.aws import create_storage_client
from callreview.services.llm_client import create_bedrock_generator
from callreview.services.repositories import ArtifactRepository, CallRepository
from callreview.services.speechkit import SpeechKitClient
from callreview.services.storage import S3BlobStore
from callreview.services.transcoder import FfmpegTranscoder

from .loop import worker_loop

logger = logging.getLogger(__name__)


class OpsServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the worker process."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        return None


@dataclass
class WorkerRuntime:
    engine: AsyncEngine
    queue: PostgresJobQueue
    context: StageContext


@contextlib.asynccontextmanager
async def build_runtime(config: Settings) -> AsyncIterator[WorkerRuntime]:
    """Construct the engine, clients and stage context; release them on exit."""

    engine = create_engine_from_settings(config.database, echo=config.debug)
    http = httpx.AsyncClient()
    try:
        if config.database.auto_create:
            await init_models(engine)
        session_factory = create_session_factory(engine)
        queue = PostgresJobQueue(
            session_factory, default_max_attempts=config.worker.default_max_attempts
        )
        context = StageContext(
            queue=queue,
            storage=S3BlobStore(
                create_storage_client(config.storage),
                endpoint=config.storage.endpoint,
                region=config.storage.region,
            ),
            bucket=config.storage.bucket,
            transcoder=FfmpegTranscoder(config.worker.ffmpeg_path),
            provider=SpeechKitClient(http, config.speechkit),
            generator=create_bedrock_generator(config.bedrock),
            prompt=AnalysisPrompt.load(),
            session_factory=session_factory,
            artifacts=ArtifactRepository(session_factory),
            calls=CallRepository(session_factory),
            poll_interval_seconds=config.speechkit.poll_interval_seconds,
            max_poll_attempts=config.speechkit.max_poll_attempts,
            scratch_dir=config.worker.scratch_dir,
        )
        yield WorkerRuntime(engine=engine, queue=queue, context=context)
    finally:
        await http.aclose()
        await dispose_engine(engine)


async def run_worker(config: Settings) -> None:
    """Run ``concurrency`` loop instances (plus the ops server) until signalled."""

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async with build_runtime(config) as runtime:
        server: OpsServer | None = None
        server_task: asyncio.Task | None = None
        if config.worker.metrics_enabled:
            server = OpsServer(
                uvicorn.Config(
                    create_ops_app(config, runtime.engine, runtime.queue),
                    host=config.worker.metrics_host,
                    port=config.worker.metrics_port,
                    log_config=None,
                )
            )
            server_task = asyncio.create_task(server.serve())

        worker_ids = [
            config.worker.worker_id
            if config.worker.concurrency == 1
            else f"{config.worker.worker_id}-{index}"
            for index in range(config.worker.concurrency)
        ]
        loops = [
            asyncio.create_task(
                worker_loop(
                    runtime.queue,
                    runtime.context,
                    worker_id,
                    idle_sleep=config.worker.idle_sleep_seconds,
                    stop_event=stop_event,
                    backoff_base=config.worker.backoff_base_seconds,
                    backoff_cap=config.worker.backoff_cap_seconds,
                    fail_fast_permanent_errors=config.worker.fail_fast_permanent_errors,
                )
            )
            for worker_id in worker_ids
        ]
        try:
            await asyncio.gather(*loops)
        finally:
            stop_event.set()
            results = await asyncio.gather(*loops, return_exceptions=True)
            for worker_id, result in zip(worker_ids, results):
                if isinstance(result, BaseException) and not isinstance(
                    result, asyncio.CancelledError
                ):
                    logger.error("Worker %s ended with %r", worker_id, result)
            if server is not None and server_task is not None:
                server.should_exit = True
                await server_task


def main() -> int:
    configure_logging(default_settings)
    logger.info(
        "Starting %s %s as %s",
        default_settings.app_name,
        default_settings.app_version,
        default_settings.worker.worker_id,
    )
    try:
        asyncio.run(run_worker(default_settings))
    except Exception:
        logger.exception("Worker stopped after a fatal error")
        return 1
    return 0


__all__ = ["build_runtime", "run_worker", "main", "OpsServer"]
