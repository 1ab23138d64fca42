"""Logging setup and the worker's operational HTTP app."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .config.settings import Settings
from .database import ping
from .queue.postgres import PostgresJobQueue

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(settings: Settings) -> None:
    """Stream logs to stdout and rotating files; stage logs also get their own file."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    pipeline_log_path = Path(settings.pipeline_log_file)
    pipeline_log_path.parent.mkdir(parents=True, exist_ok=True)
    pipeline_handler = RotatingFileHandler(
        pipeline_log_path,
        maxBytes=500_000,
        backupCount=5,
        encoding="utf-8",
    )
    pipeline_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    )
    pipeline_logger = logging.getLogger("callreview.pipeline")
    pipeline_logger.handlers.clear()
    pipeline_logger.addHandler(pipeline_handler)
    pipeline_logger.setLevel(logging.INFO)

    noisy_loggers = [
        "botocore",
        "boto3",
        "urllib3",
        "s3transfer",
        "httpx",
        "httpcore",
        "sqlalchemy.engine",
        "uvicorn.access",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_ops_app(
    settings: Settings,
    engine: AsyncEngine,
    queue: PostgresJobQueue,
) -> FastAPI:
    """Health and metrics endpoints served next to the worker loops."""

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Call review worker operational endpoints",
    )

    @app.get("/health", include_in_schema=False)
    async def health_check() -> Response:
        """Database reachability and queue depth per status."""

        try:
            await ping(engine)
            jobs = await queue.counts_by_status()
        except (SQLAlchemyError, OSError) as exc:
            logging.getLogger(__name__).warning("Health check failed: %s", exc)
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "service": settings.app_name,
                    "detail": "database unavailable",
                },
            )
        return JSONResponse(
            content={
                "status": "healthy",
                "service": settings.app_name,
                "version": settings.app_version,
                "jobs": jobs,
            }
        )

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose worker metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


__all__ = ["configure_logging", "create_ops_app"]
