"""Durable job queue."""

from .postgres import PostgresJobQueue
from .types import DEFAULT_MAX_ATTEMPTS, MAX_ERROR_LENGTH, NewJob, QueueJob

__all__ = [
    "PostgresJobQueue",
    "NewJob",
    "QueueJob",
    "DEFAULT_MAX_ATTEMPTS",
    "MAX_ERROR_LENGTH",
]
