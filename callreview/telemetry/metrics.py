"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

JOBS_CLAIMED = Counter(
    "callreview_jobs_claimed_total",
    "Jobs claimed by this worker process",
    ("stage",),
)

JOBS_COMPLETED = Counter(
    "callreview_jobs_completed_total",
    "Jobs that finished successfully",
    ("stage",),
)

JOBS_FAILED = Counter(
    "callreview_jobs_failed_total",
    "Failed job attempts, split by whether the job became terminal",
    ("stage", "terminal"),
)

JOBS_RESCHEDULED = Counter(
    "callreview_jobs_rescheduled_total",
    "Follow-up jobs a stage scheduled for itself while waiting on an external system",
    ("stage",),
)

STAGE_DURATION = Histogram(
    "callreview_stage_duration_seconds",
    "Stage handler duration in seconds",
    ("stage", "outcome"),
    buckets=(
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
        60.0,
        120.0,
        300.0,
        600.0,
    ),
)


def observe_claim(stage: str) -> None:
    JOBS_CLAIMED.labels(stage=stage or "unknown").inc()


def observe_stage(stage: str, outcome: str, duration_seconds: float) -> None:
    """Record the outcome and duration of one stage execution."""

    safe_stage = stage or "unknown"
    observed_duration = duration_seconds if duration_seconds >= 0 else 0
    STAGE_DURATION.labels(stage=safe_stage, outcome=outcome).observe(observed_duration)
    if outcome == "success":
        JOBS_COMPLETED.labels(stage=safe_stage).inc()


def observe_reschedule(stage: str) -> None:
    JOBS_RESCHEDULED.labels(stage=stage or "unknown").inc()


def observe_failure(stage: str, terminal: bool) -> None:
    JOBS_FAILED.labels(
        stage=stage or "unknown",
        terminal="true" if terminal else "false",
    ).inc()
