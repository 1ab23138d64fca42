"""SQLAlchemy models for the call review pipeline."""

from .analysis import (  # noqa: F401
    ANALYSIS_TABLES,
    CallAnalysis,
    CallAnalysisBantBullet,
    CallAnalysisBantCriterion,
    CallAnalysisBlock,
    CallAnalysisRecommendation,
    CallAnalysisSectionItem,
    CallAnalysisTimeRange,
    SectionKind,
)
from .artifact import Artifact, ArtifactKind  # noqa: F401
from .base import Base
from .call import Call, CallStatus  # noqa: F401
from .job import JobStage, JobStatus, ProcessingJob  # noqa: F401

__all__ = [
    "Base",
    "ProcessingJob",
    "JobStage",
    "JobStatus",
    "Call",
    "CallStatus",
    "Artifact",
    "ArtifactKind",
    "CallAnalysis",
    "CallAnalysisBantCriterion",
    "CallAnalysisBantBullet",
    "CallAnalysisBlock",
    "CallAnalysisSectionItem",
    "CallAnalysisTimeRange",
    "CallAnalysisRecommendation",
    "SectionKind",
    "ANALYSIS_TABLES",
]
