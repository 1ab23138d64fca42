"""Relational layout of a persisted call analysis.

One ``call_analyses`` header row per analysis artifact, four BANT criteria
with their bullets, and five review blocks whose evidence items carry literal
``HH:MM:SS`` time ranges.
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, Uuid, func

from .base import Base


class SectionKind(str, Enum):
    """Evidence sections stored in ``call_analysis_section_items``."""

    CLIENT_INSIGHTS = "client_insights"
    SALES_GOOD_ACTIONS = "sales_good_actions"
    SALES_BAD_ACTIONS = "sales_bad_actions"


class CallAnalysis(Base):
    __tablename__ = "call_analyses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    org_id = Column(Uuid, nullable=False, index=True)
    call_id = Column(Uuid, nullable=False, index=True)
    analysis_storage_path = Column(String(1024), nullable=False, unique=True)
    transcript_filename = Column(Text, nullable=False)
    sales_rep_name = Column(Text, nullable=False)
    language = Column(Text, nullable=False)
    source = Column(Text, nullable=True)
    headline_text = Column(Text, nullable=False)
    summary_text = Column(Text, nullable=False)
    bant_total_score = Column(Float, nullable=False)
    bant_total_max = Column(Float, nullable=False)
    bant_verdict = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CallAnalysisBantCriterion(Base):
    __tablename__ = "call_analysis_bant_criteria"

    id = Column(Uuid, primary_key=True, default=uuid4)
    analysis_id = Column(
        Uuid, ForeignKey("call_analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = Column(Text, nullable=False)
    label = Column(Text, nullable=False)
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=True)


class CallAnalysisBantBullet(Base):
    __tablename__ = "call_analysis_bant_bullets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    criterion_id = Column(
        Uuid,
        ForeignKey("call_analysis_bant_criteria.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(Text, nullable=False)
    text = Column(Text, nullable=False)


class CallAnalysisBlock(Base):
    __tablename__ = "call_analysis_blocks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    analysis_id = Column(
        Uuid, ForeignKey("call_analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    block_number = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)


class CallAnalysisSectionItem(Base):
    __tablename__ = "call_analysis_section_items"

    id = Column(Uuid, primary_key=True, default=uuid4)
    block_id = Column(
        Uuid, ForeignKey("call_analysis_blocks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section = Column(String(32), nullable=False)
    text = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)


class CallAnalysisTimeRange(Base):
    """Time range kept verbatim as the strings the analysis carried."""

    __tablename__ = "call_analysis_time_ranges"

    id = Column(Uuid, primary_key=True, default=uuid4)
    section_item_id = Column(
        Uuid,
        ForeignKey("call_analysis_section_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)


class CallAnalysisRecommendation(Base):
    __tablename__ = "call_analysis_recommendations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    block_id = Column(
        Uuid, ForeignKey("call_analysis_blocks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text = Column(Text, nullable=False)
    priority = Column(Text, nullable=True)


ANALYSIS_TABLES = (
    CallAnalysis.__table__,
    CallAnalysisBantCriterion.__table__,
    CallAnalysisBantBullet.__table__,
    CallAnalysisBlock.__table__,
    CallAnalysisSectionItem.__table__,
    CallAnalysisTimeRange.__table__,
    CallAnalysisRecommendation.__table__,
)


__all__ = [
    "SectionKind",
    "CallAnalysis",
    "CallAnalysisBantCriterion",
    "CallAnalysisBantBullet",
    "CallAnalysisBlock",
    "CallAnalysisSectionItem",
    "CallAnalysisTimeRange",
    "CallAnalysisRecommendation",
    "ANALYSIS_TABLES",
]
