"""Pydantic models validating a generated analysis before it is persisted.

Only the fields the relational layout cannot do without are strict; the rest
of the document is accepted as the model produced it.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from callreview.errors import AnalysisValidationError

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Timecode = Annotated[str, StringConstraints(pattern=r"^[0-9]{2}:[0-9]{2}:[0-9]{2}$")]


class _ContractModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AnalysisMeta(_ContractModel):
    transcript_filename: RequiredText
    sales_rep_name: RequiredText
    language: RequiredText
    call_id: Optional[str] = None
    source: Optional[str] = None


class LabeledText(_ContractModel):
    label: Optional[str] = None
    text: RequiredText


class BantBullet(_ContractModel):
    type: str
    text: str


class BantCriterion(_ContractModel):
    code: str
    label: str
    score: Optional[float] = None
    max_score: Optional[float] = None
    bullets: List[BantBullet] = Field(default_factory=list)


class Bant(_ContractModel):
    label: Optional[str] = None
    criteria: List[BantCriterion] = Field(default_factory=list)
    total_score: float = Field(allow_inf_nan=False)
    total_max: float = Field(allow_inf_nan=False)
    verdict: RequiredText


class TimeRange(_ContractModel):
    """Literal ``HH:MM:SS`` pair; never coerced to numbers."""

    start: Timecode
    end: Timecode


class EvidenceItem(_ContractModel):
    text: str
    time_ranges: List[TimeRange] = Field(default_factory=list)
    notes: Optional[str] = None


class RecommendationItem(_ContractModel):
    text: str
    priority: Optional[str] = None


class EvidenceSection(_ContractModel):
    label: Optional[str] = None
    items: List[EvidenceItem] = Field(default_factory=list)


class RecommendationSection(_ContractModel):
    label: Optional[str] = None
    items: List[RecommendationItem] = Field(default_factory=list)


class BlockSections(_ContractModel):
    client_insights: EvidenceSection = Field(default_factory=EvidenceSection)
    sales_good_actions: EvidenceSection = Field(default_factory=EvidenceSection)
    sales_bad_actions: EvidenceSection = Field(default_factory=EvidenceSection)
    recommendations: RecommendationSection = Field(default_factory=RecommendationSection)


class ReviewBlock(_ContractModel):
    block_number: int
    title: str
    sections: BlockSections = Field(default_factory=BlockSections)


class AnalysisDocument(_ContractModel):
    meta: AnalysisMeta
    headline: LabeledText
    summary: LabeledText
    bant: Bant
    blocks_1_5: List[ReviewBlock] = Field(default_factory=list)


_REQUIRED_ERROR_TYPES = {"missing", "string_too_short", "string_type", "none_required"}


def _describe(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "document"
    error_type = error.get("type", "")
    if error_type in _REQUIRED_ERROR_TYPES:
        return f"analysis {location} is required"
    if error_type == "finite_number":
        return f"analysis {location} must be a finite number"
    if error_type == "string_pattern_mismatch":
        return f"analysis {location} must be an HH:MM:SS timecode"
    return f"analysis {location}: {error.get('msg', 'invalid value')}"


def validate_analysis(data: Any) -> AnalysisDocument:
    """Validate a parsed analysis or raise ``AnalysisValidationError``."""

    if not isinstance(data, Mapping):
        raise AnalysisValidationError("analysis document must be a JSON object")
    try:
        return AnalysisDocument.model_validate(data)
    except ValidationError as exc:
        messages = [_describe(error) for error in exc.errors()]
        raise AnalysisValidationError("; ".join(messages[:5])) from exc


__all__ = [
    "AnalysisDocument",
    "AnalysisMeta",
    "Bant",
    "BantCriterion",
    "BantBullet",
    "ReviewBlock",
    "BlockSections",
    "EvidenceItem",
    "RecommendationItem",
    "TimeRange",
    "validate_analysis",
]
