"""Per-stage payload models.

Payloads are stored as JSON with camelCase keys. Each stage validates its own
shape when a job is dispatched; unknown keys are carried along so operator
annotations survive from one stage to the next.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from callreview.errors import PayloadError
from callreview.models.job import JobStage


class StagePayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class _CarriesCallMetadata(StagePayload):
    sales_rep_name: Optional[str] = None
    source: Optional[str] = None

    @field_validator("sales_rep_name", "source", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ExtractAudioPayload(_CarriesCallMetadata):
    file_name: str = Field(min_length=1)
    content_type: Optional[str] = None


class TranscribeStartPayload(_CarriesCallMetadata):
    audio_object_path: Optional[str] = None
    transcript_text: Optional[str] = None
    allow_empty_transcript: bool = False
    reschedule_count: int = Field(default=0, ge=0)

    @field_validator("transcript_text", mode="before")
    @classmethod
    def _blank_text_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TranscribePollPayload(_CarriesCallMetadata):
    operation_id: str = Field(min_length=1)
    transcript_object_path: str = Field(min_length=1)
    transcript_audio_object_path: str = Field(min_length=1)
    transcript_text: Optional[str] = None
    allow_empty_transcript: bool = False
    poll_count: int = Field(default=0, ge=0)


class AnalyzePayload(_CarriesCallMetadata):
    transcript_object_path: str = Field(min_length=1)
    transcript_file_name: Optional[str] = None


class PersistAnalysisPayload(_CarriesCallMetadata):
    analysis_object_path: str = Field(min_length=1)
    transcript_object_path: Optional[str] = None
    transcript_file_name: Optional[str] = None


P = TypeVar("P", bound=StagePayload)


def parse_payload(model: Type[P], stage: JobStage, raw: Mapping[str, Any] | None) -> P:
    """Validate ``raw`` into ``model`` or raise ``PayloadError``."""

    try:
        return model.model_validate(dict(raw or {}))
    except ValidationError as exc:
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            if error.get("type") == "missing":
                messages.append(f"missing payload.{location} for {stage.value}")
            else:
                messages.append(f"invalid payload.{location} for {stage.value}: {error.get('msg')}")
        raise PayloadError("; ".join(messages)) from exc


__all__ = [
    "StagePayload",
    "ExtractAudioPayload",
    "TranscribeStartPayload",
    "TranscribePollPayload",
    "AnalyzePayload",
    "PersistAnalysisPayload",
    "parse_payload",
]
