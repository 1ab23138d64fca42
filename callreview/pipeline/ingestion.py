"""Upload classification by file extension.

Video must be turned into audio in the browser before upload; it then arrives
as ``<name>.audio.m4a`` or ``<name>.audio.webm``. Transcripts skip straight
to analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Final, Optional

VIDEO_EXTENSIONS: Final[frozenset[str]] = frozenset({".mp4", ".webm"})
AUDIO_EXTENSIONS: Final[frozenset[str]] = frozenset({".mp3", ".wav", ".ogg"})
TRANSCRIPT_EXTENSIONS: Final[frozenset[str]] = frozenset({".vtt", ".txt"})
DERIVED_AUDIO_EXTENSIONS: Final[frozenset[str]] = frozenset({".m4a", ".webm"})
DERIVED_AUDIO_MARKER: Final[str] = ".audio."

_AUDIO_CONTENT_TYPES: Final[dict[str, str]] = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".webm": "audio/webm",
}

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"


class UploadKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"
    TRANSCRIPT = "transcript"
    UNKNOWN = "unknown"


def get_extension(file_name: str) -> str:
    return PurePosixPath(str(file_name or "").strip()).suffix.lower()


def is_derived_audio(file_name: str) -> bool:
    return DERIVED_AUDIO_MARKER in str(file_name or "").lower()


def infer_source_kind(file_name: str) -> UploadKind:
    """Kind of the file the user picked, before any client-side extraction."""

    extension = get_extension(file_name)
    if extension in TRANSCRIPT_EXTENSIONS:
        return UploadKind.TRANSCRIPT
    if extension in AUDIO_EXTENSIONS:
        return UploadKind.AUDIO
    if extension in VIDEO_EXTENSIONS:
        return UploadKind.VIDEO
    return UploadKind.UNKNOWN


def infer_processing_kind(file_name: str) -> UploadKind:
    """Kind of the uploaded object as the pipeline will route it."""

    extension = get_extension(file_name)
    if extension in TRANSCRIPT_EXTENSIONS:
        return UploadKind.TRANSCRIPT
    if is_derived_audio(file_name) and extension in DERIVED_AUDIO_EXTENSIONS:
        return UploadKind.AUDIO
    if extension in AUDIO_EXTENSIONS or extension == ".m4a":
        return UploadKind.AUDIO
    if extension in VIDEO_EXTENSIONS:
        return UploadKind.VIDEO
    return UploadKind.UNKNOWN


def infer_audio_content_type(file_name: str) -> Optional[str]:
    return _AUDIO_CONTENT_TYPES.get(get_extension(file_name))


def resolve_content_type(file_name: str, declared: Optional[str]) -> str:
    """Declared type wins, then the extension, then a generic binary type."""

    return declared or infer_audio_content_type(file_name) or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class UploadCheck:
    processing_kind: UploadKind
    source_kind: UploadKind
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_upload(
    file_name: str,
    *,
    source_file_name: str | None = None,
    declared_source_kind: str | None = None,
) -> UploadCheck:
    """Check an upload (and the original file it was derived from)."""

    errors: list[str] = []
    source_name = source_file_name or file_name
    try:
        source_kind = UploadKind((declared_source_kind or "").strip().lower())
    except ValueError:
        source_kind = UploadKind.UNKNOWN
    if source_kind is UploadKind.UNKNOWN:
        source_kind = infer_source_kind(source_name)
    processing_kind = infer_processing_kind(file_name)

    if source_kind is UploadKind.UNKNOWN:
        errors.append("unsupported source file type")
    if processing_kind is UploadKind.UNKNOWN:
        errors.append("unsupported upload file type")

    source_extension = get_extension(source_name)
    if source_kind is UploadKind.VIDEO:
        if source_extension not in VIDEO_EXTENSIONS:
            errors.append("source file must be .mp4 or .webm")
        if processing_kind is not UploadKind.AUDIO:
            errors.append("video uploads must include extracted audio")
        if not is_derived_audio(file_name):
            errors.append("video uploads must include '.audio.' in the uploaded filename")
        if get_extension(file_name) not in DERIVED_AUDIO_EXTENSIONS:
            errors.append("video uploads must be extracted as .m4a or .webm audio")
    elif source_kind is UploadKind.AUDIO:
        if source_extension not in AUDIO_EXTENSIONS:
            errors.append("source file must be .mp3, .wav, or .ogg")
        if processing_kind is not UploadKind.AUDIO:
            errors.append("audio uploads must provide an audio file")
    elif source_kind is UploadKind.TRANSCRIPT:
        if source_extension not in TRANSCRIPT_EXTENSIONS:
            errors.append("source file must be .vtt or .txt")
        if processing_kind is not UploadKind.TRANSCRIPT:
            errors.append("transcript uploads must provide a transcript file")

    return UploadCheck(processing_kind=processing_kind, source_kind=source_kind, errors=errors)


__all__ = [
    "UploadKind",
    "UploadCheck",
    "DEFAULT_CONTENT_TYPE",
    "get_extension",
    "infer_source_kind",
    "infer_processing_kind",
    "infer_audio_content_type",
    "resolve_content_type",
    "is_derived_audio",
    "validate_upload",
]
