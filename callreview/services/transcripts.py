"""Normalization of word-level recognition output into speaker segments."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class TranscriptSegment:
    """Contiguous run of words attributed to one speaker."""

    start_sec: float | None
    end_sec: float | None
    speaker: str | None
    text: str

    def to_document(self) -> dict[str, Any]:
        return {
            "startTimeSec": self.start_sec,
            "endTimeSec": self.end_sec,
            "speaker": self.speaker,
            "text": self.text,
        }


def to_seconds(value: Any) -> float | None:
    """Parse ``1.2``, ``"1.2"`` or ``"1.2s"`` into float seconds."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        cleaned = str(value).strip()
        if cleaned.endswith("s"):
            cleaned = cleaned[:-1]
        try:
            seconds = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(seconds):
        return None
    return seconds


def _speaker_for(word: Mapping[str, Any], channel_tag: Any) -> str | None:
    speaker_tag = word.get("speakerTag")
    if speaker_tag is not None and speaker_tag != "":
        return f"SPK{speaker_tag}"
    if channel_tag is not None and channel_tag != "":
        return f"S{channel_tag}"
    return None


def build_segments(chunks: Iterable[Mapping[str, Any]] | None) -> list[TranscriptSegment]:
    """Group consecutive same-speaker words of each chunk into segments.

    Only the first alternative of a chunk is used. A segment starts at its
    first word's start time and ends at the last known end time; missing
    times stay None.
    """

    segments: list[TranscriptSegment] = []
    for chunk in chunks or ():
        if not isinstance(chunk, Mapping):
            continue
        alternatives = chunk.get("alternatives") or []
        if not alternatives or not isinstance(alternatives[0], Mapping):
            continue
        channel_tag = chunk.get("channelTag")

        buffer: list[str] = []
        speaker: str | None = None
        start: float | None = None
        end: float | None = None
        for word in alternatives[0].get("words") or []:
            if not isinstance(word, Mapping):
                continue
            token = str(word.get("word") or "").strip()
            if not token:
                continue
            word_speaker = _speaker_for(word, channel_tag)
            if buffer and word_speaker != speaker:
                segments.append(TranscriptSegment(start, end, speaker, " ".join(buffer)))
                buffer = []
            if not buffer:
                speaker = word_speaker
                start = to_seconds(word.get("startTime"))
                end = None
            buffer.append(token)
            word_end = to_seconds(word.get("endTime"))
            if word_end is not None:
                end = word_end
        if buffer:
            segments.append(TranscriptSegment(start, end, speaker, " ".join(buffer)))
    return segments


def segments_text(segments: Iterable[TranscriptSegment]) -> str:
    return " ".join(segment.text for segment in segments).strip()


__all__ = ["TranscriptSegment", "to_seconds", "build_segments", "segments_text"]
