"""Yandex SpeechKit asynchronous recognition over its v3 REST API."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import httpx

from callreview.config.settings import SpeechKitConfig
from callreview.errors import TranscriptionError

from .transcripts import TranscriptSegment, build_segments, segments_text

logger = logging.getLogger(__name__)

PROVIDER_NAME = "speechkit"


@dataclass(frozen=True)
class RecognitionOptions:
    language: str = "ru-RU"
    model: str = "general"
    profanity_filter: bool = False
    diarization: bool = True


@dataclass(frozen=True)
class OperationStatus:
    done: bool
    error: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    segments: list[TranscriptSegment] = field(default_factory=list)


class TranscriptionProvider(ABC):
    """Long-running speech recognition addressed by an operation id."""

    language: str

    @abstractmethod
    async def start_async(self, audio_uri: str, options: RecognitionOptions | None = None) -> str:
        ...

    @abstractmethod
    async def poll_status(self, operation_id: str) -> OperationStatus:
        ...

    @abstractmethod
    async def fetch_result(self, operation_id: str) -> RecognitionResult:
        ...


def _ms_to_seconds(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return int(value) / 1000
    except (TypeError, ValueError):
        return None


def recognition_chunks(
    updates: Iterable[Mapping[str, Any]], *, speaker_labeling: bool
) -> list[dict[str, Any]]:
    """Turn v3 ``final`` updates into word-level chunks for ``build_segments``.

    With speaker labeling on, the channel tag of an update names the speaker,
    so it is copied onto every word as ``speakerTag``.
    """

    chunks: list[dict[str, Any]] = []
    for update in updates:
        result = update.get("result", update)
        if not isinstance(result, Mapping):
            continue
        final = result.get("final")
        if not isinstance(final, Mapping):
            continue
        alternatives = final.get("alternatives") or []
        if not alternatives or not isinstance(alternatives[0], Mapping):
            continue
        channel_tag = result.get("channelTag", final.get("channelTag"))

        words = []
        for word in alternatives[0].get("words") or []:
            if not isinstance(word, Mapping):
                continue
            entry: dict[str, Any] = {
                "word": word.get("text", ""),
                "startTime": _ms_to_seconds(word.get("startTimeMs")),
                "endTime": _ms_to_seconds(word.get("endTimeMs")),
            }
            if speaker_labeling and channel_tag not in (None, ""):
                entry["speakerTag"] = channel_tag
            words.append(entry)
        chunks.append({"channelTag": channel_tag, "alternatives": [{"words": words}]})
    return chunks


def _parse_updates(body: str) -> list[Mapping[str, Any]]:
    """Read a getRecognition body: a JSON array or one JSON object per line."""

    stripped = body.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except ValueError as exc:
            raise TranscriptionError("SpeechKit returned invalid JSON") from exc
        return [item for item in parsed if isinstance(item, Mapping)]

    updates = []
    for line in stripped.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except ValueError as exc:
            raise TranscriptionError("SpeechKit returned invalid JSON") from exc
        if isinstance(item, Mapping):
            updates.append(item)
    return updates


class SpeechKitClient(TranscriptionProvider):
    """SpeechKit v3 asynchronous file recognition client.

    The ``httpx.AsyncClient`` is owned by the process entry point and shared
    across jobs; this class never closes it.
    """

    def __init__(self, http: httpx.AsyncClient, config: SpeechKitConfig) -> None:
        self._http = http
        self._config = config
        self.language = config.language

    def _headers(self) -> dict[str, str]:
        if not self._config.api_key:
            raise TranscriptionError(
                "SpeechKit is not configured. Set SPEECHKIT_API_KEY."
            )
        headers = {"Authorization": f"Api-Key {self._config.api_key.get_secret_value()}"}
        if self._config.folder_id:
            headers["x-folder-id"] = self._config.folder_id
        return headers

    async def start_async(self, audio_uri: str, options: RecognitionOptions | None = None) -> str:
        if not audio_uri:
            raise TranscriptionError("SpeechKit async transcription requires an audio URI")
        options = options or RecognitionOptions(
            language=self._config.language,
            model=self._config.model,
            profanity_filter=self._config.profanity_filter,
            diarization=self._config.diarization,
        )
        body: dict[str, Any] = {
            "uri": audio_uri,
            "recognitionModel": {
                "model": options.model,
                "audioFormat": {"containerAudio": {"containerAudioType": "OGG_OPUS"}},
                "textNormalization": {
                    "textNormalization": "TEXT_NORMALIZATION_DISABLED",
                    "profanityFilter": options.profanity_filter,
                },
                "languageRestriction": {
                    "restrictionType": "WHITELIST",
                    "languageCode": [options.language],
                },
                "audioProcessingType": "FULL_DATA",
            },
            "speakerLabeling": {
                "speakerLabeling": (
                    "SPEAKER_LABELING_ENABLED"
                    if options.diarization
                    else "SPEAKER_LABELING_DISABLED"
                )
            },
        }

        response = await self._request("POST", self._config.recognize_url, json=body)
        operation_id = self._json(response).get("id")
        if not operation_id:
            raise TranscriptionError("SpeechKit did not return operation id")
        logger.info("Started SpeechKit operation %s for %s", operation_id, audio_uri)
        return str(operation_id)

    async def poll_status(self, operation_id: str) -> OperationStatus:
        url = f"{self._config.operation_url.rstrip('/')}/{operation_id}"
        data = self._json(await self._request("GET", url))
        return OperationStatus(done=bool(data.get("done")), error=data.get("error") or None)

    async def fetch_result(self, operation_id: str) -> RecognitionResult:
        response = await self._request(
            "GET", self._config.result_url, params={"operationId": operation_id}
        )
        chunks = recognition_chunks(
            _parse_updates(response.text),
            speaker_labeling=self._config.diarization,
        )
        segments = build_segments(chunks)
        return RecognitionResult(text=segments_text(segments), segments=segments)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                url,
                headers=self._headers(),
                timeout=self._config.request_timeout_seconds,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TranscriptionError(
                f"SpeechKit request failed with status {exc.response.status_code}: "
                f"{exc.response.text[:500]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"SpeechKit request failed: {exc}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Mapping[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("SpeechKit returned invalid JSON") from exc
        if not isinstance(payload, Mapping):
            raise TranscriptionError("SpeechKit returned a non-object response")
        return payload


__all__ = [
    "PROVIDER_NAME",
    "RecognitionOptions",
    "OperationStatus",
    "RecognitionResult",
    "TranscriptionProvider",
    "SpeechKitClient",
    "recognition_chunks",
]
