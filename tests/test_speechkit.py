"""SpeechKit REST client against a mocked transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from callreview.config.settings import SpeechKitConfig
from callreview.errors import TranscriptionError
from callreview.services.speechkit import SpeechKitClient, recognition_chunks

CONFIG = SpeechKitConfig(api_key="secret-key", folder_id="folder-1", language="ru-RU")


def _run(handler, action, config=CONFIG):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await action(SpeechKitClient(http, config))

    return asyncio.run(scenario())


def _capture_start(config=CONFIG):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "op-7", "done": False})

    operation_id = _run(
        handler, lambda client: client.start_async("https://storage.test/b/a.ogg"), config
    )
    [request] = requests
    return operation_id, request


def test_start_async_posts_recognition_request_and_returns_operation_id():
    operation_id, request = _capture_start()

    assert operation_id == "op-7"
    assert request.method == "POST"
    assert str(request.url) == CONFIG.recognize_url
    assert request.headers["Authorization"] == "Api-Key secret-key"
    assert request.headers["x-folder-id"] == "folder-1"
    body = json.loads(request.content)
    assert body["uri"] == "https://storage.test/b/a.ogg"
    model = body["recognitionModel"]
    assert model["languageRestriction"]["languageCode"] == ["ru-RU"]
    assert model["audioFormat"]["containerAudio"]["containerAudioType"] == "OGG_OPUS"
    assert model["textNormalization"]["profanityFilter"] is False


def test_speaker_labeling_is_enabled_by_default():
    _, request = _capture_start()

    body = json.loads(request.content)
    assert body["speakerLabeling"] == {"speakerLabeling": "SPEAKER_LABELING_ENABLED"}


def test_speaker_labeling_can_be_disabled():
    config = SpeechKitConfig(api_key="secret-key", folder_id="folder-1", diarization=False)
    _, request = _capture_start(config)

    body = json.loads(request.content)
    assert body["speakerLabeling"] == {"speakerLabeling": "SPEAKER_LABELING_DISABLED"}


def test_poll_status_reports_done_and_error():
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url).endswith("/operations/op-7")
        return httpx.Response(200, json={"id": "op-7", "done": True, "error": {"code": 3}})

    status = _run(handler, lambda client: client.poll_status("op-7"))

    assert status.done is True
    assert status.error == {"code": 3}


def _final(channel_tag, *words):
    return {
        "result": {
            "channelTag": channel_tag,
            "final": {
                "alternatives": [
                    {
                        "words": [
                            {"text": text, "startTimeMs": start, "endTimeMs": end}
                            for text, start, end in words
                        ]
                    }
                ]
            },
        }
    }


def test_fetch_result_groups_labelled_speakers():
    lines = [
        _final("0", ("добрый", "500", "900"), ("день", "1000", "1300")),
        {"result": {"channelTag": "0", "partial": {"alternatives": [{"text": "ignored"}]}}},
        _final("1", ("здравствуйте", "1500", "2250")),
    ]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="\n".join(json.dumps(line) for line in lines))

    result = _run(handler, lambda client: client.fetch_result("op-7"))

    [request] = seen
    assert request.url.params["operationId"] == "op-7"
    assert result.text == "добрый день здравствуйте"
    assert [segment.to_document() for segment in result.segments] == [
        {"startTimeSec": 0.5, "endTimeSec": 1.3, "speaker": "SPK0", "text": "добрый день"},
        {"startTimeSec": 1.5, "endTimeSec": 2.25, "speaker": "SPK1", "text": "здравствуйте"},
    ]


def test_channel_tags_stay_channels_without_speaker_labeling():
    chunks = recognition_chunks([_final("1", ("алло", "0", "400"))], speaker_labeling=False)

    assert chunks == [
        {
            "channelTag": "1",
            "alternatives": [{"words": [{"word": "алло", "startTime": 0.0, "endTime": 0.4}]}],
        }
    ]


def test_http_errors_become_transcription_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(TranscriptionError, match="status 401"):
        _run(handler, lambda client: client.poll_status("op-7"))


def test_missing_operation_id_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"done": False})

    with pytest.raises(TranscriptionError, match="operation id"):
        _run(handler, lambda client: client.start_async("https://storage.test/b/a.ogg"))


def test_missing_api_key_is_reported_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(TranscriptionError, match="SPEECHKIT_API_KEY"):
        _run(handler, lambda client: client.poll_status("op-7"), config=SpeechKitConfig(api_key=None))
