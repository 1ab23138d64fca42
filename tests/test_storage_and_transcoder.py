"""S3 blob store error mapping and the ffmpeg wrapper."""

from __future__ import annotations

import asyncio
import subprocess

import pytest
from botocore.exceptions import ClientError

from callreview.errors import StorageError, TranscoderError
from callreview.services import transcoder as transcoder_module
from callreview.services.storage import S3BlobStore, build_storage_uri, remove_if_exists
from callreview.services.transcoder import STDERR_TAIL_CHARS, FfmpegTranscoder


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    def __init__(self, head_error=None):
        self.head_error = head_error
        self.deleted = []
        self.uploads = []

    def head_object(self, Bucket, Key):
        if self.head_error:
            raise self.head_error
        return {"ContentLength": 1}

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)

    def upload_file(self, local_src, bucket, key, ExtraArgs=None):
        self.uploads.append((local_src, bucket, key, ExtraArgs))


@pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
def test_exists_treats_not_found_codes_as_missing(code):
    store = S3BlobStore(FakeS3Client(head_error=_client_error(code)))
    assert asyncio.run(store.exists("bucket", "key")) is False


def test_exists_raises_storage_error_for_other_failures():
    store = S3BlobStore(FakeS3Client(head_error=_client_error("AccessDenied")))
    with pytest.raises(StorageError, match="s3://bucket/key"):
        asyncio.run(store.exists("bucket", "key"))


def test_upload_sets_content_type_and_remove_if_exists_deletes():
    client = FakeS3Client()
    store = S3BlobStore(client)

    asyncio.run(store.upload("bucket", "a/b.json", "/tmp/b.json", "application/json"))
    removed = asyncio.run(remove_if_exists(store, "bucket", "a/b.json"))

    assert client.uploads == [("/tmp/b.json", "bucket", "a/b.json", {"ContentType": "application/json"})]
    assert removed is True
    assert client.deleted == ["a/b.json"]


def test_remove_if_exists_skips_missing_objects():
    client = FakeS3Client(head_error=_client_error("404"))
    assert asyncio.run(remove_if_exists(S3BlobStore(client), "bucket", "gone")) is False
    assert client.deleted == []


def test_uri_uses_custom_endpoint_or_aws_host():
    assert build_storage_uri("https://storage.yandexcloud.net/", "b", "k.ogg") == (
        "https://storage.yandexcloud.net/b/k.ogg"
    )
    assert S3BlobStore(None, endpoint="https://storage.yandexcloud.net").uri("b", "k") == (
        "https://storage.yandexcloud.net/b/k"
    )
    assert S3BlobStore(None, region="eu-west-1").uri("b", "k") == "https://b.s3.eu-west-1.amazonaws.com/k"


def test_transcoder_builds_expected_ffmpeg_commands(monkeypatch: pytest.MonkeyPatch):
    commands = []

    def fake_run(command, **kwargs):
        commands.append(command)
        assert kwargs["check"] is True
        return subprocess.CompletedProcess(command, 0, b"", b"")

    monkeypatch.setattr(transcoder_module.subprocess, "run", fake_run)
    transcoder = FfmpegTranscoder("/usr/bin/ffmpeg")

    asyncio.run(transcoder.to_mp3_mono_16k("in.wav", "out.mp3"))
    asyncio.run(transcoder.to_ogg_opus("out.mp3", "out.ogg"))

    assert commands[0] == [
        "/usr/bin/ffmpeg", "-y", "-i", "in.wav", "-vn",
        "-acodec", "libmp3lame", "-ar", "16000", "-ac", "1", "out.mp3",
    ]
    assert commands[1] == [
        "/usr/bin/ffmpeg", "-y", "-i", "out.mp3", "-vn",
        "-c:a", "libopus", "-ar", "48000", "-b:a", "32k", "out.ogg",
    ]


def test_transcoder_failure_carries_stderr_tail(monkeypatch: pytest.MonkeyPatch):
    stderr = ("x" * STDERR_TAIL_CHARS + "Invalid data found").encode()

    def failing_run(command, **kwargs):
        raise subprocess.CalledProcessError(1, command, output=b"", stderr=stderr)

    monkeypatch.setattr(transcoder_module.subprocess, "run", failing_run)

    with pytest.raises(TranscoderError) as excinfo:
        asyncio.run(FfmpegTranscoder().to_mp3_mono_16k("in.wav", "out.mp3"))

    message = str(excinfo.value)
    assert message.startswith("ffmpeg exited with code 1")
    assert message.endswith("Invalid data found")
    assert len(message) < STDERR_TAIL_CHARS + 100


def test_missing_ffmpeg_binary_is_reported(monkeypatch: pytest.MonkeyPatch):
    def missing_run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(transcoder_module.subprocess, "run", missing_run)

    with pytest.raises(TranscoderError, match="not found"):
        asyncio.run(FfmpegTranscoder("ffmpeg-missing").to_ogg_opus("a", "b"))
