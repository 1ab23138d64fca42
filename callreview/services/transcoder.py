"""ffmpeg wrapper producing the audio formats the pipeline stores."""

from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from fastapi.concurrency import run_in_threadpool

from callreview.errors import TranscoderError

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 8000


class FfmpegTranscoder:
    """Run ffmpeg as a subprocess; failures carry the tail of its stderr."""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self._binary = binary

    async def to_mp3_mono_16k(self, input_path: str, output_path: str) -> None:
        """Normalize any audio/video container to MP3, mono, 16 kHz."""

        await self._run(
            [
                "-y",
                "-i", input_path,
                "-vn",
                "-acodec", "libmp3lame",
                "-ar", "16000",
                "-ac", "1",
                output_path,
            ]
        )

    async def to_ogg_opus(self, input_path: str, output_path: str) -> None:
        """Produce the Opus-in-Ogg speech encoding the recognizer expects."""

        await self._run(
            [
                "-y",
                "-i", input_path,
                "-vn",
                "-c:a", "libopus",
                "-ar", "48000",
                "-b:a", "32k",
                output_path,
            ]
        )

    async def synthesize_tone(self, output_path: str, duration_seconds: float = 2.0) -> None:
        """Write a short sine tone; used as sample input for smoke runs."""

        await self._run(
            [
                "-y",
                "-f", "lavfi",
                "-i", f"sine=frequency=1000:duration={duration_seconds:g}",
                "-ac", "1",
                output_path,
            ]
        )

    async def _run(self, arguments: Sequence[str]) -> None:
        await run_in_threadpool(self._run_sync, [self._binary, *arguments])

    def _run_sync(self, command: list[str]) -> None:
        logger.debug("Running %s", " ".join(command))
        try:
            subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            tail = stderr[-STDERR_TAIL_CHARS:]
            logger.error("ffmpeg failed with code %s", exc.returncode)
            raise TranscoderError(
                f"ffmpeg exited with code {exc.returncode}: {tail}"
            ) from exc
        except FileNotFoundError as exc:
            raise TranscoderError(f"ffmpeg binary not found: {command[0]}") from exc


__all__ = ["FfmpegTranscoder", "STDERR_TAIL_CHARS"]
