"""Exception hierarchy shared by the queue, the stages and the worker loop.

Every stage failure is eventually converted into a ``fail()`` call on the job
queue. The ``permanent`` flag marks errors that no amount of retrying can fix;
the worker loop may short-circuit the backoff ladder for them.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for call-processing failures."""

    permanent: bool = False


class PayloadError(PipelineError):
    """Raised when a job payload does not match what its stage needs."""


class UnsupportedUploadError(PipelineError):
    """Raised when an upload cannot be processed by the pipeline at all."""

    permanent = True


class StorageError(PipelineError):
    """Raised when blob storage operations fail."""


class TranscoderError(PipelineError):
    """Raised when the ffmpeg subprocess exits unsuccessfully."""


class TranscriptionError(PipelineError):
    """Raised when the speech-to-text provider cannot be reached or configured."""


class TranscriptionOperationError(TranscriptionError):
    """Raised when a recognition operation completes with an error payload."""


class EmptyTranscriptError(TranscriptionError):
    """Raised when recognition finished but produced no text."""


class TranscriptionTimeoutError(TranscriptionError):
    """Raised when an operation is still pending after the polling ceiling."""


class LlmInvocationError(PipelineError):
    """Raised when the Bedrock invocation fails."""


class PromptError(PipelineError):
    """Raised when the analysis prompt definition is malformed."""


class AnalysisValidationError(PipelineError):
    """Raised when a generated analysis misses required fields."""


__all__ = [
    "PipelineError",
    "PayloadError",
    "UnsupportedUploadError",
    "StorageError",
    "TranscoderError",
    "TranscriptionError",
    "TranscriptionOperationError",
    "EmptyTranscriptError",
    "TranscriptionTimeoutError",
    "LlmInvocationError",
    "PromptError",
    "AnalysisValidationError",
]
