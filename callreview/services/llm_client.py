"""Bedrock-backed JSON generation for call analyses."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi.concurrency import run_in_threadpool

from callreview.config.settings import BedrockConfig
from callreview.errors import LlmInvocationError
from callreview.services.aws import create_boto3_client

logger = logging.getLogger(__name__)

TOOL_NAME = "record_call_review"


@dataclass(frozen=True)
class GenerationResult:
    """Raw model text plus the parsed JSON object when it parsed."""

    text: str
    parsed: Optional[dict[str, Any]] = None


class AnalysisGenerator(ABC):
    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: Mapping[str, Any],
    ) -> GenerationResult:
        ...


def _decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except (binascii.Error, ValueError):
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and keep the outermost JSON object."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Return the JSON object embedded in ``text`` or None."""

    cleaned = _clean_json_payload(text)
    if not cleaned:
        return None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class BedrockAnalysisGenerator(AnalysisGenerator):
    """Run a Bedrock ``converse`` call that is forced to fill the review schema.

    The schema is supplied as the input schema of a single tool and the model
    is required to call it; models that answer in plain text instead fall back
    to JSON extraction from the text.
    """

    def __init__(self, client, config: BedrockConfig) -> None:
        self._client = client
        self._config = config

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        json_schema: Mapping[str, Any],
    ) -> GenerationResult:
        inference_cfg = {
            "maxTokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "topP": self._config.top_p,
        }
        tool_config = {
            "tools": [
                {
                    "toolSpec": {
                        "name": TOOL_NAME,
                        "description": "Record the structured review of the sales call.",
                        "inputSchema": {"json": dict(json_schema)},
                    }
                }
            ],
            "toolChoice": {"tool": {"name": TOOL_NAME}},
        }

        def _call() -> dict[str, Any]:
            return self._client.converse(
                modelId=self._config.model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
                toolConfig=tool_config,
            )

        try:
            response = await run_in_threadpool(_call)
        except Exception as exc:
            raise LlmInvocationError(str(exc)) from exc

        content_blocks = (
            response.get("output", {})
            .get("message", {})
            .get("content", [])
        )
        for block in content_blocks:
            tool_use = block.get("toolUse")
            if tool_use and isinstance(tool_use.get("input"), dict):
                payload = tool_use["input"]
                return GenerationResult(
                    text=json.dumps(payload, ensure_ascii=False),
                    parsed=payload,
                )

        text = "\n".join(
            block.get("text", "") for block in content_blocks if block.get("text")
        ).strip()
        logger.warning(
            "Bedrock answered without a tool call (stop_reason=%s)",
            response.get("stopReason"),
        )
        return GenerationResult(text=text, parsed=parse_json_object(text))


def create_bedrock_generator(config: BedrockConfig) -> BedrockAnalysisGenerator:
    """Build the generator with credentials decoded from BEDROCK_API_KEY if set."""

    api_key_tuple = None
    if config.api_key:
        api_key_tuple = _decode_bedrock_api_key(config.api_key.get_secret_value())

    client = create_boto3_client(
        "bedrock-runtime",
        region_name=config.region,
        aws_access_key_id=api_key_tuple[0] if api_key_tuple else None,
        aws_secret_access_key=api_key_tuple[1] if api_key_tuple else None,
    )
    return BedrockAnalysisGenerator(client, config)


__all__ = [
    "AnalysisGenerator",
    "BedrockAnalysisGenerator",
    "GenerationResult",
    "create_bedrock_generator",
    "parse_json_object",
]
