"""Text generation through AWS Bedrock (Anthropic messages format).

``generate_json`` returns the model's reply parsed as a JSON object; callers
validate the shape they expect.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import get_settings
from app.common.errors import AppError, ConfigurationError

logger = logging.getLogger("content.bedrock")

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


class TextGenerationError(AppError):
    """The upstream model failed or replied with something unusable."""

    status_code = 500
    default_message = "Content generation failed"


@lru_cache()
def _bedrock():
    settings = get_settings()
    return boto3.client(
        service_name="bedrock-runtime",
        region_name=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )


def _extract_text(resp_body: Dict[str, Any]) -> str:
    parts = []
    for block in resp_body.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
        elif isinstance(block, str):
            parts.append(block)
    return "".join(parts).strip()


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse a reply that may be wrapped in a ```json fence."""
    text = (text or "").strip()
    match = _FENCE.search(text)
    if match:
        text = match.group(1).strip()
    try:
        result = json.loads(text)
    except json.JSONDecodeError as e:
        raise TextGenerationError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(result, dict):
        raise TextGenerationError("Model reply is not a JSON object")
    return result


def _invoke_sync(system: str, prompt: str, max_tokens: int) -> str:
    settings = get_settings()
    payload = {
        "anthropic_version": "bedrock-2023-05-31",
        "max_tokens": max_tokens,
        "temperature": settings.bedrock_temperature,
        "system": system,
        "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
    }
    try:
        response = _bedrock().invoke_model(
            modelId=settings.bedrock_model_id,
            body=json.dumps(payload),
            contentType="application/json",
            accept="application/json",
        )
    except (ClientError, BotoCoreError) as e:
        raise TextGenerationError(f"Bedrock invoke failed: {e}") from e
    body = json.loads(response["body"].read())
    text = _extract_text(body)
    if not text:
        raise TextGenerationError(f"Empty response content: {json.dumps(body)[:300]}")
    return text


async def generate_json(system: str, prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
    settings = get_settings()
    if not settings.bedrock_model_id:
        raise ConfigurationError("BEDROCK_MODEL_ID is not configured")
    text = await asyncio.to_thread(_invoke_sync, system, prompt, max_tokens or settings.bedrock_max_tokens)
    return parse_json_reply(text)
