"""Speech synthesis and narration writing through the OpenAI SDK."""

from __future__ import annotations

import base64
import json
import os
from typing import Any, Callable, TypeVar

import openai
from openai import OpenAI

from domain.demo_video import NarrationConfig, UpstreamError
from service.narration import NarrationContext

API_KEY_ENV = "OPENAI_API_KEY"
CHAT_MODEL = "gpt-4o-mini"
REQUEST_TIMEOUT_SECONDS = 120.0

HTTP_ERROR_CODE = "demo_video.openai.http_error"
NETWORK_ERROR_CODE = "demo_video.openai.network_error"
REQUEST_ERROR_CODE = "demo_video.openai.request_error"
RESPONSE_ERROR_CODE = "demo_video.openai.invalid_response"

SYSTEM_PROMPT = (
    "You write voiceover scripts for product demo videos. "
    "Your tone is calm, confident, and conversational. "
    'Never say "welcome to" or "here you can see". Never list UI elements. '
    "Focus on what the product does for the user and why it matters. "
    "Write exactly 1-2 short sentences, specific to what is on screen. "
    "Use natural spoken language. No markdown. No emoji."
)
SCRIPT_SCHEMA = {
    "name": "narration_script",
    "schema": {
        "type": "object",
        "properties": {"script": {"type": "string"}},
        "required": ["script"],
        "additionalProperties": False,
    },
    "strict": True,
}

ResultT = TypeVar("ResultT")


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def call_openai(operation: str, request: Callable[[], ResultT]) -> ResultT:
    """Run one SDK call, mapping SDK errors to coded upstream errors.

    Throttling, server errors, timeouts and connection failures are
    retryable; everything else is permanent.
    """
    try:
        return request()
    except openai.APIStatusError as exc:
        raise UpstreamError(
            HTTP_ERROR_CODE,
            f"{operation} failed ({exc.status_code}): {exc.message}",
            retryable=is_retryable_status(exc.status_code),
        ) from exc
    except openai.APIConnectionError as exc:
        raise UpstreamError(
            NETWORK_ERROR_CODE, f"{operation} failed: {exc}", retryable=True
        ) from exc
    except openai.OpenAIError as exc:
        raise UpstreamError(
            REQUEST_ERROR_CODE, f"{operation} failed: {exc}", retryable=False
        ) from exc


class OpenAIClient:
    """Implements both the speech synthesizer and narration generator."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        client: Any = None,
    ) -> None:
        self._client = client or OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_seconds
        )

    @classmethod
    def from_environment(cls) -> "OpenAIClient | None":
        api_key = os.environ.get(API_KEY_ENV, "").strip()
        if not api_key:
            return None
        return cls(api_key)

    def synthesize(self, text_value: str, config: NarrationConfig) -> bytes:
        options: dict[str, Any] = {
            "model": config.model,
            "input": text_value,
            "voice": config.voice,
            "speed": config.speed,
            "response_format": "mp3",
        }
        if config.instructions:
            options["instructions"] = config.instructions
        response = call_openai(
            "speech synthesis", lambda: self._client.audio.speech.create(**options)
        )
        return response.read()

    def generate(self, image_jpeg: bytes, context: NarrationContext) -> str:
        app_context = f" for {context.app_name}" if context.app_name else ""
        prompt = (
            f'Write a voiceover script for the "{context.segment_name}" segment of a '
            f"product demo{app_context}. {context.position_hint} "
            "Look at this screenshot and write 1-2 natural sentences about what matters most here."
        )
        image_url = "data:image/jpeg;base64," + base64.b64encode(image_jpeg).decode("ascii")
        completion = call_openai(
            "narration generation",
            lambda: self._client.chat.completions.create(
                model=CHAT_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    },
                ],
                response_format={"type": "json_schema", "json_schema": SCRIPT_SCHEMA},
                max_completion_tokens=1024,
            ),
        )
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise UpstreamError(
                RESPONSE_ERROR_CODE, f"chat completion has no message: {exc}", retryable=False
            ) from exc
        return parse_script_content(content)


def parse_script_content(content: str | None) -> str:
    """Extract ``script`` from a chat completion's JSON message."""
    if not content:
        raise UpstreamError(
            RESPONSE_ERROR_CODE, "chat completion returned no content", retryable=False
        )
    try:
        script = json.loads(content)["script"]
    except (ValueError, KeyError, TypeError) as exc:
        raise UpstreamError(
            RESPONSE_ERROR_CODE, f"unexpected chat completion content: {exc}", retryable=False
        ) from exc
    if not isinstance(script, str):
        raise UpstreamError(
            RESPONSE_ERROR_CODE, "chat completion script is not a string", retryable=False
        )
    return script
