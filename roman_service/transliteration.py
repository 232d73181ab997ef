"""Streaming Urdu -> Roman Urdu transliteration using Gemini.

One request per batch: every unit becomes a request part (text or inline
image), followed by a trailing instruction. The response stream is exposed as
an async iterator of text fragments.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Sequence
from functools import lru_cache

from google import genai
from google.genai import types

from roman_service.config import (
    ROMAN_MODEL,
    ROMAN_TEMPERATURE,
    ROMAN_THINKING_BUDGET,
    ROMAN_USE_VERTEX,
    VERTEX_LOCATION,
    VERTEX_PROJECT,
)
from roman_service.pipeline.errors import DispatchError
from roman_service.pipeline.types import ImagePart, TextPart, UnitPayload

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """
You are an expert linguist specializing in Urdu and English.
Your task is to convert Urdu text into Roman English (Roman Urdu).

Guidelines:
1. If the input contains images, perform OCR on each to extract the Urdu text.
2. Provide a direct, phonetic transliteration into Roman English for all provided content.
3. Maintain all original punctuation and structural formatting.
4. Output ONLY the transliterated text. No preamble, no "Page X" markers unless they are in the source.
5. Example: "میں اسکول جا رہا ہوں" -> "Mein school ja raha hoon".
"""

TRAILING_INSTRUCTION = (
    "Transcribe (if image) and convert all the above Urdu content into Roman English. "
    "Keep the order of segments preserved. Return only transliteration."
)


def _is_gcp_environment() -> bool:
    """Detect if running on GCP (Cloud Run, GCE, etc.)."""
    return ROMAN_USE_VERTEX or bool(os.getenv("K_SERVICE"))


@lru_cache(maxsize=1)
def _get_gemini_client() -> genai.Client:
    """Cached Gemini client with automatic credential detection."""
    if _is_gcp_environment():
        return genai.Client(
            vertexai=True, project=VERTEX_PROJECT, location=VERTEX_LOCATION
        )
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if not api_key:
        raise ValueError(
            "GEMINI_API_KEY not set. Set it for local dev or run on GCP for ADC."
        )
    return genai.Client(api_key=api_key)


def build_parts(payloads: Sequence[UnitPayload]) -> list[types.Part]:
    """Request parts in unit order, closed by the trailing instruction."""
    parts: list[types.Part] = []
    for p in payloads:
        if isinstance(p, TextPart):
            parts.append(types.Part.from_text(text=p.text))
        elif isinstance(p, ImagePart):
            parts.append(types.Part.from_bytes(data=p.data, mime_type=p.media_type))
        else:
            raise TypeError(f"Unsupported unit payload: {type(p).__name__}")
    parts.append(types.Part.from_text(text=TRAILING_INSTRUCTION))
    return parts


def generation_config() -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=SYSTEM_INSTRUCTION,
        temperature=ROMAN_TEMPERATURE,
        thinking_config=types.ThinkingConfig(thinking_budget=ROMAN_THINKING_BUDGET),
    )


def _finish_reason(chunk: types.GenerateContentResponse) -> types.FinishReason | None:
    if not chunk.candidates:
        return None
    return chunk.candidates[0].finish_reason


async def stream_transform(payloads: Sequence[UnitPayload]) -> AsyncIterator[str]:
    """Stream the transliteration of one batch.

    Raises:
        DispatchError: If the stream closes without a clean STOP; a truncated
            response is a failed batch, never a partial success.
    """
    client = _get_gemini_client()
    contents = [types.Content(role="user", parts=build_parts(payloads))]

    stream = await client.aio.models.generate_content_stream(
        model=ROMAN_MODEL,
        contents=contents,
        config=generation_config(),
    )
    finish: types.FinishReason | None = None
    try:
        async for chunk in stream:
            finish = _finish_reason(chunk) or finish
            text = chunk.text
            if text:
                yield text
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    if finish != types.FinishReason.STOP:
        raise DispatchError(f"stream closed before completion (finish_reason={finish})")
