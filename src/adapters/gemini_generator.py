"""Gemini generation adapter.

Wraps one ``generate_content`` call with a fixed request shape: an optional
system instruction plus a single user turn built from ordered content parts.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Sequence

from google.genai import types

from core.config import GenerationOptions
from core.errors import EmptyResult, GenerationFailure

LOGGER = logging.getLogger(__name__)

INLINE_IMAGE_PREFIX = "data:image/jpeg;base64,"


def is_inline_image(content: str) -> bool:
    return content.startswith(INLINE_IMAGE_PREFIX)


def build_part(content: str) -> types.Part:
    """Turn one content string into a text or inline image part."""

    if not is_inline_image(content):
        return types.Part.from_text(text=content)
    try:
        data = base64.b64decode(content[len(INLINE_IMAGE_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        # Not decodable: hand it over as text rather than drop the message.
        LOGGER.warning("Inline image part is not valid base64; sending as text")
        return types.Part.from_text(text=content)
    return types.Part.from_bytes(data=data, mime_type="image/jpeg")


class GeminiGenerator:
    """GeneratorPort implementation backed by the google-genai async client."""

    def __init__(self, client, model_name: str) -> None:
        self._client = client
        self.model_name = model_name

    async def generate(
        self,
        system_prompt: Optional[str],
        content_parts: Sequence[str],
        options: GenerationOptions,
    ) -> str:
        contents = [types.Content(role="user", parts=[build_part(part) for part in content_parts])]
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=options.temperature,
            max_output_tokens=options.max_output_tokens,
        )
        LOGGER.info(
            "Calling %s with %s parts (temperature=%s)",
            self.model_name,
            len(content_parts),
            options.temperature,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )
        except Exception as exc:
            status = getattr(exc, "code", None)
            raise GenerationFailure(
                f"Generation request to {self.model_name} failed: {exc}",
                cause=exc,
                service_status=status if isinstance(status, int) else None,
            ) from exc

        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise EmptyResult(f"{self.model_name} returned no text")
        return text
