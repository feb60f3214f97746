"""Gemini image-edit backend.

Sends the source photo and the archetype prompt to a Gemini image model and
returns the first inline image of the response.

Error classification
--------------------
- API errors with HTTP code 500 or status ``INTERNAL`` are **transient**.
- Every other API error (bad request, permission, quota, unavailable model)
  is **permanent**.
- A response without an image part (typically a text refusal) is
  **permanent**; the text is used as the error message.
- A missing API key is **permanent** and is reported before any request.
"""

from __future__ import annotations

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from lookbook.core.config import LookbookConfig
from lookbook.core.errors import GenerationError
from lookbook.core.generation_client import GenerationClient, client_registry
from lookbook.core.models import EncodedImage, SourceImage

logger = logging.getLogger(__name__)


def classify_api_error(error: genai_errors.APIError) -> str:
    """Map a google-genai API error onto a retry classification."""
    if error.code == 500 or (error.status or "").upper() == "INTERNAL":
        return "transient"
    return "permanent"


def extract_image(response: types.GenerateContentResponse) -> EncodedImage:
    """Return the first inline image of *response*.

    Raises:
        GenerationError: (permanent) if the response carries no image.
    """
    candidates = response.candidates or []
    if candidates and candidates[0].content and candidates[0].content.parts:
        for part in candidates[0].content.parts:
            if part.inline_data is not None and part.inline_data.data:
                return EncodedImage(
                    media_type=part.inline_data.mime_type or "image/png",
                    payload=part.inline_data.data,
                )

    text = _response_text(response)
    logger.error("API did not return an image. Response: %s", text)
    raise GenerationError(
        "The AI model responded with text instead of an image: "
        f'"{text or "No text response received."}"',
        classification="permanent",
    )


def _response_text(response: types.GenerateContentResponse) -> str:
    texts: list[str] = []
    for candidate in response.candidates or []:
        if candidate.content is None:
            continue
        for part in candidate.content.parts or []:
            if part.text:
                texts.append(part.text)
    return "".join(texts)


@client_registry.register
class GeminiClient(GenerationClient):
    """Generation client backed by the Gemini API.

    The underlying ``genai.Client`` is created lazily on the first call so
    that constructing the backend never needs network access or a key.
    """

    name = "gemini"
    description = "Remote image editing with a Gemini image model"

    def __init__(self, config: LookbookConfig, client: genai.Client | None = None) -> None:
        super().__init__(config)
        self._client = client
        self.model = config.gemini_model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.config.gemini_api_key:
                raise GenerationError(
                    "No Gemini API key configured. Set LOOKBOOK_GEMINI_API_KEY.",
                    classification="permanent",
                )
            self._client = genai.Client(api_key=self.config.gemini_api_key)
        return self._client

    async def generate(self, source: SourceImage, prompt: str) -> EncodedImage:
        client = self._get_client()
        contents = [
            types.Part.from_bytes(data=source.payload, mime_type=source.media_type),
            types.Part.from_text(text=prompt),
        ]

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=contents,
            )
        except genai_errors.APIError as e:
            classification = classify_api_error(e)
            logger.error("Error calling Gemini API (%s): %s", classification, e)
            raise GenerationError(str(e), classification=classification) from e

        return extract_image(response)
