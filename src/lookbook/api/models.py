"""Pydantic request and response models for the Lookbook API.

Models
------
SourceRequest
    Payload for ``POST /api/source`` — the photo as a base64 data URL.
GenerateRequest
    Payload for ``POST /api/generate`` — optional subset of archetypes.
ItemRecord / StatusResponse
    Per-archetype state returned by ``GET /api/status``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class SourceRequest(BaseModel):
    """Request body for the ``POST /api/source`` endpoint.

    Attributes:
        image: The photo as ``data:image/<type>;base64,<data>``.
    """

    image: str = Field(
        ...,
        min_length=1,
        description="Source photo as a base64 image data URL.",
    )


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        archetypes: Labels to generate.  ``None`` generates every archetype.
    """

    archetypes: list[str] | None = Field(
        default=None,
        description="Archetype labels to generate (default: all).",
    )


class ItemRecord(BaseModel):
    """State of one archetype."""

    name: str
    status: str
    prompt: str
    media_type: str | None = None
    has_result: bool = False
    error: str | None = None


class StatusResponse(BaseModel):
    """Response body for ``GET /api/status``."""

    has_source: bool
    running: bool
    complete: bool
    items: list[ItemRecord]
