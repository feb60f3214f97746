"""Data models for images and per-archetype generation records."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .archetypes import Archetype
from .errors import InvalidSourceImageError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.*)$", re.DOTALL)


@dataclass(frozen=True)
class EncodedImage:
    """An encoded raster image: raw bytes plus their declared media type."""

    media_type: str
    payload: bytes

    @classmethod
    def from_data_url(cls, data_url: str) -> EncodedImage:
        """Decode a ``data:image/<type>;base64,<data>`` URL.

        Raises:
            InvalidSourceImageError: If the URL is not a base64 image data URL.
        """
        match = _DATA_URL_RE.match(data_url.strip())
        if not match:
            raise InvalidSourceImageError(
                "Invalid image data URL format. Expected 'data:image/...;base64,...'"
            )
        media_type, data = match.groups()
        try:
            payload = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidSourceImageError(f"Image data is not valid base64: {e}") from e
        if not payload:
            raise InvalidSourceImageError("Image data is empty")
        return cls(media_type=media_type, payload=payload)

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.payload).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    def __repr__(self) -> str:
        return f"EncodedImage(media_type={self.media_type!r}, size={len(self.payload)})"


@dataclass(frozen=True)
class SourceImage(EncodedImage):
    """The user's photo every archetype request is derived from."""

    def __post_init__(self) -> None:
        if not self.media_type.startswith("image/"):
            raise InvalidSourceImageError(f"Unsupported media type: {self.media_type}")
        if not self.payload:
            raise InvalidSourceImageError("Source image is empty")


class ItemStatus(str, Enum):
    """Lifecycle status of one archetype within a run."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.DONE, ItemStatus.ERROR)


@dataclass(frozen=True)
class GenerationItem:
    """State of one archetype.

    ``result`` is only set when the status is DONE and ``error_message`` only
    when it is ERROR.  Use the constructors below rather than building
    instances by hand so the invariant always holds.
    """

    archetype: Archetype
    status: ItemStatus = ItemStatus.PENDING
    result: EncodedImage | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        if (self.result is not None) != (self.status is ItemStatus.DONE):
            raise ValueError(f"{self.archetype}: result must be set exactly when status is done")
        if (self.error_message is not None) != (self.status is ItemStatus.ERROR):
            raise ValueError(
                f"{self.archetype}: error_message must be set exactly when status is error"
            )

    @property
    def name(self) -> str:
        return self.archetype.label

    @property
    def prompt(self) -> str:
        return self.archetype.prompt

    def pending(self) -> GenerationItem:
        return GenerationItem(self.archetype)

    def in_flight(self) -> GenerationItem:
        return GenerationItem(self.archetype, status=ItemStatus.IN_FLIGHT)

    def done(self, result: EncodedImage) -> GenerationItem:
        return replace(self, status=ItemStatus.DONE, result=result, error_message=None)

    def failed(self, message: str) -> GenerationItem:
        return replace(self, status=ItemStatus.ERROR, result=None, error_message=message)

    def to_record(self) -> dict[str, Any]:
        """JSON-friendly representation (image bytes are not included)."""
        return {
            "name": self.name,
            "status": self.status.value,
            "prompt": self.prompt,
            "media_type": self.result.media_type if self.result else None,
            "has_result": self.result is not None,
            "error": self.error_message,
        }
