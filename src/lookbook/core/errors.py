"""Exception hierarchy for the Lookbook Generator.

Errors fall into three groups:

- **Input errors** (:class:`InvalidSourceImageError`,
  :class:`UnknownArchetypeError`, :class:`DuplicateArchetypeError`) are raised
  before anything is dispatched and are never retried.
- **Remote errors** (:class:`GenerationError`) carry a ``classification``.
  Only ``"transient"`` failures are retried by the retry policy.
- **Caller-contract errors** (:class:`IncompleteRunError`,
  :class:`ItemInFlightError`, :class:`ItemNotReadyError`,
  :class:`NoSourceImageError`) and rendering failures
  (:class:`CompositionError`) are raised by the session facade.
"""

from __future__ import annotations

from typing import Literal

Classification = Literal["transient", "permanent"]


class LookbookError(Exception):
    """Base class for every error raised by this package."""


class InvalidSourceImageError(LookbookError, ValueError):
    """The submitted source photo could not be decoded."""


class UnknownArchetypeError(LookbookError, KeyError):
    """An archetype label outside the fixed set was requested."""

    def __init__(self, label: str) -> None:
        super().__init__(label)
        self.label = label

    def __str__(self) -> str:
        return f"No prompt found for archetype: {self.label}"


class DuplicateArchetypeError(LookbookError, ValueError):
    """The same archetype was submitted more than once in a run."""


class GenerationError(LookbookError):
    """A generation call failed.

    Attributes:
        classification: ``"transient"`` for internal/server-side faults that
            are worth retrying, ``"permanent"`` for everything else.
        message: Human-readable description of the failure.
    """

    def __init__(self, message: str, classification: Classification = "permanent") -> None:
        super().__init__(message)
        self.message = message
        self.classification: Classification = classification

    @property
    def is_transient(self) -> bool:
        return self.classification == "transient"

    def __repr__(self) -> str:
        return f"GenerationError({self.message!r}, classification={self.classification!r})"


class CompositionError(LookbookError):
    """The lookbook page could not be rendered."""


class IncompleteRunError(LookbookError):
    """Composition was requested while some archetypes are not Done."""

    def __init__(self, missing: list[str]) -> None:
        detail = ", ".join(missing) if missing else "nothing has been generated yet"
        super().__init__(
            "Please wait for all images to finish generating before downloading the "
            f"lookbook (not ready: {detail})."
        )
        self.missing = missing


class ItemInFlightError(LookbookError):
    """Regeneration was requested for an item that is already being generated."""


class ItemNotReadyError(LookbookError):
    """A generated image was requested for an item that is not Done."""


class NoSourceImageError(LookbookError):
    """Generation was requested before a source photo was submitted."""
