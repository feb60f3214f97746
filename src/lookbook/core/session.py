"""Caller-side facade tying one photo to one generation run.

:class:`LookbookSession` owns the source photo, the state store, the
scheduler and the renderer.  The HTTP API and the CLI only talk to this
class.

Two availability rules apply to results:

- a single archetype's image can be fetched as soon as that archetype is DONE;
- the lookbook page is only built once *every* submitted archetype is DONE,
  otherwise :class:`~lookbook.core.errors.IncompleteRunError` is raised before
  the renderer is touched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .archetypes import ALL_ARCHETYPES, Archetype
from .config import LookbookConfig
from .config import config as default_config
from .errors import (
    IncompleteRunError,
    ItemInFlightError,
    ItemNotReadyError,
    NoSourceImageError,
)
from .generation_client import GenerationClient, client_registry
from .models import EncodedImage, GenerationItem, ItemStatus, SourceImage
from .renderer import CompositeRenderer
from .retry import RetryPolicy
from .scheduler import TaskScheduler, resolve_archetypes
from .state_store import GenerationStateStore

logger = logging.getLogger(__name__)


class LookbookSession:
    """One photo, its archetype generations and the resulting lookbook.

    Args:
        client: Backend performing the generation calls.
        config: Settings (defaults to the global configuration).
        renderer: Lookbook renderer (built from *config* if omitted).
        retry_policy: Retry policy (built from *config* if omitted).
    """

    def __init__(
        self,
        client: GenerationClient,
        config: LookbookConfig | None = None,
        renderer: CompositeRenderer | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config or default_config
        self.client = client
        self.store = GenerationStateStore()
        self.renderer = renderer or CompositeRenderer.from_config(self.config)
        self.scheduler = TaskScheduler(
            client,
            self.store,
            retry_policy
            or RetryPolicy(self.config.max_attempts, self.config.initial_retry_delay),
            worker_count=self.config.worker_count,
        )
        self._source: SourceImage | None = None
        self._active_runs = 0

    @classmethod
    def from_config(
        cls,
        config: LookbookConfig | None = None,
        backend: str | None = None,
        seed: int | None = None,
    ) -> LookbookSession:
        """Build a session with the backend named in the configuration."""
        config = config or default_config
        client = client_registry.instantiate(backend or config.generation_backend, config)
        renderer = CompositeRenderer.from_config(config, seed=seed)
        return cls(client, config=config, renderer=renderer)

    # -- Source photo -------------------------------------------------------

    @property
    def source(self) -> SourceImage | None:
        return self._source

    def set_source(self, source: SourceImage | str) -> SourceImage:
        """Use a new photo and discard all previous results.

        Args:
            source: A :class:`SourceImage` or a base64 image data URL.

        Raises:
            InvalidSourceImageError: If a data URL is malformed.
            ItemInFlightError: If generations are still running.
        """
        if self.is_running:
            raise ItemInFlightError("Cannot change the photo while images are being generated.")
        if isinstance(source, str):
            encoded = EncodedImage.from_data_url(source)
            source = SourceImage(media_type=encoded.media_type, payload=encoded.payload)
        self._source = source
        self.store.initialize([])
        logger.info("Source image set (%s, %d bytes).", source.media_type, len(source.payload))
        return source

    def reset(self) -> None:
        """Forget the photo and every result."""
        if self.is_running:
            raise ItemInFlightError("Cannot reset while images are being generated.")
        self._source = None
        self.store.initialize([])
        logger.info("Session reset.")

    def _require_source(self) -> SourceImage:
        if self._source is None:
            raise NoSourceImageError("Please upload a photo first.")
        return self._source

    # -- Generation ---------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._active_runs > 0 or self.store.in_flight_count() > 0

    def prepare_run(self, names: Iterable[Archetype | str] | None = None) -> list[Archetype]:
        """Validate a run request and mark its archetypes PENDING.

        Lets callers report input errors synchronously before starting
        :meth:`generate_all` in the background.

        Raises:
            NoSourceImageError: If no photo has been set.
            UnknownArchetypeError, DuplicateArchetypeError: On bad names.
            ItemInFlightError: If a run is already in progress.
        """
        self._require_source()
        archetypes = resolve_archetypes(ALL_ARCHETYPES if names is None else names)
        if self.is_running:
            raise ItemInFlightError("Images are already being generated.")
        self.store.initialize(archetypes)
        return archetypes

    async def generate_all(
        self, names: Iterable[Archetype | str] | None = None
    ) -> dict[Archetype, GenerationItem]:
        """Generate every requested archetype (all of them by default).

        Returns:
            The final state of every item.
        """
        archetypes = self.prepare_run(names)
        source = self._require_source()
        self._active_runs += 1
        try:
            return await self.scheduler.run(source, archetypes)
        finally:
            self._active_runs -= 1

    async def regenerate(self, name: Archetype | str) -> GenerationItem:
        """Generate one archetype of the current run again.

        Raises:
            NoSourceImageError: If no photo has been set.
            UnknownArchetypeError: If *name* is not an archetype.
            ItemNotReadyError: If the archetype is not part of the current run.
            ItemInFlightError: If a run is active or the archetype is queued
                or being generated.
        """
        archetype = self.check_regeneration(name)
        source = self._require_source()
        self._active_runs += 1
        try:
            if not await self.scheduler.regenerate(source, archetype):
                raise ItemInFlightError(f"{archetype} is already being generated.")
        finally:
            self._active_runs -= 1
        return self.store.get(archetype)

    def check_regeneration(self, name: Archetype | str) -> Archetype:
        """Validate a regeneration request without dispatching it."""
        self._require_source()
        archetype = name if isinstance(name, Archetype) else Archetype.from_label(name)
        if archetype not in self.store:
            raise ItemNotReadyError(f"{archetype} is not part of the current run.")
        if self._active_runs > 0:
            raise ItemInFlightError("Images are already being generated.")
        if not self.store.get(archetype).status.is_terminal:
            raise ItemInFlightError(f"{archetype} is already being generated.")
        return archetype

    # -- Results ------------------------------------------------------------

    def status(self) -> list[dict]:
        return [item.to_record() for item in self.store.snapshot().values()]

    @property
    def is_complete(self) -> bool:
        items = self.store.snapshot()
        return bool(items) and all(item.status is ItemStatus.DONE for item in items.values())

    def item_image(self, name: Archetype | str) -> EncodedImage:
        """Return the generated image of one archetype.

        Raises:
            UnknownArchetypeError: If *name* is not an archetype.
            ItemNotReadyError: If the archetype is not DONE.
        """
        archetype = name if isinstance(name, Archetype) else Archetype.from_label(name)
        if archetype not in self.store:
            raise ItemNotReadyError(f"{archetype} has not been generated.")
        item = self.store.get(archetype)
        if item.status is not ItemStatus.DONE or item.result is None:
            raise ItemNotReadyError(f"{archetype} is {item.status.value}, not done.")
        return item.result

    def build_lookbook(self) -> EncodedImage:
        """Render the lookbook page from every generated image.

        Raises:
            IncompleteRunError: If any submitted archetype is not DONE.
            CompositionError: If rendering fails.
        """
        items = self.store.snapshot()
        missing = [
            item.name for item in items.values() if item.status is not ItemStatus.DONE
        ]
        if not items or missing:
            raise IncompleteRunError(missing)

        images = {item.name: item.result for item in items.values()}
        logger.info("Building lookbook from %d images.", len(images))
        return self.renderer.compose(images)

    async def close(self) -> None:
        await self.client.close()
