"""Bounded-concurrency generation of archetypes.

:class:`TaskScheduler` puts the submitted archetypes on a shared
``asyncio.Queue`` and starts a fixed number of workers.  Each worker takes
one archetype at a time, claims it in the state store, runs the generation
client through the retry policy and records the outcome.  ``run`` returns
once the queue is drained and every worker has finished, at which point every
submitted archetype is DONE or ERROR.

Individual failures never escape ``run``; they are recorded in the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .archetypes import Archetype
from .errors import DuplicateArchetypeError, GenerationError
from .generation_client import GenerationClient
from .models import GenerationItem, SourceImage
from .retry import RetryPolicy
from .state_store import GenerationStateStore

logger = logging.getLogger(__name__)

DEFAULT_WORKER_COUNT = 2


def resolve_archetypes(names: Iterable[Archetype | str]) -> list[Archetype]:
    """Convert labels to archetypes and reject duplicates.

    Raises:
        UnknownArchetypeError: If a label is not part of the fixed set.
        DuplicateArchetypeError: If an archetype appears more than once.
    """
    archetypes: list[Archetype] = []
    for name in names:
        archetype = name if isinstance(name, Archetype) else Archetype.from_label(name)
        if archetype in archetypes:
            raise DuplicateArchetypeError(f"Archetype submitted more than once: {archetype}")
        archetypes.append(archetype)
    return archetypes


class TaskScheduler:
    """Runs archetype generations with a fixed-size worker pool.

    Attributes:
        worker_count: Default number of concurrent workers for :meth:`run`.
    """

    def __init__(
        self,
        client: GenerationClient,
        store: GenerationStateStore,
        retry_policy: RetryPolicy | None = None,
        worker_count: int = DEFAULT_WORKER_COUNT,
    ) -> None:
        self._client = client
        self._store = store
        self._retry = retry_policy or RetryPolicy()
        self.worker_count = worker_count

    @property
    def store(self) -> GenerationStateStore:
        return self._store

    async def run(
        self,
        source: SourceImage,
        names: Iterable[Archetype | str],
        worker_count: int | None = None,
    ) -> dict[Archetype, GenerationItem]:
        """Generate every archetype in *names* from *source*.

        All records are reset to PENDING before the workers start.

        Args:
            source: The photo shared by every request.
            names: Archetypes or their labels.  Order is irrelevant.
            worker_count: Number of concurrent workers (defaults to
                :attr:`worker_count`).

        Returns:
            Snapshot of the store once every item is DONE or ERROR.

        Raises:
            UnknownArchetypeError, DuplicateArchetypeError: Before any dispatch.
        """
        archetypes = resolve_archetypes(names)
        self._store.initialize(archetypes)
        if worker_count is None:
            worker_count = self.worker_count
        await self._drain(source, archetypes, worker_count)
        return self._store.snapshot()

    async def regenerate(self, source: SourceImage, archetype: Archetype) -> bool:
        """Generate a single archetype again, discarding its previous outcome.

        Returns:
            False without dispatching anything unless the archetype is DONE
            or ERROR (it is queued or in flight).

        Raises:
            KeyError: If *archetype* is not part of the current run.
        """
        if not self._store.reset(archetype):
            logger.info("Ignoring regeneration of %s: not finished yet.", archetype)
            return False

        logger.info("Regenerating image for %s...", archetype)
        await self._drain(source, [archetype], 1)
        return True

    async def _drain(
        self, source: SourceImage, archetypes: list[Archetype], worker_count: int
    ) -> None:
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")

        queue: asyncio.Queue[Archetype] = asyncio.Queue()
        for archetype in archetypes:
            queue.put_nowait(archetype)

        logger.info(
            "Starting %d workers for %d archetypes.", worker_count, len(archetypes)
        )
        await asyncio.gather(
            *(self._worker(worker_id, queue, source) for worker_id in range(worker_count))
        )
        logger.info("All workers finished.")

    async def _worker(
        self, worker_id: int, queue: asyncio.Queue[Archetype], source: SourceImage
    ) -> None:
        while True:
            try:
                archetype = queue.get_nowait()
            except asyncio.QueueEmpty:
                logger.debug("Worker %d: queue empty, stopping.", worker_id)
                return

            if not self._store.mark_in_flight(archetype):
                continue

            logger.info("Worker %d: attempting generation for %s...", worker_id, archetype)
            await self._process(archetype, source)

    async def _process(self, archetype: Archetype, source: SourceImage) -> None:
        try:
            result = await self._retry.execute(
                lambda: self._client.generate(source, archetype.prompt)
            )
        except GenerationError as e:
            logger.error("Failed to generate image for %s: %s", archetype, e.message)
            self._store.mark_error(archetype, _failure_message(e.message))
        except Exception as e:
            logger.exception("Unexpected error while generating %s.", archetype)
            self._store.mark_error(archetype, _failure_message(str(e) or type(e).__name__))
        else:
            logger.info("Generated image for %s.", archetype)
            self._store.mark_done(archetype, result)


def _failure_message(details: str) -> str:
    return f"The AI model failed to generate an image. Details: {details}"
