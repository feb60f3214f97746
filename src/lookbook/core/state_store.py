"""Per-archetype lifecycle state for a generation run.

:class:`GenerationStateStore` is the only mutable state shared between
workers.  Every operation touches a single key and runs under one lock, so a
read-modify-write on an item can never interleave with another update of the
same item, whether the workers are asyncio tasks or real threads (the local
diffusers backend runs inference in a worker thread).

Records are immutable :class:`~lookbook.core.models.GenerationItem` values;
callers receive the current value and never a handle they could mutate.

Transitions
-----------
::

    initialize / reset         -> PENDING
    mark_in_flight   PENDING   -> IN_FLIGHT   (returns False if already IN_FLIGHT)
    mark_done        IN_FLIGHT -> DONE
    mark_error       IN_FLIGHT -> ERROR
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from .archetypes import Archetype
from .models import EncodedImage, GenerationItem, ItemStatus

logger = logging.getLogger(__name__)

StatusListener = Callable[[GenerationItem], None]


class GenerationStateStore:
    """Thread-safe mapping of archetype -> GenerationItem."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[Archetype, GenerationItem] = {}
        self._listeners: list[StatusListener] = []

    # -- Lifecycle ----------------------------------------------------------

    def initialize(self, archetypes: Iterable[Archetype]) -> None:
        """Replace all records with fresh PENDING items for *archetypes*."""
        with self._lock:
            self._items = {archetype: GenerationItem(archetype) for archetype in archetypes}
            items = list(self._items.values())
        logger.info("Initialized state for %d archetypes.", len(items))
        for item in items:
            self._publish(item)

    def reset(self, archetype: Archetype) -> bool:
        """Reset a finished item to PENDING, discarding its result or error.

        Returns:
            False (and changes nothing) unless the item is DONE or ERROR.

        Raises:
            KeyError: If *archetype* is not part of the current run.
        """
        with self._lock:
            current = self._items[archetype]
            if not current.status.is_terminal:
                return False
            item = GenerationItem(archetype)
            self._items[archetype] = item
        self._publish(item)
        return True

    def mark_in_flight(self, archetype: Archetype) -> bool:
        """Claim an item for generation.

        Returns:
            True if the caller now owns the attempt, False if the item was
            already IN_FLIGHT (the caller must not dispatch it again).

        Raises:
            KeyError: If the archetype is not part of the run.
        """
        with self._lock:
            current = self._items[archetype]
            if current.status is ItemStatus.IN_FLIGHT:
                logger.debug("%s is already in flight.", archetype)
                return False
            item = current.in_flight()
            self._items[archetype] = item
        self._publish(item)
        return True

    def mark_done(self, archetype: Archetype, result: EncodedImage) -> None:
        with self._lock:
            item = self._items[archetype].done(result)
            self._items[archetype] = item
        self._publish(item)

    def mark_error(self, archetype: Archetype, message: str) -> None:
        with self._lock:
            item = self._items[archetype].failed(message)
            self._items[archetype] = item
        self._publish(item)

    # -- Queries ------------------------------------------------------------

    def get(self, archetype: Archetype) -> GenerationItem:
        with self._lock:
            return self._items[archetype]

    def snapshot(self) -> dict[Archetype, GenerationItem]:
        """Return a copy of the full mapping in submission order."""
        with self._lock:
            return dict(self._items)

    def archetypes(self) -> list[Archetype]:
        with self._lock:
            return list(self._items)

    def in_flight_count(self) -> int:
        with self._lock:
            return sum(1 for item in self._items.values() if item.status is ItemStatus.IN_FLIGHT)

    def __contains__(self, archetype: object) -> bool:
        with self._lock:
            return archetype in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # -- Subscriptions ------------------------------------------------------

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register *listener* to receive every updated item.

        Returns:
            A callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, item: GenerationItem) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(item)
            except Exception:
                logger.exception("Status listener failed for %s.", item.name)
