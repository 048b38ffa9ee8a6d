"""Snapshot manager - publishes index generations and hands out leases on them."""

import dataclasses
import logging
import threading
from typing import Callable, Optional

from ..errors import IndexUnavailable
from ..models.index import IndexGeneration

logger = logging.getLogger(__name__)


class _Slot:
    """A published generation with its reference count."""

    def __init__(self, generation: IndexGeneration, on_retire: Callable[[IndexGeneration], None]):
        self.generation = generation
        self._on_retire = on_retire
        self._lock = threading.Lock()
        self._refs = 0
        self._superseded = False
        self._retired = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._superseded:
                return False
            self._refs += 1
            return True

    def release(self) -> None:
        with self._lock:
            self._refs -= 1
            retire = self._superseded and self._refs == 0 and not self._retired
            if retire:
                self._retired = True
        if retire:
            self._on_retire(self.generation)

    def supersede(self) -> None:
        with self._lock:
            self._superseded = True
            retire = self._refs == 0 and not self._retired
            if retire:
                self._retired = True
        if retire:
            self._on_retire(self.generation)


class Lease:
    """Pins one generation for the duration of a query."""

    def __init__(self, slot: _Slot):
        self._slot = slot
        self._released = False

    @property
    def generation(self) -> IndexGeneration:
        return self._slot.generation

    @property
    def number(self) -> int:
        return self._slot.generation.number

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._slot.release()

    def __enter__(self) -> IndexGeneration:
        return self.generation

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class SnapshotManager:
    """Holds exactly one current generation and swaps it atomically.

    Readers never take the publish lock: `acquire` reads the current slot
    pointer and increments that slot's reference count. A superseded slot
    refuses new leases, so a reader racing with `publish` simply retries on
    the new pointer. Old generations retire when their last lease is released.
    """

    def __init__(self, on_retire: Optional[Callable[[IndexGeneration], None]] = None):
        self._current: Optional[_Slot] = None
        self._publish_lock = threading.Lock()
        self._next_number = 1
        self._retire_callbacks: list[Callable[[IndexGeneration], None]] = []
        if on_retire is not None:
            self._retire_callbacks.append(on_retire)

        self._live_lock = threading.Lock()
        self._live: dict[int, _Slot] = {}

    def add_retire_callback(self, callback: Callable[[IndexGeneration], None]) -> None:
        self._retire_callbacks.append(callback)

    def _retire(self, generation: IndexGeneration) -> None:
        with self._live_lock:
            self._live.pop(generation.number, None)
        logger.info(f"Retired generation {generation.number} ({generation.content_hash[:16]})")
        for callback in self._retire_callbacks:
            try:
                callback(generation)
            except Exception as e:
                logger.error(f"Retire callback failed for generation {generation.number}: {e}")

    def publish(self, generation: IndexGeneration) -> IndexGeneration:
        """Validate and make a generation current.

        Args:
            generation: Freshly built, unpublished generation.

        Returns:
            The published generation with its number assigned.

        Raises:
            InvalidGeneration: Generation is structurally invalid; nothing changes.
        """
        generation.validate()

        with self._publish_lock:
            published = dataclasses.replace(generation, number=self._next_number)
            slot = _Slot(published, self._retire)
            with self._live_lock:
                self._live[published.number] = slot

            previous = self._current
            self._current = slot
            self._next_number += 1

        logger.info(
            f"Published generation {published.number} "
            f"({len(published.documents)} documents, {published.content_hash[:16]})"
        )
        if previous is not None:
            previous.supersede()
        return published

    def acquire(self) -> Lease:
        """Lease the current generation.

        Raises:
            IndexUnavailable: Nothing has been published yet.
        """
        while True:
            slot = self._current
            if slot is None:
                raise IndexUnavailable("No index generation has been published yet")
            if slot.try_acquire():
                return Lease(slot)

    def current(self) -> Optional[IndexGeneration]:
        slot = self._current
        return slot.generation if slot is not None else None

    def live_generations(self) -> list[int]:
        """Numbers of generations not yet retired, current included."""
        with self._live_lock:
            return sorted(self._live)

    @property
    def is_ready(self) -> bool:
        return self._current is not None
