"""Local read replicas of remotely owned collections."""

from __future__ import annotations

import logging
from typing import Callable, Generic, Iterable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Replica(Generic[T]):
    """Holds the last applied snapshot of one collection.

    Every fetch takes a ticket from :meth:`issue` before it goes to the network
    and hands it back to :meth:`apply` with the result. With ``discard_stale``
    a result issued before the currently applied one is dropped, so a slow
    early response can no longer regress the collection. Without it the last
    response to resolve wins, whatever its issue order.
    """

    def __init__(self, name: str, *, discard_stale: bool = True) -> None:
        self.name = name
        self.discard_stale = discard_stale
        self.items: tuple[T, ...] = ()
        self.loaded = False
        self.version = 0
        self._issued = 0
        self._applied_ticket = 0
        self._listeners: list[Callable[[tuple[T, ...]], None]] = []

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def issue(self) -> int:
        self._issued += 1
        return self._issued

    def apply(self, ticket: int, items: Iterable[T]) -> bool:
        """Replace the collection wholesale. Returns False when the result was discarded."""
        if self.discard_stale and ticket < self._applied_ticket:
            logger.debug(
                f"Discarding stale {self.name} result (ticket {ticket} < applied {self._applied_ticket})"
            )
            return False
        snapshot = tuple(items)
        self._applied_ticket = ticket
        self.loaded = True
        self.version += 1
        if snapshot == self.items:
            return True
        self.items = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return True

    def add_listener(self, listener: Callable[[tuple[T, ...]], None]) -> None:
        """Register a callback fired whenever the applied items actually change."""
        self._listeners.append(listener)

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        return next((item for item in self.items if predicate(item)), None)
