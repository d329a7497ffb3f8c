"""One fetcher per collection, converging remote state into a replica."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

from ..errors import RemoteStoreError
from .replica import Replica

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CollectionFetcher(Generic[T]):
    """Load a full collection and replace the local replica with it.

    A transport failure is logged and leaves the replica untouched: stale but
    consistent. The fetcher never raises to its caller, so one failing
    collection cannot block the others.
    """

    def __init__(self, name: str, replica: Replica[T], load: Callable[[], Awaitable[Sequence[T]]]) -> None:
        self.name = name
        self.replica = replica
        self._load = load

    async def __call__(self) -> bool:
        ticket = self.replica.issue()
        try:
            items = await self._load()
        except RemoteStoreError as exc:
            logger.error(f"Error fetching {self.name}: {exc}")
            return False
        except Exception:
            logger.exception(f"Unexpected error fetching {self.name}")
            return False
        return self.replica.apply(ticket, items)

    def __repr__(self) -> str:
        return f"CollectionFetcher({self.name!r})"
