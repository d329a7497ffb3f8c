"""Device geolocation: single fixes and standing position watches."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Protocol, Union

from ..config import settings
from ..errors import GeolocationError, GeolocationFailure
from ..models.domain import Position

logger = logging.getLogger(__name__)

FixCallback = Callable[[Position], Awaitable[None]]
ErrorCallback = Callable[[GeolocationError], Awaitable[None]]

FAILURE_MESSAGES: dict[GeolocationFailure, str] = {
    GeolocationFailure.PERMISSION_DENIED: "Permiso de ubicación denegado. Por favor habilite el GPS.",
    GeolocationFailure.POSITION_UNAVAILABLE: "Ubicación no disponible",
    GeolocationFailure.TIMEOUT: "Tiempo de espera agotado",
    GeolocationFailure.OTHER: "Error al obtener ubicación",
}


def failure_message(reason: GeolocationFailure) -> str:
    return FAILURE_MESSAGES.get(reason, FAILURE_MESSAGES[GeolocationFailure.OTHER])


@dataclass(frozen=True, slots=True)
class GeolocationOptions:
    high_accuracy: bool = True
    timeout: float = 10.0
    maximum_age: float = 0.0

    @classmethod
    def from_settings(cls) -> "GeolocationOptions":
        return cls(
            high_accuracy=settings.geolocation_high_accuracy,
            timeout=settings.geolocation_timeout_seconds,
            maximum_age=settings.geolocation_maximum_age_seconds,
        )


class GeolocationProvider(Protocol):
    async def current_position(self, options: GeolocationOptions) -> Position: ...

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: GeolocationOptions) -> int: ...

    def clear_watch(self, watch_id: int) -> None: ...


TrackItem = Union[Position, GeolocationError]


class ReplayGeolocation:
    """Provider that replays a scripted track of fixes and failures.

    ``current_position`` consumes the track one item at a time. Every watch
    replays the whole track from the start, ``interval`` seconds apart, until
    it is cleared or the track runs out.
    """

    def __init__(self, track: Iterable[TrackItem], *, interval: float = 1.0) -> None:
        self.track = list(track)
        self.interval = interval
        self._cursor = 0
        self._watch_ids = itertools.count(1)
        self._watches: dict[int, asyncio.Task] = {}

    @property
    def active_watches(self) -> int:
        return sum(1 for task in self._watches.values() if not task.done())

    async def current_position(self, options: GeolocationOptions) -> Position:
        if self._cursor >= len(self.track):
            raise GeolocationError(GeolocationFailure.POSITION_UNAVAILABLE)
        item = self.track[self._cursor]
        self._cursor += 1
        if isinstance(item, GeolocationError):
            raise item
        return item

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: GeolocationOptions) -> int:
        watch_id = next(self._watch_ids)
        task = asyncio.get_running_loop().create_task(self._replay(on_fix, on_error))
        task.add_done_callback(self._finished)
        self._watches[watch_id] = task
        return watch_id

    async def _replay(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        for item in self.track:
            if isinstance(item, GeolocationError):
                await on_error(item)
            else:
                await on_fix(item)
            await asyncio.sleep(self.interval)

    @staticmethod
    def _finished(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Position watch failed", exc_info=task.exception())

    def clear_watch(self, watch_id: int) -> None:
        task = self._watches.pop(watch_id, None)
        if task is not None:
            task.cancel()
