from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional

from .schemas import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class ProgressReporter:
    """Ordered, fire-and-forget status messages for one analysis or chat call."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self.events: list[ProgressEvent] = []

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events]

    def emit(self, message: str) -> ProgressEvent:
        event = ProgressEvent(sequence=len(self.events) + 1, message=message)
        self.events.append(event)
        logger.debug("progress %d: %s", event.sequence, message)
        if self._callback is not None:
            try:
                self._callback(message)
            except Exception:  # noqa: BLE001
                logger.exception("Progress callback failed for %r", message)
        return event


class ProgressStream:
    """Push-style view of progress messages, consumed with ``async for``."""

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, message: str) -> None:
        self._queue.put_nowait(message)

    def close(self) -> None:
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item
