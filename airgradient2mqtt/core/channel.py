"""Bounded hand-off of measurement events from the HTTP side to the publisher."""

from __future__ import annotations

import asyncio
import logging

from .models import MeasurementEvent

LOGGER = logging.getLogger(__name__)


class MeasurementChannel:
    """Single-consumer queue that drops the oldest event when full.

    Producers never wait: a device poll must be answered immediately even if
    the MQTT side has fallen behind.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[MeasurementEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: MeasurementEvent) -> None:
        if self._queue.full():
            stale = self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
            LOGGER.warning(
                "Measurement buffer full; dropping reading from %s", stale.device_id
            )
        self._queue.put_nowait(event)

    async def get(self) -> MeasurementEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def __len__(self) -> int:
        return self._queue.qsize()
