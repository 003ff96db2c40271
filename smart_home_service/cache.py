"""In-memory cache of the most recent reading per device and sensor kind."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .models import EncodedReading, SensorKind


class ReadWriteLock:
    """Asyncio lock admitting many readers or a single writer.

    A waiting writer blocks new readers, so a steady stream of reads
    cannot starve updates.
    """

    def __init__(self) -> None:
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextlib.asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._condition:
            await self._condition.wait_for(
                lambda: not self._writer and not self._waiting_writers
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextlib.asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._condition:
            self._waiting_writers += 1
            try:
                await self._condition.wait_for(
                    lambda: not self._writer and not self._readers
                )
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._condition:
                self._writer = False
                self._condition.notify_all()


class ReadingCache:
    """Latest EncodedReading per (device_id, sensor_kind).

    Shared by the polling task (writer) and by REST handlers and the
    control loop (readers). Entries never expire; consumers that care
    about staleness compare recorded_at themselves.

    Writes are last-write-wins by arrival order, not by recorded_at: a
    delayed poll carrying an older timestamp still replaces a newer entry.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._readings: dict[tuple[str, SensorKind], EncodedReading] = {}

    async def async_update(self, reading: EncodedReading) -> None:
        """Overwrite the entry for (reading.device_id, reading.sensor_kind)."""
        async with self._lock.write():
            self._readings[(reading.device_id, reading.sensor_kind)] = reading

    async def async_all(self) -> list[EncodedReading]:
        """Return a point-in-time snapshot of every cached reading."""
        async with self._lock.read():
            return list(self._readings.values())

    async def async_get(
        self, device_id: str, sensor_kind: SensorKind
    ) -> EncodedReading | None:
        """Return the latest reading for a device and sensor kind, if any."""
        async with self._lock.read():
            return self._readings.get((device_id, sensor_kind))

    async def async_get_device(self, device_id: str) -> list[EncodedReading]:
        """Return the latest readings of one device, one per sensor kind."""
        async with self._lock.read():
            return [
                reading
                for (cached_device_id, _), reading in self._readings.items()
                if cached_device_id == device_id
            ]
