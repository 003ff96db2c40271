"""Device polling: fetch, decode, persist and cache sensor readings."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .api import TuyaApiClientError
from .models import DeviceType
from .status import build_device_status, status_to_readings
from .storage import StorageError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .cache import ReadingCache
    from .client import TuyaClient
    from .models import EncodedReading
    from .storage import ReadingStore

_LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SensorService:
    """Turns one device poll into stored and cached readings."""

    def __init__(
        self,
        client: TuyaClient,
        store: ReadingStore,
        cache: ReadingCache,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._store = store
        self._cache = cache
        self._clock = clock

    async def async_fetch_and_persist(
        self, device_id: str, device_type: DeviceType
    ) -> list[EncodedReading]:
        """Poll a device and store its readings.

        Weather stations are read from the shadow properties endpoint, every
        other family from the v1 status endpoint. All readings of one poll
        share the same recorded_at. The cache is only updated for readings
        that were actually inserted.

        Args:
            device_id: Tuya device ID.
            device_type: Family of the device.

        Returns:
            The readings that were inserted.

        Raises:
            TuyaApiClientError: If fetching or decoding the status fails.
            StorageError: If an insert fails.

        """
        if device_type is DeviceType.WEATHER_STATION:
            points = await self._client.async_fetch_shadow_properties(device_id)
        else:
            points = await self._client.async_fetch_status(device_id)

        status = build_device_status(device_type, points)
        recorded_at = self._clock()
        readings = status_to_readings(device_id, status, recorded_at)

        inserted = []
        for reading in readings:
            if await self._store.async_insert_reading(reading):
                await self._cache.async_update(reading)
                inserted.append(reading)

        _LOGGER.debug(
            "Stored %d of %d readings for %s device %s",
            len(inserted),
            len(readings),
            device_type,
            device_id,
        )
        return inserted


class SensorPoller:
    """Periodically polls every configured device."""

    def __init__(
        self,
        service: SensorService,
        devices: Mapping[str, DeviceType],
        interval: float,
    ) -> None:
        self._service = service
        self._devices = dict(devices)
        self._interval = interval

    async def async_poll_once(self) -> int:
        """Poll every device once.

        A failing device is logged and skipped so that it cannot stop the
        others from being polled.

        Returns:
            The number of devices polled successfully.

        """
        succeeded = 0
        for device_id, device_type in self._devices.items():
            try:
                await self._service.async_fetch_and_persist(device_id, device_type)
            except TuyaApiClientError as err:
                _LOGGER.warning("Failed to poll device %s: %s", device_id, err)
                continue
            except StorageError as err:
                _LOGGER.error("Failed to store readings of %s: %s", device_id, err)
                continue
            succeeded += 1
        return succeeded

    async def async_run(self) -> None:
        """Poll forever at the configured interval until cancelled."""
        if not self._devices:
            _LOGGER.warning("No devices configured, sensor polling disabled")
            return
        _LOGGER.info(
            "Polling %d device(s) every %ss", len(self._devices), self._interval
        )
        while True:
            await self.async_poll_once()
            await asyncio.sleep(self._interval)
