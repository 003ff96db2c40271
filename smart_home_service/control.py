"""Control loop observing the reading cache.

The loop does not decide or send any command yet; it reports the latest
cached temperature and relay state of every device each iteration.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .models import SensorKind

if TYPE_CHECKING:
    from .cache import ReadingCache
    from .client import TuyaClient
    from .models import EncodedReading

_LOGGER = logging.getLogger(__name__)


def group_by_device(
    readings: list[EncodedReading],
) -> dict[str, dict[SensorKind, EncodedReading]]:
    """Index a cache snapshot by device ID and sensor kind."""
    devices: dict[str, dict[SensorKind, EncodedReading]] = {}
    for reading in readings:
        devices.setdefault(reading.device_id, {})[reading.sensor_kind] = reading
    return devices


class ControlService:
    """Periodic control iteration over the latest cached readings."""

    def __init__(
        self,
        client: TuyaClient,
        cache: ReadingCache,
        interval: float,
    ) -> None:
        """Initialize the control service.

        Args:
            client: Shared Tuya client, for sending commands to devices.
            cache: Reading cache filled by the sensor poller.
            interval: Seconds between iterations.

        """
        self.client = client
        self._cache = cache
        self._interval = interval

    async def async_run_once(self) -> dict[str, dict[SensorKind, EncodedReading]]:
        """Run a single control iteration.

        Returns:
            The cached readings the iteration looked at, by device.

        """
        devices = group_by_device(await self._cache.async_all())
        if not devices:
            _LOGGER.info("No sensor readings in cache yet, skipping control iteration")
            return devices

        for device_id, readings in sorted(devices.items()):
            temperature = readings.get(SensorKind.TEMPERATURE)
            relay_state = readings.get(SensorKind.RELAY_STATE)
            _LOGGER.info(
                "Control iteration, latest reading of %s: "
                "temperature=%s relay_state=%s",
                device_id,
                temperature.real_value if temperature else None,
                relay_state.real_value if relay_state else None,
            )
        return devices

    async def async_run(self) -> None:
        """Run control iterations forever until cancelled."""
        _LOGGER.info("Control loop started, interval %ss", self._interval)
        while True:
            try:
                await self.async_run_once()
            except Exception:
                _LOGGER.exception("Control loop iteration failed")
            await asyncio.sleep(self._interval)
