"""Tests for the sensor service and poller."""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from smart_home_service import api
from smart_home_service.api import MissingDataPointError, TuyaTransportError
from smart_home_service.cache import ReadingCache
from smart_home_service.client import TuyaClient
from smart_home_service.models import DeviceType, SensorKind
from smart_home_service.sensors import SensorPoller, SensorService
from smart_home_service.storage import ReadingStore, StorageError

RECORDED_AT = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)


@pytest.fixture
def mock_client() -> Mock:
    """Create a mock Tuya client."""
    return Mock(spec=TuyaClient)


@pytest.fixture
def mock_store() -> Mock:
    """Create a mock reading store accepting every insert."""
    store = Mock(spec=ReadingStore)
    store.async_insert_reading = AsyncMock(return_value=True)
    return store


@pytest.fixture
def cache() -> ReadingCache:
    """Create an empty reading cache."""
    return ReadingCache()


@pytest.fixture
def service(mock_client: Mock, mock_store: Mock, cache: ReadingCache) -> SensorService:
    """Create a sensor service with a fixed clock."""
    return SensorService(mock_client, mock_store, cache, clock=lambda: RECORDED_AT)


class TestAsyncFetchAndPersist:
    """Tests for SensorService.async_fetch_and_persist."""

    @pytest.mark.asyncio
    async def test_thermostat_readings_are_stored_and_cached(
        self,
        service: SensorService,
        mock_client: Mock,
        mock_store: Mock,
        cache: ReadingCache,
        thermostat_points: list[dict[str, Any]],
    ) -> None:
        """Test that a thermostat poll stores and caches three readings."""
        mock_client.async_fetch_status = AsyncMock(
            return_value=api.extract_device_properties(thermostat_points)
        )

        inserted = await service.async_fetch_and_persist("dev1", DeviceType.THERMOSTAT)

        mock_client.async_fetch_status.assert_awaited_once_with("dev1")
        assert [(r.sensor_kind, r.value) for r in inserted] == [
            (SensorKind.RELAY_STATE, 1),
            (SensorKind.TEMPERATURE, 1890),
            (SensorKind.TEMPERATURE_SETPOINT, 2200),
        ]
        assert mock_store.async_insert_reading.await_count == 3
        assert {r.recorded_at for r in inserted} == {RECORDED_AT}
        cached = await cache.async_get("dev1", SensorKind.TEMPERATURE)
        assert cached is not None
        assert cached.value == 1890

    @pytest.mark.asyncio
    async def test_weather_station_uses_shadow_properties(
        self,
        service: SensorService,
        mock_client: Mock,
        cache: ReadingCache,
        weather_station_properties: list[dict[str, Any]],
    ) -> None:
        """Test that weather stations are read from the shadow endpoint."""
        mock_client.async_fetch_shadow_properties = AsyncMock(
            return_value=api.extract_shadow_properties(
                {"properties": weather_station_properties}
            )
        )
        mock_client.async_fetch_status = AsyncMock()

        await service.async_fetch_and_persist("ws1", DeviceType.WEATHER_STATION)

        mock_client.async_fetch_status.assert_not_awaited()
        assert (await cache.async_get("ws1", SensorKind.HUMIDITY)).value == 5100
        assert (await cache.async_get("ws1.sub1", SensorKind.TEMPERATURE)).value == 1950

    @pytest.mark.asyncio
    async def test_duplicates_are_not_cached(
        self,
        service: SensorService,
        mock_client: Mock,
        mock_store: Mock,
        cache: ReadingCache,
        thermostat_points: list[dict[str, Any]],
    ) -> None:
        """Test that readings the store already had do not update the cache."""
        mock_client.async_fetch_status = AsyncMock(
            return_value=api.extract_device_properties(thermostat_points)
        )
        mock_store.async_insert_reading = AsyncMock(side_effect=[True, False, False])

        inserted = await service.async_fetch_and_persist("dev1", DeviceType.THERMOSTAT)

        assert [r.sensor_kind for r in inserted] == [SensorKind.RELAY_STATE]
        assert [r.sensor_kind for r in await cache.async_all()] == [
            SensorKind.RELAY_STATE
        ]

    @pytest.mark.asyncio
    async def test_missing_data_point_stores_nothing(
        self,
        service: SensorService,
        mock_client: Mock,
        mock_store: Mock,
    ) -> None:
        """Test that an incomplete status fails before anything is stored."""
        mock_client.async_fetch_status = AsyncMock(
            return_value=api.extract_device_properties(
                [{"code": "switch", "value": True}]
            )
        )

        with pytest.raises(MissingDataPointError):
            await service.async_fetch_and_persist("dev1", DeviceType.THERMOSTAT)
        mock_store.async_insert_reading.assert_not_awaited()


class TestSensorPoller:
    """Tests for SensorPoller."""

    @pytest.mark.asyncio
    async def test_poll_once_continues_after_failures(self) -> None:
        """Test that a failing device does not stop the others from polling."""
        service = Mock(spec=SensorService)
        service.async_fetch_and_persist = AsyncMock(
            side_effect=[
                TuyaTransportError("Request failed: 500"),
                StorageError("Database error: gone"),
                [],
            ]
        )
        poller = SensorPoller(
            service,
            {
                "dev1": DeviceType.THERMOSTAT,
                "dev2": DeviceType.ENERGY_METER,
                "dev3": DeviceType.WEATHER_STATION,
            },
            interval=60,
        )

        assert await poller.async_poll_once() == 1
        assert service.async_fetch_and_persist.await_count == 3
        service.async_fetch_and_persist.assert_awaited_with(
            "dev3", DeviceType.WEATHER_STATION
        )

    @pytest.mark.asyncio
    async def test_run_without_devices_returns(self) -> None:
        """Test that the poller exits immediately with no devices configured."""
        service = Mock(spec=SensorService)
        service.async_fetch_and_persist = AsyncMock()
        poller = SensorPoller(service, {}, interval=60)

        await poller.async_run()

        service.async_fetch_and_persist.assert_not_awaited()
