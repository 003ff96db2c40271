"""Tests for the REST API."""

import asyncio
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from smart_home_service.cache import ReadingCache
from smart_home_service.const import OPENAPI_URL
from smart_home_service.models import EncodedReading, SensorKind, StoredReading
from smart_home_service.rest import create_app
from smart_home_service.storage import ReadingStore, StorageError

RECORDED_AT = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)
TEMPERATURE = EncodedReading("dev1", SensorKind.TEMPERATURE, RECORDED_AT, 1890)
RELAY_STATE = EncodedReading("dev1", SensorKind.RELAY_STATE, RECORDED_AT, 1)
HUMIDITY = EncodedReading("ws1", SensorKind.HUMIDITY, RECORDED_AT, 5100)
TEMPERATURE_ID = uuid.UUID("0f6b1a7e-2c4d-4e8f-a1b3-9d5c7e2f4a60")
HUMIDITY_ID = uuid.UUID("5d2e8c41-7a3b-4f19-b6e0-c8a4f1d2e375")
STORED_TEMPERATURE = StoredReading(TEMPERATURE_ID, TEMPERATURE)
STORED_HUMIDITY = StoredReading(HUMIDITY_ID, HUMIDITY)

TEMPERATURE_JSON = {
    "id": str(TEMPERATURE_ID),
    "device_id": "dev1",
    "sensor_type": "temperature",
    "recorded_at": "2026-03-01T08:30:00Z",
    "value": 1890,
}


@pytest.fixture
def mock_store() -> Mock:
    """Create a mock reading store."""
    store = Mock(spec=ReadingStore)
    store.async_latest_readings = AsyncMock(
        return_value=[STORED_TEMPERATURE, STORED_HUMIDITY]
    )
    store.async_sensor_readings = AsyncMock(return_value=[STORED_TEMPERATURE])
    store.async_sensor_latest = AsyncMock(return_value=STORED_TEMPERATURE)
    return store


@pytest.fixture
def cache() -> ReadingCache:
    """Create a cache holding readings of two devices."""
    cache = ReadingCache()

    async def fill() -> None:
        for reading in (TEMPERATURE, RELAY_STATE, HUMIDITY):
            await cache.async_update(reading)

    asyncio.run(fill())
    return cache


@pytest.fixture
def client(mock_store: Mock, cache: ReadingCache) -> TestClient:
    """Create a test client for the application."""
    return TestClient(create_app(mock_store, cache))


class TestHealth:
    """Tests for the health route."""

    def test_health(self, client: TestClient) -> None:
        """Test that the health route answers ok."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStoredReadings:
    """Tests for the routes backed by the reading store."""

    def test_latest_readings(self, client: TestClient) -> None:
        """Test that the latest stored readings are returned."""
        response = client.get("/sensors/latest")
        assert response.status_code == 200
        body = response.json()
        assert body[0] == TEMPERATURE_JSON
        assert body[1]["sensor_type"] == "humidity"
        assert body[1]["id"] == str(HUMIDITY_ID)

    def test_sensor_readings_with_range(
        self, client: TestClient, mock_store: Mock
    ) -> None:
        """Test that from and to are passed to the store."""
        response = client.get(
            "/sensors/dev1/temperature",
            params={"from": "2026-03-01T00:00:00Z", "to": "2026-03-02T00:00:00Z"},
        )
        assert response.status_code == 200
        assert response.json() == [TEMPERATURE_JSON]
        mock_store.async_sensor_readings.assert_awaited_once_with(
            "dev1",
            SensorKind.TEMPERATURE,
            start=datetime(2026, 3, 1, tzinfo=UTC),
            end=datetime(2026, 3, 2, tzinfo=UTC),
        )

    def test_sensor_readings_without_range(
        self, client: TestClient, mock_store: Mock
    ) -> None:
        """Test that an open range is passed as None."""
        client.get("/sensors/dev1/temperature")
        mock_store.async_sensor_readings.assert_awaited_once_with(
            "dev1", SensorKind.TEMPERATURE, start=None, end=None
        )

    def test_sensor_latest(self, client: TestClient) -> None:
        """Test that the latest reading of a sensor is returned."""
        response = client.get("/sensors/dev1/temperature/latest")
        assert response.status_code == 200
        assert response.json() == TEMPERATURE_JSON

    def test_sensor_latest_without_reading_is_null(
        self, client: TestClient, mock_store: Mock
    ) -> None:
        """Test that a sensor without readings returns null."""
        mock_store.async_sensor_latest.return_value = None
        response = client.get("/sensors/dev1/humidity/latest")
        assert response.status_code == 200
        assert response.json() is None

    def test_unknown_sensor_type_is_rejected(self, client: TestClient) -> None:
        """Test that an unknown sensor type is a validation error."""
        response = client.get("/sensors/dev1/pressure")
        assert response.status_code == 422

    def test_storage_error_returns_500(
        self, client: TestClient, mock_store: Mock
    ) -> None:
        """Test that storage failures return a JSON error body."""
        mock_store.async_latest_readings.side_effect = StorageError(
            "Database error: connection lost"
        )
        response = client.get("/sensors/latest")
        assert response.status_code == 500
        assert response.json() == {"error": "Database error: connection lost"}


class TestLiveReadings:
    """Tests for the routes backed by the reading cache."""

    def test_live_readings(self, client: TestClient, mock_store: Mock) -> None:
        """Test that the cache snapshot is returned without the store."""
        response = client.get("/sensors/live")
        assert response.status_code == 200
        assert len(response.json()) == 3
        assert all(r["id"] is None for r in response.json())
        mock_store.async_latest_readings.assert_not_awaited()

    def test_live_device_readings(self, client: TestClient) -> None:
        """Test that only the cached readings of one device are returned."""
        response = client.get("/sensors/live/dev1")
        assert response.status_code == 200
        assert {r["sensor_type"] for r in response.json()} == {
            "temperature",
            "relay_state",
        }

    def test_live_unknown_device_is_empty(self, client: TestClient) -> None:
        """Test that an unknown device has no live readings."""
        assert client.get("/sensors/live/unknown").json() == []


class TestOpenApi:
    """Tests for the OpenAPI document."""

    def test_openapi_document(self, client: TestClient) -> None:
        """Test that the document is served with the API title and routes."""
        response = client.get(OPENAPI_URL)
        assert response.status_code == 200
        document = response.json()
        assert document["info"]["title"] == "Smart Home Backend API"
        assert "/sensors/{device_id}/{sensor_type}" in document["paths"]
        assert "/sensors/live" in document["paths"]
