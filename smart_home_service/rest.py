"""REST API serving stored and cached sensor readings."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .const import (
    API_DESCRIPTION,
    API_TITLE,
    API_VERSION,
    LIVE_ROUTE_SEGMENT,
    OPENAPI_URL,
)
from .models import EncodedReading, SensorKind, StoredReading
from .storage import StorageError

if TYPE_CHECKING:
    from .cache import ReadingCache
    from .storage import ReadingStore

_LOGGER = logging.getLogger(__name__)


class SensorReadingModel(BaseModel):
    """A sensor reading as served by the API.

    `value` is the stored integer: real value x 100 for numeric sensors,
    0 or 1 for boolean ones. `id` is the row ID of a stored reading and
    null for readings served from the in-memory cache.
    """

    id: UUID | None = None
    device_id: str
    sensor_type: SensorKind
    recorded_at: datetime
    value: int

    @classmethod
    def from_reading(
        cls, reading: EncodedReading, reading_id: UUID | None = None
    ) -> SensorReadingModel:
        return cls(
            id=reading_id,
            device_id=reading.device_id,
            sensor_type=reading.sensor_kind,
            recorded_at=reading.recorded_at,
            value=reading.value,
        )

    @classmethod
    def from_stored(cls, stored: StoredReading) -> SensorReadingModel:
        return cls.from_reading(stored.reading, stored.reading_id)


class HealthModel(BaseModel):
    status: str


def _models(readings: list[EncodedReading]) -> list[SensorReadingModel]:
    return [SensorReadingModel.from_reading(reading) for reading in readings]


def _stored_models(readings: list[StoredReading]) -> list[SensorReadingModel]:
    return [SensorReadingModel.from_stored(stored) for stored in readings]


async def _storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    _LOGGER.error("Storage error serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_router(store: ReadingStore, cache: ReadingCache) -> APIRouter:
    """Build the sensor routes on top of the given store and cache."""
    router = APIRouter(prefix="/sensors", tags=["sensors"])

    @router.get("/latest", response_model=list[SensorReadingModel])
    async def get_latest_readings() -> list[SensorReadingModel]:
        """Latest stored reading per device and sensor type."""
        return _stored_models(await store.async_latest_readings())

    # Matched before /{device_id}/{sensor_type}; config rejects "live" as a
    # device ID.
    @router.get(f"/{LIVE_ROUTE_SEGMENT}", response_model=list[SensorReadingModel])
    async def get_live_readings() -> list[SensorReadingModel]:
        """Latest readings held in memory, without touching the database."""
        return _models(await cache.async_all())

    @router.get(
        f"/{LIVE_ROUTE_SEGMENT}/{{device_id}}",
        response_model=list[SensorReadingModel],
    )
    async def get_live_device_readings(device_id: str) -> list[SensorReadingModel]:
        """Latest in-memory readings of one device."""
        return _models(await cache.async_get_device(device_id))

    @router.get(
        "/{device_id}/{sensor_type}", response_model=list[SensorReadingModel]
    )
    async def get_sensor_readings(
        device_id: str,
        sensor_type: SensorKind,
        start: datetime | None = Query(None, alias="from"),
        end: datetime | None = Query(None, alias="to"),
    ) -> list[SensorReadingModel]:
        """Stored readings of one device and sensor type, oldest first."""
        readings = await store.async_sensor_readings(
            device_id, sensor_type, start=start, end=end
        )
        return _stored_models(readings)

    @router.get(
        "/{device_id}/{sensor_type}/latest",
        response_model=SensorReadingModel | None,
    )
    async def get_sensor_latest(
        device_id: str, sensor_type: SensorKind
    ) -> SensorReadingModel | None:
        """Most recent stored reading of one device and sensor type."""
        stored = await store.async_sensor_latest(device_id, sensor_type)
        return SensorReadingModel.from_stored(stored) if stored else None

    return router


def create_app(store: ReadingStore, cache: ReadingCache) -> FastAPI:
    """Create the FastAPI application.

    Args:
        store: Reading store used by the historical routes.
        cache: Reading cache used by the live routes.

    Returns:
        The configured application.

    """
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description=API_DESCRIPTION,
        openapi_url=OPENAPI_URL,
    )
    app.add_exception_handler(StorageError, _storage_error_handler)

    @app.get("/health", response_model=HealthModel, tags=["health"])
    async def health() -> HealthModel:
        return HealthModel(status="ok")

    app.include_router(create_router(store, cache))
    return app
