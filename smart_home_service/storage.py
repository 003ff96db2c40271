"""PostgreSQL storage of encoded sensor readings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .models import EncodedReading, SensorKind, StoredReading

if TYPE_CHECKING:
    from datetime import datetime

_LOGGER = logging.getLogger(__name__)

POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 4
POOL_OPEN_TIMEOUT = 10.0

# Value encoding convention:
#   Numeric readings: stored as round(real_value * 100)
#     e.g. 21.45 °C  -> 2145
#          60.5  %   -> 6050
#          1234.56 W -> 123456
#   Boolean readings: false -> 0, true -> 1
SCHEMA = """
DO $$ BEGIN
    CREATE TYPE sensor_type AS ENUM (
        'temperature',
        'humidity',
        'door_open',
        'power_consumption',
        'relay_state',
        'temperature_setpoint'
    );
EXCEPTION
    WHEN duplicate_object THEN NULL;
END $$;

CREATE TABLE IF NOT EXISTS sensor_readings (
    id          UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
    device_id   TEXT        NOT NULL,
    sensor_type sensor_type NOT NULL,
    recorded_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    value       BIGINT      NOT NULL,

    CONSTRAINT uq_readings_device_type_time
        UNIQUE (device_id, sensor_type, recorded_at)
);

CREATE INDEX IF NOT EXISTS idx_readings_device_type_time
    ON sensor_readings (device_id, sensor_type, recorded_at DESC);
"""

INSERT_READING = """
INSERT INTO sensor_readings (device_id, sensor_type, recorded_at, value)
VALUES (%(device_id)s, %(sensor_type)s::sensor_type, %(recorded_at)s, %(value)s)
ON CONFLICT (device_id, sensor_type, recorded_at) DO NOTHING
RETURNING id
"""

SELECT_LATEST_READINGS = """
SELECT DISTINCT ON (device_id, sensor_type)
    id, device_id, sensor_type, recorded_at, value
FROM sensor_readings
ORDER BY device_id, sensor_type, recorded_at DESC
"""

SELECT_SENSOR_READINGS = """
SELECT id, device_id, sensor_type, recorded_at, value
FROM sensor_readings
WHERE device_id = %(device_id)s
  AND sensor_type = %(sensor_type)s::sensor_type
  AND (%(start)s::timestamptz IS NULL OR recorded_at >= %(start)s)
  AND (%(end)s::timestamptz IS NULL OR recorded_at <= %(end)s)
ORDER BY recorded_at ASC
"""

SELECT_SENSOR_LATEST = """
SELECT id, device_id, sensor_type, recorded_at, value
FROM sensor_readings
WHERE device_id = %(device_id)s
  AND sensor_type = %(sensor_type)s::sensor_type
ORDER BY recorded_at DESC
LIMIT 1
"""


class StorageError(Exception):
    """Exception raised when a database operation fails."""


def row_to_reading(row: dict[str, Any]) -> EncodedReading:
    """Convert a sensor_readings row into an EncodedReading."""
    return EncodedReading(
        device_id=row["device_id"],
        sensor_kind=SensorKind(row["sensor_type"]),
        recorded_at=row["recorded_at"],
        value=int(row["value"]),
    )


def row_to_stored_reading(row: dict[str, Any]) -> StoredReading:
    """Convert a sensor_readings row into a StoredReading."""
    return StoredReading(reading_id=row["id"], reading=row_to_reading(row))


def reading_params(reading: EncodedReading) -> dict[str, Any]:
    """Return the query parameters inserting a reading."""
    return {
        "device_id": reading.device_id,
        "sensor_type": reading.sensor_kind.value,
        "recorded_at": reading.recorded_at,
        "value": reading.value,
    }


class ReadingStore:
    """Readings table behind an async psycopg connection pool.

    Every operation checks a connection out of the pool for a single
    statement. Connections are checked before use, so one dropped by a
    server restart is replaced instead of failing every later call.
    """

    def __init__(
        self,
        conninfo: str,
        min_size: int = POOL_MIN_SIZE,
        max_size: int = POOL_MAX_SIZE,
    ) -> None:
        self._conninfo = conninfo
        self._min_size = min_size
        self._max_size = max_size
        self._pool: AsyncConnectionPool | None = None

    @property
    def pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            error_msg = "Reading store is not open"
            raise StorageError(error_msg)
        return self._pool

    async def async_open(self, timeout: float = POOL_OPEN_TIMEOUT) -> None:
        """Open the pool and wait for its first connections.

        Raises:
            StorageError: If the database cannot be reached within timeout.

        """
        _LOGGER.info("Connecting to Postgres")
        pool = AsyncConnectionPool(
            self._conninfo,
            min_size=self._min_size,
            max_size=self._max_size,
            kwargs={"autocommit": True, "row_factory": dict_row},
            check=AsyncConnectionPool.check_connection,
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=timeout)
        except psycopg.Error as err:
            await pool.close()
            error_msg = f"Failed to connect to database: {err}"
            raise StorageError(error_msg) from err
        self._pool = pool

    async def async_close(self) -> None:
        """Close the pool and its connections."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _async_execute(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            async with self.pool.connection() as conn, conn.cursor() as cur:
                await cur.execute(query, params)
                if cur.description is None:
                    return []
                return await cur.fetchall()
        except psycopg.Error as err:
            error_msg = f"Database error: {err}"
            raise StorageError(error_msg) from err

    async def async_migrate(self) -> None:
        """Create the schema if it does not exist yet."""
        await self._async_execute(SCHEMA)
        _LOGGER.info("Database schema ready")

    async def async_insert_reading(self, reading: EncodedReading) -> bool:
        """Insert a reading.

        Returns:
            True if the row was inserted, False if a reading with the same
            (device_id, sensor_type, recorded_at) already existed.

        """
        rows = await self._async_execute(INSERT_READING, reading_params(reading))
        if not rows:
            _LOGGER.debug(
                "Duplicate reading ignored: %s/%s at %s",
                reading.device_id,
                reading.sensor_kind,
                reading.recorded_at.isoformat(),
            )
        return bool(rows)

    async def async_latest_readings(self) -> list[StoredReading]:
        """Return the latest reading per (device_id, sensor_type)."""
        rows = await self._async_execute(SELECT_LATEST_READINGS)
        return [row_to_stored_reading(row) for row in rows]

    async def async_sensor_readings(
        self,
        device_id: str,
        sensor_kind: SensorKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[StoredReading]:
        """Return readings of a device and sensor kind in ascending time order."""
        rows = await self._async_execute(
            SELECT_SENSOR_READINGS,
            {
                "device_id": device_id,
                "sensor_type": sensor_kind.value,
                "start": start,
                "end": end,
            },
        )
        return [row_to_stored_reading(row) for row in rows]

    async def async_sensor_latest(
        self, device_id: str, sensor_kind: SensorKind
    ) -> StoredReading | None:
        """Return the most recent reading of a device and sensor kind."""
        rows = await self._async_execute(
            SELECT_SENSOR_LATEST,
            {"device_id": device_id, "sensor_type": sensor_kind.value},
        )
        return row_to_stored_reading(rows[0]) if rows else None
