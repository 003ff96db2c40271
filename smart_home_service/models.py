"""Data models for the smart home telemetry service."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from .const import READING_SCALE

DpValue = bool | int | str


@dataclass(frozen=True)
class Credentials:
    """Tuya cloud project credentials, fixed for the process lifetime."""

    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class CachedToken:
    """Represents a Tuya access token with its expiration timestamp."""

    access_token: str
    expire_at: datetime


@dataclass(frozen=True)
class SigningContext:
    """Everything that goes into the signature of a single request."""

    method: str
    path_and_query: str
    body: bytes = b""
    access_token: str | None = None
    timestamp: str = ""
    nonce: str = ""

    @classmethod
    def create(
        cls,
        method: str,
        path_and_query: str,
        body: bytes = b"",
        access_token: str | None = None,
    ) -> SigningContext:
        """Build a context stamped with the current time and a fresh nonce."""
        return cls(
            method=method,
            path_and_query=path_and_query,
            body=body,
            access_token=access_token,
            timestamp=str(int(time.time() * 1000)),
            nonce=uuid.uuid4().hex,
        )


@dataclass(frozen=True)
class TokenResult:
    """Payload of a successful token response."""

    access_token: str
    expire_time: int  # seconds
    refresh_token: str
    uid: str


class _DpAccessors:
    """Typed accessors shared by the raw data-point types."""

    value: DpValue

    def as_bool(self) -> bool | None:
        return self.value if isinstance(self.value, bool) else None

    def as_int(self) -> int | None:
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            return self.value
        return None

    def as_str(self) -> str | None:
        return self.value if isinstance(self.value, str) else None


@dataclass(frozen=True)
class DataPoint(_DpAccessors):
    """A single data point from the v1 device status endpoint."""

    code: str
    value: DpValue


@dataclass(frozen=True)
class ShadowProperty(_DpAccessors):
    """A single property from the v2 shadow properties endpoint.

    Compared to DataPoint, shadow properties carry a per-property
    last-updated timestamp (ms) and an explicit type tag
    ("value", "bool", "raw", "enum" or "bitmap").
    """

    code: str
    dp_id: int
    time: int
    dp_type: str
    value: DpValue
    custom_name: str | None = None


@dataclass(frozen=True)
class Command:
    """A single command targeting a device data point."""

    code: str
    value: DpValue

    def as_dict(self) -> dict[str, DpValue]:
        return {"code": self.code, "value": self.value}


class DeviceType(StrEnum):
    """Known device families, selecting the endpoint and status builder."""

    THERMOSTAT = "thermostat"
    ENERGY_METER = "energy_meter"
    WEATHER_STATION = "weather_station"


class SensorKind(StrEnum):
    """Mirrors the sensor_type Postgres enum.

    Value encoding convention (stored as BIGINT):
    - Numeric readings: round(real_value * 100)
      e.g. 21.45 °C -> 2145, 60.5 % -> 6050, 1234.56 W -> 123456
    - Boolean readings: False -> 0, True -> 1
    """

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    DOOR_OPEN = "door_open"
    POWER_CONSUMPTION = "power_consumption"
    RELAY_STATE = "relay_state"
    TEMPERATURE_SETPOINT = "temperature_setpoint"

    @property
    def is_boolean(self) -> bool:
        return self in (SensorKind.DOOR_OPEN, SensorKind.RELAY_STATE)


@dataclass(frozen=True, slots=True)
class EncodedReading:
    """A sensor value stored as a scaled integer."""

    device_id: str
    sensor_kind: SensorKind
    recorded_at: datetime
    value: int

    @property
    def real_value(self) -> float | bool:
        return decode_value(self.sensor_kind, self.value)


@dataclass(frozen=True, slots=True)
class StoredReading:
    """An encoded reading as persisted, with the ID of its row."""

    reading_id: uuid.UUID
    reading: EncodedReading


def decode_value(kind: SensorKind, value: int) -> float | bool:
    """Recover the real-world value of an encoded reading."""
    if kind.is_boolean:
        return value != 0
    return value / READING_SCALE


@dataclass(slots=True)
class ThermostatStatus:
    """Typed view of a thermostat device status."""

    switch: bool
    temp_current: int  # 189 -> 18.9 °C
    temp_set: int  # 220 -> 22.0 °C
    mode: str
    child_lock: bool | None = None
    fault: int | None = None  # bitmask, 0 means no fault
    upper_temp: int | None = None
    temp_correction: int | None = None  # calibration offset, can be negative
    frost: bool | None = None
    sound: bool | None = None

    @property
    def temp_current_celsius(self) -> float:
        return self.temp_current / 10

    @property
    def temp_set_celsius(self) -> float:
        return self.temp_set / 10


@dataclass(frozen=True, slots=True)
class PhaseReading:
    """Decoded 3-phase data blob of an energy meter."""

    voltage_dv: int  # 0.1 V
    current_ma: int
    power_w: int

    @property
    def voltage(self) -> float:
        return self.voltage_dv / 10


@dataclass(slots=True)
class EnergyMeterStatus:
    """Typed view of an energy meter device status."""

    switch: bool
    total_forward_energy: int  # Wh
    phase_a: str  # base64 blobs, see PhaseReading
    phase_b: str
    phase_c: str
    fault: int | None = None
    switch_prepayment: bool | None = None
    balance_energy: int | None = None
    charge_energy: int | None = None
    leakage_current: int | None = None  # mA
    reverse_energy_total: int | None = None
    temp_current: int | None = None  # °C, scale x1 on this device
    countdown_1: int | None = None
    alarm_set_1: str | None = None
    alarm_set_2: str | None = None
    cycle_time: str | None = None
    random_time: str | None = None
    energy_reset: str | None = None
    phases: tuple[PhaseReading | None, PhaseReading | None, PhaseReading | None] = (
        None,
        None,
        None,
    )

    @property
    def total_forward_energy_kwh(self) -> float:
        return self.total_forward_energy / 1000

    @property
    def total_power_w(self) -> int | None:
        decoded = [phase.power_w for phase in self.phases if phase is not None]
        return sum(decoded) if decoded else None


@dataclass(slots=True)
class WeatherStationStatus:
    """Typed view of a weather station shadow properties response."""

    local_temp: int  # 208 -> 20.8 °C
    local_hum: int  # 51 -> 51 %
    sub1_temp: int | None = None
    sub1_hum: int | None = None
    sub2_temp: int | None = None
    sub2_hum: int | None = None
    sub3_temp: int | None = None
    sub3_hum: int | None = None
    temp_unit: str | None = None  # "c" or "f"

    @property
    def local_temp_celsius(self) -> float:
        return self.local_temp / 10

    @property
    def local_hum_pct(self) -> float:
        return float(self.local_hum)

    def sub_sensor(self, index: int) -> tuple[int | None, int | None]:
        """Return (temperature, humidity) of sub-sensor 1, 2 or 3."""
        return (
            getattr(self, f"sub{index}_temp"),
            getattr(self, f"sub{index}_hum"),
        )


DeviceStatus = ThermostatStatus | EnergyMeterStatus | WeatherStationStatus
