"""Typed device status builders.

Each device family is built from the flat, unordered list of data points
a device reports. Required data points must be present with the right
type; optional ones map to None when not reported.

Observed data points per family:

Thermostat (v1 status endpoint):
    switch            bool    relay on/off
    temp_set          int     220 = 22.0 °C (0.1 °C)
    temp_current      int     189 = 18.9 °C (0.1 °C)
    mode              str     "auto" | "manual" | ...
    child_lock        bool
    fault             int     bitmask
    upper_temp        int     absolute max setpoint
    temp_correction   int     calibration offset, can be negative
    frost             bool    frost protection
    sound             bool    key beep

Energy meter (v1 status endpoint):
    switch                bool
    total_forward_energy  int     Wh accumulated
    phase_a/b/c           str     base64 3-phase blobs
    temp_current          int     °C (scale x1 on this device)
    leakage_current       int     mA
    ... prepayment, alarm and timer settings

Weather station (v2 shadow properties endpoint):
    local_temp         int   208 = 20.8 °C (0.1 °C)
    local_hum          int    51 = 51 %
    sub1..3_temp       int   0.1 °C
    sub1..3_hum        int   %
    temp_unit_convert  enum  "c" | "f"
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from .api import MissingDataPointError
from .const import (
    SUB_SENSOR_COUNT,
    SUB_SENSOR_DEVICE_FORMAT,
    TENTHS_TO_READING,
    UNITS_TO_READING,
)
from .models import (
    DataPoint,
    DeviceType,
    EncodedReading,
    EnergyMeterStatus,
    PhaseReading,
    SensorKind,
    ShadowProperty,
    ThermostatStatus,
    WeatherStationStatus,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from .models import DeviceStatus

_LOGGER = logging.getLogger(__name__)

RawPoint = DataPoint | ShadowProperty

THERMOSTAT = "thermostat"
ENERGY_METER = "energy_meter"
WEATHER_STATION = "weather_station"

THERMOSTAT_CODES = frozenset(
    {
        "switch",
        "temp_current",
        "temp_set",
        "mode",
        "child_lock",
        "fault",
        "upper_temp",
        "temp_correction",
        "frost",
        "sound",
    }
)
ENERGY_METER_CODES = frozenset(
    {
        "switch",
        "total_forward_energy",
        "phase_a",
        "phase_b",
        "phase_c",
        "fault",
        "switch_prepayment",
        "balance_energy",
        "charge_energy",
        "leakage_current",
        "reverse_energy_total",
        "temp_current",
        "countdown_1",
        "alarm_set_1",
        "alarm_set_2",
        "cycle_time",
        "random_time",
        "energy_reset",
    }
)
WEATHER_STATION_CODES = frozenset(
    {
        "local_temp",
        "local_hum",
        "sub1_temp",
        "sub1_hum",
        "sub2_temp",
        "sub2_hum",
        "sub3_temp",
        "sub3_hum",
        "temp_unit_convert",
    }
)

# Phase blob layout: voltage 2 bytes (0.1 V), current 3 bytes (mA), power 3 bytes (W)
PHASE_BLOB_LENGTH = 8


def find(points: Sequence[RawPoint], code: str) -> RawPoint | None:
    """Return the first data point with the given code."""
    return next((point for point in points if point.code == code), None)


def _optional_bool(points: Sequence[RawPoint], code: str) -> bool | None:
    point = find(points, code)
    return point.as_bool() if point is not None else None


def _optional_int(points: Sequence[RawPoint], code: str) -> int | None:
    point = find(points, code)
    return point.as_int() if point is not None else None


def _optional_str(points: Sequence[RawPoint], code: str) -> str | None:
    point = find(points, code)
    return point.as_str() if point is not None else None


def _required_bool(points: Sequence[RawPoint], code: str, family: str) -> bool:
    value = _optional_bool(points, code)
    if value is None:
        raise MissingDataPointError(family, code)
    return value


def _required_int(points: Sequence[RawPoint], code: str, family: str) -> int:
    value = _optional_int(points, code)
    if value is None:
        raise MissingDataPointError(family, code)
    return value


def _required_str(points: Sequence[RawPoint], code: str, family: str) -> str:
    value = _optional_str(points, code)
    if value is None:
        raise MissingDataPointError(family, code)
    return value


def _log_unknown_codes(
    points: Sequence[RawPoint], known: frozenset[str], family: str
) -> None:
    for point in points:
        if point.code not in known:
            _LOGGER.debug("%s: ignoring unknown data point %s", family, point.code)


def decode_phase(blob: str) -> PhaseReading | None:
    """Decode a base64 3-phase blob, or return None if it is malformed."""
    try:
        data = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError):
        _LOGGER.warning("Phase blob is not valid base64: %r", blob)
        return None

    if len(data) < PHASE_BLOB_LENGTH:
        _LOGGER.warning(
            "Phase blob too short: %d bytes (minimum %d required)",
            len(data),
            PHASE_BLOB_LENGTH,
        )
        return None

    return PhaseReading(
        voltage_dv=int.from_bytes(data[0:2], "big"),
        current_ma=int.from_bytes(data[2:5], "big"),
        power_w=int.from_bytes(data[5:8], "big"),
    )


def build_thermostat_status(points: Sequence[RawPoint]) -> ThermostatStatus:
    """Build a thermostat status from its data points.

    Raises:
        MissingDataPointError: If switch, temp_current, temp_set or mode
            is missing.

    """
    _log_unknown_codes(points, THERMOSTAT_CODES, THERMOSTAT)
    return ThermostatStatus(
        switch=_required_bool(points, "switch", THERMOSTAT),
        temp_current=_required_int(points, "temp_current", THERMOSTAT),
        temp_set=_required_int(points, "temp_set", THERMOSTAT),
        mode=_required_str(points, "mode", THERMOSTAT),
        child_lock=_optional_bool(points, "child_lock"),
        fault=_optional_int(points, "fault"),
        upper_temp=_optional_int(points, "upper_temp"),
        temp_correction=_optional_int(points, "temp_correction"),
        frost=_optional_bool(points, "frost"),
        sound=_optional_bool(points, "sound"),
    )


def build_energy_meter_status(points: Sequence[RawPoint]) -> EnergyMeterStatus:
    """Build an energy meter status from its data points.

    Raises:
        MissingDataPointError: If switch, total_forward_energy or one of
            the phase blobs is missing.

    """
    _log_unknown_codes(points, ENERGY_METER_CODES, ENERGY_METER)
    phase_a = _required_str(points, "phase_a", ENERGY_METER)
    phase_b = _required_str(points, "phase_b", ENERGY_METER)
    phase_c = _required_str(points, "phase_c", ENERGY_METER)

    return EnergyMeterStatus(
        switch=_required_bool(points, "switch", ENERGY_METER),
        total_forward_energy=_required_int(
            points, "total_forward_energy", ENERGY_METER
        ),
        phase_a=phase_a,
        phase_b=phase_b,
        phase_c=phase_c,
        fault=_optional_int(points, "fault"),
        switch_prepayment=_optional_bool(points, "switch_prepayment"),
        balance_energy=_optional_int(points, "balance_energy"),
        charge_energy=_optional_int(points, "charge_energy"),
        leakage_current=_optional_int(points, "leakage_current"),
        reverse_energy_total=_optional_int(points, "reverse_energy_total"),
        temp_current=_optional_int(points, "temp_current"),
        countdown_1=_optional_int(points, "countdown_1"),
        alarm_set_1=_optional_str(points, "alarm_set_1"),
        alarm_set_2=_optional_str(points, "alarm_set_2"),
        cycle_time=_optional_str(points, "cycle_time"),
        random_time=_optional_str(points, "random_time"),
        energy_reset=_optional_str(points, "energy_reset"),
        phases=(decode_phase(phase_a), decode_phase(phase_b), decode_phase(phase_c)),
    )


def build_weather_station_status(points: Sequence[RawPoint]) -> WeatherStationStatus:
    """Build a weather station status from its shadow properties.

    Raises:
        MissingDataPointError: If local_temp or local_hum is missing.

    """
    _log_unknown_codes(points, WEATHER_STATION_CODES, WEATHER_STATION)
    return WeatherStationStatus(
        local_temp=_required_int(points, "local_temp", WEATHER_STATION),
        local_hum=_required_int(points, "local_hum", WEATHER_STATION),
        sub1_temp=_optional_int(points, "sub1_temp"),
        sub1_hum=_optional_int(points, "sub1_hum"),
        sub2_temp=_optional_int(points, "sub2_temp"),
        sub2_hum=_optional_int(points, "sub2_hum"),
        sub3_temp=_optional_int(points, "sub3_temp"),
        sub3_hum=_optional_int(points, "sub3_hum"),
        temp_unit=_optional_str(points, "temp_unit_convert"),
    )


def build_device_status(
    device_type: DeviceType, points: Sequence[RawPoint]
) -> DeviceStatus:
    """Build the typed status of a device of the given family."""
    match device_type:
        case DeviceType.THERMOSTAT:
            return build_thermostat_status(points)
        case DeviceType.ENERGY_METER:
            return build_energy_meter_status(points)
        case DeviceType.WEATHER_STATION:
            return build_weather_station_status(points)
    error_msg = f"Unknown device type: {device_type!r}"
    raise ValueError(error_msg)


def encode_bool(value: bool) -> int:  # noqa: FBT001
    """Encode a boolean reading as 0 or 1."""
    return 1 if value else 0


def encode_tenths(raw: int) -> int:
    """Encode a raw value in 0.1 units (e.g. 189 = 18.9 °C) as 1890."""
    return raw * TENTHS_TO_READING


def encode_units(raw: int) -> int:
    """Encode a raw value in full units (e.g. 51 %) as 5100."""
    return raw * UNITS_TO_READING


def _thermostat_readings(
    device_id: str, status: ThermostatStatus, recorded_at: datetime
) -> list[EncodedReading]:
    return [
        EncodedReading(
            device_id, SensorKind.RELAY_STATE, recorded_at, encode_bool(status.switch)
        ),
        EncodedReading(
            device_id,
            SensorKind.TEMPERATURE,
            recorded_at,
            encode_tenths(status.temp_current),
        ),
        EncodedReading(
            device_id,
            SensorKind.TEMPERATURE_SETPOINT,
            recorded_at,
            encode_tenths(status.temp_set),
        ),
    ]


def _energy_meter_readings(
    device_id: str, status: EnergyMeterStatus, recorded_at: datetime
) -> list[EncodedReading]:
    readings = [
        EncodedReading(
            device_id, SensorKind.RELAY_STATE, recorded_at, encode_bool(status.switch)
        )
    ]
    if status.temp_current is not None:
        readings.append(
            EncodedReading(
                device_id,
                SensorKind.TEMPERATURE,
                recorded_at,
                encode_units(status.temp_current),
            )
        )
    total_power = status.total_power_w
    if total_power is not None:
        readings.append(
            EncodedReading(
                device_id,
                SensorKind.POWER_CONSUMPTION,
                recorded_at,
                encode_units(total_power),
            )
        )
    return readings


def _climate_readings(
    device_id: str, temp: int | None, hum: int | None, recorded_at: datetime
) -> list[EncodedReading]:
    readings = []
    if temp is not None:
        readings.append(
            EncodedReading(
                device_id, SensorKind.TEMPERATURE, recorded_at, encode_tenths(temp)
            )
        )
    if hum is not None:
        readings.append(
            EncodedReading(
                device_id, SensorKind.HUMIDITY, recorded_at, encode_units(hum)
            )
        )
    return readings


def _weather_station_readings(
    device_id: str, status: WeatherStationStatus, recorded_at: datetime
) -> list[EncodedReading]:
    readings = _climate_readings(
        device_id, status.local_temp, status.local_hum, recorded_at
    )
    for index in range(1, SUB_SENSOR_COUNT + 1):
        temp, hum = status.sub_sensor(index)
        sub_device_id = SUB_SENSOR_DEVICE_FORMAT.format(
            device_id=device_id, index=index
        )
        readings.extend(_climate_readings(sub_device_id, temp, hum, recorded_at))
    return readings


def status_to_readings(
    device_id: str, status: DeviceStatus, recorded_at: datetime
) -> list[EncodedReading]:
    """Map a typed device status to encoded readings.

    Args:
        device_id: Tuya device ID the status belongs to.
        status: Typed status of any device family.
        recorded_at: Ingestion time shared by every reading of this poll.

    Returns:
        List of EncodedReading objects; absent optional values are skipped.

    """
    match status:
        case ThermostatStatus():
            return _thermostat_readings(device_id, status, recorded_at)
        case EnergyMeterStatus():
            return _energy_meter_readings(device_id, status, recorded_at)
        case WeatherStationStatus():
            return _weather_station_readings(device_id, status, recorded_at)
    error_msg = f"Unsupported device status: {type(status).__name__}"
    raise TypeError(error_msg)
