"""Pytest configuration and fixtures for smart home service tests."""

from typing import Any

import pytest

from smart_home_service.models import Credentials

TEST_CLIENT_ID = "test_client_id"
TEST_CLIENT_SECRET = "test_secret"
TEST_BASE_URL = "https://openapi.tuyaeu.com"
TEST_ACCESS_TOKEN = "test_access_token"

# Phase blobs: (voltage dV, current mA, power W)
PHASE_A_BLOB = "CPAAAAAAAAA="  # 2288, 0, 0
PHASE_B_BLOB = "COkAABUAAAE="  # 2281, 21, 1
PHASE_C_BLOB = "COMAACEAAAY="  # 2275, 33, 6


def envelope(result: Any) -> dict[str, Any]:
    """Wrap a result in a successful Tuya response envelope.

    Args:
        result: The result payload.

    Returns:
        The envelope as a dictionary.

    """
    return {"success": True, "t": 1700000000000, "tid": "tid-1", "result": result}


def error_envelope(code: int, msg: str) -> dict[str, Any]:
    """Build a failed Tuya response envelope."""
    return {
        "success": False,
        "t": 1700000000000,
        "tid": "tid-2",
        "code": code,
        "msg": msg,
    }


@pytest.fixture
def credentials() -> Credentials:
    """Fixture providing cloud project credentials."""
    return Credentials(client_id=TEST_CLIENT_ID, client_secret=TEST_CLIENT_SECRET)


@pytest.fixture
def sample_token_response() -> dict[str, Any]:
    """Fixture providing a token endpoint response valid for two hours."""
    return envelope(
        {
            "access_token": TEST_ACCESS_TOKEN,
            "expire_time": 7200,
            "refresh_token": "test_refresh_token",
            "uid": "test_uid",
        }
    )


@pytest.fixture
def thermostat_points() -> list[dict[str, Any]]:
    """Fixture providing the v1 status result of a thermostat."""
    return [
        {"code": "switch", "value": True},
        {"code": "temp_set", "value": 220},
        {"code": "temp_current", "value": 189},
        {"code": "mode", "value": "auto"},
        {"code": "child_lock", "value": False},
        {"code": "fault", "value": 0},
        {"code": "upper_temp", "value": 35},
        {"code": "temp_correction", "value": -2},
        {"code": "frost", "value": False},
        {"code": "sound", "value": True},
    ]


@pytest.fixture
def sample_thermostat_response(
    thermostat_points: list[dict[str, Any]],
) -> dict[str, Any]:
    """Fixture providing a thermostat status response."""
    return envelope(thermostat_points)


@pytest.fixture
def energy_meter_points() -> list[dict[str, Any]]:
    """Fixture providing the v1 status result of an energy meter."""
    return [
        {"code": "switch", "value": True},
        {"code": "total_forward_energy", "value": 12345},
        {"code": "phase_a", "value": PHASE_A_BLOB},
        {"code": "phase_b", "value": PHASE_B_BLOB},
        {"code": "phase_c", "value": PHASE_C_BLOB},
        {"code": "fault", "value": 0},
        {"code": "leakage_current", "value": 3},
        {"code": "temp_current", "value": 16},
        {"code": "alarm_set_1", "value": "AQEAHg=="},
    ]


@pytest.fixture
def sample_energy_meter_response(
    energy_meter_points: list[dict[str, Any]],
) -> dict[str, Any]:
    """Fixture providing an energy meter status response."""
    return envelope(energy_meter_points)


def shadow_property(dp_id: int, code: str, dp_type: str, value: Any) -> dict[str, Any]:
    """Build one raw shadow property."""
    return {
        "code": code,
        "custom_name": "",
        "dp_id": dp_id,
        "time": 1700000000000,
        "type": dp_type,
        "value": value,
    }


@pytest.fixture
def weather_station_properties() -> list[dict[str, Any]]:
    """Fixture providing the shadow properties of a weather station."""
    return [
        shadow_property(38, "local_temp", "value", 208),
        shadow_property(39, "local_hum", "value", 51),
        shadow_property(101, "sub1_temp", "value", 195),
        shadow_property(102, "sub1_hum", "value", 60),
        shadow_property(65, "temp_unit_convert", "enum", "c"),
    ]


@pytest.fixture
def sample_weather_station_response(
    weather_station_properties: list[dict[str, Any]],
) -> dict[str, Any]:
    """Fixture providing a weather station shadow properties response."""
    return envelope({"properties": weather_station_properties})


@pytest.fixture
def sample_command_response() -> dict[str, Any]:
    """Fixture providing an acknowledged send commands response."""
    return envelope(True)  # noqa: FBT003
