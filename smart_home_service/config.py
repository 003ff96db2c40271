"""Service configuration loaded from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .const import (
    CONF_BASE_URL,
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_CONTROL_INTERVAL,
    CONF_DATABASE_URL,
    CONF_DEVICE_IDS,
    CONF_LOG_LEVEL,
    CONF_POLL_INTERVAL,
    CONF_REQUEST_TIMEOUT,
    CONF_RESPONSES_DIR,
    CONF_SERVER_HOST,
    CONF_SERVER_PORT,
    DEFAULT_BASE_URL,
    DEFAULT_CONTROL_INTERVAL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESPONSES_DIR,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    RESERVED_DEVICE_IDS,
)
from .models import Credentials, DeviceType

if TYPE_CHECKING:
    from collections.abc import Mapping

_LOGGER = logging.getLogger(__name__)

MAX_PORT = 65535


class ConfigError(ValueError):
    """Exception raised when a configuration value is missing or malformed."""


def _required(env: Mapping[str, str], key: str) -> str:
    value = env.get(key, "").strip()
    if not value:
        error_msg = f"Missing required environment variable: {key}"
        raise ConfigError(error_msg)
    return value


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as err:
        error_msg = f"{key} must be a positive integer, got {raw!r}"
        raise ConfigError(error_msg) from err
    if value <= 0:
        error_msg = f"{key} must be a positive integer, got {raw!r}"
        raise ConfigError(error_msg)
    return value


def _positive_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as err:
        error_msg = f"{key} must be a positive number, got {raw!r}"
        raise ConfigError(error_msg) from err
    if value <= 0:
        error_msg = f"{key} must be a positive number, got {raw!r}"
        raise ConfigError(error_msg)
    return value


def _port(env: Mapping[str, str]) -> int:
    port = _positive_int(env, CONF_SERVER_PORT, DEFAULT_SERVER_PORT)
    if port > MAX_PORT:
        error_msg = f"{CONF_SERVER_PORT} must be a valid port number, got {port}"
        raise ConfigError(error_msg)
    return port


def _log_level(env: Mapping[str, str]) -> str:
    level = env.get(CONF_LOG_LEVEL, "").strip().upper() or DEFAULT_LOG_LEVEL
    if not isinstance(logging.getLevelName(level), int):
        error_msg = f"{CONF_LOG_LEVEL} must be a logging level name, got {level!r}"
        raise ConfigError(error_msg)
    return level


def parse_device_ids(raw: str) -> dict[str, DeviceType]:
    """Parse a comma-separated "device_id:device_type" list.

    Args:
        raw: Value such as "bf123:thermostat,bf456:weather_station".
            Blank entries are ignored.

    Returns:
        Device types by device ID, in declaration order.

    Raises:
        ConfigError: If an entry is malformed, names an unknown type
            or uses a reserved device ID.

    """
    devices: dict[str, DeviceType] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        device_id, sep, type_name = entry.partition(":")
        device_id = device_id.strip()
        type_name = type_name.strip()
        if not sep or not device_id or not type_name:
            error_msg = (
                f"{CONF_DEVICE_IDS} entry {entry!r} must be device_id:device_type"
            )
            raise ConfigError(error_msg)
        if device_id in RESERVED_DEVICE_IDS:
            error_msg = (
                f"{CONF_DEVICE_IDS} entry {entry!r}: device ID {device_id!r} is "
                "reserved by the REST API"
            )
            raise ConfigError(error_msg)
        try:
            devices[device_id] = DeviceType(type_name)
        except ValueError as err:
            known = ", ".join(device_type.value for device_type in DeviceType)
            error_msg = (
                f"{CONF_DEVICE_IDS} entry {entry!r}: unknown device type "
                f"{type_name!r} (expected one of {known})"
            )
            raise ConfigError(error_msg) from err
    return devices


@dataclass(frozen=True)
class Config:
    """Runtime configuration of the service."""

    database_url: str = field(repr=False)
    credentials: Credentials
    base_url: str = DEFAULT_BASE_URL
    devices: dict[str, DeviceType] = field(default_factory=dict)
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT
    poll_interval: int = DEFAULT_POLL_INTERVAL
    control_interval: int = DEFAULT_CONTROL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    responses_dir: str | None = DEFAULT_RESPONSES_DIR
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_mapping(cls, env: Mapping[str, str]) -> Config:
        """Build a configuration from an environment-like mapping.

        Raises:
            ConfigError: If a required variable is missing or a value is
                malformed.

        """
        responses_dir = env.get(CONF_RESPONSES_DIR, DEFAULT_RESPONSES_DIR).strip()
        return cls(
            database_url=_required(env, CONF_DATABASE_URL),
            credentials=Credentials(
                client_id=_required(env, CONF_CLIENT_ID),
                client_secret=_required(env, CONF_CLIENT_SECRET),
            ),
            base_url=env.get(CONF_BASE_URL, "").strip() or DEFAULT_BASE_URL,
            devices=parse_device_ids(env.get(CONF_DEVICE_IDS, "")),
            server_host=env.get(CONF_SERVER_HOST, "").strip() or DEFAULT_SERVER_HOST,
            server_port=_port(env),
            poll_interval=_positive_int(env, CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL),
            control_interval=_positive_int(
                env, CONF_CONTROL_INTERVAL, DEFAULT_CONTROL_INTERVAL
            ),
            request_timeout=_positive_float(
                env, CONF_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT
            ),
            responses_dir=responses_dir or None,
            log_level=_log_level(env),
        )

    @classmethod
    def from_env(cls) -> Config:
        """Load a .env file if present, then read the process environment."""
        load_dotenv()
        config = cls.from_mapping(os.environ)
        _LOGGER.debug("Loaded configuration: %s", config)
        return config
