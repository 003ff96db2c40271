"""Constants for the smart home telemetry service.

This module contains all the constants used throughout the service,
including Tuya API endpoints, signing parameters, configuration keys
and the reading scale factors.
"""

DEFAULT_BASE_URL = "https://openapi.tuyaeu.com"

TOKEN_PATH = "/v1.0/token?grant_type=1"
DEVICE_STATUS_PATH = "/v1.0/devices/{device_id}/status"
SHADOW_PROPERTIES_PATH = "/v2.0/cloud/thing/{device_id}/shadow/properties"
DEVICE_COMMANDS_PATH = "/v1.0/devices/{device_id}/commands"

SIGN_METHOD = "HMAC-SHA256"
EMPTY_BODY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

# Signed request header names
HEADER_CLIENT_ID = "client_id"
HEADER_ACCESS_TOKEN = "access_token"
HEADER_TIMESTAMP = "t"
HEADER_NONCE = "nonce"
HEADER_SIGN_METHOD = "sign_method"
HEADER_SIGN = "sign"

# A cached token is only reused while it has more than this left to live.
TOKEN_REFRESH_MARGIN = 60  # seconds

# Envelope defaults when a failed response omits code or msg
UNKNOWN_ERROR_CODE = -1
UNKNOWN_ERROR_MESSAGE = "(no message)"
TOKEN_INVALID_CODES = frozenset({1010})

# Endpoint names used by the raw response archive
ENDPOINT_TOKEN = "token"
ENDPOINT_DEVICE_STATUS = "device_status"
ENDPOINT_SHADOW_PROPERTIES = "shadow_properties"
ENDPOINT_COMMANDS = "commands"

# Reading encoding: stored value = real value * READING_SCALE
READING_SCALE = 100
TENTHS_TO_READING = READING_SCALE // 10  # raw value already in 0.1 units
UNITS_TO_READING = READING_SCALE  # raw value already in full units

SUB_SENSOR_COUNT = 3
SUB_SENSOR_DEVICE_FORMAT = "{device_id}.sub{index}"

DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8080
DEFAULT_POLL_INTERVAL = 60  # seconds
DEFAULT_CONTROL_INTERVAL = 60  # seconds
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_RESPONSES_DIR = "responses"
DEFAULT_LOG_LEVEL = "INFO"

CONF_DATABASE_URL = "DATABASE_URL"
CONF_CLIENT_ID = "TUYA_CLIENT_ID"
CONF_CLIENT_SECRET = "TUYA_CLIENT_SECRET"
CONF_BASE_URL = "TUYA_BASE_URL"
CONF_DEVICE_IDS = "TUYA_DEVICE_IDS"
CONF_SERVER_HOST = "SERVER_HOST"
CONF_SERVER_PORT = "SERVER_PORT"
CONF_POLL_INTERVAL = "POLL_INTERVAL_SECS"
CONF_CONTROL_INTERVAL = "CONTROL_INTERVAL_SECS"
CONF_REQUEST_TIMEOUT = "REQUEST_TIMEOUT_SECS"
CONF_RESPONSES_DIR = "RESPONSES_DIR"
CONF_LOG_LEVEL = "LOG_LEVEL"

API_TITLE = "Smart Home Backend API"
API_VERSION = "0.1.0"
OPENAPI_URL = "/api-docs/openapi.json"
API_DESCRIPTION = "REST API for smart home sensor data"

# First path segment of the cache routes under /sensors; a device with this
# ID would be shadowed by them.
LIVE_ROUTE_SEGMENT = "live"
RESERVED_DEVICE_IDS = frozenset({LIVE_ROUTE_SEGMENT})
