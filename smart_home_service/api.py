"""API primitives for the Tuya cloud.

This module provides the pieces the Tuya client is composed of:
request signing, response envelope validation, decoding of raw
data points and the signed HTTP request itself.
"""

import hashlib
import hmac
import json
import logging
from typing import Any

import httpx

from .const import (
    HEADER_ACCESS_TOKEN,
    HEADER_CLIENT_ID,
    HEADER_NONCE,
    HEADER_SIGN,
    HEADER_SIGN_METHOD,
    HEADER_TIMESTAMP,
    SIGN_METHOD,
    TOKEN_INVALID_CODES,
    UNKNOWN_ERROR_CODE,
    UNKNOWN_ERROR_MESSAGE,
)
from .models import (
    Credentials,
    DataPoint,
    DpValue,
    ShadowProperty,
    SigningContext,
    TokenResult,
)

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_MULTIPLE_CHOICES = 300


class TuyaApiClientError(Exception):
    """Base exception for Tuya API client errors."""


class TuyaTransportError(TuyaApiClientError):
    """Exception raised for network failures and non-2xx responses."""


class TuyaApiError(TuyaApiClientError):
    """Exception raised when the envelope reports success=false."""

    def __init__(self, code: int, msg: str) -> None:
        super().__init__(f"Tuya API error: code={code}, msg={msg}")
        self.code = code
        self.msg = msg


class TuyaApiAuthError(TuyaApiError):
    """Exception raised when the vendor rejects the access token."""


class TuyaProtocolError(TuyaApiClientError):
    """Exception raised when a response breaks the envelope contract."""


class TuyaDecodeError(TuyaApiClientError):
    """Exception raised for malformed payloads."""


class MissingDataPointError(TuyaDecodeError):
    """Exception raised when a required data point is absent."""

    def __init__(self, family: str, code: str) -> None:
        super().__init__(f"{family}: missing required data point '{code}'")
        self.family = family
        self.code = code


def content_hash(body: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of a request body."""
    return hashlib.sha256(body).hexdigest()


def string_to_sign(method: str, body: bytes, path_and_query: str) -> str:
    """Build the canonical request string.

    The empty line is the custom signed headers segment; no custom
    headers are ever signed.
    """
    return f"{method}\n{content_hash(body)}\n\n{path_and_query}"


def sign(  # noqa: PLR0913
    method: str,
    path_and_query: str,
    body: bytes,
    client_id: str,
    secret: str,
    access_token: str | None,
    timestamp: str,
    nonce: str,
) -> dict[str, str]:
    """Compute the signed headers of a Tuya request.

    Args:
        method: HTTP method, e.g. "GET".
        path_and_query: Request path including the query string.
        body: Exact request body bytes (empty for GET).
        client_id: Cloud project client ID.
        secret: Cloud project secret, used only as the HMAC key.
        access_token: Bearer token, None for the token request itself.
        timestamp: Millisecond epoch as a decimal string.
        nonce: Random unique string.

    Returns:
        Dictionary of headers. Contains access_token only when one was given.

    """
    material = (
        client_id
        + (access_token or "")
        + timestamp
        + nonce
        + string_to_sign(method, body, path_and_query)
    )
    signature = (
        hmac.new(secret.encode("utf-8"), material.encode("utf-8"), hashlib.sha256)
        .hexdigest()
        .upper()
    )

    headers = {
        HEADER_CLIENT_ID: client_id,
        HEADER_TIMESTAMP: timestamp,
        HEADER_NONCE: nonce,
        HEADER_SIGN_METHOD: SIGN_METHOD,
        HEADER_SIGN: signature,
    }
    if access_token:
        headers[HEADER_ACCESS_TOKEN] = access_token
    return headers


def create_headers(
    credentials: Credentials,
    context: SigningContext,
) -> dict[str, str]:
    """Create HTTP headers for a Tuya API request.

    Args:
        credentials: Cloud project credentials.
        context: Signing context of this request.

    Returns:
        Dictionary containing the signed headers plus the content type.

    """
    headers = sign(
        context.method,
        context.path_and_query,
        context.body,
        credentials.client_id,
        credentials.client_secret,
        context.access_token,
        context.timestamp,
        context.nonce,
    )
    headers["Content-Type"] = "application/json"
    return headers


def is_http_error(status: int) -> bool:
    """Check if HTTP status code is outside the 2xx range.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is not 2xx, False otherwise.

    """
    return not HTTP_OK <= status < HTTP_MULTIPLE_CHOICES


def is_auth_api_error(code: int) -> bool:
    """Check if a vendor error code means the access token was rejected."""
    return code in TOKEN_INVALID_CODES


def decode_envelope(data: Any) -> Any:
    """Unwrap the uniform Tuya response envelope.

    Success: {"success": true, "t": ..., "result": <T>, "tid": "..."}
    Failure: {"success": false, "t": ..., "code": 2009, "msg": "...", "tid": "..."}

    Args:
        data: Parsed JSON response body.

    Returns:
        The result payload.

    Raises:
        TuyaDecodeError: If the body is not a JSON object.
        TuyaProtocolError: If success is true but result is missing.
        TuyaApiAuthError: If the vendor rejected the access token.
        TuyaApiError: If success is false.

    """
    if not isinstance(data, dict):
        decode_error = f"Expected a JSON object envelope, got {type(data).__name__}"
        raise TuyaDecodeError(decode_error)

    if data.get("success") is True:
        if data.get("result") is None:
            protocol_error = "Tuya response: success=true but result field is missing"
            raise TuyaProtocolError(protocol_error)
        return data["result"]

    code = data.get("code")
    if not isinstance(code, int) or isinstance(code, bool):
        code = UNKNOWN_ERROR_CODE
    msg = data.get("msg") or UNKNOWN_ERROR_MESSAGE

    if is_auth_api_error(code):
        raise TuyaApiAuthError(code, str(msg))
    raise TuyaApiError(code, str(msg))


def validate_response(response: httpx.Response) -> Any:
    """Validate HTTP response and return the envelope result.

    Args:
        response: HTTP response object to validate.

    Returns:
        The result payload of the envelope.

    Raises:
        TuyaTransportError: If the HTTP status is not 2xx.
        TuyaDecodeError: If the body is not valid JSON.
        TuyaApiError: If the envelope reports a failure.
        TuyaProtocolError: If the envelope breaks the contract.

    """
    if is_http_error(response.status_code):
        transport_error = f"Request failed: {response.status_code}"
        raise TuyaTransportError(transport_error)

    try:
        data = response.json()
    except ValueError as err:
        decode_error = f"Invalid JSON in response: {err}"
        raise TuyaDecodeError(decode_error) from err

    return decode_envelope(data)


def parse_dp_value(raw: Any) -> DpValue:
    """Decode a raw JSON data point value.

    Bool is checked before int: Python booleans are integers, and a
    vendor true/false must never turn into 1/0.

    Raises:
        TuyaDecodeError: If the value is not a bool, int or string.

    """
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        return raw
    decode_error = f"Unsupported data point value type: {type(raw).__name__}"
    raise TuyaDecodeError(decode_error)


def is_dp_value(raw: Any) -> bool:
    """Return True if a raw value is a supported bool, int or string."""
    return isinstance(raw, bool | int | str)


def _require_object(item: Any, what: str) -> dict[str, Any]:
    if not isinstance(item, dict):
        decode_error = f"Expected {what} to be an object, got {type(item).__name__}"
        raise TuyaDecodeError(decode_error)
    return item


def _require_str(item: dict[str, Any], key: str, what: str) -> str:
    value = item.get(key)
    if not isinstance(value, str):
        decode_error = f"{what} is missing string field '{key}'"
        raise TuyaDecodeError(decode_error)
    return value


def _require_int(item: dict[str, Any], key: str, what: str) -> int:
    value = item.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        decode_error = f"{what} is missing integer field '{key}'"
        raise TuyaDecodeError(decode_error)
    return value


def extract_token_result(result: Any) -> TokenResult:
    """Extract the token payload from a token response result.

    Raises:
        TuyaDecodeError: If a field is missing or has the wrong type.

    """
    data = _require_object(result, "token result")
    return TokenResult(
        access_token=_require_str(data, "access_token", "token result"),
        expire_time=_require_int(data, "expire_time", "token result"),
        refresh_token=str(data.get("refresh_token", "")),
        uid=str(data.get("uid", "")),
    )


def extract_device_properties(result: Any) -> list[DataPoint]:
    """Extract data points from a v1 device status result.

    Args:
        result: Envelope result, a list of {"code", "value"} objects.

    Returns:
        List of DataPoint objects in the order reported. Data points
        whose value is not a bool, int or string are logged and skipped;
        a required code lost this way surfaces later as a missing data point.

    Raises:
        TuyaDecodeError: If the result is not a list of data points.

    """
    if not isinstance(result, list):
        decode_error = "Device status result is not a list"
        raise TuyaDecodeError(decode_error)

    data_points = []
    for item in result:
        dp = _require_object(item, "data point")
        code = _require_str(dp, "code", "data point")
        value = dp.get("value")
        if not is_dp_value(value):
            _LOGGER.debug(
                "Skipping data point %s with unsupported value %r", code, value
            )
            continue
        data_points.append(DataPoint(code=code, value=parse_dp_value(value)))
    return data_points


def extract_shadow_properties(result: Any) -> list[ShadowProperty]:
    """Extract properties from a v2 shadow properties result.

    Args:
        result: Envelope result, {"properties": [...]}.

    Returns:
        List of ShadowProperty objects in the order reported. Properties
        whose value is not a bool, int or string are logged and skipped.

    Raises:
        TuyaDecodeError: If the result does not have the expected shape.

    """
    data = _require_object(result, "shadow properties result")
    properties = data.get("properties")
    if not isinstance(properties, list):
        decode_error = "Shadow properties result has no 'properties' list"
        raise TuyaDecodeError(decode_error)

    shadow_properties = []
    for item in properties:
        prop = _require_object(item, "shadow property")
        code = _require_str(prop, "code", "shadow property")
        value = prop.get("value")
        if not is_dp_value(value):
            _LOGGER.debug(
                "Skipping shadow property %s with unsupported value %r", code, value
            )
            continue
        custom_name = prop.get("custom_name")
        shadow_properties.append(
            ShadowProperty(
                code=code,
                dp_id=_require_int(prop, "dp_id", "shadow property"),
                time=_require_int(prop, "time", "shadow property"),
                dp_type=_require_str(prop, "type", "shadow property"),
                value=parse_dp_value(value),
                custom_name=custom_name if isinstance(custom_name, str) else None,
            )
        )
    return shadow_properties


def extract_command_result(result: Any) -> bool:
    """Extract the acknowledgement of a send commands result.

    Raises:
        TuyaDecodeError: If the result is not a boolean.

    """
    if not isinstance(result, bool):
        decode_error = f"Command result is not a boolean: {result!r}"
        raise TuyaDecodeError(decode_error)
    return result


def encode_body(payload: dict[str, Any] | None) -> bytes:
    """Serialize a request payload to the exact bytes that get signed."""
    if payload is None:
        return b""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def create_session_client(base_url: str, timeout: float) -> httpx.AsyncClient:
    """Create the HTTP client used for Tuya API calls.

    Args:
        base_url: Tuya data center base URL.
        timeout: Request timeout in seconds.

    Returns:
        Configured httpx AsyncClient.

    """
    return httpx.AsyncClient(base_url=base_url, timeout=timeout)


async def async_request(  # noqa: PLR0913
    session: httpx.AsyncClient,
    credentials: Credentials,
    method: str,
    path_and_query: str,
    payload: dict[str, Any] | None = None,
    access_token: str | None = None,
) -> httpx.Response:
    """Send a signed request to the Tuya API.

    Args:
        session: HTTP client session.
        credentials: Cloud project credentials.
        method: HTTP method.
        path_and_query: Request path including the query string.
        payload: Optional JSON body.
        access_token: Bearer token, None for the token request.

    Returns:
        The raw HTTP response; its status is not checked here.

    Raises:
        TuyaTransportError: If the request fails at the network level.

    """
    body = encode_body(payload)
    context = SigningContext.create(method, path_and_query, body, access_token)
    headers = create_headers(credentials, context)

    _LOGGER.debug("Tuya request: %s %s", method, path_and_query)
    try:
        return await session.request(
            method,
            path_and_query,
            headers=headers,
            content=body or None,
        )
    except httpx.RequestError as err:
        transport_error = f"Connection error for {method} {path_and_query}: {err}"
        raise TuyaTransportError(transport_error) from err
