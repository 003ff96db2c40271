"""Tuya cloud API client.

Composes request signing, the token manager and envelope decoding into
the operations the rest of the service uses.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import api
from .const import (
    DEVICE_COMMANDS_PATH,
    DEVICE_STATUS_PATH,
    ENDPOINT_COMMANDS,
    ENDPOINT_DEVICE_STATUS,
    ENDPOINT_SHADOW_PROPERTIES,
    ENDPOINT_TOKEN,
    SHADOW_PROPERTIES_PATH,
    TOKEN_PATH,
)
from .coordinator import TuyaTokenManager

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from .models import Command, Credentials, DataPoint, ShadowProperty, TokenResult
    from .response_store import ResponseStore

_LOGGER = logging.getLogger(__name__)


class TuyaClient:
    """Client for the Tuya cloud API shared by every task of the service."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        credentials: Credentials,
        response_store: ResponseStore | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            session: HTTP client session with the data center base URL set.
            credentials: Cloud project credentials.
            response_store: Optional archive for raw response bodies.

        """
        self._session = session
        self._credentials = credentials
        self._response_store = response_store
        self.token_manager = TuyaTokenManager(self.async_fetch_token)

    async def _async_archive(self, endpoint: str, suffix: str, raw: bytes) -> None:
        if self._response_store is None:
            return
        try:
            await self._response_store.async_save(endpoint, suffix, raw)
        except Exception:
            _LOGGER.exception("Unexpected error archiving %s response", endpoint)

    async def _async_call(
        self,
        endpoint: str,
        suffix: str,
        method: str,
        path_and_query: str,
        payload: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> Any:
        response = await api.async_request(
            self._session,
            self._credentials,
            method,
            path_and_query,
            payload=payload,
            access_token=access_token,
        )
        await self._async_archive(endpoint, suffix, response.content)
        return api.validate_response(response)

    async def _async_authorized_call(
        self,
        endpoint: str,
        device_id: str,
        method: str,
        path_and_query: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        access_token = await self.token_manager.async_get_token()
        try:
            return await self._async_call(
                endpoint,
                device_id,
                method,
                path_and_query,
                payload=payload,
                access_token=access_token,
            )
        except api.TuyaApiAuthError:
            await self.token_manager.async_invalidate(access_token)
            raise

    async def async_fetch_token(self) -> TokenResult:
        """Request a new access token.

        Returns:
            The token payload.

        Raises:
            TuyaApiClientError: If the request or the envelope fails.

        """
        result = await self._async_call(ENDPOINT_TOKEN, "", "GET", TOKEN_PATH)
        token = api.extract_token_result(result)
        _LOGGER.debug("Obtained Tuya access token valid for %ds", token.expire_time)
        return token

    async def async_fetch_status(self, device_id: str) -> list[DataPoint]:
        """Fetch all data points of a device from the v1 status endpoint.

        Args:
            device_id: Tuya device ID.

        Returns:
            List of DataPoint objects.

        Raises:
            TuyaApiClientError: If the request, the envelope or decoding fails.

        """
        _LOGGER.debug("Fetching device status for %s", device_id)
        result = await self._async_authorized_call(
            ENDPOINT_DEVICE_STATUS,
            device_id,
            "GET",
            DEVICE_STATUS_PATH.format(device_id=device_id),
        )
        return api.extract_device_properties(result)

    async def async_fetch_shadow_properties(
        self, device_id: str
    ) -> list[ShadowProperty]:
        """Fetch shadow properties for devices the v1 endpoint does not support.

        Args:
            device_id: Tuya device ID.

        Returns:
            List of ShadowProperty objects.

        Raises:
            TuyaApiClientError: If the request, the envelope or decoding fails.

        """
        _LOGGER.debug("Fetching shadow properties for %s", device_id)
        result = await self._async_authorized_call(
            ENDPOINT_SHADOW_PROPERTIES,
            device_id,
            "GET",
            SHADOW_PROPERTIES_PATH.format(device_id=device_id),
        )
        return api.extract_shadow_properties(result)

    async def async_send_commands(
        self,
        device_id: str,
        commands: Sequence[Command],
    ) -> bool:
        """Send one or more commands to a device.

        Args:
            device_id: Target device ID.
            commands: Commands to send.

        Returns:
            The vendor acknowledgement.

        Raises:
            TuyaApiClientError: If the request, the envelope or decoding fails.

        """
        payload = {"commands": [command.as_dict() for command in commands]}
        _LOGGER.debug("Sending %d command(s) to device %s", len(commands), device_id)
        result = await self._async_authorized_call(
            ENDPOINT_COMMANDS,
            device_id,
            "POST",
            DEVICE_COMMANDS_PATH.format(device_id=device_id),
            payload=payload,
        )
        acknowledged = api.extract_command_result(result)
        _LOGGER.debug("Command result for device %s: %s", device_id, acknowledged)
        return acknowledged

    async def async_close(self) -> None:
        """Close the underlying HTTP session."""
        await self._session.aclose()
