"""Token coordinator for the Tuya cloud API."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from .const import TOKEN_REFRESH_MARGIN
from .models import CachedToken

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .models import TokenResult

_LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TuyaTokenManager:
    """Owns the single cached access token and serializes its refresh.

    The check-then-refresh sequence runs under one asyncio lock, so
    callers arriving while a refresh is in flight wait for it and then
    reuse its result instead of fetching again.
    """

    def __init__(
        self,
        fetch_token: Callable[[], Awaitable[TokenResult]],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the token manager.

        Args:
            fetch_token: Coroutine function performing the token request.
            clock: Returns the current UTC time.

        """
        self._fetch_token = fetch_token
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: CachedToken | None = None
        self._margin = timedelta(seconds=TOKEN_REFRESH_MARGIN)

    @property
    def token(self) -> CachedToken | None:
        """Return the currently cached token, if any."""
        return self._token

    def _is_valid(self, token: CachedToken | None, now: datetime) -> bool:
        return token is not None and token.expire_at > now + self._margin

    async def async_get_token(self) -> str:
        """Return a valid access token, refreshing it if necessary.

        Raises:
            TuyaApiClientError: If the token request fails. No token is
                cached in that case and the next call starts over.

        """
        async with self._lock:
            now = self._clock()
            if self._is_valid(self._token, now):
                return self._token.access_token

            _LOGGER.info("Fetching new Tuya access token")
            result = await self._fetch_token()
            self._token = CachedToken(
                access_token=result.access_token,
                expire_at=now + timedelta(seconds=result.expire_time),
            )
            _LOGGER.debug(
                "Tuya access token valid until %s", self._token.expire_at.isoformat()
            )
            return self._token.access_token

    async def async_invalidate(self, access_token: str | None = None) -> None:
        """Drop the cached token so the next call fetches a new one.

        Args:
            access_token: Only drop the cache if it still holds this token,
                so a token refreshed meanwhile by another task survives.

        """
        async with self._lock:
            if self._token is None:
                return
            if access_token is not None and self._token.access_token != access_token:
                return
            _LOGGER.info("Invalidating cached Tuya access token")
            self._token = None
