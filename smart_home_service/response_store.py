"""Archive of raw Tuya API responses for offline analysis.

Saving is best-effort: errors are logged and swallowed so that it can
never interrupt a client call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path

_LOGGER = logging.getLogger(__name__)


def _pretty(raw: bytes) -> bytes:
    """Pretty-print JSON bodies; anything else is kept as received."""
    try:
        return json.dumps(json.loads(raw), indent=2, ensure_ascii=False).encode("utf-8")
    except ValueError:
        return raw


class ResponseStore:
    """Writes raw response bodies to {base_dir}/{endpoint}/{timestamp}_{suffix}.json."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, endpoint: str, suffix: str, now: datetime | None = None) -> Path:
        """Return the archive path of a response received at `now`."""
        now = now or datetime.now(UTC)
        stamp = now.strftime("%Y%m%dT%H%M%S.") + f"{now.microsecond // 1000:03d}Z"
        filename = f"{stamp}_{suffix}.json" if suffix else f"{stamp}.json"
        return self._base_dir / endpoint / filename

    def _write(self, path: Path, raw: bytes) -> int:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = _pretty(raw)
        path.write_bytes(content)
        return len(content)

    async def async_save(self, endpoint: str, suffix: str, raw: bytes) -> None:
        """Save a raw response body.

        Args:
            endpoint: Sub-directory name, e.g. "token" or "device_status".
            suffix: Appended after the timestamp, e.g. a device ID. "" omits it.
            raw: The HTTP response body as received.

        """
        path = self.path_for(endpoint, suffix)
        try:
            size = await asyncio.to_thread(self._write, path, raw)
        except OSError as err:
            _LOGGER.warning("Failed to save response to %s: %s", path, err)
            return
        _LOGGER.debug("Saved %d bytes of %s response to %s", size, endpoint, path)
