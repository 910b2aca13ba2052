"""Reachability check for the remote authority."""

from __future__ import annotations

import logging

import aiohttp

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
DEFAULT_HEALTH_TIMEOUT = 5.0


class ConnectivityProbe:
    """Bounded-timeout health check against the remote API.

    ``check()`` never raises for network problems: timeouts, refused
    connections and non-2xx responses all report the remote as unreachable.
    """

    def __init__(self, api_url: str, *, timeout: float = DEFAULT_HEALTH_TIMEOUT) -> None:
        self._url = f"{api_url.rstrip('/')}{HEALTH_PATH}"
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def check(self) -> bool:
        """Return True only when the health endpoint answers with a 2xx status."""
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(self._url) as response:
                    healthy = 200 <= response.status < 300
        except (aiohttp.ClientError, TimeoutError, OSError) as e:
            logger.debug("Health check against %s failed: %s", self._url, e)
            return False

        if not healthy:
            logger.debug("Health check against %s returned %d", self._url, response.status)
        return healthy
