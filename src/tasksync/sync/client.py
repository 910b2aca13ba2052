"""HTTP client for the remote batch sync endpoint."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import aiohttp

from tasksync.sync.protocol import BatchItem, BatchRequest, BatchResponse, ProtocolError

logger = logging.getLogger(__name__)

BATCH_PATH = "/sync/batch"
DEFAULT_REQUEST_TIMEOUT = 30.0


class SyncTransportError(Exception):
    """A batch request that failed as a whole.

    Covers unreachable hosts, timeouts, non-2xx responses and bodies that
    do not follow the batch contract.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BatchSyncClient:
    """
    Sends batches of queued mutations to the remote authority.

    Usage:
        async with BatchSyncClient("http://localhost:3000/api") as client:
            response = await client.send_batch(items)
    """

    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        api_key: str | None = None,
    ) -> None:
        """
        Initialize the batch client.

        Args:
            api_url: Base URL of the remote API (e.g., "http://localhost:3000/api")
            timeout: Total timeout per batch request in seconds
            api_key: Optional bearer token sent with every request
        """
        self._api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._api_key = api_key
        self._session: aiohttp.ClientSession | None = None

    @property
    def api_url(self) -> str:
        return self._api_url

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers=self._get_headers(),
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> BatchSyncClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def send_batch(self, items: Sequence[BatchItem]) -> BatchResponse:
        """POST one batch and parse the per-item outcomes.

        Raises:
            SyncTransportError: If the request fails or the response is malformed
        """
        if self._session is None:
            await self.connect()
        assert self._session is not None

        url = f"{self._api_url}{BATCH_PATH}"
        payload = BatchRequest(items=list(items)).to_dict()

        try:
            async with self._session.post(url, json=payload) as response:
                if not 200 <= response.status < 300:
                    text = await response.text(errors="replace")
                    raise SyncTransportError(
                        f"Server error {response.status}: {text[:200]}",
                        status_code=response.status,
                    )
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise SyncTransportError(
                        f"Malformed response: {e}", status_code=response.status
                    ) from e
        except aiohttp.ClientError as e:
            raise SyncTransportError(f"Connection error: {e}") from e
        except TimeoutError as e:
            raise SyncTransportError("Batch request timed out") from e

        try:
            parsed = BatchResponse.from_dict(body)
        except ProtocolError as e:
            raise SyncTransportError(f"Malformed response: {e}") from e

        logger.debug("Batch of %d sent, %d outcomes", len(items), len(parsed.processed_items))
        return parsed
