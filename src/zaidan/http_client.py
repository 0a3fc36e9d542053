"""
HTTP client for the dealer server API.

Handles JSON request/response handling, API version pinning and error
mapping. Requests are never retried here: quotes are time-sensitive and
submission retries are a caller decision.
"""

import asyncio
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlparse, urlunparse

import aiohttp

from .config import SUPPORTED_API_VERSION
from .exceptions import (
    DealerHTTPError,
    DealerTransportError,
    IncompatibleDealer,
)

logger = logging.getLogger(__name__)

_API_PATH = re.compile(r"/api/(?P<version>[^/]+)/?$")


def build_api_base(dealer_url: str, api_version: str = SUPPORTED_API_VERSION) -> str:
    """
    Return the versioned API base URL, ending in a slash.

    Raises:
        IncompatibleDealer: If ``api_version`` or a version already embedded
            in ``dealer_url`` differs from the version this client speaks
    """
    if api_version != SUPPORTED_API_VERSION:
        raise IncompatibleDealer(
            f"dealer API version {api_version!r} is not supported "
            f"(client speaks {SUPPORTED_API_VERSION!r})",
            details={"requested": api_version, "supported": SUPPORTED_API_VERSION},
        )

    parsed = urlparse(dealer_url)
    path = parsed.path or "/"
    match = _API_PATH.search(path)
    if match:
        embedded = match.group("version")
        if embedded != SUPPORTED_API_VERSION:
            raise IncompatibleDealer(
                f"dealer URL targets API version {embedded!r}, "
                f"client speaks {SUPPORTED_API_VERSION!r}",
                details={"requested": embedded, "supported": SUPPORTED_API_VERSION},
            )
        path = path[: match.start()]

    path = path.rstrip("/") + f"/api/{SUPPORTED_API_VERSION}/"
    return urlunparse(parsed._replace(path=path, params="", query="", fragment=""))


class DealerHTTPClient:
    """
    Async JSON client bound to one dealer's versioned API base.

    The underlying ``aiohttp.ClientSession`` is created lazily on the first
    request and must be released with ``close()`` (or ``async with``).
    """

    def __init__(
        self,
        dealer_url: str,
        api_version: str = SUPPORTED_API_VERSION,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize HTTP client.

        Args:
            dealer_url: Dealer server base URL
            api_version: Dealer API version, must match exactly
            timeout: Total request timeout in seconds
        """
        self.base_url = build_api_base(dealer_url, api_version)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "zaidan-python/1.0",
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    def url_for(self, endpoint: str) -> str:
        return urljoin(self.base_url, endpoint.lstrip("/"))

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Any:
        """
        Decode a dealer response and raise for non-2xx statuses.

        Raises:
            DealerHTTPError: For any status outside 200-299
        """
        try:
            data = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            data = {"message": await response.text()}

        if 200 <= response.status < 300:
            return data

        message = "Unknown error"
        if isinstance(data, dict):
            message = (
                data.get("error")
                or data.get("message")
                or data.get("reason")
                or message
            )
        raise DealerHTTPError(
            f"dealer responded {response.status}: {message}",
            status=response.status,
            payload=data,
            recoverable=response.status >= 500,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make one request against the dealer API.

        Args:
            method: ``GET`` or ``POST``
            endpoint: Path relative to the API base (``quote``, ``order``, ...)
            params: Query parameters (GET); ``None`` values are dropped
            data: JSON body (POST)

        Returns:
            Decoded JSON response

        Raises:
            DealerHTTPError: Dealer answered with a non-2xx status
            DealerTransportError: Connection failure or timeout
        """
        url = self.url_for(endpoint)
        query = None
        if params:
            query = {k: str(v) for k, v in params.items() if v is not None}

        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                params=query if method == "GET" else None,
                json=data if method == "POST" else None,
            ) as response:
                logger.debug(f"{method} {url} - Status: {response.status}")
                return await self._handle_response(response)
        except asyncio.TimeoutError as e:
            logger.error(f"Request timeout: {method} {url}")
            raise DealerTransportError(
                f"Request timeout after {self.timeout}s: {method} {endpoint}"
            ) from e
        except aiohttp.ClientError as e:
            logger.error(f"Connection error: {e}")
            raise DealerTransportError(f"Connection error: {e}") from e

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", endpoint, data=data)

    async def close(self) -> None:
        """Close the session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
