"""Module for HttpClient class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from yarl import URL

from .exceptions import TimeoutError, TransportError

_LOGGER = logging.getLogger(__name__)


class HttpClient:
    """Send requests to the device and hand back the raw response.

    The response status is returned to the caller untouched; only failures
    to send the request or to read the response are raised, as
    :class:`TransportError` (or :class:`TimeoutError` if a timeout expired).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        http_client: aiohttp.ClientSession | None = None,
    ) -> None:
        self._timeout = timeout
        self._http_client = http_client
        self._client_session: aiohttp.ClientSession | None = None

    @property
    def client(self) -> aiohttp.ClientSession:
        """Return the underlying http client."""
        if self._http_client is not None:
            return self._http_client

        if not self._client_session:
            self._client_session = aiohttp.ClientSession()
        return self._client_session

    async def get(
        self,
        url: URL,
        *,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, bytes]:
        """Send an http get request to the device."""
        _LOGGER.debug("Getting %s", url)
        return await self._send(self.client.get, url, headers=headers)

    async def post(
        self,
        url: URL,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, bytes]:
        """Send an http post request to the device."""
        _LOGGER.debug(
            "Posting %s bytes to %s", len(data) if data is not None else 0, url
        )
        return await self._send(self.client.post, url, data=data, headers=headers)

    async def _send(
        self,
        method: Callable[..., Awaitable[aiohttp.ClientResponse]],
        url: URL,
        **kwargs: Any,
    ) -> tuple[int, bytes]:
        if self._timeout is None:
            _LOGGER.debug("No request timeout set, using the aiohttp default")
        else:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self._timeout)

        try:
            resp = await method(url, **kwargs)
            async with resp:
                response_data = await resp.read()
        except (aiohttp.ServerTimeoutError, asyncio.TimeoutError) as ex:
            raise TimeoutError(
                f"Unable to query the device, timed out: {url}: {ex}", ex
            ) from ex
        except (aiohttp.ClientError, OSError) as ex:
            raise TransportError(
                f"Device connection error: {url}: {ex}", ex
            ) from ex
        except Exception as ex:
            raise TransportError(
                f"Unable to query the device: {url}: {ex}", ex
            ) from ex

        _LOGGER.debug("%s responded with status %s", url, resp.status)
        return resp.status, response_data

    async def close(self) -> None:
        """Close the ClientSession if it was created here."""
        client = self._client_session
        self._client_session = None
        if client:
            await client.close()
