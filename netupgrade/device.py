"""Device clients exposing the operations an upgrade needs.

:class:`DeviceClient` is the interface the orchestrator works against,
:class:`HttpDeviceClient` implements it over the device's management API::

    GET  /api/device/version         -> {"version": "1.0"}
    POST /api/device/upload          raw image as the request body
    POST /api/device/upgrade
    GET  /api/device/upgrade/status  -> {"status": "completed"}

Every request carries the bearer token the client was created with. A client
stays bound to its ``(base_url, token)`` pair for its whole life, later
configuration changes need a new client.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiohttp
from yarl import URL

from .config import Config
from .exceptions import DecodeError, IoError, StatusError
from .httpclient import HttpClient
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"
STATUS_COMPLETED = "completed"


def _string_field(payload: dict[str, Any], name: str) -> str | None:
    """Return the string value of *name*, None if absent or not a string."""
    value = payload.get(name)
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class VersionInfo:
    """Decoded response of the version endpoint."""

    version: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> VersionInfo:
        """Decode the payload."""
        return cls(_string_field(payload, "version"))

    @property
    def version_or_unknown(self) -> str:
        """Return the reported version or the unknown sentinel."""
        return self.version if self.version is not None else UNKNOWN_VERSION


@dataclass(frozen=True)
class UpgradeStatus:
    """Decoded response of the upgrade status endpoint."""

    status: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> UpgradeStatus:
        """Decode the payload."""
        return cls(_string_field(payload, "status"))

    @property
    def completed(self) -> bool:
        """Return True if the device reports the upgrade as completed."""
        return self.status == STATUS_COMPLETED


class DeviceClient(ABC):
    """Operations needed to upgrade a device."""

    @abstractmethod
    async def get_current_version(self) -> str:
        """Return the running version, ``"unknown"`` if it is not reported."""

    @abstractmethod
    async def upload_os_file(self, path: str) -> None:
        """Push the firmware image at *path* to the device."""

    @abstractmethod
    async def trigger_upgrade(self) -> None:
        """Ask the device to install the uploaded image."""

    @abstractmethod
    async def check_upgrade_status(self) -> bool:
        """Return True once the device reports the upgrade as completed."""

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by the client."""

    async def __aenter__(self) -> DeviceClient:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()


class HttpDeviceClient(DeviceClient):
    """Device client talking to the HTTP management API."""

    VERSION_PATH = "api/device/version"
    UPLOAD_PATH = "api/device/upload"
    UPGRADE_PATH = "api/device/upgrade"
    STATUS_PATH = "api/device/upgrade/status"

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float | None = None,
        strict_status: bool = False,
        http_client: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url
        self._token = token
        self._strict_status = strict_status
        self._http_client = HttpClient(timeout=timeout, http_client=http_client)
        self._base = URL(base_url.rstrip("/") + "/")
        self._headers = {"Authorization": f"Bearer {token}"}

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> HttpDeviceClient:
        """Create a client bound to the connection details of *config*."""
        return cls(config.base_url, config.token, **kwargs)

    @property
    def base_url(self) -> str:
        """Return the base url the client is bound to."""
        return self._base_url

    @property
    def token(self) -> str:
        """Return the bearer token the client is bound to."""
        return self._token

    @property
    def binding(self) -> tuple[str, str]:
        """Return the (base_url, token) pair the client is bound to."""
        return self._base_url, self._token

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._base_url}>"

    def _url(self, path: str) -> URL:
        return self._base.join(URL(path))

    def _check_status(self, url: URL, status: int) -> None:
        if 200 <= status < 300:
            return
        if self._strict_status:
            raise StatusError(f"Device rejected the request to {url}", status=status)
        _LOGGER.warning("Request to %s answered with status %s", url, status)

    def _decode(self, url: URL, data: bytes) -> dict[str, Any]:
        try:
            payload = json_loads(data)
        except ValueError as ex:
            raise DecodeError(f"Unable to decode response from {url}: {ex}") from ex
        if not isinstance(payload, dict):
            raise DecodeError(f"Expected a JSON object from {url}, got {payload!r}")
        return payload

    async def _get_json(self, path: str) -> dict[str, Any]:
        url = self._url(path)
        status, data = await self._http_client.get(url, headers=self._headers)
        self._check_status(url, status)
        payload = self._decode(url, data)
        _LOGGER.debug("%s << %s", url, payload)
        return payload

    async def get_current_version(self) -> str:
        """Return the running version, ``"unknown"`` if it is not reported."""
        _LOGGER.debug("Requesting the current OS version from %s", self._base_url)
        payload = await self._get_json(self.VERSION_PATH)
        return VersionInfo.from_payload(payload).version_or_unknown

    async def upload_os_file(self, path: str) -> None:
        """Read the image at *path* into memory and post it to the device."""
        _LOGGER.debug("Opening OS file at %s", path)
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, Path(path).read_bytes)
        except OSError as ex:
            raise IoError(f"Unable to read OS file {path}: {ex}") from ex
        _LOGGER.info("Read OS file %s, %s bytes", path, len(image))

        url = self._url(self.UPLOAD_PATH)
        status, _ = await self._http_client.post(
            url,
            data=image,
            headers={**self._headers, "Content-Type": "application/octet-stream"},
        )
        _LOGGER.info("OS file upload response status: %s", status)
        self._check_status(url, status)

    async def trigger_upgrade(self) -> None:
        """Ask the device to install the uploaded image."""
        url = self._url(self.UPGRADE_PATH)
        status, _ = await self._http_client.post(url, headers=self._headers)
        _LOGGER.info("Upgrade trigger response status: %s", status)
        self._check_status(url, status)

    async def check_upgrade_status(self) -> bool:
        """Return True once the device reports the upgrade as completed."""
        payload = await self._get_json(self.STATUS_PATH)
        return UpgradeStatus.from_payload(payload).completed

    async def close(self) -> None:
        """Close the underlying http session."""
        await self._http_client.close()
