"""netupgrade exceptions."""

from __future__ import annotations

from asyncio import TimeoutError as _asyncioTimeoutError
from typing import Any


class UpgradeException(Exception):
    """Base exception for library errors."""


class IoError(UpgradeException):
    """The firmware image could not be read from the local filesystem."""


class TransportError(UpgradeException):
    """The request could not be sent or its response could not be read."""


class TimeoutError(TransportError, _asyncioTimeoutError):
    """Timeout exception for device requests."""

    def __repr__(self) -> str:
        return UpgradeException.__repr__(self)

    def __str__(self) -> str:
        return UpgradeException.__str__(self)


class DecodeError(UpgradeException):
    """The device returned a body that is not the expected JSON object."""


class StatusError(UpgradeException):
    """The device answered with a non-success HTTP status."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.status: int | None = kwargs.get("status")
        super().__init__(*args)

    def __str__(self) -> str:
        status = f" (status={self.status})" if self.status is not None else ""
        return super().__str__() + status


class ConfigError(UpgradeException):
    """The configuration document could not be read or is invalid."""
