"""Connection configuration and the store that holds the live value.

The configuration is a small JSON document::

    {
        "base_url": "https://192.0.2.10:8443",
        "token": "secret",
        "os_file_path": "/srv/images/os-2.0.bin"
    }

A :class:`Config` is immutable. When the document changes, a new value
replaces the old one in the :class:`ConfigStore` as a whole:

>>> store = ConfigStore(load_config("config.json"))
>>> snapshot = store.read()
>>> print(snapshot.base_url)
https://192.0.2.10:8443
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from mashumaro.config import BaseConfig
from mashumaro.exceptions import ExtraKeysError, InvalidFieldValue, MissingField
from mashumaro.mixins.orjson import DataClassORJSONMixin
from yarl import URL

from .exceptions import ConfigError
from .json import loads as json_loads

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"


@dataclass(frozen=True)
class Config(DataClassORJSONMixin):
    """Parameters needed to reach the device and the image to push to it."""

    #: URL prefix of the device management API, e.g. ``https://10.0.0.1``
    base_url: str
    #: Bearer token sent with every request
    token: str = field(repr=False)
    #: Path of the firmware image on the local filesystem
    os_file_path: str

    class Config(BaseConfig):
        """Serialization config."""

        forbid_extra_keys = True

    def __post_init__(self) -> None:
        for name in ("base_url", "token", "os_file_path"):
            if not isinstance(getattr(self, name), str):
                raise TypeError(f"{name} must be a string")
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        url = URL(self.base_url)
        if not url.is_absolute() or url.scheme not in ("http", "https"):
            raise ValueError(f"base_url is not an http(s) URL: {self.base_url}")
        if not self.os_file_path:
            raise ValueError("os_file_path must not be empty")

    @property
    def binding(self) -> tuple[str, str]:
        """Return the (base_url, token) pair a device client is bound to."""
        return self.base_url, self.token


def parse_config(data: str | bytes) -> Config:
    """Parse a configuration document.

    Any problem with the document is reported as :class:`ConfigError`.
    """
    try:
        payload = json_loads(data)
    except ValueError as ex:
        raise ConfigError(f"Unable to parse configuration: {ex}") from ex
    if not isinstance(payload, dict):
        raise ConfigError("Configuration must be a JSON object")
    for name, value in payload.items():
        if not isinstance(value, str):
            raise ConfigError(f"Invalid configuration: {name} must be a string")

    try:
        return Config.from_dict(payload)
    except (MissingField, InvalidFieldValue, ExtraKeysError, ValueError) as ex:
        raise ConfigError(f"Invalid configuration: {ex}") from ex


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
    """Read and parse the configuration file at *path*."""
    _LOGGER.debug("Loading configuration from %s", path)
    try:
        data = Path(path).read_bytes()
    except OSError as ex:
        raise ConfigError(f"Unable to read configuration {path}: {ex}") from ex
    return parse_config(data)


class ConfigStore:
    """Single authoritative holder of the current :class:`Config`.

    Replacing swaps the reference under a lock, so writers are serialized.
    Readers take no lock: they get whichever immutable value is current,
    never a mix of the old and new fields.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._generation = 0

    def read(self) -> Config:
        """Return a snapshot of the current configuration."""
        return self._config

    def replace(self, new: Config) -> None:
        """Replace the current configuration with *new*."""
        if not isinstance(new, Config):
            raise TypeError(f"Expected Config, got {type(new).__name__}")
        with self._lock:
            self._config = new
            self._generation += 1
        _LOGGER.debug("Configuration replaced (generation %s)", self._generation)

    @property
    def generation(self) -> int:
        """Return the number of replacements made so far."""
        return self._generation

