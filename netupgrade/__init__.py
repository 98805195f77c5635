"""Upgrade the operating system of a network device over its HTTP API.

The pieces fit together like this::

>>> from netupgrade import ConfigStore, ConfigWatcher, UpgradeOrchestrator
>>> from netupgrade import load_config
>>> store = ConfigStore(load_config("config.json"))
>>> async with ConfigWatcher(store, "config.json"):
>>>     session = await UpgradeOrchestrator(store).run()
>>> print(session.final_version)
2.0

Errors are raised as subclasses of `UpgradeException`.
"""

from netupgrade.config import Config, ConfigStore, load_config, parse_config
from netupgrade.device import DeviceClient, HttpDeviceClient
from netupgrade.exceptions import (
    ConfigError,
    DecodeError,
    IoError,
    StatusError,
    TimeoutError,
    TransportError,
    UpgradeException,
)
from netupgrade.orchestrator import (
    UpgradeEvent,
    UpgradeOrchestrator,
    UpgradeSession,
    UpgradeState,
)
from netupgrade.version import __version__
from netupgrade.watcher import ConfigWatcher

__all__ = [
    "Config",
    "ConfigStore",
    "ConfigWatcher",
    "load_config",
    "parse_config",
    "DeviceClient",
    "HttpDeviceClient",
    "UpgradeOrchestrator",
    "UpgradeSession",
    "UpgradeState",
    "UpgradeEvent",
    "UpgradeException",
    "ConfigError",
    "DecodeError",
    "IoError",
    "StatusError",
    "TimeoutError",
    "TransportError",
    "__version__",
]
