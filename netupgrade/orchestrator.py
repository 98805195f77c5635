"""Upgrade orchestration.

The orchestrator walks a device through one upgrade::

    Start -> VersionCheck -> Upload -> Trigger -> Polling -> Validate -> Done

Any error moves the run to ``Failed`` and is raised to the caller. There is no
retry and no rollback: a failure after the upload leaves the device in
whatever state it reached.

>>> store = ConfigStore(load_config("config.json"))
>>> session = await UpgradeOrchestrator(store).run()
>>> print(session.current_version, session.final_version)
1.0 2.0
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import Config, ConfigStore
from .device import DeviceClient, HttpDeviceClient

_LOGGER = logging.getLogger(__name__)


class UpgradeState(Enum):
    """Steps of an upgrade run."""

    Start = "start"
    VersionCheck = "version_check"
    Upload = "upload"
    Trigger = "trigger"
    Polling = "polling"
    Validate = "validate"
    Done = "done"
    Failed = "failed"


@dataclass
class UpgradeSession:
    """Bookkeeping for a single run, not kept across runs."""

    state: UpgradeState = UpgradeState.Start
    current_version: str | None = None
    upload_complete: bool = False
    upgrade_triggered: bool = False
    polling: bool = False
    final_version: str | None = None
    status_checks: int = 0
    error: Exception | None = None
    #: Snapshot the device client was bound with for the version check
    version_config: Config | None = field(default=None, repr=False)
    #: Snapshot the firmware path was taken from
    upload_config: Config | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Return a json serializable summary of the session."""
        return {
            "state": self.state.value,
            "current_version": self.current_version,
            "upload_complete": self.upload_complete,
            "upgrade_triggered": self.upgrade_triggered,
            "final_version": self.final_version,
            "status_checks": self.status_checks,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass(frozen=True)
class UpgradeEvent:
    """Progress notification emitted by the orchestrator."""

    state: UpgradeState
    message: str
    session: UpgradeSession = field(repr=False)


ProgressCallback = Callable[[UpgradeEvent], Coroutine]
ClientFactory = Callable[[Config], DeviceClient]


class UpgradeOrchestrator:
    """Drive one upgrade of the device described by the configuration store.

    A device client is created from the configuration at the start of the run
    and keeps that binding until the end, unless *follow_config_changes* is
    set, in which case a step seeing a different ``(base_url, token)`` gets a
    freshly bound client. The firmware path is always taken from the
    configuration current at upload time.
    """

    POLL_INTERVAL = 10

    def __init__(
        self,
        store: ConfigStore,
        *,
        client_factory: ClientFactory | None = None,
        poll_interval: float = POLL_INTERVAL,
        progress_cb: ProgressCallback | None = None,
        follow_config_changes: bool = False,
    ) -> None:
        self._store = store
        self._client_factory = client_factory or HttpDeviceClient.from_config
        self._poll_interval = poll_interval
        self._progress_cb = progress_cb
        self._follow_config_changes = follow_config_changes
        self._client: DeviceClient | None = None
        self._binding: tuple[str, str] | None = None
        self.session = UpgradeSession()

    async def _emit(self, message: str) -> None:
        _LOGGER.info(message)
        if self._progress_cb is not None:
            await self._progress_cb(
                UpgradeEvent(self.session.state, message, self.session)
            )

    async def _enter(self, state: UpgradeState, message: str) -> None:
        _LOGGER.debug("%s -> %s", self.session.state.name, state.name)
        self.session.state = state
        await self._emit(message)

    async def _bind(self, config: Config) -> DeviceClient:
        """Return a client for *config*, creating one if needed."""
        if self._client is not None:
            if not self._follow_config_changes or config.binding == self._binding:
                return self._client
            _LOGGER.info("Connection settings changed, rebinding device client")
            await self._client.close()

        self._client = self._client_factory(config)
        self._binding = config.binding
        return self._client

    async def run(self) -> UpgradeSession:
        """Run the upgrade and return the finished session.

        The first error ends the run in the ``Failed`` state and is re-raised.
        """
        session = self.session = UpgradeSession()
        try:
            await self._run(session)
        except Exception as ex:
            session.error = ex
            session.polling = False
            try:
                await self._enter(UpgradeState.Failed, f"Upgrade failed: {ex}")
            except Exception:
                _LOGGER.exception("Error reporting the failed upgrade")
            raise
        finally:
            if self._client is not None:
                await self._client.close()
                self._client = None
                self._binding = None
        return session

    async def _run(self, session: UpgradeSession) -> None:
        await self._enter(UpgradeState.VersionCheck, "Checking current OS version...")
        config = session.version_config = self._store.read()
        client = await self._bind(config)
        session.current_version = await client.get_current_version()
        await self._emit(f"Current OS version: {session.current_version}")

        await self._enter(UpgradeState.Upload, "Uploading new OS file...")
        config = session.upload_config = self._store.read()
        client = await self._bind(config)
        await client.upload_os_file(config.os_file_path)
        session.upload_complete = True
        await self._emit("OS file uploaded successfully.")

        await self._enter(UpgradeState.Trigger, "Triggering OS upgrade...")
        client = await self._bind(self._store.read())
        await client.trigger_upgrade()
        session.upgrade_triggered = True
        await self._emit("OS upgrade initiated.")

        await self._enter(UpgradeState.Polling, "Monitoring upgrade status...")
        session.polling = True
        while True:
            client = await self._bind(self._store.read())
            session.status_checks += 1
            if await client.check_upgrade_status():
                break
            await self._emit("Upgrade in progress...")
            await asyncio.sleep(self._poll_interval)
        session.polling = False
        await self._emit("Upgrade completed successfully.")

        await self._enter(UpgradeState.Validate, "Validating upgrade...")
        client = await self._bind(self._store.read())
        session.final_version = await client.get_current_version()
        await self._enter(
            UpgradeState.Done, f"New OS version: {session.final_version}"
        )
