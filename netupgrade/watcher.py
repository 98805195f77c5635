"""Watch the configuration file and push changes into the store."""

from __future__ import annotations

import asyncio
import logging
import math
import os
from asyncio import timeout as asyncio_timeout
from contextlib import suppress
from pathlib import Path

from .config import ConfigStore, load_config
from .exceptions import ConfigError

_LOGGER = logging.getLogger(__name__)

_Signature = tuple[int, int] | None


class ConfigWatcher:
    """Reload the configuration whenever its source file changes.

    Changes are detected by polling the file's modification time and size,
    or signalled explicitly through :meth:`notify`. A burst of changes is
    collapsed into a single reload once nothing has changed for
    ``quiet_period`` seconds. A document that fails to parse is logged and
    ignored, leaving the previous configuration in place.
    """

    DEFAULT_POLL_INTERVAL = 1.0
    DEFAULT_QUIET_PERIOD = 2.0

    def __init__(
        self,
        store: ConfigStore,
        path: str | os.PathLike,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
    ) -> None:
        self._store = store
        self._path = Path(path)
        self._poll_interval = poll_interval
        self._quiet_period = quiet_period
        self._changed = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._signature: _Signature = None
        self.reload_count = 0
        self.failure_count = 0

    @property
    def path(self) -> Path:
        """Return the watched path."""
        return self._path

    @property
    def running(self) -> bool:
        """Return True if the watcher task is alive."""
        return self._task is not None and not self._task.done()

    def notify(self) -> None:
        """Signal that the source has changed."""
        self._changed.set()

    async def start(self) -> None:
        """Start watching in a background task."""
        if self.running:
            return
        self._signature = self._stat()
        self._task = asyncio.create_task(self._run(), name=f"watch {self._path}")
        _LOGGER.debug("Watching %s for configuration changes", self._path)

    async def stop(self) -> None:
        """Stop watching and wait for the background task to finish."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        _LOGGER.debug("Stopped watching %s", self._path)

    async def __aenter__(self) -> ConfigWatcher:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.stop()

    async def reload(self) -> bool:
        """Re-read the source and replace the stored configuration.

        Returns True if the store was updated.
        """
        loop = asyncio.get_running_loop()
        try:
            config = await loop.run_in_executor(None, load_config, self._path)
        except ConfigError as ex:
            self.failure_count += 1
            _LOGGER.error(
                "Ignoring configuration update from %s, keeping previous: %s",
                self._path,
                ex,
            )
            return False

        if config == self._store.read():
            _LOGGER.debug("Configuration in %s is unchanged", self._path)
            return False

        self._store.replace(config)
        self.reload_count += 1
        _LOGGER.info("Configuration file updated: %s", self._path)
        return True

    def _stat(self) -> _Signature:
        try:
            stat = self._path.stat()
        except OSError:
            return None
        return stat.st_mtime_ns, stat.st_size

    async def _wait_for_change(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for a change, return True if one is seen."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while (remaining := deadline - loop.time()) > 0:
            try:
                async with asyncio_timeout(min(self._poll_interval, remaining)):
                    await self._changed.wait()
            except TimeoutError:
                pass

            if self._changed.is_set():
                self._changed.clear()
                return True

            signature = self._stat()
            if signature != self._signature:
                self._signature = signature
                return True
        return False

    async def _run(self) -> None:
        while True:
            await self._wait_for_change(math.inf)
            while await self._wait_for_change(self._quiet_period):
                _LOGGER.debug("%s is still changing, waiting", self._path)
            await self.reload()
