import asyncio

import pytest

from netupgrade.config import ConfigStore, load_config
from netupgrade.watcher import ConfigWatcher

from .conftest import write_config


async def _wait_for(predicate, timeout=3.0):
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture()
def file_store(config_file):
    return ConfigStore(load_config(config_file))


async def test_reload(config_file, file_store):
    watcher = ConfigWatcher(file_store, config_file)
    write_config(config_file, token="second-token")

    assert await watcher.reload() is True
    assert file_store.read().token == "second-token"
    assert file_store.generation == 1
    assert watcher.reload_count == 1


async def test_reload_unchanged(config_file, file_store):
    watcher = ConfigWatcher(file_store, config_file)

    assert await watcher.reload() is False
    assert file_store.generation == 0


@pytest.mark.parametrize(
    "content",
    ["{", '{"base_url": "http://x"}', "[]", ""],
    ids=["truncated", "partial", "list", "empty"],
)
async def test_reload_malformed_keeps_previous(
    config_file, file_store, caplog, content
):
    before = file_store.read()
    watcher = ConfigWatcher(file_store, config_file)
    config_file.write_text(content)

    assert await watcher.reload() is False
    assert file_store.read() is before
    assert file_store.generation == 0
    assert watcher.failure_count == 1
    assert "keeping previous" in caplog.text


async def test_reload_missing_file_keeps_previous(config_file, file_store):
    before = file_store.read()
    watcher = ConfigWatcher(file_store, config_file)
    config_file.unlink()

    assert await watcher.reload() is False
    assert file_store.read() is before


async def test_watch_detects_file_change(config_file, file_store):
    async with ConfigWatcher(
        file_store, config_file, poll_interval=0.01, quiet_period=0.05
    ) as watcher:
        assert watcher.running
        write_config(config_file, token="second-token", base_url="http://10.0.0.2")
        await _wait_for(lambda: file_store.generation == 1)

    assert not watcher.running
    assert file_store.read().token == "second-token"
    assert file_store.read().base_url == "http://10.0.0.2"


async def test_watch_ignores_bad_write_then_applies_good_one(config_file, file_store):
    before = file_store.read()
    async with ConfigWatcher(
        file_store, config_file, poll_interval=0.01, quiet_period=0.05
    ) as watcher:
        config_file.write_text('{"base_url": ')
        await _wait_for(lambda: watcher.failure_count == 1)
        assert file_store.read() is before

        write_config(config_file, token="second-token")
        await _wait_for(lambda: file_store.generation == 1)

    assert file_store.read().token == "second-token"


async def test_notify_burst_is_debounced(config_file, file_store, mocker):
    watcher = ConfigWatcher(
        file_store, config_file, poll_interval=0.01, quiet_period=0.2
    )
    reload = mocker.patch.object(watcher, "reload", return_value=True)

    async with watcher:
        for _ in range(5):
            watcher.notify()
            await asyncio.sleep(0.03)
        await _wait_for(lambda: reload.await_count == 1)
        await asyncio.sleep(0.3)

    assert reload.await_count == 1


async def test_separate_changes_reload_separately(config_file, file_store, mocker):
    watcher = ConfigWatcher(
        file_store, config_file, poll_interval=0.01, quiet_period=0.05
    )
    reload = mocker.patch.object(watcher, "reload", return_value=True)

    async with watcher:
        watcher.notify()
        await _wait_for(lambda: reload.await_count == 1)
        watcher.notify()
        await _wait_for(lambda: reload.await_count == 2)


async def test_stop_is_idempotent(config_file, file_store):
    watcher = ConfigWatcher(file_store, config_file)
    await watcher.stop()

    await watcher.start()
    await watcher.start()
    assert watcher.running
    await watcher.stop()
    await watcher.stop()
    assert not watcher.running
