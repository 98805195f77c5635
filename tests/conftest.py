from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import aiohttp
import pytest
from yarl import URL

from netupgrade.config import Config, ConfigStore
from netupgrade.json import dumps as json_dumps

BASE_URL = "http://127.0.0.1:8080"
TOKEN = "first-token"


def write_config(path, **overrides) -> None:
    data = {
        "base_url": BASE_URL,
        "token": TOKEN,
        "os_file_path": str(path.parent / "os.bin"),
        **overrides,
    }
    path.write_text(json.dumps(data))


@pytest.fixture()
def os_file(tmp_path):
    """Return a small firmware image on disk."""
    image = tmp_path / "os.bin"
    image.write_bytes(b"\x7fIMG" + bytes(range(256)))
    return image


@pytest.fixture()
def config_file(tmp_path, os_file):
    path = tmp_path / "config.json"
    write_config(path, os_file_path=str(os_file))
    return path


@pytest.fixture()
def config(os_file):
    return Config(base_url=BASE_URL, token=TOKEN, os_file_path=str(os_file))


@pytest.fixture()
def store(config):
    return ConfigStore(config)


@pytest.fixture()
def sleeps():
    """Patch sleep to prevent tests actually waiting, return the delays."""
    orig_asyncio_sleep = asyncio.sleep
    delays: list[float] = []

    async def _asyncio_sleep(delay, *_, **__):
        delays.append(delay)
        await orig_asyncio_sleep(0)

    with patch("asyncio.sleep", side_effect=_asyncio_sleep):
        yield delays


def _next(values: list):
    """Pop the next value, repeating the last one once exhausted."""
    return values.pop(0) if len(values) > 1 else values[0]


class MockDevice:
    """Fake device answering the management API on aiohttp's get and post."""

    class _mock_response:
        def __init__(self, status, body):
            self.status = status
            self._body = body

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_t, exc_v, exc_tb):
            pass

        async def read(self):
            if isinstance(self._body, bytes):
                return self._body
            return json_dumps(self._body).encode()

    def __init__(
        self,
        *,
        versions=("1.0", "2.0"),
        statuses=("completed",),
        upload_status=200,
        upgrade_status=200,
    ):
        self.versions = list(versions)
        self.statuses = list(statuses)
        self.upload_status = upload_status
        self.upgrade_status = upgrade_status
        self.requests: list[tuple[str, str, dict, bytes | None]] = []

    def calls(self, path: str) -> list[tuple[str, str, dict, bytes | None]]:
        return [req for req in self.requests if req[1] == path]

    def _record(self, method, url, headers, data=None):
        self.requests.append((method, URL(url).path, dict(headers or {}), data))

    async def get(self, url, *_, headers=None, **__):
        self._record("GET", url, headers)
        path = URL(url).path
        if path == "/api/device/version":
            return self._mock_response(200, {"version": _next(self.versions)})
        if path == "/api/device/upgrade/status":
            return self._mock_response(200, {"status": _next(self.statuses)})
        return self._mock_response(404, b"")

    async def post(self, url, *_, data=None, headers=None, **__):
        self._record("POST", url, headers, data)
        path = URL(url).path
        if path == "/api/device/upload":
            return self._mock_response(self.upload_status, b"")
        if path == "/api/device/upgrade":
            return self._mock_response(self.upgrade_status, b"")
        return self._mock_response(404, b"")


@pytest.fixture()
def mock_device(mocker):
    device = MockDevice()
    mocker.patch.object(aiohttp.ClientSession, "get", side_effect=device.get)
    mocker.patch.object(aiohttp.ClientSession, "post", side_effect=device.post)
    return device
