"""
Shared pytest fixtures for the radiod test suite.

Every test runs against its own config dir (RADIOD_CONFIG_DIR), so nothing
touches ~/.config.  The daemon-level tests use FakeMpv and FakeBrowser
instead of a real mpv process and the public Radio-Browser API.
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from radiod.lib import config
from radiod.lib.mpv import MpvError
from radiod.lib.radio_browser import RadioBrowserError
from radiod.player import RadioPlayer
from radiod.server import RadioServer


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    """Isolated per-test config dir, empty config, no RADIO_PORT."""
    path = tmp_path / "config"
    monkeypatch.setenv("RADIOD_CONFIG_DIR", str(path))
    monkeypatch.delenv("RADIO_PORT", raising=False)
    monkeypatch.chdir(tmp_path)
    config.reload_config()
    yield path
    # Drop the cached config without re-reading disk: a test may leave
    # RADIOD_CONFIG_DIR pointing somewhere unreadable until monkeypatch undoes it.
    config._config = None


# =============================================================================
# Fakes
# =============================================================================


class FakeMpv:
    """In-memory stand-in for MpvProcess."""

    def __init__(self):
        self.calls = []
        self.props = {"pause": False, "volume": 100.0}
        self.loaded = None
        self.volume = 100
        self.load_delays = {}
        self.fail_load = False
        self.properties_fail = False
        self.started = False
        self.terminated = False
        self.ready = True
        self.property_reads = []

    async def start(self):
        self.started = True

    async def load(self, url):
        self.calls.append(("load", url))
        await asyncio.sleep(self.load_delays.get(url, 0))
        if self.fail_load:
            raise MpvError("loadfile: error running command")
        self.loaded = url
        self.props["pause"] = False

    async def toggle_pause(self):
        self.calls.append(("toggle_pause",))
        self.props["pause"] = not self.props["pause"]

    async def stop(self):
        self.calls.append(("stop",))
        self.loaded = None
        self.props["pause"] = False

    async def set_volume(self, volume):
        volume = max(0, min(100, int(volume)))
        self.calls.append(("set_volume", volume))
        self.props["volume"] = float(volume)
        self.volume = volume
        return volume

    async def get_property(self, name, default=None, timeout=None):
        self.property_reads.append(name)
        if self.properties_fail or name not in self.props:
            return default
        return self.props[name]

    async def terminate(self):
        self.terminated = True


JAZZ_STATIONS = [
    {
        "stationuuid": f"uuid-jazz-{i}",
        "name": f"Jazz Station {i}",
        "url_resolved": f"http://streams.example/jazz{i}.mp3",
        "country": "Germany",
        "codec": "MP3",
        "bitrate": 128,
        "tags": "jazz",
    }
    for i in range(5)
]


class FakeBrowser:
    """In-memory stand-in for RadioBrowser."""

    def __init__(self, stations=None):
        self.stations = list(JAZZ_STATIONS if stations is None else stations)
        self.searches = []
        self.clicks = []
        self.fail_search = False
        self.fail_click = False
        self.closed = False

    async def search(self, name=None, limit=30, **filters):
        self.searches.append({"name": name, "limit": limit, **filters})
        if self.fail_search:
            raise RadioBrowserError("Radio API 503: Service Unavailable")
        return self.stations[:limit]

    async def click(self, uuid):
        self.clicks.append(uuid)
        if self.fail_click:
            raise RadioBrowserError("Radio API unreachable")

    async def close(self):
        self.closed = True


# =============================================================================
# Daemon fixtures
# =============================================================================


@pytest.fixture
def fake_mpv():
    return FakeMpv()


@pytest.fixture
def fake_browser():
    return FakeBrowser()


@pytest.fixture
def player(fake_mpv):
    return RadioPlayer(fake_mpv)


@pytest.fixture
def web_root(tmp_path):
    root = tmp_path / "web"
    root.mkdir()
    (root / "index.html").write_text("<h1>radio</h1>")
    (root / "app.js").write_text("console.log('radio');")
    (tmp_path / "secret.txt").write_text("not for you")
    return root


@pytest.fixture
def server(player, fake_browser, web_root):
    return RadioServer(player, fake_browser, port=4242, web_root=str(web_root))


@pytest_asyncio.fixture
async def client(server):
    client = TestClient(TestServer(server.create_app()))
    await client.start_server()
    yield client
    await client.close()
