"""
Tests for the `radio` command.  The daemon and Radio-Browser are replaced
by in-memory fakes; main() is driven with an explicit argv.
"""

import pytest

from radiod import cli
from radiod.client import StartupTimeout
from radiod.lib.store import Favorites, Playlists, load_json, save_json

from conftest import JAZZ_STATIONS, FakeBrowser


class FakeDaemon:
    instances = []

    def __init__(self, *args, **kwargs):
        self.gets = []
        self.posts = []
        self.status = {"uuid": None, "paused": False, "volume": 100,
                       "title": None, "state": "idle"}
        self.quit_result = True
        FakeDaemon.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        pass

    async def get(self, path):
        self.gets.append(path)
        if path == "/api/status":
            return self.status
        if path.startswith("/api/vol"):
            return {"ok": True, "volume": int(path.split("=")[1])}
        return {"ok": True}

    async def post(self, path, body):
        self.posts.append((path, body))
        return {"ok": True, "name": body.get("name")}

    async def quit(self):
        return self.quit_result


class ContextBrowser(FakeBrowser):
    instances = []

    def __init__(self, *args, **kwargs):
        super().__init__()
        ContextBrowser.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def by_uuid(self, uuids):
        return [s for s in self.stations if s["stationuuid"] in uuids]


@pytest.fixture(autouse=True)
def fakes(monkeypatch):
    FakeDaemon.instances = []
    ContextBrowser.instances = []
    monkeypatch.setattr(cli, "DaemonClient", FakeDaemon)
    monkeypatch.setattr(cli, "RadioBrowser", ContextBrowser)


def daemon():
    return FakeDaemon.instances[-1]


@pytest.fixture
def searched():
    save_json(cli.LAST_SEARCH, JAZZ_STATIONS)


# =============================================================================
# search / play
# =============================================================================


class TestSearchAndPlay:

    def test_search_caches_results(self, capsys):
        assert cli.main(["search", "jazz", "--tag", "swing", "-l", "3"]) == 0
        out = capsys.readouterr().out
        assert "1) Jazz Station 0" in out
        assert "3 result(s) cached" in out
        assert len(load_json(cli.LAST_SEARCH, [])) == 3
        assert ContextBrowser.instances[0].searches == [
            {"name": "jazz", "limit": 3, "country": None, "tag": "swing"}]

    def test_search_error(self, monkeypatch, capsys):
        def failing(*a, **kw):
            b = ContextBrowser()
            b.fail_search = True
            return b

        monkeypatch.setattr(cli, "RadioBrowser", failing)
        assert cli.main(["search", "jazz"]) == 1
        assert "Radio API 503" in capsys.readouterr().err

    def test_play_sends_cached_station(self, searched, capsys):
        assert cli.main(["play", "2"]) == 0
        assert daemon().posts == [("/api/play", {
            "uuid": "uuid-jazz-1",
            "url": "http://streams.example/jazz1.mp3",
            "name": "Jazz Station 1",
        })]
        assert load_json(cli.LAST_PLAYED, None)["stationuuid"] == "uuid-jazz-1"
        assert "Now playing: Jazz Station 1" in capsys.readouterr().out

    def test_play_without_index_replays_last(self, searched):
        cli.main(["play", "3"])
        assert cli.main(["play"]) == 0
        assert daemon().posts[0][1]["uuid"] == "uuid-jazz-2"

    def test_play_without_search(self, capsys):
        assert cli.main(["play", "1"]) == 1
        assert "run `radio search" in capsys.readouterr().err

    def test_play_out_of_range(self, searched, capsys):
        assert cli.main(["play", "9"]) == 1
        assert "No station at index 9" in capsys.readouterr().err
        assert daemon().posts == []

    def test_daemon_did_not_start(self, monkeypatch, capsys):
        class DeadDaemon(FakeDaemon):
            async def get(self, path):
                raise StartupTimeout("Radio daemon did not start on port 4242.")

        monkeypatch.setattr(cli, "DaemonClient", DeadDaemon)
        assert cli.main(["status"]) == 1
        assert "Failed to start radio daemon" in capsys.readouterr().err


# =============================================================================
# transport
# =============================================================================


class TestTransport:

    def test_pause_and_stop(self):
        cli.main(["pause"])
        assert daemon().gets == ["/api/pause"]
        cli.main(["stop"])
        assert daemon().gets == ["/api/stop"]

    @pytest.mark.parametrize("command", ["pause", "stop"])
    def test_player_unavailable(self, monkeypatch, capsys, command):
        class NoPlayerDaemon(FakeDaemon):
            async def get(self, path):
                self.gets.append(path)
                return {"error": "Player unavailable: mpv IPC closed"}

        monkeypatch.setattr(cli, "DaemonClient", NoPlayerDaemon)
        assert cli.main([command]) == 1
        captured = capsys.readouterr()
        assert "Player unavailable" in captured.err
        assert captured.out == ""

    def test_volume(self, capsys):
        assert cli.main(["vol", "40"]) == 0
        assert daemon().gets == ["/api/vol?v=40"]
        assert "Volume set to 40" in capsys.readouterr().out

    def test_volume_out_of_range(self, capsys):
        assert cli.main(["vol", "150"]) == 1
        assert daemon().gets == []
        assert "Volume must be 0-100" in capsys.readouterr().err

    def test_status_idle(self, capsys):
        assert cli.main(["status"]) == 0
        assert "Nothing playing" in capsys.readouterr().out

    def test_quit(self, capsys):
        assert cli.main(["quit"]) == 0
        assert "Radio daemon stopped." in capsys.readouterr().out

    def test_server_runs_in_foreground(self, monkeypatch):
        import radiod.server
        ports = []
        monkeypatch.setattr(radiod.server, "main", lambda port=None: ports.append(port) or 0)
        assert cli.main(["server", "-p", "5050"]) == 0
        assert ports == [5050]


# =============================================================================
# favorites / playlists
# =============================================================================


class TestFavorites:

    def test_add_list_remove(self, searched, capsys):
        assert cli.main(["fav", "add", "1"]) == 0
        assert cli.main(["fav", "add", "1"]) == 0
        assert "Already a favorite" in capsys.readouterr().out
        assert [f["stationuuid"] for f in Favorites().load()] == ["uuid-jazz-0"]

        cli.main(["fav", "list"])
        assert "1) Jazz Station 0" in capsys.readouterr().out

        assert cli.main(["fav", "rm", "1"]) == 0
        assert Favorites().load() == []
        assert cli.main(["fav", "rm", "1"]) == 1

    def test_play_favorite(self, searched):
        cli.main(["fav", "add", "4"])
        assert cli.main(["fav", "play", "1"]) == 0
        assert daemon().posts[0][1]["uuid"] == "uuid-jazz-3"


class TestPlaylists:

    def test_build_and_play(self, searched):
        cli.main(["playlist", "add", "evening", "2"])
        cli.main(["playlist", "add", "evening", "5"])
        assert Playlists().get("evening") == ["uuid-jazz-1", "uuid-jazz-4"]

        assert cli.main(["playlist", "play", "evening", "2"]) == 0
        assert daemon().posts[0][1]["uuid"] == "uuid-jazz-4"

    def test_play_defaults_to_first_entry(self, searched):
        cli.main(["playlist", "add", "evening", "3"])
        assert cli.main(["playlist", "play", "evening"]) == 0
        assert daemon().posts[0][1]["uuid"] == "uuid-jazz-2"

    def test_remove_and_delete(self, searched, capsys):
        cli.main(["playlist", "add", "evening", "1"])
        cli.main(["playlist", "add", "evening", "2"])
        assert cli.main(["playlist", "rm", "evening", "1"]) == 0
        assert Playlists().get("evening") == ["uuid-jazz-1"]

        assert cli.main(["playlist", "delete", "evening"]) == 0
        assert cli.main(["playlist", "delete", "evening"]) == 1
        assert "No playlist named 'evening'" in capsys.readouterr().err

    def test_unknown_playlist(self, capsys):
        assert cli.main(["playlist", "play", "nope"]) == 1
        assert "empty or does not exist" in capsys.readouterr().err
