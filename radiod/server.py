# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
radiod HTTP control server (the daemon)

Owns the single RadioPlayer (and through it the mpv process) that every CLI
invocation and the web UI talk to.  Also serves the web UI bundle.

Endpoints:
    GET  /api/search?q=&limit=&country=&tag=   search, cached for /api/play?i=
    GET  /api/play?i=N                         play Nth result of last search
    POST /api/play {uuid, url, name}           play a given station
    GET  /api/pause                            toggle pause
    GET  /api/stop
    GET  /api/vol?v=0..100
    GET  /api/status
    GET  /api/quit                             respond, then shut down
    GET  /*                                    web UI (web/, / → index.html)

Port: $RADIO_PORT, default 4242
"""

import asyncio
import json
import logging
import os
import signal

from aiohttp import web

from radiod.lib import pidfile
from radiod.lib.config import base_path, cfg, server_host, server_port
from radiod.lib.mpv import MpvError, MpvProcess, default_socket_path
from radiod.lib.radio_browser import RadioBrowser, RadioBrowserError
from radiod.player import RadioPlayer

log = logging.getLogger("radiod")

DEFAULT_SEARCH_LIMIT = 30
QUIT_DELAY = 0.1  # let the /api/quit response go out first

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def json_error(message, status=400):
    return web.json_response({"error": message}, status=status)


@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        try:
            resp = await handler(request)
        except web.HTTPException as e:
            resp = json_error(e.reason, status=e.status)
        except MpvError as e:
            log.error("Player unavailable: %s", e)
            resp = json_error(f"Player unavailable: {e}", status=503)
        except Exception as e:
            log.exception("Request error on %s", request.path)
            resp = json_error(str(e) or type(e).__name__, status=500)
    resp.headers.update(CORS_HEADERS)
    return resp


class RadioServer:
    """The daemon: HTTP API + player session + shutdown handling.

    run() = start() + wait for SIGTERM/SIGINT or /api/quit + stop().
    """

    def __init__(self, player: RadioPlayer, browser: RadioBrowser,
                 host=None, port=None, web_root=None):
        self.player = player
        self.browser = browser
        self.host = host or server_host()
        self.port = port or server_port()
        self.web_root = os.path.realpath(web_root or os.path.join(base_path(), "web"))
        self.last_search: list[dict] = []
        self._runner: web.AppRunner | None = None
        self._stop_event = asyncio.Event()
        self._background: set[asyncio.Task] = set()

    # ── App ──

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/api/search", self.handle_search)
        app.router.add_get("/api/play", self.handle_play_index)
        app.router.add_post("/api/play", self.handle_play_station)
        app.router.add_get("/api/pause", self.handle_pause)
        app.router.add_get("/api/stop", self.handle_stop)
        app.router.add_get("/api/vol", self.handle_volume)
        app.router.add_get("/api/status", self.handle_status)
        app.router.add_get("/api/quit", self.handle_quit)
        app.router.add_get("/{path:.*}", self.handle_static)
        return app

    # ── Lifecycle ──

    async def start(self):
        """Bind the listener, record our PID, then bring up mpv."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await self._runner.cleanup()
            self._runner = None
            raise
        pidfile.write_pid()
        log.info("Radio daemon listening on http://%s:%d  (pid %d)",
                 self.host, self.port, os.getpid())
        try:
            await self.player.mpv.start()
        except MpvError as e:
            # Keep serving; playback commands will retry the launch.
            log.error("%s", e)

    async def stop(self):
        """Tear down: mpv first, then the PID file, then the listener."""
        log.info("Shutting down")
        try:
            await self.player.shutdown()
        except Exception:
            log.exception("Error while stopping mpv")
        pidfile.remove_pid()
        for task in list(self._background):
            task.cancel()
        await self.browser.close()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def wait_and_stop(self):
        await self._stop_event.wait()
        await self.stop()

    async def run(self):
        """Convenience entry-point: start + wait for signal or quit + stop."""
        await self.start()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._stop_event.set)
        await self.wait_and_stop()

    def request_shutdown(self, delay=QUIT_DELAY):
        asyncio.get_running_loop().call_later(delay, self._stop_event.set)

    def _fire_and_forget(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _click(self, uuid):
        try:
            await self.browser.click(uuid)
        except RadioBrowserError as e:
            log.warning("Click accounting for %s failed: %s", uuid, e)

    # ── API ──

    async def handle_search(self, request: web.Request) -> web.Response:
        """GET /api/search — query Radio-Browser and cache the result."""
        q = request.query
        term = q.get("q", q.get("term", ""))
        try:
            limit = int(q.get("limit", DEFAULT_SEARCH_LIMIT)) or DEFAULT_SEARCH_LIMIT
        except ValueError:
            limit = DEFAULT_SEARCH_LIMIT
        try:
            stations = await self.browser.search(
                name=term,
                limit=limit,
                country=q.get("country"),
                tag=q.get("tag"),
                codec=q.get("codec"),
                offset=q.get("offset"),
            )
        except RadioBrowserError as e:
            log.error("Search failed: %s", e)
            return json_error(f"Search failed: {e}", status=500)
        self.last_search = stations
        return web.json_response(stations)

    async def handle_play_index(self, request: web.Request) -> web.Response:
        """GET /api/play?i=N — play from the cached search (web UI)."""
        try:
            idx = int(request.query.get("i", "0"))
        except ValueError:
            return json_error("Index must be an integer")
        if idx < 0 or idx >= len(self.last_search):
            return json_error("Invalid index - run a search first")
        station = self.last_search[idx]
        url = station.get("url_resolved") or station.get("url")
        if not url:
            return json_error("Station has no stream URL")
        uuid = station.get("stationuuid")
        if uuid:
            self._fire_and_forget(self._click(uuid))
        await self.player.play(uuid, url, station.get("name"))
        return web.json_response({"ok": True, "station": station})

    async def handle_play_station(self, request: web.Request) -> web.Response:
        """POST /api/play {uuid, url, name} — play a specific station (CLI)."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return json_error("Invalid JSON body")
        if not isinstance(body, dict):
            return json_error("Invalid JSON body")
        url = body.get("url")
        if not url or not isinstance(url, str):
            return json_error("Missing 'url' in body")
        uuid = body.get("uuid") or "unknown"
        name = body.get("name")
        if body.get("uuid"):
            self._fire_and_forget(self._click(uuid))
        await self.player.play(uuid, url, name)
        return web.json_response({"ok": True, "name": name})

    async def handle_pause(self, request: web.Request) -> web.Response:
        await self.player.toggle_pause()
        return web.json_response({"ok": True})

    async def handle_stop(self, request: web.Request) -> web.Response:
        await self.player.stop()
        return web.json_response({"ok": True})

    async def handle_volume(self, request: web.Request) -> web.Response:
        v = request.query.get("v", "")
        # plain decimal digits only: int() would also take "1_0", " 5", "+5"
        if not (v.isascii() and v.isdigit()):
            return json_error("Volume must be 0-100")
        volume = int(v)
        if volume > 100:
            return json_error("Volume must be 0-100")
        volume = await self.player.set_volume(volume)
        return web.json_response({"ok": True, "volume": volume})

    async def handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self.player.status())

    async def handle_quit(self, request: web.Request) -> web.Response:
        """GET /api/quit — graceful shutdown: mpv, PID file, exit."""
        log.info("Quit requested")
        self.request_shutdown()
        return web.json_response({"ok": True, "message": "Shutting down"})

    # ── Static UI (web/) ──

    async def handle_static(self, request: web.Request) -> web.StreamResponse:
        rel = request.match_info["path"] or "index.html"
        target = os.path.realpath(os.path.join(self.web_root, rel))
        if os.path.commonpath([target, self.web_root]) != self.web_root or not os.path.isfile(target):
            return web.Response(text="Not found", status=404)
        return web.FileResponse(target)


def create_server(port=None) -> RadioServer:
    mpv = MpvProcess(
        binary=cfg("mpv", "binary", default="mpv"),
        ipc_socket=cfg("mpv", "ipc_socket", default=default_socket_path()),
        ready_timeout=cfg("mpv", "ready_timeout"),
    )
    return RadioServer(RadioPlayer(mpv), RadioBrowser(), port=port)


def main(port=None) -> int:
    logging.basicConfig(
        level=(os.getenv("RADIOD_LOG_LEVEL") or cfg("log", "level", default="INFO")).upper(),
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    server = create_server(port)
    try:
        asyncio.run(server.run())
    except OSError as e:
        log.error("Could not start radio daemon on port %d: %s", server.port, e)
        return 1
    return 0
