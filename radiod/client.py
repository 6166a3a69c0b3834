# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Client side of the daemon: find it, start it if needed, talk to it.

    async with DaemonClient() as daemon:
        await daemon.post("/api/play", {"uuid": ..., "url": ..., "name": ...})

get() and post() call ensure_running() first, so the first CLI command of
a session starts the daemon in the background.  The daemon outlives the
CLI process that spawned it.
"""

import asyncio
import logging
import os
import subprocess
import sys

import aiohttp

from radiod.lib import pidfile
from radiod.lib.config import base_path, config_dir, server_port

log = logging.getLogger(__name__)

PROBE_TIMEOUT = 1.0
QUIT_TIMEOUT = 2.0
STARTUP_POLL_INTERVAL = 0.1
STARTUP_TIMEOUT = 3.0


class StartupTimeout(Exception):
    """The daemon did not answer in time after being spawned."""


class DaemonClient:

    def __init__(self, port=None, host="127.0.0.1"):
        self.port = port or server_port()
        self.base_url = f"http://{host}:{self.port}"
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    # ── Daemon helpers ──

    async def is_up(self, timeout=PROBE_TIMEOUT) -> bool:
        """True if the daemon answers /api/status."""
        try:
            async with self.session.get(
                f"{self.base_url}/api/status",
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                return resp.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    def spawn(self):
        """Start the daemon as a detached background process."""
        env = dict(os.environ, RADIO_PORT=str(self.port))
        cmd = [sys.executable, "-m", "radiod", "server", "--port", str(self.port)]
        log_path = os.path.join(config_dir(), "daemon.log")
        try:
            os.makedirs(config_dir(), exist_ok=True)
            out = open(log_path, "ab")
        except OSError as e:
            log.debug("No daemon log (%s) — discarding output", e)
            out = subprocess.DEVNULL
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=subprocess.STDOUT,
                cwd=base_path(),  # so web/ is found
                env=env,
                start_new_session=True,  # detach from our terminal and process group
            )
        finally:
            if out is not subprocess.DEVNULL:
                out.close()
        log.info("Spawned radio daemon (pid %d, port %d)", proc.pid, self.port)
        # detached: never waited on, so don't warn about it at exit
        proc.returncode = 0
        return proc

    async def ensure_running(self):
        """Return once the daemon is reachable, starting it if needed."""
        if await self.is_up():
            return
        self.spawn()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + STARTUP_TIMEOUT
        while True:
            await asyncio.sleep(STARTUP_POLL_INTERVAL)
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            if await self.is_up(timeout=min(PROBE_TIMEOUT, remaining)):
                return
        raise StartupTimeout(
            f"Radio daemon did not start on port {self.port}. "
            "Try running `radio server` manually.")

    async def get(self, path) -> dict:
        await self.ensure_running()
        async with self.session.get(f"{self.base_url}{path}") as resp:
            return await resp.json()

    async def post(self, path, body) -> dict:
        await self.ensure_running()
        async with self.session.post(f"{self.base_url}{path}", json=body) as resp:
            return await resp.json()

    async def quit(self) -> bool:
        """Ask the daemon to shut down.  Returns False if it wasn't running."""
        if not await self.is_up():
            pidfile.remove_if_stale()
            return False
        try:
            async with self.session.get(
                f"{self.base_url}/api/quit",
                timeout=aiohttp.ClientTimeout(total=QUIT_TIMEOUT),
            ) as resp:
                await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError):
            pass  # the daemon may drop the connection as it exits
        return True
