# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
MpvProcess — owns one idle, audio-only mpv child and talks to it over
mpv's JSON IPC socket.

Lifecycle:
    mpv = MpvProcess()
    await mpv.start()          # spawns mpv --idle, returns immediately
    await mpv.load(url)        # waits for the IPC handshake if still warming up
    await mpv.terminate()

All commands go through one queue drained by a single sender task, so
commands issued before mpv is ready are sent in order once the handshake
completes.  Replies are matched to requests by request_id.  Property reads
never raise: get_property() returns the caller's default on any failure
(mpv answers "property unavailable" for most properties when idle).
"""

import asyncio
import json
import logging
import os
import subprocess
import tempfile

log = logging.getLogger(__name__)


class MpvError(Exception):
    """mpv could not be launched, went away, or rejected a command."""


def default_socket_path() -> str:
    return os.path.join(tempfile.gettempdir(), f"radiod-mpv-{os.getuid()}.sock")


class MpvProcess:
    READY_TIMEOUT = 5.0     # socket + handshake, from launch
    COMMAND_TIMEOUT = 2.0   # per reply, once ready
    POLL_INTERVAL = 0.1

    def __init__(self, binary="mpv", ipc_socket=None, ready_timeout=None):
        self.binary = binary
        self.process = None
        self.volume = 100
        self.ready_timeout = ready_timeout or self.READY_TIMEOUT
        self._ipc_socket = ipc_socket or default_socket_path()
        self._ipc_reader = None
        self._ipc_writer = None
        self._ready = asyncio.Event()
        self._failed: MpvError | None = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending: dict[int, asyncio.Future] = {}
        self._request_id = 0
        self._connect_task = None
        self._reader_task = None
        self._sender_task = None
        self._closing = False
        self._launch_lock = asyncio.Lock()

    # ── mpv lifecycle ──

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    @property
    def ready(self) -> bool:
        """Handshake done, IPC healthy and the child still alive."""
        return self._ready.is_set() and self._failed is None and self.running

    async def start(self):
        """Launch mpv in idle mode.  Readiness is established in the background."""
        await self._close_ipc()
        self._closing = False
        self._failed = None
        self._ready = asyncio.Event()

        try:
            os.unlink(self._ipc_socket)
        except FileNotFoundError:
            pass

        cmd = [
            self.binary,
            '--idle=yes',
            '--no-video', '--audio-display=no',
            '--no-terminal',
            f'--volume={self.volume}',
            f'--input-ipc-server={self._ipc_socket}',
        ]
        try:
            self.process = subprocess.Popen(
                cmd, stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            self.process = None
            raise MpvError(f"Could not launch {self.binary}: {e}") from e

        log.info("mpv launched (pid %d, ipc %s)", self.process.pid, self._ipc_socket)
        self._connect_task = asyncio.create_task(self._connect())
        self._sender_task = asyncio.create_task(self._send_loop())

    async def terminate(self):
        """Stop mpv for good.  Safe to call if mpv already died."""
        self._closing = True
        await self._close_ipc()
        await self._stop_process()
        try:
            os.unlink(self._ipc_socket)
        except FileNotFoundError:
            pass
        log.info("mpv terminated")

    async def _stop_process(self):
        if not self.process:
            return
        if self.process.poll() is None:
            self.process.terminate()
            try:
                await asyncio.get_running_loop().run_in_executor(
                    None, self.process.wait, 2)
            except subprocess.TimeoutExpired:
                log.warning("mpv ignored SIGTERM — killing")
                self.process.kill()
        else:
            log.info("mpv had already exited (code %s)", self.process.returncode)
        self.process = None

    async def _relaunch(self):
        if self.process is not None:
            log.warning("mpv unusable (%s) — relaunching",
                        self._failed or f"exit code {self.process.returncode}")
        await self._close_ipc()
        await self._stop_process()
        await self.start()

    # ── IPC communication ──

    async def _connect(self):
        """Wait for the IPC socket, connect, then confirm with a no-op command."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.ready_timeout
        while True:
            if self.process is None or self.process.poll() is not None:
                self._fail(MpvError("mpv exited during startup"))
                return
            if os.path.exists(self._ipc_socket):
                try:
                    self._ipc_reader, self._ipc_writer = \
                        await asyncio.open_unix_connection(self._ipc_socket)
                    break
                except (ConnectionRefusedError, FileNotFoundError):
                    pass
            if loop.time() >= deadline:
                self._fail(MpvError("Could not connect to mpv IPC"))
                return
            await asyncio.sleep(self.POLL_INTERVAL)

        self._reader_task = asyncio.create_task(self._read_ipc())
        try:
            fut = await self._write(['get_property', 'mpv-version'])
            reply = await asyncio.wait_for(
                fut, max(deadline - loop.time(), self.COMMAND_TIMEOUT))
        except (MpvError, asyncio.TimeoutError) as e:
            self._fail(MpvError(f"mpv IPC handshake failed: {e}"))
            return
        log.info("mpv ready (%s)", reply.get('data'))
        self._ready.set()

    async def _write(self, args) -> asyncio.Future:
        if not self._ipc_writer:
            raise MpvError("mpv IPC not connected")
        self._request_id += 1
        fut = asyncio.get_running_loop().create_future()
        self._pending[self._request_id] = fut
        line = json.dumps({'command': args, 'request_id': self._request_id})
        try:
            self._ipc_writer.write(line.encode() + b'\n')
            await self._ipc_writer.drain()
        except (OSError, RuntimeError) as e:
            self._pending.pop(self._request_id, None)
            raise MpvError(f"mpv IPC send error: {e}") from e
        return fut

    async def _send_loop(self):
        """Single consumer of the command queue."""
        await self._ready.wait()
        while True:
            args, fut = await self._queue.get()
            if fut.done():
                continue  # caller gave up
            if self._failed:
                fut.set_exception(self._failed)
                continue
            try:
                reply_fut = await self._write(args)
            except MpvError as e:
                fut.set_exception(e)
                continue
            reply_fut.add_done_callback(lambda r, f=fut: _chain(r, f))

    async def _read_ipc(self):
        """Background task — routes replies to their waiting futures."""
        try:
            while self._ipc_reader:
                line = await self._ipc_reader.readline()
                if not line:
                    break  # EOF — mpv closed
                try:
                    msg = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if 'event' in msg:
                    log.debug("mpv event: %s", msg['event'])
                    continue
                fut = self._pending.pop(msg.get('request_id'), None)
                if fut and not fut.done():
                    fut.set_result(msg)
        except asyncio.CancelledError:
            return
        except (OSError, ValueError) as e:
            log.debug("IPC reader ended: %s", e)

        if not self._closing:
            log.warning("mpv IPC connection closed")
            self._fail(MpvError("mpv IPC connection closed"))

    def _fail(self, err: MpvError):
        log.error("%s", err)
        self._failed = err
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(err)
        self._pending.clear()
        self._ready.set()  # let the sender drain the queue with the error

    async def _close_ipc(self):
        for task in (self._connect_task, self._sender_task, self._reader_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._connect_task = self._sender_task = self._reader_task = None
        if self._ipc_writer:
            try:
                self._ipc_writer.close()
                await self._ipc_writer.wait_closed()
            except (OSError, RuntimeError):
                pass
        self._ipc_reader = None
        self._ipc_writer = None
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(MpvError("mpv IPC closed"))
        self._pending.clear()

    async def command(self, *args) -> dict:
        """Queue one IPC command and wait for mpv's reply."""
        if self._closing:
            raise MpvError("mpv is shutting down")
        async with self._launch_lock:
            if not self.running or self._failed:
                await self._relaunch()
        fut = asyncio.get_running_loop().create_future()
        await self._queue.put((list(args), fut))
        try:
            reply = await asyncio.wait_for(
                fut, self.ready_timeout + self.COMMAND_TIMEOUT)
        except asyncio.TimeoutError:
            raise MpvError(f"mpv did not answer {args[0]}") from None
        if reply.get('error') != 'success':
            raise MpvError(f"{args[0]}: {reply.get('error')}")
        return reply

    # ── Player commands ──

    async def load(self, url):
        await self.command('loadfile', url, 'replace')
        await self.command('set_property', 'pause', False)

    async def toggle_pause(self):
        await self.command('cycle', 'pause')

    async def stop(self):
        await self.command('stop')
        await self.command('set_property', 'pause', False)

    async def set_volume(self, volume) -> int:
        volume = max(0, min(100, int(volume)))
        await self.command('set_property', 'volume', volume)
        self.volume = volume
        return volume

    async def get_property(self, name, default=None, timeout=None):
        """Read a property, or return *default* if mpv can't provide it.

        With *timeout*, a slow or stalled mpv also yields *default*.
        """
        try:
            reply = await asyncio.wait_for(
                self.command('get_property', name), timeout)
        except (MpvError, asyncio.TimeoutError) as e:
            log.debug("get_property %s unavailable: %s", name, e)
            return default
        return reply.get('data', default)


def _chain(source: asyncio.Future, target: asyncio.Future):
    if target.done():
        return
    if source.cancelled():
        target.set_exception(MpvError("mpv IPC closed"))
    elif source.exception():
        target.set_exception(source.exception())
    else:
        target.set_result(source.result())
