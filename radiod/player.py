# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
RadioPlayer — the daemon's single playback session.

    idle ──play──▶ loading ──▶ playing ◀──toggle──▶ paused
      ▲                                    │
      └───────────────stop─────────────────┘

play() from playing/paused goes straight back to loading for the new
station.  Volume is independent of the state and survives play/stop.

There is no lock around the session: two overlapping play() calls both
reach mpv, and whichever load finishes last owns uuid/title.
"""

import asyncio
import logging

from radiod.lib.mpv import MpvError

log = logging.getLogger(__name__)

DEFAULT_VOLUME = 100
STATUS_TIMEOUT = 0.5  # per property read; status must stay under the 1 s probe


class RadioPlayer:

    def __init__(self, mpv):
        self.mpv = mpv
        self.state = 'idle'  # idle | loading | playing | paused
        self.uuid = None
        self.title = None
        self.paused = False
        self.volume = DEFAULT_VOLUME

    async def play(self, uuid, url, title=None):
        """Load a resolved stream URL, replacing whatever is playing."""
        self.state = 'loading'
        log.info("Loading %s (%s)", title or uuid, url)
        try:
            await self.mpv.load(url)
        except MpvError:
            self.state = 'idle'
            self.uuid = self.title = None
            self.paused = False
            raise
        self.uuid = uuid
        self.title = title
        self.paused = False
        self.state = 'playing'
        log.info("Playing %s", title or uuid)

    async def toggle_pause(self):
        if self.state not in ('playing', 'paused'):
            log.debug("Pause ignored — nothing playing")
            return
        await self.mpv.toggle_pause()
        self.paused = not self.paused
        self.state = 'paused' if self.paused else 'playing'
        log.info("Playback %s", self.state)

    async def stop(self):
        await self.mpv.stop()
        self.uuid = None
        self.title = None
        self.paused = False
        self.state = 'idle'
        log.info("Stopped")

    async def set_volume(self, volume) -> int:
        self.volume = await self.mpv.set_volume(volume)
        log.info("Volume %d", self.volume)
        return self.volume

    async def status(self) -> dict:
        """Current session, read-only.

        Never fails on mpv property errors and never waits for mpv: this is
        the daemon's liveness probe, so while mpv is warming up, relaunching
        or stalled, the last known values are reported instead.
        """
        volume, paused = self.volume, self.paused
        if self.mpv.ready:
            volume, paused = await asyncio.gather(
                self.mpv.get_property('volume', self.volume, timeout=STATUS_TIMEOUT),
                self.mpv.get_property('pause', self.paused, timeout=STATUS_TIMEOUT),
            )
        try:
            volume = int(round(float(volume)))
        except (TypeError, ValueError):
            volume = self.volume
        paused = bool(paused) if self.uuid is not None else False
        return {
            'uuid': self.uuid,
            'paused': paused,
            'volume': volume,
            'title': self.title,
            'state': self.state,
        }

    async def shutdown(self):
        await self.mpv.terminate()
