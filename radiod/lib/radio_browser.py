# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Radio-Browser API client (https://api.radio-browser.info).

Stations are passed around as the plain dicts the API returns.  The fields
radiod relies on:

    stationuuid   stable id
    name          display name
    url_resolved  playable stream URL
    country, codec, bitrate, tags   shown in listings
"""

import asyncio
import logging

import aiohttp

from radiod import __version__
from .config import RADIO_BROWSER_URL, cfg

log = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


class RadioBrowserError(Exception):
    """The Radio-Browser API could not be reached or returned an error."""


class RadioBrowser:

    def __init__(self, base_url=None, user_agent=None, session: aiohttp.ClientSession | None = None):
        self.base_url = (base_url or cfg("radio_browser", "base_url", default=RADIO_BROWSER_URL)).rstrip("/")
        self.user_agent = user_agent or cfg("radio_browser", "user_agent",
                                            default=f"radiod/{__version__}")
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT))
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _get_json(self, path, params=None):
        # Drop unset filters so they aren't sent as empty strings
        clean = {k: str(v) for k, v in (params or {}).items() if v not in (None, "")}
        url = f"{self.base_url}/{path}"
        try:
            async with self._get_session().get(
                url, params=clean,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            ) as resp:
                if resp.status != 200:
                    raise RadioBrowserError(f"Radio API {resp.status}: {resp.reason}")
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise RadioBrowserError(f"Radio API unreachable: {e}") from e
        except asyncio.TimeoutError as e:
            raise RadioBrowserError("Radio API timed out") from e
        except ValueError as e:
            raise RadioBrowserError(f"Radio API returned invalid JSON: {e}") from e

    async def search(self, name=None, limit=30, country=None, tag=None,
                     codec=None, offset=None) -> list[dict]:
        """Search stations — any subset of the filters Radio-Browser accepts."""
        stations = await self._get_json("json/stations/search", {
            "name": name,
            "country": country,
            "tag": tag,
            "codec": codec,
            "limit": limit,
            "offset": offset,
        })
        log.info("Search %r → %d station(s)", name, len(stations))
        return stations

    async def by_uuid(self, uuids) -> list[dict]:
        """Fetch full station records for a list of station ids."""
        uuids = list(uuids)
        if not uuids:
            return []
        return await self._get_json("json/stations/byuuid", {"uuids": ",".join(uuids)})

    async def click(self, uuid):
        """Count a play (the public API asks clients to do this)."""
        await self._get_json(f"json/url/{uuid}")
