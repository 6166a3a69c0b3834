# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Flat JSON files in the per-user config dir.

    favorites.json    [station, ...]             full station records
    playlists.json    {name: [stationuuid, ...]}
    last-search.json  CLI cache of the last search result
    last-played.json  CLI cache of the last played station
"""

import json
import logging
import os

from .config import config_dir

logger = logging.getLogger(__name__)


def store_path(name: str) -> str:
    return os.path.join(config_dir(), name)


def load_json(name: str, default):
    """Read a JSON file; missing or corrupt files read as *default*."""
    path = store_path(name)
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        return default
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return default


def save_json(name: str, data) -> bool:
    path = store_path(name)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
    except OSError as e:
        logger.warning("Could not write %s: %s", path, e)
        return False
    return True


class Favorites:
    FILE = "favorites.json"

    def load(self) -> list[dict]:
        favs = load_json(self.FILE, [])
        return favs if isinstance(favs, list) else []

    def add(self, station: dict) -> bool:
        """Add a station.  Returns False if it is already a favorite."""
        favs = self.load()
        if any(f.get("stationuuid") == station.get("stationuuid") for f in favs):
            return False
        favs.append(station)
        save_json(self.FILE, favs)
        return True

    def remove_index(self, index: int) -> dict | None:
        """Remove by 0-based index.  Returns the removed station or None."""
        favs = self.load()
        if index < 0 or index >= len(favs):
            return None
        removed = favs.pop(index)
        save_json(self.FILE, favs)
        return removed

    def remove_uuid(self, uuid: str) -> bool:
        favs = self.load()
        kept = [f for f in favs if f.get("stationuuid") != uuid]
        if len(kept) == len(favs):
            return False
        save_json(self.FILE, kept)
        return True

    def contains(self, uuid: str) -> bool:
        return any(f.get("stationuuid") == uuid for f in self.load())


class Playlists:
    FILE = "playlists.json"

    def load(self) -> dict[str, list[str]]:
        db = load_json(self.FILE, {})
        return db if isinstance(db, dict) else {}

    def add(self, name: str, uuid: str):
        db = self.load()
        entries = db.setdefault(name, [])
        if uuid not in entries:
            entries.append(uuid)
        save_json(self.FILE, db)

    def remove(self, name: str, uuid: str):
        db = self.load()
        if name not in db:
            return
        db[name] = [u for u in db[name] if u != uuid]
        if not db[name]:
            del db[name]  # empty playlists disappear
        save_json(self.FILE, db)

    def get(self, name: str) -> list[str]:
        return self.load().get(name, [])

    def delete(self, name: str) -> bool:
        db = self.load()
        if db.pop(name, None) is None:
            return False
        save_json(self.FILE, db)
        return True
