# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
The user-facing `radio` command.

Every command that touches the player is an HTTP request to the daemon,
which is started in the background if it isn't running.  `search` talks to
Radio-Browser directly and caches the result on disk, so `play <n>` sends
the full station record and never depends on the daemon's search cache.
"""

import argparse
import asyncio
import logging
import sys

from radiod import __version__
from radiod.client import DaemonClient, StartupTimeout
from radiod.lib.radio_browser import RadioBrowser, RadioBrowserError
from radiod.lib.store import Favorites, Playlists, load_json, save_json

log = logging.getLogger(__name__)

LAST_SEARCH = "last-search.json"
LAST_PLAYED = "last-played.json"


class CommandError(Exception):
    """Reported to the user on stderr; exit code 1."""


def format_station(i, s):
    bitrate = f"{s['bitrate']}k" if s.get("bitrate") else "?k"
    return f"  {i:>2}) {s.get('name', '?')}  [{s.get('country', '')}]  {s.get('codec', '')}/{bitrate}"


def pick(stations, number, what):
    """1-based pick from a list, with a readable error."""
    if number < 1:
        raise CommandError("Index must be a positive integer.")
    if number > len(stations):
        raise CommandError(f"No station at index {number}. ({len(stations)} {what})")
    return stations[number - 1]


async def play_station(daemon, station):
    data = await daemon.post("/api/play", {
        "uuid": station.get("stationuuid"),
        "url": station.get("url_resolved") or station.get("url"),
        "name": station.get("name"),
    })
    if not data.get("ok"):
        raise CommandError(f"Failed to play: {data.get('error', 'unknown error')}")
    save_json(LAST_PLAYED, station)
    print(f"Now playing: {station.get('name')}")


# ── Commands ──

async def cmd_search(args, daemon):
    async with RadioBrowser() as browser:
        stations = await browser.search(
            name=args.term, country=args.country, tag=args.tag, limit=args.limit)
    if not stations:
        print("No stations found.")
        return
    for i, s in enumerate(stations, 1):
        print(format_station(i, s))
    save_json(LAST_SEARCH, stations)
    print(f"\n{len(stations)} result(s) cached. Use  radio play <num>  to listen.")


async def cmd_play(args, daemon):
    if args.index is not None:
        stations = load_json(LAST_SEARCH, None)
        if not stations:
            raise CommandError("No cached search - run `radio search ...` first.")
        station = pick(stations, args.index, "results cached")
    else:
        station = load_json(LAST_PLAYED, None)
        if not station:
            raise CommandError("No last played station. Use  radio play <num>  after a search.")
    await play_station(daemon, station)


def check_reply(data):
    if not data.get("ok"):
        raise CommandError(data.get("error", "unknown error"))
    return data


async def cmd_pause(args, daemon):
    check_reply(await daemon.get("/api/pause"))
    print("Toggled pause")


async def cmd_stop(args, daemon):
    check_reply(await daemon.get("/api/stop"))
    print("Stopped")


async def cmd_vol(args, daemon):
    if not 0 <= args.volume <= 100:
        raise CommandError("Volume must be 0-100")
    data = check_reply(await daemon.get(f"/api/vol?v={args.volume}"))
    print(f"Volume set to {data['volume']}")


async def cmd_status(args, daemon):
    s = await daemon.get("/api/status")
    if not s.get("uuid"):
        print("Nothing playing")
        return
    print(f"Station: {s.get('title') or s['uuid']}")
    print(f"Paused:  {s.get('paused')}")
    print(f"Volume:  {s.get('volume')}")


async def cmd_quit(args, daemon):
    if await daemon.quit():
        print("Radio daemon stopped.")
    else:
        print("Daemon is not running.")


async def cmd_fav(args, daemon):
    favs = Favorites()
    if args.action == "list":
        stations = favs.load()
        if not stations:
            print("No favorites yet. Use  radio fav add <num>  after a search.")
        for i, s in enumerate(stations, 1):
            print(format_station(i, s))
    elif args.action == "add":
        station = pick(load_json(LAST_SEARCH, []), args.index, "results cached")
        if favs.add(station):
            print(f"Added to favorites: {station.get('name')}")
        else:
            print(f"Already a favorite: {station.get('name')}")
    elif args.action == "rm":
        removed = favs.remove_index(args.index - 1)
        if removed is None:
            raise CommandError(f"No favorite at index {args.index}.")
        print(f"Removed from favorites: {removed.get('name')}")
    elif args.action == "play":
        await play_station(daemon, pick(favs.load(), args.index, "favorites"))


async def cmd_playlist(args, daemon):
    playlists = Playlists()
    if args.action == "list":
        db = playlists.load()
        if not db:
            print("No playlists.")
        for name, uuids in db.items():
            print(f"  {name}  ({len(uuids)} station(s))")
    elif args.action == "show":
        uuids = playlists.get(args.name)
        if not uuids:
            raise CommandError(f"Playlist '{args.name}' is empty or does not exist.")
        async with RadioBrowser() as browser:
            stations = await browser.by_uuid(uuids)
        for i, s in enumerate(stations, 1):
            print(format_station(i, s))
    elif args.action == "add":
        station = pick(load_json(LAST_SEARCH, []), args.index, "results cached")
        playlists.add(args.name, station["stationuuid"])
        print(f"Added {station.get('name')} to '{args.name}'")
    elif args.action == "rm":
        uuids = playlists.get(args.name)
        if not 1 <= args.index <= len(uuids):
            raise CommandError(f"No entry {args.index} in '{args.name}'.")
        playlists.remove(args.name, uuids[args.index - 1])
        print(f"Removed entry {args.index} from '{args.name}'")
    elif args.action == "delete":
        if not playlists.delete(args.name):
            raise CommandError(f"No playlist named '{args.name}'.")
        print(f"Deleted playlist '{args.name}'")
    elif args.action == "play":
        uuids = playlists.get(args.name)
        if not uuids:
            raise CommandError(f"Playlist '{args.name}' is empty or does not exist.")
        uuid = pick(uuids, args.index or 1, f"entries in '{args.name}'")
        async with RadioBrowser() as browser:
            found = await browser.by_uuid([uuid])
        if not found:
            raise CommandError(f"Station {uuid} no longer exists on Radio-Browser.")
        await play_station(daemon, found[0])


# ── Parser ──

def build_parser():
    parser = argparse.ArgumentParser(prog="radio", description="Internet radio CLI (mpv)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("search", help="Search the Radio-Browser database")
    p.add_argument("term")
    p.add_argument("-c", "--country", help="filter by country")
    p.add_argument("-t", "--tag", help="filter by tag")
    p.add_argument("-l", "--limit", type=int, default=30, help="max results")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("play", help="Play a station by index, or replay the last played station")
    p.add_argument("index", nargs="?", type=int)
    p.set_defaults(func=cmd_play)

    sub.add_parser("pause", help="Toggle pause").set_defaults(func=cmd_pause)
    sub.add_parser("stop", help="Stop playback").set_defaults(func=cmd_stop)

    p = sub.add_parser("vol", help="Set volume (0-100)")
    p.add_argument("volume", type=int)
    p.set_defaults(func=cmd_vol)

    sub.add_parser("status", help="Show current playback state").set_defaults(func=cmd_status)
    sub.add_parser("quit", help="Shut down the radio daemon and mpv").set_defaults(func=cmd_quit)

    p = sub.add_parser("server", help="Run the HTTP control server in the foreground")
    p.add_argument("-p", "--port", type=int, help="port to listen on (default $RADIO_PORT or 4242)")
    p.set_defaults(func=None)

    p = sub.add_parser("fav", help="Manage favorite stations")
    fav = p.add_subparsers(dest="action", required=True)
    fav.add_parser("list")
    for action in ("add", "rm", "play"):
        fav.add_parser(action).add_argument("index", type=int)
    p.set_defaults(func=cmd_fav)

    p = sub.add_parser("playlist", help="Manage named playlists")
    pl = p.add_subparsers(dest="action", required=True)
    pl.add_parser("list")
    for action in ("show", "delete"):
        pl.add_parser(action).add_argument("name")
    for action in ("add", "rm"):
        a = pl.add_parser(action)
        a.add_argument("name")
        a.add_argument("index", type=int)
    a = pl.add_parser("play")
    a.add_argument("name")
    a.add_argument("index", nargs="?", type=int)
    p.set_defaults(func=cmd_playlist)

    return parser


async def run(args) -> int:
    async with DaemonClient() as daemon:
        try:
            await args.func(args, daemon)
        except StartupTimeout as e:
            print(f"Failed to start radio daemon: {e}", file=sys.stderr)
            return 1
        except (CommandError, RadioBrowserError) as e:
            print(e, file=sys.stderr)
            return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "server":
        from radiod.server import main as server_main
        return server_main(port=args.port)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    return asyncio.run(run(args))
