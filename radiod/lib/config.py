# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Shared configuration loader for radiod.

Loads a single JSON config file per user.  Search order:
  1. $RADIOD_CONFIG_DIR/config.json   (default ~/.config/radiod/config.json)
  2. config.json                      (CWD — handy for local dev)

Environment variables win over the file for the values clients and the
daemon must agree on:
  RADIO_PORT          control server port
  RADIOD_CONFIG_DIR   per-user state directory (PID file, caches, favorites)
  RADIOD_BASE_PATH    directory holding the web UI bundle

Usage:
    from radiod.lib.config import cfg, server_port

    binary = cfg("mpv", "binary", default="mpv")
    port   = server_port()
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4242
DEFAULT_HOST = "127.0.0.1"
RADIO_BROWSER_URL = "https://de1.api.radio-browser.info"

_config: dict | None = None


def config_dir() -> str:
    """Per-user state directory.  Not created here — writers do that."""
    return os.getenv(
        "RADIOD_CONFIG_DIR",
        os.path.join(os.path.expanduser("~"), ".config", "radiod"),
    )


def base_path() -> str:
    """Static-asset root: the directory that contains web/."""
    return os.getenv(
        "RADIOD_BASE_PATH",
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    )


def _search_paths() -> list[str]:
    return [os.path.join(config_dir(), "config.json"), "config.json"]


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    server = config.get("server") or {}
    port = server.get("port")
    if port is not None and (not isinstance(port, int) or not 0 < port < 65536):
        logger.warning("Config %s: server.port %r is not a valid port — using %d",
                       path, port, DEFAULT_PORT)
    mpv = config.get("mpv") or {}
    binary = mpv.get("binary")
    if binary is not None and not isinstance(binary, str):
        logger.warning("Config %s: mpv.binary must be a string", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue
        if not isinstance(data, dict):
            logger.error("Config %s must be a JSON object — ignoring", path)
            continue
        _config = data
        logger.info("Config loaded from %s", path)
        _validate(_config, path)
        return _config

    logger.debug("No config.json found — using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                      → config["server"]
    cfg("mpv", "binary")               → config["mpv"]["binary"]
    cfg("server", "port", default=4242) → config["server"]["port"] or 4242
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()


def server_port() -> int:
    """Port shared by the daemon and its clients.  RADIO_PORT wins."""
    env = os.getenv("RADIO_PORT")
    if env:
        try:
            return int(env)
        except ValueError:
            logger.warning("Ignoring non-numeric RADIO_PORT=%r", env)
    port = cfg("server", "port", default=DEFAULT_PORT)
    if isinstance(port, int) and 0 < port < 65536:
        return port
    return DEFAULT_PORT


def server_host() -> str:
    return cfg("server", "host", default=DEFAULT_HOST)
