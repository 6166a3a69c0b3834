# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
radiod — personal internet radio.

A small local daemon owns one mpv process and exposes an HTTP/JSON control
API on localhost.  The `radio` command and the bundled web page are
stateless clients of that API; the CLI starts the daemon on demand.

Modules:
  server.py   — HTTP control server (the daemon)
  player.py   — playback session state on top of the mpv adapter
  client.py   — daemon discovery / auto-start and HTTP helpers for clients
  cli.py      — the `radio` command
  lib/        — config, mpv IPC, Radio-Browser API, PID file, JSON stores
"""

__version__ = "0.2.0"
