# radiod
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""PID file for the radiod daemon.

Best effort throughout: a failed write or delete is logged and ignored, so
it never affects playback.  The file can be stale after a crash; use
is_alive() before trusting it.
"""

import logging
import os

from .config import config_dir

logger = logging.getLogger(__name__)


def pid_path() -> str:
    return os.path.join(config_dir(), "server.pid")


def write_pid(pid: int | None = None) -> bool:
    path = pid_path()
    pid = os.getpid() if pid is None else pid
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(f"{pid}\n")
    except OSError as e:
        logger.warning("Could not write PID file %s: %s", path, e)
        return False
    logger.debug("PID %d written to %s", pid, path)
    return True


def read_pid() -> int | None:
    try:
        with open(pid_path()) as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


def remove_pid() -> None:
    path = pid_path()
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove PID file %s: %s", path, e)


def is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)  # signal 0: existence check only
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # exists, owned by someone else
    return True


def remove_if_stale() -> bool:
    """Delete the PID file when it points at a dead process."""
    pid = read_pid()
    if pid is None or is_alive(pid):
        return False
    logger.info("Removing stale PID file (pid %d is gone)", pid)
    remove_pid()
    return True
