"""Pre-flight check: refuse to run while vendor software owns the mixer.

The official app and the utility daemon both keep the device busy and
move faders on their own, which would corrupt every reading.
"""

from __future__ import annotations

import logging

import psutil

from .errors import ConflictError

log = logging.getLogger(__name__)

# Exact process names, checked in this order
UTIL_LINUX = "goxlr-daemon"
UTIL = "goxlr-daemon.exe"
APP = "GoXLR App.exe"
BETA = "GoXLR Beta App.exe"

CONFLICTING_PROCESSES: tuple[tuple[str, str], ...] = (
    (UTIL_LINUX, "Stop the Utility First!"),
    (UTIL, "Stop the Utility First!"),
    (APP, "Stop the Official App First!"),
    (BETA, "Stop the Official Beta App First!"),
)


def _running_process_names() -> set[str]:
    names = set()
    try:
        for proc in psutil.process_iter(['name']):
            name = proc.info.get('name')
            if name:
                names.add(name)
    except psutil.Error as e:
        raise ConflictError("Unable to Read System Processes, failing Pre-Flight") from e
    return names


def check() -> None:
    """Raise ConflictError if any conflicting process is running."""
    running = _running_process_names()
    log.debug("Pre-flight: %d running process name(s)", len(running))
    for name, message in CONFLICTING_PROCESSES:
        if name in running:
            log.info("Pre-flight: found conflicting process %r", name)
            raise ConflictError(message)
