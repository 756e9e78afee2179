"""Operator-facing console output: [INFO] / [WARN] / [ERROR] / [PASS] / [FAIL]."""

from __future__ import annotations

import os
import sys
from typing import TextIO

_RESET = "\033[0m"
_COLOURS = {
    'INFO': "\033[34m",
    'WARN': "\033[33m",
    'ERROR': "\033[31m",
    'PASS': "\033[32m",
    'FAIL': "\033[31m",
}


def _use_colour(stream: TextIO) -> bool:
    if os.environ.get('NO_COLOR'):
        return False
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


class ConsoleReporter:
    """Prints one tagged line per event and counts PASS/FAIL lines."""

    def __init__(self, stream: TextIO | None = None, colour: bool | None = None):
        self._stream = stream if stream is not None else sys.stdout
        self._colour = _use_colour(self._stream) if colour is None else colour
        self.passes = 0
        self.failures = 0

    def _line(self, tag: str, message: str) -> None:
        label = f"{_COLOURS[tag]}{tag}{_RESET}" if self._colour else tag
        print(f"[{label}] {message}", file=self._stream)

    def info(self, message: str) -> None:
        self._line('INFO', message)

    def warn(self, message: str) -> None:
        self._line('WARN', message)

    def error(self, message: str) -> None:
        self._line('ERROR', message)

    def passed(self, message: str) -> None:
        self.passes += 1
        self._line('PASS', message)

    def failed(self, message: str) -> None:
        self.failures += 1
        self._line('FAIL', message)

    def device(self, index: int, record) -> None:
        """One line per discovered device."""
        print(
            f"  [{index}] {record.device_type} serial={record.serial} "
            f"firmware={record.firmware} bus={record.device_id}",
            file=self._stream,
        )

    def summary(self) -> None:
        total = self.passes + self.failures
        message = f"{self.passes}/{total} checks passed"
        if self.failures:
            self.error(f"{message}, {self.failures} failed")
        else:
            self.info(message)
