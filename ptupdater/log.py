"""Levelled console, CSV, daemon-log and kernel-log output."""

from __future__ import annotations

import sys
import time
from enum import IntEnum
from typing import Iterable, Optional, TextIO


class Level(IntEnum):
    """Verbosity levels; a message is shown when its level is at most the verbosity."""

    QUIET = 0
    FATAL = 1
    RESULT = 2
    ERROR = 3
    WARNING = 4
    INFO = 5
    DEBUG = 6
    PTC = 98
    NOLEVEL_NOPREFIX = 99


_KMSG_LEVELS = {Level.FATAL, Level.ERROR, Level.WARNING}

_CSV_PREFIXES = {
    Level.FATAL: ".FATAL,",
    Level.ERROR: ".ERROR,",
    Level.WARNING: ".WARNING,",
}

_KMSG_PREFIXES = {
    Level.FATAL: "FATAL: ",
    Level.ERROR: "ERROR: ",
    Level.WARNING: "WARNING: ",
}


class Logger:
    """Writes messages to the console (or a daemon log), a CSV log and the kernel log."""

    def __init__(
        self,
        verbose_level: int = Level.FATAL,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        kmsg_path: Optional[str] = "/dev/kmsg",
    ) -> None:
        self._verbose_level = int(Level.FATAL)
        self.set_verbose_level(verbose_level)
        self._stdout = stdout
        self._stderr = stderr
        self.kmsg_path = kmsg_path
        self.csv_file: Optional[TextIO] = None
        self.daemon_log_file: Optional[TextIO] = None
        self.kmsg_written = False
        self._timestamps: set[int] = set()

    @property
    def verbose_level(self) -> int:
        return self._verbose_level

    def set_verbose_level(self, level: int) -> None:
        """Set the verbosity, capping it at DEBUG."""
        level = int(level)
        self._verbose_level = int(Level.DEBUG) if level >= Level.DEBUG else level

    def set_timestamps(self, levels: Iterable[int]) -> None:
        """Show an uptime stamp on console lines of exactly these levels."""
        self._timestamps = {int(level) for level in levels}

    def timestamp_enabled(self, level: int) -> bool:
        return int(level) in self._timestamps

    def clear_kmsg_written(self) -> None:
        self.kmsg_written = False

    def output(self, level: int, message: str) -> None:
        """Emit a message at the given level to every configured sink."""
        level = int(level)
        if level in _KMSG_LEVELS:
            self.kmsg_written = True
        self._output_console(level, message)
        if self.csv_file is not None:
            self._output_csv(level, message)
        self._output_kmsg(level, message)

    def _console_prefix(self, level: int) -> tuple[Optional[str], bool]:
        """Return (prefix or None if suppressed, use_stderr)."""
        v = self._verbose_level
        if level == Level.QUIET:
            return None, False
        if level == Level.FATAL and v >= Level.FATAL:
            return "FATAL: ", True
        if level == Level.RESULT and v >= Level.RESULT:
            return "RESULT: ", False
        if level == Level.ERROR and v >= Level.ERROR:
            return "ERROR:  ", True
        if level == Level.WARNING and v >= Level.WARNING:
            return "WARNING: ", False
        if level == Level.INFO and v >= Level.INFO:
            return "INFO: ", False
        if level == Level.PTC:
            return "PTC: ", False
        if level == Level.NOLEVEL_NOPREFIX:
            return "", False
        if level >= Level.DEBUG and v >= Level.DEBUG:
            return "DEBUG:  ", False
        return None, False

    def _output_console(self, level: int, message: str) -> None:
        prefix, use_stderr = self._console_prefix(level)
        if prefix is None:
            return
        line = f"{prefix}{message}"
        if self.timestamp_enabled(level):
            line = f"[{time.monotonic():13.6f}] {line}"
        if self.daemon_log_file is not None:
            stream = self.daemon_log_file
        elif use_stderr:
            stream = self._stderr if self._stderr is not None else sys.stderr
        else:
            stream = self._stdout if self._stdout is not None else sys.stdout
        stream.write(line)
        stream.flush()

    def _output_csv(self, level: int, message: str) -> None:
        prefix = _CSV_PREFIXES.get(level)
        if prefix is None or self.csv_file is None:
            return
        self.csv_file.write(f"{prefix}[{int(time.monotonic())}] {message}")

    def _output_kmsg(self, level: int, message: str) -> None:
        prefix = _KMSG_PREFIXES.get(level)
        if prefix is None or self.kmsg_path is None:
            return
        try:
            with open(self.kmsg_path, "a") as kmsg:
                kmsg.write(f"PtMFG {prefix}{message}")
        except OSError:
            pass


_default_logger = Logger()


def get_logger() -> Logger:
    """Return the process-wide logger."""
    return _default_logger


def output(level: int, message: str) -> None:
    """Emit a message through the process-wide logger."""
    _default_logger.output(level, message)