"""File helpers: copying, line insertion after matches, and polling for input."""

from __future__ import annotations

import contextlib
import os
import re
import select
import tempfile
from enum import Enum
from typing import IO, Union

from .log import Level, output

_COPY_CHUNK_SIZE = 256
_INSERT_TMP_PREFIX = "ptmfg_csv_temp-"


class PollStatus(Enum):
    """Outcome of waiting for inbound data."""

    GOT_DATA = 0
    TIMEOUT = 1
    ERROR = 2
    SKIP = 3


def file_copy(src: Union[str, os.PathLike], dst: Union[str, os.PathLike]) -> int:
    """Copy src to dst byte for byte and return the number of bytes copied.

    The destination is created (or truncated) before the source is opened,
    so a missing source still leaves an empty destination behind.
    """
    total = 0
    with open(dst, "wb") as out:
        with open(src, "rb") as inp:
            while chunk := inp.read(_COPY_CHUNK_SIZE):
                out.write(chunk)
                total += len(chunk)
    output(Level.DEBUG, f"Read {total} bytes\n")
    return total


def file_insert(source_file: str, working_dir: str, pattern: str, text: str) -> None:
    """Insert text after every line of a file that matches a regular expression.

    The file path is working_dir and source_file joined as given. The
    rewritten contents go to a temporary file in working_dir, which then
    replaces the original; on any failure the original is left untouched.
    """
    source_path = f"{working_dir}{source_file}"
    output(Level.DEBUG, "Start: file_insert.\n")
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ValueError(
            f"Could not compile regular expression ({exc}); "
            f"source file ({source_path}) will not be modified."
        ) from exc

    fd, tmp_path = tempfile.mkstemp(prefix=_INSERT_TMP_PREFIX, dir=working_dir)
    try:
        with os.fdopen(
            fd, "w", encoding="utf-8", errors="surrogateescape", newline=""
        ) as tmp, open(
            source_path, encoding="utf-8", errors="surrogateescape", newline=""
        ) as source:
            for line in source:
                tmp.write(line)
                if regex.search(line):
                    tmp.write(text)
        os.replace(tmp_path, source_path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise


def fpoll_inbound_data(stream: Union[IO, int], timeout_us: int) -> PollStatus:
    """Wait up to timeout_us microseconds for stream to become readable."""
    if stream is None:
        raise ValueError("no stream given to poll")
    try:
        readable, _, _ = select.select([stream], [], [], timeout_us / 1_000_000)
    except (OSError, ValueError) as exc:
        output(
            Level.ERROR,
            f"fpoll_inbound_data: A problem occurred while trying to read from "
            f"the sysfs node. {exc}\n",
        )
        return PollStatus.ERROR
    if not readable:
        output(Level.DEBUG, "Polling timed-out for incoming data.\n")
        return PollStatus.TIMEOUT
    return PollStatus.GOT_DATA