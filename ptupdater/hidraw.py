"""Exchange of HID reports with the device through a Linux hidraw node."""

from __future__ import annotations

import dataclasses
import fcntl
import os
import re
import select
import struct
import threading
import time
from collections import deque
from enum import Enum
from typing import ClassVar, Optional

from .channel import Channel, ChannelType
from .files import PollStatus
from .hid import (
    HID_INPUT_REPORT_ID_BYTE_INDEX,
    HID_MAX_INPUT_REPORT_SIZE,
    HID_MAX_OUTPUT_REPORT_SIZE,
    HidDescriptor,
    HidReportId,
)
from .log import Level, output

HIDRAW0_SYSFS_NODE_FILE = "/dev/hidraw0"
HIDRAW_SYSFS_NODE_FILE_MAX_STRLEN = 20
REPORT_BUFFER_SIZE = 256

# Average time the device needs between receiving a command and answering it.
AVG_DELAY_BETWEEN_CMD_AND_RSP_MS = 5
TEARDOWN_WAIT_SECONDS = 5

# Linux hidraw ioctl requests: _IOR('H', nr, size).
HIDIOCGRDESCSIZE = 0x80044801
HIDIOCGRDESC = 0x90044802
HIDIOCGRAWINFO = 0x80084803
HID_MAX_DESCRIPTOR_SIZE = 4096

_SUSPEND_SCAN_CMD = bytes([0x04, 0x06, 0x00, 0x08, 0x33, 0x2C, 0xC0])
_PING_CMD = bytes([0x04, 0x06, 0x00, 0x08, 0x00, 0x2A, 0xF0])

_HIDRAW_NAME = re.compile(r"hidraw[0-9+]$")


class HidrawError(Exception):
    """A hidraw node could not be used."""


class _ReaderStatus(Enum):
    ACTIVE = 0
    NOT_STARTED = 1
    EXIT = 2


class ReportBuffer:
    """A bounded, thread-safe FIFO of input reports that drops the oldest when full.

    One slot of the ring is always the one being filled, so it holds at most
    REPORT_BUFFER_SIZE - 1 complete reports.
    """

    def __init__(self, capacity: int = REPORT_BUFFER_SIZE - 1) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._reports: deque[bytes] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def push(self, report: bytes) -> None:
        with self._lock:
            self._reports.append(bytes(report))

    def pop(self) -> bytes:
        """Remove and return the least recent report; IndexError if empty."""
        with self._lock:
            if not self._reports:
                raise IndexError("report buffer is empty")
            return self._reports.popleft()

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)


def _sleep_ms(ms: int) -> None:
    time.sleep(ms / 1000)


def _open_node(node: str, flags: int) -> int:
    try:
        return os.open(node, flags)
    except OSError as exc:
        raise HidrawError(
            f"Failed to open {node}. {exc.strerror} [{exc.errno}]"
        ) from exc


def _ioctl_int(fd: int, request: int, node: str, what: str) -> int:
    buf = bytearray(4)
    try:
        fcntl.ioctl(fd, request, buf, True)
    except OSError as exc:
        raise HidrawError(
            f"Failed to read the {what} from {node}. {exc.strerror} [{exc.errno}]"
        ) from exc
    (value,) = struct.unpack("i", buf)
    return value


def _read_raw_info(fd: int, node: str) -> tuple[int, int]:
    """Return (vendor id, product id) of the device behind fd."""
    buf = bytearray(8)
    try:
        fcntl.ioctl(fd, HIDIOCGRAWINFO, buf, True)
    except OSError as exc:
        raise HidrawError(
            f"Failed to read the raw device info from {node}. "
            f"{exc.strerror} [{exc.errno}]"
        ) from exc
    _bustype, vendor, product = struct.unpack("Ihh", buf)
    return vendor & 0xFFFF, product & 0xFFFF


class HidrawChannel(Channel):
    """A channel that reads input reports on a background thread."""

    type: ClassVar[ChannelType] = ChannelType.HIDRAW

    def __init__(
        self,
        node: str = HIDRAW0_SYSFS_NODE_FILE,
        hid_desc: Optional[HidDescriptor] = None,
    ) -> None:
        output(Level.INFO, f"Provided HIDRAW sysfs node: {node}.\n")
        if len(node) > HIDRAW_SYSFS_NODE_FILE_MAX_STRLEN:
            raise ValueError(
                f"The provided HIDRAW sysfs node file is {len(node)} chars, but the "
                f"max supported length is {HIDRAW_SYSFS_NODE_FILE_MAX_STRLEN} chars."
            )
        self.node = node
        self._hid_desc: Optional[HidDescriptor] = None
        if hid_desc is not None:
            output(Level.DEBUG, "HID descriptor initialized prior to use of HIDRAW.\n")
            self._hid_desc = dataclasses.replace(hid_desc)
        self.input_report_size = 0
        self.output_report_size = 0
        self._buffer = ReportBuffer()
        self._cond = threading.Condition()
        self._status = _ReaderStatus.NOT_STARTED
        self._read_status = PollStatus.GOT_DATA
        self._fd: Optional[int] = None
        self._pipe: Optional[tuple[int, int]] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_reading = False

    # Descriptors

    def get_hid_descriptor(self) -> HidDescriptor:
        output(Level.DEBUG, "get_hid_descriptor: Starting.\n")
        if self._hid_desc is not None:
            output(Level.DEBUG, "HID descriptor already read.\n")
            return dataclasses.replace(self._hid_desc)

        fd = _open_node(self.node, os.O_RDWR | os.O_NONBLOCK)
        try:
            rpt_desc_size = _ioctl_int(
                fd, HIDIOCGRDESCSIZE, self.node, "Report Descriptor size"
            )
            max_input_len = self._get_max_input_len()
            max_output_len = self._get_max_output_len()
            vendor, product = _read_raw_info(fd, self.node)
        finally:
            os.close(fd)

        self._hid_desc = HidDescriptor(
            hid_desc_len=0x001E,
            bcd_version=0x0100,
            rpt_desc_len=rpt_desc_size & 0xFFFF,
            rpt_desc_register=0x0002,
            input_register=0x0003,
            max_input_len=max_input_len & 0xFFFF,
            output_register=0x0004,
            max_output_len=max_output_len & 0xFFFF,
            cmd_register=0x0004,
            data_register=0x0005,
            vendor_id=vendor,
            product_id=product,
            version_id=0x0000,
        )
        return dataclasses.replace(self._hid_desc)

    def get_report_descriptor(self) -> bytes:
        """Read the raw HID report descriptor from the node."""
        output(Level.DEBUG, "get_report_descriptor: Starting.\n")
        fd = _open_node(self.node, os.O_RDWR | os.O_NONBLOCK)
        try:
            size = _ioctl_int(fd, HIDIOCGRDESCSIZE, self.node, "Report Descriptor size")
            buf = bytearray(struct.pack("I", size) + bytes(HID_MAX_DESCRIPTOR_SIZE))
            try:
                fcntl.ioctl(fd, HIDIOCGRDESC, buf, True)
            except OSError as exc:
                raise HidrawError(
                    f"Failed to read the Report Descriptor from {self.node}. "
                    f"{exc.strerror} [{exc.errno}]"
                ) from exc
        finally:
            os.close(fd)
        return bytes(buf[4 : 4 + size])

    def _get_max_input_len(self) -> int:
        output(Level.DEBUG, "_get_max_input_len: Starting.\n")
        fd = _open_node(self.node, os.O_RDWR)
        try:
            output(Level.DEBUG, f"SUSPEND_SCAN: {_SUSPEND_SCAN_CMD.hex(' ')}\n")
            self._write_report(_SUSPEND_SCAN_CMD)
            _sleep_ms(AVG_DELAY_BETWEEN_CMD_AND_RSP_MS)
            output(Level.DEBUG, f"PING: {_PING_CMD.hex(' ')}\n")
            self._write_report(_PING_CMD)
            _sleep_ms(AVG_DELAY_BETWEEN_CMD_AND_RSP_MS)
            try:
                ping_rsp = os.read(fd, HID_MAX_INPUT_REPORT_SIZE)
            except OSError as exc:
                raise HidrawError(
                    f"Failed to read from {self.node}. {exc.strerror} [{exc.errno}]"
                ) from exc
        finally:
            os.close(fd)
        if not ping_rsp:
            raise HidrawError(f"Zero bytes read from {self.node}. Something went wrong.")
        max_input_len = len(ping_rsp) + 2
        output(Level.DEBUG, f"Max HID input report length: {max_input_len} bytes.\n")
        return max_input_len

    def _get_max_output_len(self) -> int:
        output(Level.DEBUG, "_get_max_output_len: Starting.\n")
        fd = _open_node(self.node, os.O_RDWR)
        ping = _PING_CMD.ljust(HID_MAX_OUTPUT_REPORT_SIZE, b"\x00")
        best: Optional[int] = None
        lower, upper = 0, len(ping)
        try:
            while lower <= upper:
                mid = (lower + upper) // 2
                try:
                    written = os.write(fd, ping[:mid])
                except OSError:
                    upper = mid - 1
                else:
                    best = written
                    lower = written + 1
                _sleep_ms(AVG_DELAY_BETWEEN_CMD_AND_RSP_MS)
        finally:
            os.close(fd)
        if best is None:
            raise HidrawError(f"No output report could be written to {self.node}.")
        max_output_len = best + 2
        output(Level.DEBUG, f"Max HID output report length: {max_output_len} bytes.\n")
        return max_output_len

    # Sending

    def _write_report(self, report: bytes) -> None:
        fd = _open_node(self.node, os.O_WRONLY)
        try:
            written = os.write(fd, bytes(report))
        except OSError as exc:
            raise HidrawError(
                f"Failed to write to {self.node}. {exc.strerror} [{exc.errno}]"
            ) from exc
        finally:
            os.close(fd)
        if written != len(report):
            raise HidrawError(
                f"Short write to {self.node}: {written} of {len(report)} bytes."
            )

    def send_report(self, report: bytes) -> None:
        output(Level.DEBUG, "send_report: Starting.\n")
        self._write_report(report)

    # Receiving

    def setup(self, report_id: HidReportId = HidReportId.ANY) -> None:
        """Start the thread that collects input reports with the given ID."""
        output(Level.DEBUG, "setup: Starting.\n")
        if self._thread is not None and self._thread.is_alive():
            raise HidrawError("The report reader thread is already running.")
        with self._cond:
            self._status = _ReaderStatus.NOT_STARTED
            self._read_status = PollStatus.GOT_DATA
        self._buffer.clear()
        try:
            hid_desc = self.get_hid_descriptor()
            self.output_report_size = hid_desc.max_output_len - 2
            self.input_report_size = hid_desc.max_input_len - 2
            if self.input_report_size <= 0:
                raise HidrawError(
                    f"Invalid max input report length: {hid_desc.max_input_len}."
                )
            self._fd = _open_node(self.node, os.O_RDWR | os.O_NONBLOCK)
            try:
                self._pipe = os.pipe()
            except OSError as exc:
                raise HidrawError(
                    "Failed to open pipe for communicating with report reader "
                    f"thread. {exc.strerror} [{exc.errno}]"
                ) from exc
            self._stop_reading = False
            self._thread = threading.Thread(
                target=self._reader, args=(HidReportId(report_id),), daemon=True
            )
            self._thread.start()
            with self._cond:
                self._cond.wait_for(
                    lambda: self._status is not _ReaderStatus.NOT_STARTED
                )
        except BaseException:
            self.teardown()
            raise

    def _read_one(self) -> tuple[PollStatus, bytes]:
        assert self._fd is not None and self._pipe is not None
        try:
            select.select([self._fd, self._pipe[0]], [], [])
        except (OSError, ValueError) as exc:
            output(
                Level.ERROR,
                f"_read_report: A problem occurred while trying to read from "
                f"{self.node}. {exc}\n",
            )
            return PollStatus.ERROR, b""
        if self._stop_reading:
            output(Level.DEBUG, "Got signal to stop report reader thread.\n")
            return PollStatus.TIMEOUT, b""
        try:
            data = os.read(self._fd, self.input_report_size)
        except OSError as exc:
            output(
                Level.ERROR,
                f"_read_report: Failed to read from {self.node}. "
                f"{exc.strerror} [{exc.errno}]\n",
            )
            return PollStatus.ERROR, b""
        return PollStatus.GOT_DATA, data

    def _reader(self, report_id: HidReportId) -> None:
        output(Level.DEBUG, "_report_reader_thread: Starting.\n")
        with self._cond:
            self._status = _ReaderStatus.ACTIVE
            self._cond.notify_all()
        while True:
            status, data = self._read_one()
            if status is not PollStatus.GOT_DATA:
                break
            rid = data[HID_INPUT_REPORT_ID_BYTE_INDEX] if data else 0
            if report_id == HidReportId.ANY or rid == report_id:
                with self._cond:
                    self._buffer.push(data)
                    self._cond.notify_all()
        with self._cond:
            self._read_status = (
                PollStatus.GOT_DATA
                if status is not PollStatus.ERROR and len(self._buffer) > 0
                else status
            )
            self._status = _ReaderStatus.EXIT
            self._cond.notify_all()
        output(Level.DEBUG, "_report_reader_thread: Leaving.\n")

    def get_report(
        self, apply_timeout: bool = False, timeout: float = 0.0
    ) -> tuple[PollStatus, bytes]:
        output(Level.DEBUG, "get_report: Starting.\n")
        with self._cond:
            if self._status is _ReaderStatus.NOT_STARTED:
                raise HidrawError("Report reader thread has not been started.")
            if self._status is _ReaderStatus.EXIT and len(self._buffer) == 0:
                output(
                    Level.DEBUG,
                    "Report reader thread has already terminated. "
                    "No more reports to read.\n",
                )
                return PollStatus.SKIP, b""
            deadline = time.monotonic() + timeout
            while len(self._buffer) == 0:
                if self._status is not _ReaderStatus.ACTIVE:
                    return self._read_status, b""
                if apply_timeout:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return PollStatus.TIMEOUT, b""
                    self._cond.wait(remaining)
                else:
                    self._cond.wait()
            return self._read_status, self._buffer.pop()

    def clear_report_buffer(self) -> None:
        output(Level.DEBUG, "clear_report_buffer: Starting.\n")
        with self._cond:
            self._buffer.clear()

    def teardown(self) -> None:
        output(Level.DEBUG, "teardown: Starting.\n")
        self._stop_reading = True
        if self._pipe is not None:
            try:
                os.write(self._pipe[1], b"S\x00")
            except OSError:
                pass
        if self._thread is not None:
            self._thread.join(TEARDOWN_WAIT_SECONDS)
            if self._thread.is_alive():
                output(Level.ERROR, "teardown: Failed to stop thread reading HIDRAW reports.\n")
            else:
                output(Level.DEBUG, "The thread reading HIDRAW reports is terminated.\n")
            self._thread = None
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
        if self._pipe is not None:
            for fd in self._pipe:
                os.close(fd)
            self._pipe = None


def auto_detect_hidraw_node(
    vendor_id: int, product_id: int, dev_dir: str = "/dev/"
) -> str:
    """Return the path of the hidraw node whose device has the given IDs."""
    output(Level.DEBUG, "auto_detect_hidraw_node: Starting.\n")
    if vendor_id > 0xFFFF:
        raise ValueError(
            f"Invalid vendor ID. It must be less than 0xFFFF but got 0x{vendor_id:X}."
        )
    if product_id > 0xFFFF:
        raise ValueError(
            f"Invalid product ID. It must be less than 0xFFFF but got 0x{product_id:X}."
        )
    try:
        entries = sorted(os.listdir(dev_dir))
    except OSError as exc:
        raise HidrawError(
            f"Failed to open the {dev_dir} directory. {exc.strerror} [{exc.errno}]"
        ) from exc

    for name in entries:
        if not _HIDRAW_NAME.search(name):
            continue
        path = os.path.join(dev_dir, name)
        output(Level.INFO, f"Trying HIDRAW sysfs node = '{path}'\n")
        try:
            fd = _open_node(path, os.O_RDWR | os.O_NONBLOCK)
            try:
                vendor, product = _read_raw_info(fd, path)
            finally:
                os.close(fd)
        except HidrawError as exc:
            output(Level.ERROR, f"auto_detect_hidraw_node: {exc}\n")
            continue
        output(
            Level.INFO,
            f"Detected device info for {path} VID = 0x{vendor:04X}, "
            f"PID = 0x{product:04X}\n",
        )
        if vendor == vendor_id and product == product_id:
            return path
    raise HidrawError(
        f"No HIDRAW node in {dev_dir} matches VID 0x{vendor_id:04X}, "
        f"PID 0x{product_id:04X}."
    )