import os
import time

import pytest

from ptupdater.channel import ChannelType
from ptupdater.files import PollStatus
from ptupdater.hid import HidDescriptor, HidReportId
from ptupdater.hidraw import (
    REPORT_BUFFER_SIZE,
    HidrawChannel,
    HidrawError,
    ReportBuffer,
    auto_detect_hidraw_node,
)


def _desc():
    return HidDescriptor(max_input_len=66, max_output_len=66, vendor_id=0x1234)


def _inject(data):
    fd = os.open("hidraw0", os.O_WRONLY | os.O_NONBLOCK)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)


@pytest.fixture
def fifo_channel(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    os.mkfifo("hidraw0")
    channel = HidrawChannel("hidraw0", _desc())
    yield channel
    channel.teardown()


def test_buffer_fifo_order():
    buf = ReportBuffer()
    buf.push(b"\x01a")
    buf.push(b"\x02b")
    assert len(buf) == 2
    assert buf.pop() == b"\x01a"
    assert buf.pop() == b"\x02b"
    assert len(buf) == 0


def test_buffer_pop_empty_raises():
    with pytest.raises(IndexError):
        ReportBuffer().pop()


def test_buffer_drops_oldest_when_full():
    buf = ReportBuffer(capacity=3)
    for item in (b"a", b"b", b"c", b"d"):
        buf.push(item)
    assert len(buf) == 3
    assert buf.pop() == b"b"


def test_buffer_default_capacity():
    buf = ReportBuffer()
    items = [bytes([i % 256, i // 256]) for i in range(300)]
    for item in items:
        buf.push(item)
    n = len(buf)
    assert n == REPORT_BUFFER_SIZE - 1
    assert buf.pop() == items[-n]


def test_buffer_clear():
    buf = ReportBuffer()
    buf.push(b"x")
    buf.clear()
    assert len(buf) == 0


def test_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        ReportBuffer(capacity=0)


def test_node_name_too_long():
    with pytest.raises(ValueError):
        HidrawChannel("/dev/a-very-long-hidraw-node-name")


def test_cached_descriptor_and_type():
    channel = HidrawChannel("hidraw0", _desc())
    assert channel.get_hid_descriptor() == _desc()
    assert channel.type is ChannelType.HIDRAW


def test_get_report_before_setup_raises():
    channel = HidrawChannel("hidraw0", _desc())
    with pytest.raises(HidrawError):
        channel.get_report(True, 0.1)


def test_setup_missing_node_raises(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    channel = HidrawChannel("hidraw9", _desc())
    with pytest.raises(HidrawError):
        channel.setup(HidReportId.ANY)


def test_receives_report(fifo_channel):
    fifo_channel.setup(HidReportId.ANY)
    report = bytes([0x44, 0x00, 0x07, 0x00, 0x00, 0x80, 0x01])
    _inject(report)
    assert fifo_channel.get_report(True, 2.0) == (PollStatus.GOT_DATA, report)
    assert fifo_channel.input_report_size == 64


def test_timeout_without_data(fifo_channel):
    fifo_channel.setup(HidReportId.ANY)
    assert fifo_channel.get_report(True, 0.05) == (PollStatus.TIMEOUT, b"")


def test_filters_report_id(fifo_channel):
    fifo_channel.setup(HidReportId.SOLICITED_RESPONSE)
    _inject(bytes([0x01, 0x10, 0x20]))
    assert fifo_channel.get_report(True, 0.3) == (PollStatus.TIMEOUT, b"")
    wanted = bytes([0x44, 0x01, 0x02])
    _inject(wanted)
    assert fifo_channel.get_report(True, 2.0) == (PollStatus.GOT_DATA, wanted)


def test_clear_report_buffer(fifo_channel):
    fifo_channel.setup(HidReportId.ANY)
    _inject(bytes([0x41, 0x05]))
    time.sleep(0.2)
    fifo_channel.clear_report_buffer()
    assert fifo_channel.get_report(True, 0.05) == (PollStatus.TIMEOUT, b"")


def test_after_teardown_buffered_then_skip(fifo_channel):
    fifo_channel.setup(HidReportId.ANY)
    report = bytes([0x45, 0x09])
    _inject(report)
    time.sleep(0.2)
    fifo_channel.teardown()
    assert fifo_channel.get_report(True, 0.1) == (PollStatus.GOT_DATA, report)
    assert fifo_channel.get_report(True, 0.1) == (PollStatus.SKIP, b"")


def test_send_report_writes_bytes(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "hidraw0").write_bytes(b"")
    channel = HidrawChannel("hidraw0", _desc())
    report = bytes([0x04, 0x06, 0x00, 0x08, 0x00, 0x2A, 0xF0])
    channel.send_report(report)
    assert (tmp_path / "hidraw0").read_bytes() == report


def test_auto_detect_rejects_large_ids(tmp_path):
    with pytest.raises(ValueError):
        auto_detect_hidraw_node(0x10000, 0x1, str(tmp_path))
    with pytest.raises(ValueError):
        auto_detect_hidraw_node(0x1, 0x10000, str(tmp_path))


def test_auto_detect_empty_dir(tmp_path):
    with pytest.raises(HidrawError):
        auto_detect_hidraw_node(0x1234, 0x5678, str(tmp_path))


def test_auto_detect_skips_non_devices(tmp_path):
    (tmp_path / "hidraw0").write_bytes(b"")
    (tmp_path / "hidrawX").write_bytes(b"")
    with pytest.raises(HidrawError):
        auto_detect_hidraw_node(0x1234, 0x5678, str(tmp_path))


def test_auto_detect_missing_dir(tmp_path):
    with pytest.raises(HidrawError):
        auto_detect_hidraw_node(0x1234, 0x5678, str(tmp_path / "absent"))