import pytest

from ptupdater.channel import Channel, ChannelType
from ptupdater.files import PollStatus
from ptupdater.hid import HidDescriptor


def test_channel_type_labels():
    assert ChannelType(ChannelType.NONE).label == "No channel type selected"
    assert ChannelType(ChannelType.HIDRAW).label == "HIDRAW"
    assert ChannelType(ChannelType.I2CDEV).label == "I2C-DEV"
    assert ChannelType(ChannelType.TTDL).label == "TTDL"


def test_every_channel_type_has_distinct_label():
    labels = [ChannelType(member.value).label for member in ChannelType]
    assert len(set(labels)) == len(ChannelType)


def test_channel_is_abstract():
    with pytest.raises(TypeError):
        Channel()


def test_channel_abstract_interface():
    with pytest.raises(TypeError) as excinfo:
        Channel()
    message = str(excinfo.value)
    for name in ("setup", "get_hid_descriptor", "send_report", "get_report", "teardown"):
        assert name in message
    assert Channel.__abstractmethods__ == {
        "setup",
        "get_hid_descriptor",
        "send_report",
        "get_report",
        "teardown",
    }


def test_base_channel_type_is_none():
    assert ChannelType(ChannelType.NONE) is Channel.type


class _Loopback(Channel):
    type = ChannelType.I2CDEV

    def __init__(self):
        self.reports = []

    def setup(self, report_id):
        self.report_id = report_id

    def get_hid_descriptor(self):
        return HidDescriptor(hid_desc_len=HidDescriptor.SIZE)

    def send_report(self, report):
        self.reports.append(bytes(report))

    def get_report(self, apply_timeout=False, timeout=0.0):
        if not self.reports:
            return PollStatus.TIMEOUT, b""
        return PollStatus.GOT_DATA, self.reports.pop(0)

    def teardown(self):
        self.reports.clear()


def test_complete_subclass_is_a_channel():
    chan = _Loopback()
    assert isinstance(chan, Channel)
    assert ChannelType(chan.type).label == "I2C-DEV"
    packed = chan.get_hid_descriptor().pack()
    assert len(packed) == HidDescriptor.SIZE
    assert HidDescriptor.unpack(packed).hid_desc_len == HidDescriptor.SIZE