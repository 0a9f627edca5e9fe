"""The interface every transport to the device under test provides."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

from .files import PollStatus
from .hid import HidDescriptor, HidReportId


class ChannelType(Enum):
    NONE = 0
    HIDRAW = 1
    I2CDEV = 2
    TTDL = 3

    @property
    def label(self) -> str:
        return _CHANNEL_TYPE_NAMES[self]


_CHANNEL_TYPE_NAMES = {
    ChannelType.NONE: "No channel type selected",
    ChannelType.HIDRAW: "HIDRAW",
    ChannelType.I2CDEV: "I2C-DEV",
    ChannelType.TTDL: "TTDL",
}


class Channel(ABC):
    """A transport that exchanges HID reports with the device."""

    type: ClassVar[ChannelType] = ChannelType.NONE

    @abstractmethod
    def setup(self, report_id: HidReportId) -> None:
        """Start receiving reports with the given report ID (ANY for all)."""

    @abstractmethod
    def get_hid_descriptor(self) -> HidDescriptor:
        """Return the device's HID descriptor."""

    @abstractmethod
    def send_report(self, report: bytes) -> None:
        """Send one output report to the device."""

    @abstractmethod
    def get_report(
        self, apply_timeout: bool = False, timeout: float = 0.0
    ) -> tuple[PollStatus, bytes]:
        """Return the status of the wait and the next input report received."""

    @abstractmethod
    def teardown(self) -> None:
        """Stop receiving reports and release the transport."""