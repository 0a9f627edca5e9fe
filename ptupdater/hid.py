"""HID report identifiers, the HID descriptor and PIP3 report framing."""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass
from enum import IntEnum
from typing import ClassVar

HID_MAX_INPUT_REPORT_SIZE = 0xFFFF
HID_MAX_OUTPUT_REPORT_SIZE = 0xFFFF

HID_INPUT_REPORT_ID_BYTE_INDEX = 0
HID_INPUT_PAYLOAD_LEN_LSB_INDEX = 1
HID_INPUT_PAYLOAD_LEN_MSB_INDEX = 2


class HidReportId(IntEnum):
    ANY = 0x00
    FINGER = 0x01
    STYLUS = 0x02
    FEATURE = 0x03
    COMMAND = 0x04
    VENDOR_FINGER = 0x41
    VENDOR_STYLUS = 0x42
    SOLICITED_RESPONSE = 0x44
    UNSOLICITED_RESPONSE = 0x45


_DESCRIPTOR = struct.Struct("<13HI")


@dataclass
class HidDescriptor:
    """The I2C-HID device descriptor, packed little-endian."""

    hid_desc_len: int = 0
    bcd_version: int = 0
    rpt_desc_len: int = 0
    rpt_desc_register: int = 0
    input_register: int = 0
    max_input_len: int = 0
    output_register: int = 0
    max_output_len: int = 0
    cmd_register: int = 0
    data_register: int = 0
    vendor_id: int = 0
    product_id: int = 0
    version_id: int = 0
    reserved: int = 0

    SIZE: ClassVar[int] = _DESCRIPTOR.size

    def pack(self) -> bytes:
        try:
            return _DESCRIPTOR.pack(*astuple(self))
        except struct.error as exc:
            raise ValueError(f"HID descriptor field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "HidDescriptor":
        if len(data) < cls.SIZE:
            raise ValueError(
                f"HID descriptor needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*_DESCRIPTOR.unpack_from(bytes(data)))


def _check_range(name: str, value: int, limit: int) -> int:
    value = int(value)
    if not 0 <= value <= limit:
        raise ValueError(f"{name} must be in 0..{limit}, got {value}")
    return value


@dataclass
class HidOutputPip3Command:
    """A PIP3 command carried in a HID output report."""

    report_id: int
    payload_len: int
    seq: int = 0
    tag: bool = False
    more_data: bool = False
    cmd_id: int = 0
    resp: bool = False
    cmd_specific_data: bytes = b""

    HEADER_SIZE: ClassVar[int] = 5

    def pack(self) -> bytes:
        report_id = _check_range("report_id", self.report_id, 0xFF)
        payload_len = _check_range("payload_len", self.payload_len, 0xFFFF)
        seq = _check_range("seq", self.seq, 0x07)
        cmd_id = _check_range("cmd_id", self.cmd_id, 0x7F)
        flags = seq | (int(bool(self.tag)) << 3) | (int(bool(self.more_data)) << 4)
        command = cmd_id | (int(bool(self.resp)) << 7)
        header = bytes([report_id, payload_len & 0xFF, payload_len >> 8, flags, command])
        return header + bytes(self.cmd_specific_data)


@dataclass
class HidInputPip3Response:
    """A PIP3 response carried in a HID input report."""

    report_id: int
    more_reports: bool
    first_report: bool
    payload_len: int
    seq: int
    tag: bool
    more_data: bool
    cmd_id: int
    resp: bool
    rsp_specific_data: bytes = b""

    HEADER_SIZE: ClassVar[int] = 6

    @classmethod
    def unpack(cls, data: bytes) -> "HidInputPip3Response":
        data = bytes(data)
        if len(data) < cls.HEADER_SIZE:
            raise ValueError(
                f"PIP3 response needs at least {cls.HEADER_SIZE} bytes, got {len(data)}"
            )
        report_id, report_flags, len_lsb, len_msb, flags, command = data[: cls.HEADER_SIZE]
        return cls(
            report_id=report_id,
            more_reports=bool(report_flags & 0x01),
            first_report=bool(report_flags & 0x02),
            payload_len=len_lsb | (len_msb << 8),
            seq=flags & 0x07,
            tag=bool(flags & 0x08),
            more_data=bool(flags & 0x10),
            cmd_id=command & 0x7F,
            resp=bool(command & 0x80),
            rsp_specific_data=data[cls.HEADER_SIZE :],
        )