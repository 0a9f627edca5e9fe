"""Firmware version numbers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class FwVersion:
    major: int = 0
    minor: int = 0
    rev_control: int = 0
    config_ver: int = 0
    silicon_id: int = 0

    @classmethod
    def from_bin_header(cls, header: Any) -> "FwVersion":
        """Build a version from a firmware binary header.

        The header provides fw_major_version, fw_minor_version,
        fw_rev_control (4 bytes, big-endian), silicon_id (2 bytes,
        little-endian) and config_version (2 bytes, big-endian).
        """
        if header is None:
            raise ValueError("no firmware binary header given")
        rev = bytes(header.fw_rev_control[:4])
        silicon = bytes(header.silicon_id[:2])
        config = bytes(header.config_version[:2])
        return cls(
            major=header.fw_major_version,
            minor=header.fw_minor_version,
            rev_control=int.from_bytes(rev, "big"),
            config_ver=int.from_bytes(config, "big"),
            silicon_id=int.from_bytes(silicon, "little"),
        )