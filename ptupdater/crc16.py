"""CRC-16/CCITT (polynomial 0x1021, non-reflected)."""

from __future__ import annotations


def _make_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            crc = ((crc << 1) ^ 0x1021) if crc & 0x8000 else (crc << 1)
            crc &= 0xFFFF
        table.append(crc)
    return tuple(table)


_TABLE = _make_table()


def crc16_ccitt(data: bytes, seed: int = 0xFFFF) -> int:
    """Return the CRC-16/CCITT of data, starting from seed."""
    crc = seed & 0xFFFF
    for byte in data:
        crc = ((crc << 8) & 0xFFFF) ^ _TABLE[(crc >> 8) ^ (byte & 0xFF)]
    return crc