"""Discovery of I2C adapters and helpers for opening and addressing them."""

from __future__ import annotations

import errno
import fcntl
import os
import re
import struct
from dataclasses import dataclass
from typing import Iterable, Optional

from .log import Level, output

EEPROM_I2C_GROUP = 1
EEPROM_I2C_ADDR = 0x50

PT_SUPPLY_POWER_I2C_GROUP = 0
PT_SUPPLY_POWER_I2C_ADDRESS = 0x28

PT_SUPPLY_ADC_I2C_GROUP = 0
PT_SUPPLY_ADC_I2C_ADDRESS = 0x48

I2C_SLAVE_TPS65132_BUS = 0
I2C_SLAVE_TPS65132_ADDRESS = 0x3E

MISSING_FUNC_FMT = "Error: Adapter does not have {} capability\n"

# Linux i2c-dev ioctl requests and functionality bits.
I2C_SLAVE = 0x0703
I2C_SLAVE_FORCE = 0x0706
I2C_FUNCS = 0x0705
I2C_FUNC_I2C = 0x00000001
I2C_FUNC_SMBUS_BYTE = 0x00020000 | 0x00040000
I2C_FUNC_SMBUS_BYTE_DATA = 0x00080000 | 0x00100000
I2C_FUNC_SMBUS_WORD_DATA = 0x00200000 | 0x00400000

MAX_I2C_BUS = 0xFFFFF
MIN_CHIP_ADDRESS = 0x03
MAX_CHIP_ADDRESS = 0x77

_ADAPTER_TYPES = {
    "dummy": "Dummy bus",
    "isa": "ISA bus",
    "i2c": "I2C adapter",
    "smbus": "SMBus adapter",
    "unknown": "N/A",
}

_BUS_NAME = re.compile(r"i2c-\s*([+-]?\d+)")
_C_INTEGER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


class I2CError(Exception):
    """An I2C bus or address could not be resolved or used."""


@dataclass(frozen=True)
class I2CAdapter:
    nr: int
    name: str
    funcs: str
    algo: str


def _parse_c_integer(text: str) -> Optional[int]:
    """Parse an integer the way strtol with base 0 does, requiring the whole text."""
    match = _C_INTEGER.fullmatch(text)
    if match is None:
        return None
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits, 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def _rtrim(text: str) -> str:
    return text.rstrip(" \n")


def _adapters_from_proc(lines: Iterable[str]) -> list[I2CAdapter]:
    adapters = []
    for line in lines:
        fields = line.split("\t")
        if len(fields) < 4:
            continue
        prefix = "\t".join(fields[:-3])
        kind, name, algo = (_rtrim(field) for field in fields[-3:])
        match = _BUS_NAME.match(prefix)
        if match is None:
            continue
        adapters.append(I2CAdapter(int(match.group(1)), name, kind, algo))
    return adapters


def _find_sysfs_root(mounts_path: str) -> Optional[str]:
    try:
        with open(mounts_path, encoding="utf-8", errors="replace") as mounts:
            for line in mounts:
                fields = line.split()
                if len(fields) >= 3 and fields[2].lower() == "sysfs":
                    return fields[1]
    except OSError:
        return None
    return None


def _open_adapter_name_file(adapter_dir: str):
    for candidate in (f"{adapter_dir}/name", f"{adapter_dir}/device/name"):
        try:
            return candidate, open(candidate, encoding="utf-8", errors="replace")
        except OSError:
            pass
    device_dir = f"{adapter_dir}/device"
    try:
        entries = sorted(os.listdir(device_dir))
    except OSError:
        return None, None
    for entry in entries:
        if entry.startswith("i2c-"):
            candidate = f"{device_dir}/{entry}/name"
            try:
                return candidate, open(candidate, encoding="utf-8", errors="replace")
            except OSError:
                pass
    return None, None


def _i2c_get_funcs(bus: int) -> str:
    try:
        fd = open_i2c_dev(bus, quiet=True)
    except OSError:
        return "unknown"
    buf = bytearray(struct.calcsize("L"))
    try:
        fcntl.ioctl(fd, I2C_FUNCS, buf)
    except OSError:
        return "unknown"
    finally:
        os.close(fd)
    (funcs,) = struct.unpack("L", buf)
    if funcs & I2C_FUNC_I2C:
        return "i2c"
    if funcs & (I2C_FUNC_SMBUS_BYTE | I2C_FUNC_SMBUS_BYTE_DATA | I2C_FUNC_SMBUS_WORD_DATA):
        return "smbus"
    return "dummy"


def _adapters_from_sysfs(mounts_path: str) -> list[I2CAdapter]:
    root = _find_sysfs_root(mounts_path)
    if root is None:
        return []
    class_dir = f"{root}/class/i2c-dev"
    try:
        entries = sorted(os.listdir(class_dir))
    except OSError:
        return []

    adapters = []
    for entry in entries:
        path, name_file = _open_adapter_name_file(f"{class_dir}/{entry}")
        if name_file is None:
            continue
        with name_file:
            line = name_file.readline()
        if not line:
            output(Level.ERROR, f"{path}: read error\n")
            continue
        name = line.split("\n", 1)[0]
        match = _BUS_NAME.match(entry)
        if match is None:
            continue
        bus = int(match.group(1))
        kind = "isa" if name.startswith("ISA ") else _i2c_get_funcs(bus)
        adapters.append(I2CAdapter(bus, name, kind, _ADAPTER_TYPES[kind]))
    return adapters


def gather_i2c_busses(
    proc_path: str = "/proc/bus/i2c", mounts_path: str = "/proc/mounts"
) -> list[I2CAdapter]:
    """List the I2C adapters, from the proc table if present, else from sysfs."""
    try:
        proc = open(proc_path, encoding="utf-8", errors="replace")
    except OSError:
        return _adapters_from_sysfs(mounts_path)
    with proc:
        return _adapters_from_proc(proc)


def _lookup_i2c_bus_by_name(bus_name: str) -> int:
    matches = [adapter.nr for adapter in gather_i2c_busses() if adapter.name == bus_name]
    if len(matches) > 1:
        raise I2CError("I2C bus name is not unique!")
    if not matches:
        raise I2CError("I2C bus name doesn't match any bus present!")
    return matches[0]


def lookup_i2c_bus(arg: str) -> int:
    """Resolve a bus given by number (decimal, octal or hex) or by adapter name."""
    value = _parse_c_integer(arg)
    if value is None:
        return _lookup_i2c_bus_by_name(arg)
    if value < 0 or value > MAX_I2C_BUS:
        raise I2CError("I2C bus out of range!")
    return value


def parse_i2c_address(arg: str) -> int:
    """Parse a 7-bit chip address in the range 0x03-0x77."""
    value = _parse_c_integer(arg)
    if value is None:
        raise I2CError("Chip address is not a number!")
    if not MIN_CHIP_ADDRESS <= value <= MAX_CHIP_ADDRESS:
        raise I2CError("Chip address out of range (0x03-0x77)!")
    return value


def _report_open_failure(bus: int, path: str, exc: OSError) -> None:
    if exc.errno == errno.ENOENT:
        output(
            Level.ERROR,
            f"Could not open file `/dev/i2c-{bus}' or `/dev/i2c/{bus}': "
            f"{os.strerror(errno.ENOENT)}\n",
        )
    else:
        output(Level.ERROR, f"Could not open file `{path}': {exc.strerror}\n")
        if exc.errno == errno.EACCES:
            output(Level.ERROR, "Run as root?\n")


def open_i2c_dev(bus: int, quiet: bool = False) -> int:
    """Open the character device of an I2C bus and return its descriptor."""
    path = f"/dev/i2c/{bus}"
    try:
        return os.open(path, os.O_RDWR)
    except OSError as exc:
        if exc.errno not in (errno.ENOENT, errno.ENOTDIR):
            if not quiet:
                _report_open_failure(bus, path, exc)
            raise
    path = f"/dev/i2c-{bus}"
    try:
        return os.open(path, os.O_RDWR)
    except OSError as exc:
        if not quiet:
            _report_open_failure(bus, path, exc)
        raise


def set_slave_addr(fd: int, address: int, force: bool = False) -> None:
    """Select the chip address that later transfers on fd go to."""
    try:
        fcntl.ioctl(fd, I2C_SLAVE_FORCE if force else I2C_SLAVE, address)
    except OSError as exc:
        raise I2CError(
            f"Could not set address to 0x{address:02x}: {exc.strerror}"
        ) from exc