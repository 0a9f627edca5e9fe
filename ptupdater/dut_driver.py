"""Detection of the kernel driver bound to the device under test."""

from __future__ import annotations

import os
from enum import Enum

from .log import Level, output

KERNEL_DRIVER_PATH = "/sys/bus/i2c/drivers"


class DutDriver(Enum):
    TTDL = 0
    I2C_HID = 1
    ERROR = 2

    @property
    def label(self) -> str:
        return _NAMES[self]

    @property
    def adapter_name(self) -> str:
        return _ADAPTER_NAMES[self]


_NAMES = {
    DutDriver.TTDL: "TTDL",
    DutDriver.I2C_HID: "I2C-HID Linux Driver",
    DutDriver.ERROR: "No valid DUT driver found",
}

_ADAPTER_NAMES = {
    DutDriver.TTDL: "pt_i2c_adapter",
    DutDriver.I2C_HID: "i2c_hid",
    DutDriver.ERROR: "",
}

_cached_driver: DutDriver | None = None


def reset_dut_driver_cache() -> None:
    """Forget a previously detected driver."""
    global _cached_driver
    _cached_driver = None


def get_dut_driver(driver_dir: str = KERNEL_DRIVER_PATH) -> DutDriver:
    """Return the driver that drives the DUT, detecting it once.

    Falls back to the I2C-HID driver when no known driver is listed;
    returns DutDriver.ERROR if the driver directory cannot be read.
    """
    global _cached_driver
    if _cached_driver is not None:
        output(Level.DEBUG, f"Already determined that {_cached_driver.label} is active.\n")
        return _cached_driver

    try:
        entries = os.listdir(driver_dir)
    except OSError as exc:
        output(
            Level.ERROR,
            f"get_dut_driver: Failed to open \"{driver_dir}\". "
            f"{exc.strerror} [{exc.errno}].\n",
        )
        return DutDriver.ERROR

    found: DutDriver | None = None
    for name in entries:
        output(Level.DEBUG, f"{name} is found\n")
        if name.startswith(DutDriver.I2C_HID.adapter_name):
            found = DutDriver.I2C_HID
        elif name.startswith(DutDriver.TTDL.adapter_name):
            found = DutDriver.TTDL
        if found is not None:
            output(Level.DEBUG, f"Using {found.label} to drive the DUT.\n")

    if found is None:
        found = DutDriver.I2C_HID
        output(
            Level.DEBUG,
            f"No driver found, attempting to use {found.label} to drive the DUT.\n",
        )
    _cached_driver = found
    return found