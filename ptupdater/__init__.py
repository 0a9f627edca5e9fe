"""Helpers for touch-controller firmware work on Linux: logging, CRC, HID framing, I2C discovery and a hidraw channel."""

__version__ = "0.1.0"