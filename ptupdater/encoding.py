"""Lenient base64 decoding."""

from __future__ import annotations

import base64
import string

_ALPHABET = frozenset((string.ascii_letters + string.digits + "+/").encode())


def b64_decode(text: str | bytes) -> bytes:
    """Decode base64, skipping any character outside the alphabet.

    Padding is optional; a trailing lone character carries no whole byte
    and is dropped.
    """
    raw = text.encode("ascii", "ignore") if isinstance(text, str) else bytes(text)
    clean = bytes(c for c in raw if c in _ALPHABET)
    remainder = len(clean) % 4
    if remainder == 1:
        clean = clean[:-1]
        remainder = 0
    if remainder:
        clean += b"=" * (4 - remainder)
    return base64.b64decode(clean)