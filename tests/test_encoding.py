import base64

import pytest

from ptupdater.encoding import b64_decode


@pytest.mark.parametrize("data", [b"", b"a", b"ab", b"abc", bytes(range(256))])
def test_round_trip(data):
    assert b64_decode(base64.b64encode(data).decode()) == data


def test_accepts_bytes():
    assert b64_decode(base64.b64encode(b"payload")) == b"payload"


def test_missing_padding():
    encoded = base64.b64encode(b"ab").decode().rstrip("=")
    assert b64_decode(encoded) == b"ab"


def test_whitespace_ignored():
    encoded = base64.b64encode(b"some firmware bytes").decode()
    spaced = "\n".join(encoded[i:i + 4] for i in range(0, len(encoded), 4))
    assert b64_decode(spaced) == b"some firmware bytes"


def test_lone_trailing_character_dropped():
    encoded = base64.b64encode(b"abc").decode()
    assert b64_decode(encoded + "Q") == b"abc"


def test_known_value():
    assert b64_decode("TWFu") == b"Man"