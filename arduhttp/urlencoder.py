"""Percent-encoding of text for use in URL paths and query strings."""

from __future__ import annotations

import string

__all__ = ["encode"]

_UNRESERVED = frozenset((string.ascii_letters + string.digits + "-._~").encode("ascii"))


def encode(text: str | bytes | bytearray) -> str:
    """Percent-encode ``text``.

    ASCII letters, digits and ``-._~`` pass through unchanged; every other
    byte becomes ``%XX`` with upper-case hex digits. Text is encoded as
    UTF-8 first.
    """
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    return "".join(chr(byte) if byte in _UNRESERVED else f"%{byte:02X}" for byte in data)