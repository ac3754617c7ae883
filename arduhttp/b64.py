"""Base64 encoding as used for HTTP Basic authentication and WebSocket keys."""

from __future__ import annotations

import base64

__all__ = ["b64_encode"]


def b64_encode(data: bytes | bytearray | memoryview | str) -> str:
    """Encode ``data`` with the standard Base64 alphabet, padded with ``=``.

    Text is encoded as UTF-8 first. Every 3 input bytes become 4 output
    characters, and a trailing group of 1 or 2 bytes is padded to 4.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(bytes(data)).decode("ascii")