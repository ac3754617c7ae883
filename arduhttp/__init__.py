"""Blocking HTTP/1.1 and WebSocket client over a pluggable byte-stream transport,
with URL parsing, percent-encoding and Base64 helpers."""

__version__ = "2.2.0"