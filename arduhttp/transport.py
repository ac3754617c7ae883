"""The byte-stream client an HTTP request runs over, and its errors."""

from __future__ import annotations

import select
import socket
from abc import ABC, abstractmethod

__all__ = [
    "Client",
    "SocketClient",
    "HttpClientError",
    "ApiError",
    "ConnectionFailedError",
    "TimedOutError",
    "InvalidResponseError",
]


class HttpClientError(Exception):
    """Base class for errors raised by the HTTP and WebSocket clients."""


class ApiError(HttpClientError):
    """A method was called when the client was in the wrong state."""


class ConnectionFailedError(HttpClientError):
    """The connection to the server could not be opened."""


class TimedOutError(HttpClientError):
    """The server did not answer within the response timeout."""


class InvalidResponseError(HttpClientError):
    """The server sent something that is not a valid HTTP response."""


class Client(ABC):
    """A non-blocking byte stream to a server."""

    @abstractmethod
    def connect(self, host, port: int) -> bool:
        """Open a connection; return True on success."""

    @abstractmethod
    def connected(self) -> bool:
        """Return True while the connection is open or unread data remains."""

    @abstractmethod
    def available(self) -> int:
        """Return how many bytes can be read without waiting."""

    @abstractmethod
    def read(self, size: int = 1) -> bytes:
        """Return up to ``size`` bytes that are ready, or b"" if none are."""

    @abstractmethod
    def peek(self) -> int:
        """Return the next byte without consuming it, or -1 if none is ready."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send ``data``; return the number of bytes sent."""

    @abstractmethod
    def stop(self) -> None:
        """Close the connection and discard unread data."""


class SocketClient(Client):
    """A :class:`Client` over a TCP socket."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._sock: socket.socket | None = None
        self._rx = bytearray()
        self._eof = False

    def connect(self, host, port: int) -> bool:
        self.stop()
        try:
            self._sock = socket.create_connection((str(host), port), timeout=self.timeout)
        except OSError:
            self._sock = None
            return False
        return True

    def _pump(self) -> None:
        """Move whatever the socket has ready into the receive buffer."""
        if self._sock is None:
            return
        while not self._eof:
            try:
                ready, _, _ = select.select([self._sock], [], [], 0)
            except (OSError, ValueError):
                self._eof = True
                break
            if not ready:
                break
            try:
                chunk = self._sock.recv(4096)
            except OSError:
                chunk = b""
            if not chunk:
                self._eof = True
                break
            self._rx += chunk

    def connected(self) -> bool:
        if self._sock is None:
            return False
        self._pump()
        return bool(self._rx) or not self._eof

    def available(self) -> int:
        self._pump()
        return len(self._rx)

    def read(self, size: int = 1) -> bytes:
        self._pump()
        data = bytes(self._rx[:size])
        del self._rx[:size]
        return data

    def peek(self) -> int:
        self._pump()
        return self._rx[0] if self._rx else -1

    def write(self, data: bytes) -> int:
        if self._sock is None:
            return 0
        try:
            self._sock.sendall(data)
        except OSError:
            return 0
        return len(data)

    def stop(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
        self._sock = None
        self._rx.clear()
        self._eof = False