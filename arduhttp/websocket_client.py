"""A WebSocket client that upgrades an HTTP/1.1 connection."""

from __future__ import annotations

import contextlib
import random
from enum import IntEnum

from .b64 import b64_encode
from .http_client import HttpClient
from .http_request import HTTP_PORT, State
from .transport import ApiError, Client, HttpClientError, InvalidResponseError, TimedOutError

__all__ = ["MessageType", "WebSocketClient", "TX_BUFFER_SIZE"]

TX_BUFFER_SIZE = 128

_FIN = 0x80
_MASKED = 0x80
_OPCODE_MASK = 0x0F
_LENGTH_MASK = 0x7F
_LENGTH_16 = 126
_LENGTH_64 = 127
_SWITCHING_PROTOCOLS = 101


class MessageType(IntEnum):
    """WebSocket frame opcodes."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CONNECTION_CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


def _as_bytes(data: bytes | bytearray | memoryview | str | int) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class WebSocketClient(HttpClient):
    """A WebSocket client over a :class:`~arduhttp.transport.Client`.

    Call :meth:`begin` to perform the upgrade handshake, then send messages
    with :meth:`begin_message`, :meth:`write` and :meth:`end_message`, and
    receive them with :meth:`parse_message` and the read methods. Ping,
    pong and close frames are handled inside :meth:`parse_message`.
    """

    def __init__(self, client: Client, server, port: int = HTTP_PORT) -> None:
        super().__init__(client, server, port)
        self._tx_started = False
        self._tx_message_type = 0
        self._tx_buffer = bytearray()
        self._rx_opcode = 0
        self._rx_size = 0
        self._rx_masked = False
        self._rx_mask_index = 0
        self._rx_mask_key = bytes(4)

    def begin(self, path: str = "/") -> None:
        """Connect and upgrade the connection to a WebSocket at ``path``.

        Raises :class:`InvalidResponseError` if the server does not answer
        with status 101, and the errors of the HTTP client otherwise.
        """
        self.begin_request()
        self.connection_keep_alive()
        try:
            self.get(path)
            key = bytes(random.randrange(0x01, 0xFF) for _ in range(16))
            self.send_header("Upgrade", "websocket")
            self.send_header("Connection", "Upgrade")
            self.send_header("Sec-WebSocket-Key", b64_encode(key))
            self.send_header("Sec-WebSocket-Version", "13")
            self.end_request()

            status = self.response_status_code()
            if status > 0:
                with contextlib.suppress(TimedOutError):
                    self.skip_response_headers()
        finally:
            self._rx_size = 0

        if status != _SWITCHING_PROTOCOLS:
            raise InvalidResponseError(f"WebSocket upgrade refused with status {status}")

    def begin_message(self, message_type: int) -> None:
        """Start a message of ``message_type``; raises :class:`ApiError` if one is open."""
        if self._tx_started:
            raise ApiError("a message is already being sent")
        self._tx_started = True
        self._tx_message_type = int(message_type) & _OPCODE_MASK
        self._tx_buffer.clear()

    def end_message(self) -> None:
        """Mask and send the message started by :meth:`begin_message`."""
        if not self._tx_started:
            raise ApiError("no message has been started")

        size = len(self._tx_buffer)
        header = bytearray([_FIN | self._tx_message_type])
        if size < _LENGTH_16:
            header.append(_MASKED | size)
        elif size < 0xFFFF:
            header.append(_MASKED | _LENGTH_16)
            header += size.to_bytes(2, "big")
        else:
            header.append(_MASKED | _LENGTH_64)
            header += size.to_bytes(8, "big")

        mask_key = bytes(random.randrange(0xFF) for _ in range(4))
        header += mask_key
        super().write(bytes(header))

        payload = bytes(b ^ mask_key[i % 4] for i, b in enumerate(self._tx_buffer))
        self._tx_started = False
        self._tx_buffer.clear()

        if super().write(payload) != len(payload):
            raise HttpClientError("the message could not be sent in full")

    def write(self, data: bytes | bytearray | memoryview | str | int) -> int:
        """Add ``data`` to the message being built and return how much was taken.

        Before the upgrade the data goes straight to the connection. Data
        beyond the transmit buffer's capacity is dropped, and nothing is
        taken when no message has been started.
        """
        payload = _as_bytes(data)
        if self._state < State.READING_BODY:
            return super().write(payload)
        if not self._tx_started:
            return 0
        room = TX_BUFFER_SIZE - len(self._tx_buffer)
        taken = payload[:room]
        self._tx_buffer += taken
        return len(taken)

    def parse_message(self) -> int:
        """Read the next frame header and return the payload size, or 0.

        Unread data of the previous message is discarded first. Ping frames
        are answered with a pong, pong frames are discarded, and a close
        frame stops the connection; all of these return 0.
        """
        self._flush_rx()

        if self._http_available() < 2:
            return 0

        opcode = self._read_wire_byte()
        length = self._read_wire_byte()

        if opcode & _OPCODE_MASK == 0:
            self._rx_opcode |= opcode
        else:
            self._rx_opcode = opcode

        self._rx_masked = bool(length & _MASKED)
        length &= _LENGTH_MASK

        if length < _LENGTH_16:
            self._rx_size = length
        elif length == _LENGTH_16:
            self._rx_size = int.from_bytes(bytes(self._read_wire_byte() for _ in range(2)), "big")
        else:
            self._rx_size = int.from_bytes(bytes(self._read_wire_byte() for _ in range(8)), "big")

        if self._rx_masked:
            self._rx_mask_key = bytes(self._read_wire_byte() for _ in range(4))
        self._rx_mask_index = 0

        kind = self.message_type()
        if kind == MessageType.CONNECTION_CLOSE:
            self._flush_rx()
            self.stop()
            self._rx_size = 0
        elif kind == MessageType.PING:
            self.begin_message(MessageType.PONG)
            while self.available():
                c = self.read_byte()
                if c == -1:
                    break
                self.write(c)
            self.end_message()
            self._rx_size = 0
        elif kind == MessageType.PONG:
            self._flush_rx()
            self._rx_size = 0

        return self._rx_size

    def message_type(self) -> MessageType | int:
        """Return the opcode of the current message."""
        value = self._rx_opcode & _OPCODE_MASK
        try:
            return MessageType(value)
        except ValueError:
            return value

    def is_final(self) -> bool:
        """Return True if the current frame is the last of its message."""
        return bool(self._rx_opcode & _FIN)

    def read_string(self) -> str:
        """Read what is left of the current message as text."""
        data = bytearray()
        for _ in range(self.available()):
            c = self.read_byte()
            if c == -1:
                break
            data.append(c)
        return data.decode("utf-8", errors="replace")

    def ping(self) -> None:
        """Send a ping carrying 16 random bytes."""
        self.begin_message(MessageType.PING)
        self.write(bytes(random.randrange(0xFF) for _ in range(16)))
        self.end_message()

    def available(self) -> int:
        """Return how many bytes of the current message remain."""
        if self._state < State.READING_BODY:
            return super().available()
        return self._rx_size

    def read_byte(self) -> int:
        """Return the next byte of the message, or -1 if none is ready."""
        data = self.read(1)
        return data[0] if data else -1

    def read(self, size: int = 1) -> bytes:
        """Return up to ``size`` bytes of the message, unmasked."""
        data = super().read(size)
        if not data:
            return data
        self._rx_size = max(0, self._rx_size - len(data))
        if not self._rx_masked:
            return data
        key = self._rx_mask_key
        start = self._rx_mask_index
        self._rx_mask_index += len(data)
        return bytes(b ^ key[(start + i) % 4] for i, b in enumerate(data))

    def peek(self) -> int:
        """Return the next byte of the message without consuming it, or -1."""
        p = super().peek()
        if p != -1 and self._rx_masked:
            p = (p & 0xFF) ^ self._rx_mask_key[self._rx_mask_index % 4]
        return p

    def _read_wire_byte(self) -> int:
        return self._read_raw_byte() & 0xFF

    def _flush_rx(self) -> None:
        while self.available():
            if not self.read(self.available()):
                break