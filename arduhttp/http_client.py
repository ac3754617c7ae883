"""Reading HTTP responses: status line, headers and body."""

from __future__ import annotations

import contextlib
import time

from .http_request import NO_CONTENT_LENGTH, HttpRequest, State
from .transport import ApiError, Client, InvalidResponseError, TimedOutError

__all__ = ["HttpClient"]

_STATUS_PREFIX = b"HTTP/*.* "
_CONTENT_LENGTH_PREFIX = b"Content-Length: "
_TRANSFER_ENCODING_CHUNKED = b"Transfer-Encoding: chunked"
_MAX_CONTENT_LENGTH = 2**31 - 1
_SPACE = " \t\n\v\f\r"
_CR = ord("\r")
_LF = ord("\n")
_DIGITS = frozenset(b"0123456789")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_WILDCARD = ord("*")

DEFAULT_READ_TIMEOUT = 1.0


class HttpClient(HttpRequest):
    """An HTTP/1.1 client that sends requests and reads their responses.

    Body data is read with :meth:`read_byte` and :meth:`read`, which follow
    ``Content-Length`` and decode ``Transfer-Encoding: chunked``.
    """

    def __init__(self, client: Client, server, port: int = 80) -> None:
        super().__init__(client, server, port)
        self._header_line = ""
        self.read_timeout = DEFAULT_READ_TIMEOUT

    def response_status_code(self) -> int:
        """Read the status line and return its status code.

        Informational (1xx) responses other than 101 are skipped.
        """
        if self._state < State.REQUEST_SENT:
            raise ApiError("the request has not been sent")

        c = 0
        while True:
            self.status_code = 0
            self._state = State.REQUEST_SENT
            matched = 0
            started = time.monotonic()
            while c != _LF and time.monotonic() - started < self.response_timeout:
                if not self.available():
                    time.sleep(self.wait_for_data_delay)
                    continue
                c = self._read_raw_byte()
                if c == -1:
                    continue
                if self._state is State.REQUEST_SENT:
                    expected = _STATUS_PREFIX[matched]
                    if expected != _WILDCARD and expected != c:
                        raise InvalidResponseError("response does not start with a status line")
                    matched += 1
                    if matched == len(_STATUS_PREFIX):
                        self._state = State.READING_STATUS_CODE
                elif self._state is State.READING_STATUS_CODE:
                    if c in _DIGITS:
                        self.status_code = self.status_code * 10 + (c - ord("0"))
                    else:
                        self._state = State.STATUS_CODE_READ
                started = time.monotonic()

            informational = self.status_code < 200 and self.status_code != 101
            if c == _LF and informational:
                c = 0
            if not (self._state is State.STATUS_CODE_READ and informational):
                break

        if c == _LF and self._state is State.STATUS_CODE_READ:
            return self.status_code
        if c != _LF:
            raise TimedOutError("timed out reading the status line")
        raise InvalidResponseError("malformed status line")

    def skip_response_headers(self) -> None:
        """Read and discard the response headers."""
        started = time.monotonic()
        while not self.end_of_headers_reached() and time.monotonic() - started < self.response_timeout:
            if self.available():
                self.read_header()
                started = time.monotonic()
            else:
                time.sleep(self.wait_for_data_delay)
        if not self.end_of_headers_reached():
            raise TimedOutError("timed out reading the response headers")

    def end_of_headers_reached(self) -> bool:
        return self._state in (State.READING_BODY, State.READING_CHUNK_LENGTH, State.READING_BODY_CHUNK)

    def content_length(self) -> int:
        """Return the Content-Length of the response, or -1 if it had none.

        The headers are skipped first if they have not been read yet.
        """
        if not self.end_of_headers_reached():
            with contextlib.suppress(TimedOutError):
                self.skip_response_headers()
        return self._content_length

    def response_body(self) -> str:
        """Read the whole body and return it as text.

        Without a Content-Length the body is read until no more data comes
        within :attr:`read_timeout`. Raises :class:`TimedOutError` if fewer
        bytes than the Content-Length arrive.
        """
        body_length = self.content_length()
        body = bytearray()
        while self._body_length_consumed != body_length:
            c = self._timed_read()
            if c == -1:
                break
            body.append(c)
        if body_length > 0 and len(body) != body_length:
            raise TimedOutError(f"received {len(body)} of {body_length} body bytes")
        return body.decode("utf-8", errors="replace")

    def end_of_body_reached(self) -> bool:
        """Return True once a body of known length has been read in full."""
        if self.end_of_headers_reached() and self.content_length() != NO_CONTENT_LENGTH:
            return self._body_length_consumed >= self.content_length()
        return False

    def available(self) -> int:
        """Return how many bytes can be read now, within the current chunk."""
        return self._http_available()

    def _http_available(self) -> int:
        if self._state is State.READING_CHUNK_LENGTH:
            while self._client.available():
                data = self._client.read(1)
                if not data:
                    break
                c = data[0]
                if c == _LF:
                    self._state = State.READING_BODY_CHUNK
                    break
                if c in _HEX_DIGITS:
                    self._chunk_length = self._chunk_length * 16 + int(chr(c), 16)

        if self._state is State.READING_BODY_CHUNK and self._chunk_length == 0:
            self._state = State.READING_CHUNK_LENGTH
        if self._state is State.READING_CHUNK_LENGTH:
            return 0

        client_available = self._client.available()
        if self._state is State.READING_BODY_CHUNK:
            return min(client_available, self._chunk_length)
        return client_available

    def _read_raw_byte(self) -> int:
        if self._is_chunked and not self._http_available():
            return -1
        data = self._client.read(1)
        if not data:
            return -1
        if self.end_of_headers_reached() and self._content_length > 0:
            self._body_length_consumed += 1
        if self._state is State.READING_BODY_CHUNK:
            self._chunk_length -= 1
            if self._chunk_length == 0:
                self._state = State.READING_CHUNK_LENGTH
        return data[0]

    def read_byte(self) -> int:
        """Return the next byte, or -1 if none is ready."""
        return self._read_raw_byte()

    def read(self, size: int = 1) -> bytes:
        """Return up to ``size`` bytes that are ready."""
        data = self._client.read(size)
        if self.end_of_headers_reached() and self._content_length > 0:
            self._body_length_consumed += len(data)
        return data

    def peek(self) -> int:
        """Return the next byte without consuming it, or -1."""
        return self._client.peek()

    def _timed_read(self) -> int:
        started = time.monotonic()
        while True:
            c = self.read_byte()
            if c >= 0:
                return c
            if time.monotonic() - started >= self.read_timeout:
                return -1
            time.sleep(self.wait_for_data_delay)

    def header_available(self) -> bool:
        """Read the next header line; return False once the headers end."""
        self._header_line = ""
        started = time.monotonic()
        while not self.end_of_headers_reached():
            c = self.read_header()
            if c == -1:
                if time.monotonic() - started >= self.response_timeout:
                    raise TimedOutError("timed out reading a header line")
                time.sleep(self.wait_for_data_delay)
                continue
            started = time.monotonic()
            if c in (_CR, _LF):
                if self._header_line:
                    break
                continue
            self._header_line += chr(c)
        return bool(self._header_line)

    def read_header_name(self) -> str:
        """Return the name of the header last read by :meth:`header_available`."""
        name, colon, _ = self._header_line.partition(":")
        return name if colon else ""

    def read_header_value(self) -> str:
        """Return the value of the header last read, without leading space."""
        _, colon, value = self._header_line.partition(":")
        return value.lstrip(_SPACE) if colon else ""

    def read_header(self) -> int:
        """Read one byte of the headers, noting Content-Length and chunking.

        Returns the byte, or -1 if none is ready.
        """
        c = self._read_raw_byte()
        if c == -1 or self.end_of_headers_reached():
            return c

        state = self._state
        if state is State.STATUS_CODE_READ:
            if _CONTENT_LENGTH_PREFIX[self._content_length_match] == c:
                self._content_length_match += 1
                if self._content_length_match == len(_CONTENT_LENGTH_PREFIX):
                    self._state = State.READING_CONTENT_LENGTH
                    self._content_length = 0
                    self._body_length_consumed = 0
            elif _TRANSFER_ENCODING_CHUNKED[self._chunked_match] == c:
                self._chunked_match += 1
                if self._chunked_match == len(_TRANSFER_ENCODING_CHUNKED):
                    self._is_chunked = True
                    self._state = State.SKIP_TO_END_OF_HEADER
            elif self._content_length_match == 0 and self._chunked_match == 0 and c == _CR:
                self._state = State.LINE_STARTING_CR_FOUND
            else:
                self._state = State.SKIP_TO_END_OF_HEADER
        elif state is State.READING_CONTENT_LENGTH:
            if c in _DIGITS:
                length = self._content_length * 10 + (c - ord("0"))
                if self._content_length < length <= _MAX_CONTENT_LENGTH:
                    self._content_length = length
            else:
                self._state = State.SKIP_TO_END_OF_HEADER
        elif state is State.LINE_STARTING_CR_FOUND:
            if c == _LF:
                if self._is_chunked:
                    self._state = State.READING_CHUNK_LENGTH
                    self._chunk_length = 0
                else:
                    self._state = State.READING_BODY

        if c == _LF and not self.end_of_headers_reached():
            self._state = State.STATUS_CODE_READ
            self._content_length_match = 0
            self._chunked_match = 0
        return c