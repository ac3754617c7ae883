"""Sending HTTP/1.1 requests over a :class:`~arduhttp.transport.Client`."""

from __future__ import annotations

from enum import IntEnum

from .b64 import b64_encode
from .transport import ApiError, Client, ConnectionFailedError

__all__ = [
    "State",
    "HttpRequest",
    "USER_AGENT",
    "HTTP_PORT",
    "HTTPS_PORT",
    "NO_CONTENT_LENGTH",
]

USER_AGENT = "Arduino/2.2.0"
HTTP_PORT = 80
HTTPS_PORT = 443
NO_CONTENT_LENGTH = -1
DEFAULT_RESPONSE_TIMEOUT = 30.0
DEFAULT_WAIT_FOR_DATA_DELAY = 0.1

HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONNECTION = "Connection"
HEADER_TRANSFER_ENCODING = "Transfer-Encoding"
HEADER_USER_AGENT = "User-Agent"
HEADER_VALUE_CHUNKED = "chunked"

_CRLF = b"\r\n"


class State(IntEnum):
    """Progress of a request and its response, in the order they happen."""

    IDLE = 0
    REQUEST_STARTED = 1
    REQUEST_SENT = 2
    READING_STATUS_CODE = 3
    STATUS_CODE_READ = 4
    READING_CONTENT_LENGTH = 5
    SKIP_TO_END_OF_HEADER = 6
    LINE_STARTING_CR_FOUND = 7
    READING_BODY = 8
    READING_CHUNK_LENGTH = 9
    READING_BODY_CHUNK = 10


_BODY_STATES = frozenset({State.READING_BODY, State.READING_CHUNK_LENGTH, State.READING_BODY_CHUNK})


def _to_bytes(data: bytes | bytearray | memoryview | str | int) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class HttpRequest:
    """Builds and sends an HTTP/1.1 request to one server.

    ``server`` is a host name (sent in the Host header) or an IP address
    object (no Host header is sent).
    """

    def __init__(self, client: Client, server, port: int = HTTP_PORT) -> None:
        self._client = client
        self.server = server
        self.port = port
        self._server_name: str | None = server if isinstance(server, str) else None
        self._connection_close = True
        self._send_default_headers = True
        self._reset_state()

    def __enter__(self) -> HttpRequest:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def state(self) -> State:
        return self._state

    def _reset_state(self) -> None:
        self._state = State.IDLE
        self.status_code = 0
        self._content_length = NO_CONTENT_LENGTH
        self._body_length_consumed = 0
        self._content_length_match = 0
        self._chunked_match = 0
        self._is_chunked = False
        self._chunk_length = 0
        self.response_timeout = DEFAULT_RESPONSE_TIMEOUT
        self.wait_for_data_delay = DEFAULT_WAIT_FOR_DATA_DELAY

    def _send_text(self, text: str) -> None:
        self._client.write(text.encode("utf-8"))

    def _flush_client_rx(self) -> None:
        while self._client.available():
            self._client.read(self._client.available())

    def stop(self) -> None:
        """Close the connection and forget any request in progress."""
        self._client.stop()
        self._reset_state()

    def connection_keep_alive(self) -> None:
        """Keep the connection open between requests."""
        self._connection_close = False

    def no_default_request_headers(self) -> None:
        """Do not send the Host and User-Agent headers."""
        self._send_default_headers = False

    def begin_request(self) -> None:
        """Start a request whose headers the caller will finish."""
        self._state = State.REQUEST_STARTED

    def start_request(
        self,
        url_path: str,
        method: str,
        content_type: str | None = None,
        body: bytes | str | None = None,
    ) -> None:
        """Connect if needed and send the request line and headers.

        Raises :class:`ApiError` if a request is already in progress and
        :class:`ConnectionFailedError` if the server cannot be reached.
        """
        if self._state in _BODY_STATES:
            self._flush_client_rx()
            self._reset_state()

        initial_state = self._state
        if self._state not in (State.IDLE, State.REQUEST_STARTED):
            raise ApiError(f"cannot start a request in state {self._state.name}")

        if self._connection_close or not self._client.connected():
            target = self._server_name if self._server_name is not None else self.server
            if not self._client.connect(target, self.port):
                raise ConnectionFailedError(f"could not connect to {target}:{self.port}")

        self._send_initial_headers(url_path, method)

        payload = _to_bytes(body) if body is not None else b""
        if content_type is not None:
            self.send_header(HEADER_CONTENT_TYPE, content_type)
        if payload:
            self.send_header(HEADER_CONTENT_LENGTH, len(payload))

        if initial_state is State.IDLE or payload:
            self.finish_headers()
        if payload:
            self.write(payload)

    def _send_initial_headers(self, url_path: str, method: str) -> None:
        self._send_text(f"{method} {url_path} HTTP/1.1\r\n")
        if self._send_default_headers:
            if self._server_name is not None:
                host = self._server_name
                if self.port not in (HTTP_PORT, HTTPS_PORT):
                    host = f"{host}:{self.port}"
                self.send_header("Host", host)
            self.send_header(HEADER_USER_AGENT, USER_AGENT)
        if self._connection_close:
            self.send_header(HEADER_CONNECTION, "close")
        self._state = State.REQUEST_STARTED

    def send_header(self, name: str, value: str | int | None = None) -> None:
        """Send ``name: value``, or ``name`` as a whole line if no value."""
        if value is None:
            self._send_text(f"{name}\r\n")
        else:
            self._send_text(f"{name}: {value}\r\n")

    def send_basic_auth(self, user: str, password: str) -> None:
        """Send an Authorization header for HTTP Basic authentication."""
        self._send_text(f"Authorization: Basic {b64_encode(f'{user}:{password}')}\r\n")

    def finish_headers(self) -> None:
        """Send the blank line that ends the headers."""
        self._client.write(_CRLF)
        self._state = State.REQUEST_SENT

    def end_request(self) -> None:
        """Finish the request headers if that has not happened yet."""
        self.begin_body()

    def begin_body(self) -> None:
        """Finish the headers so that a body can follow."""
        if self._state < State.REQUEST_SENT:
            self.finish_headers()

    def get(self, url_path: str) -> None:
        self.start_request(url_path, "GET")

    def post(self, url_path: str, content_type: str | None = None, body: bytes | str | None = None) -> None:
        self.start_request(url_path, "POST", content_type, body)

    def put(self, url_path: str, content_type: str | None = None, body: bytes | str | None = None) -> None:
        self.start_request(url_path, "PUT", content_type, body)

    def patch(self, url_path: str, content_type: str | None = None, body: bytes | str | None = None) -> None:
        self.start_request(url_path, "PATCH", content_type, body)

    def delete(self, url_path: str, content_type: str | None = None, body: bytes | str | None = None) -> None:
        self.start_request(url_path, "DELETE", content_type, body)

    def write(self, data: bytes | bytearray | str | int) -> int:
        """Send body data, finishing the headers first if needed."""
        if self._state < State.REQUEST_SENT:
            self.finish_headers()
        return self._client.write(_to_bytes(data))