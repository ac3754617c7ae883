import pytest

from arduhttp.http_client import HttpClient
from arduhttp.http_request import State
from arduhttp.transport import ApiError, Client, InvalidResponseError, TimedOutError


class FakeClient(Client):
    def __init__(self, response=b""):
        self.rx = bytearray(response)
        self.tx = bytearray()
        self.is_open = False

    def connect(self, host, port):
        self.is_open = True
        return True

    def connected(self):
        return self.is_open

    def available(self):
        return len(self.rx)

    def read(self, size=1):
        data = bytes(self.rx[:size])
        del self.rx[:size]
        return data

    def peek(self):
        return self.rx[0] if self.rx else -1

    def write(self, data):
        self.tx += data
        return len(data)

    def stop(self):
        self.is_open = False
        self.rx.clear()


def make(response):
    fake = FakeClient(response)
    http = HttpClient(fake, "example.com", 80)
    http.get("/x")
    http.response_timeout = 0.05
    http.wait_for_data_delay = 0.001
    http.read_timeout = 0.05
    return fake, http


def test_request_line_is_sent():
    fake, _ = make(b"")
    assert fake.tx.startswith(b"GET /x HTTP/1.1\r\n")


def test_status_code_and_body():
    _, http = make(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello")
    assert http.response_status_code() == 200
    assert http.content_length() == 5
    assert http.response_body() == "hello"
    assert http.end_of_body_reached()


def test_status_before_request_raises():
    http = HttpClient(FakeClient(), "example.com", 80)
    with pytest.raises(ApiError):
        http.response_status_code()


def test_informational_response_is_skipped():
    _, http = make(b"HTTP/1.1 100 Continue\r\nHTTP/1.1 404 Not Found\r\n\r\n")
    assert http.response_status_code() == 404


def test_switching_protocols_is_returned():
    _, http = make(b"HTTP/1.1 101 Switching Protocols\r\n\r\n")
    assert http.response_status_code() == 101


def test_invalid_status_line():
    _, http = make(b"FOO 200\r\n")
    with pytest.raises(InvalidResponseError):
        http.response_status_code()


def test_status_timeout():
    _, http = make(b"HTTP/1.1 20")
    with pytest.raises(TimedOutError):
        http.response_status_code()


def test_header_iteration():
    _, http = make(b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\nX-Test:   value\r\n\r\nbody")
    http.response_status_code()
    headers = []
    while http.header_available():
        headers.append((http.read_header_name(), http.read_header_value()))
    assert headers == [("Content-Type", "text/plain"), ("X-Test", "value")]
    assert http.end_of_headers_reached()
    assert http.read(4) == b"body"


def test_header_without_colon_has_empty_name_and_value():
    _, http = make(b"HTTP/1.1 200 OK\r\nBroken\r\n\r\n")
    http.response_status_code()
    assert http.header_available()
    assert http.read_header_name() == ""
    assert http.read_header_value() == ""


def test_no_content_length():
    _, http = make(b"HTTP/1.1 200 OK\r\nServer: x\r\n\r\nabc")
    http.response_status_code()
    assert http.content_length() == -1
    assert not http.end_of_body_reached()
    assert http.response_body() == "abc"


def test_last_content_length_wins():
    _, http = make(b"HTTP/1.1 200 OK\r\nContent-Length: 9\r\nContent-Length: 2\r\n\r\nok")
    http.response_status_code()
    assert http.content_length() == 2
    assert http.response_body() == "ok"


def test_read_tracks_consumed_body():
    _, http = make(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello")
    http.response_status_code()
    http.skip_response_headers()
    assert http.read(3) == b"hel"
    assert not http.end_of_body_reached()
    assert http.read(2) == b"lo"
    assert http.end_of_body_reached()


def test_incomplete_body_raises():
    _, http = make(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\nabc")
    http.response_status_code()
    with pytest.raises(TimedOutError):
        http.response_body()


def test_skip_headers_timeout():
    _, http = make(b"HTTP/1.1 200 OK\r\nServer: x\r\n")
    http.response_status_code()
    with pytest.raises(TimedOutError):
        http.skip_response_headers()


def test_chunked_body_is_decoded():
    fake, http = make(
        b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
        b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n"
    )
    http.response_status_code()
    http.skip_response_headers()
    body = bytearray()
    while fake.rx:
        c = http.read_byte()
        if c >= 0:
            body.append(c)
    assert bytes(body) == b"hello world"
    assert http.read_byte() == -1


def test_chunk_available_is_limited_to_chunk():
    _, http = make(b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nabcdef")
    http.response_status_code()
    http.skip_response_headers()
    assert http.available() == 3


def test_peek_does_not_consume():
    _, http = make(b"HTTP/1.1 200 OK\r\n\r\nZ")
    http.response_status_code()
    http.skip_response_headers()
    assert http.peek() == ord("Z")
    assert http.read_byte() == ord("Z")
    assert http.read_byte() == -1


def test_stop_resets_state():
    fake, http = make(b"HTTP/1.1 200 OK\r\n\r\n")
    http.response_status_code()
    http.stop()
    assert http.state is State.IDLE
    assert http.status_code == 0
    assert not fake.connected()