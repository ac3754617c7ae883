import base64

import pytest

from arduhttp.transport import ApiError, Client, ConnectionFailedError, InvalidResponseError
from arduhttp.websocket_client import TX_BUFFER_SIZE, MessageType, WebSocketClient

HANDSHAKE_OK = (
    b"HTTP/1.1 101 Switching Protocols\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"\r\n"
)


class FakeClient(Client):
    def __init__(self, accept=True):
        self.accept = accept
        self.rx = bytearray()
        self.tx = bytearray()
        self.open = False
        self.stopped = False
        self.connections = []

    def feed(self, data):
        self.rx += data

    def connect(self, host, port):
        self.connections.append((host, port))
        self.open = self.accept
        return self.accept

    def connected(self):
        return self.open

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
        self.open = False
        self.stopped = True
        self.rx.clear()


def make_ws(accept=True):
    fake = FakeClient(accept)
    ws = WebSocketClient(fake, "example.com")
    ws.wait_for_data_delay = 0
    ws.response_timeout = 0.2
    ws.read_timeout = 0.05
    return fake, ws


@pytest.fixture
def upgraded():
    fake, ws = make_ws()
    fake.feed(HANDSHAKE_OK)
    ws.begin("/chat")
    fake.tx.clear()
    return fake, ws


def decode_client_frame(frame):
    first = frame[0]
    second = frame[1]
    assert second & 0x80
    length = second & 0x7F
    pos = 2
    if length == 126:
        length = int.from_bytes(frame[2:4], "big")
        pos = 4
    key = frame[pos : pos + 4]
    payload = frame[pos + 4 : pos + 4 + length]
    assert len(payload) == length
    return first, length, bytes(b ^ key[i % 4] for i, b in enumerate(payload))


def mask_payload(payload, key):
    return bytes(b ^ key[i % 4] for i, b in enumerate(payload))


def test_begin_sends_upgrade_request():
    fake, ws = make_ws()
    fake.feed(HANDSHAKE_OK)
    ws.begin("/chat")
    sent = bytes(fake.tx)
    assert sent.startswith(b"GET /chat HTTP/1.1\r\n")
    assert b"Host: example.com\r\n" in sent
    assert b"Upgrade: websocket\r\n" in sent
    assert b"Connection: Upgrade\r\n" in sent
    assert b"Sec-WebSocket-Version: 13\r\n" in sent
    assert b"Connection: close\r\n" not in sent
    assert sent.endswith(b"\r\n\r\n")
    assert fake.connections == [("example.com", 80)]
    assert ws.end_of_headers_reached()
    assert ws.available() == 0


def test_begin_key_is_sixteen_nonzero_bytes():
    fake, ws = make_ws()
    fake.feed(HANDSHAKE_OK)
    ws.begin()
    lines = bytes(fake.tx).split(b"\r\n")
    key_line = next(line for line in lines if line.startswith(b"Sec-WebSocket-Key: "))
    key = base64.b64decode(key_line.split(b": ", 1)[1])
    assert len(key) == 16
    assert all(1 <= b < 0xFF for b in key)


def test_begin_refused_status_raises():
    fake, ws = make_ws()
    fake.feed(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
    with pytest.raises(InvalidResponseError):
        ws.begin("/chat")
    assert ws.status_code == 200


def test_begin_connection_failure():
    fake, ws = make_ws(accept=False)
    with pytest.raises(ConnectionFailedError):
        ws.begin("/")


def test_send_text_message_round_trip(upgraded):
    fake, ws = upgraded
    ws.begin_message(MessageType.TEXT)
    assert ws.write(b"hello") == 5
    ws.end_message()
    first, length, payload = decode_client_frame(bytes(fake.tx))
    assert first == 0x80 | MessageType.TEXT
    assert length == 5
    assert payload == b"hello"


def test_send_string_and_single_bytes(upgraded):
    fake, ws = upgraded
    ws.begin_message(MessageType.BINARY)
    ws.write("ab")
    ws.write(ord("c"))
    ws.end_message()
    first, _, payload = decode_client_frame(bytes(fake.tx))
    assert first & 0x0F == MessageType.BINARY
    assert payload == b"abc"


def test_long_message_uses_16_bit_length_and_truncates(upgraded):
    fake, ws = upgraded
    data = bytes(range(200))
    ws.begin_message(MessageType.BINARY)
    assert ws.write(data) == TX_BUFFER_SIZE
    assert ws.write(b"more") == 0
    ws.end_message()
    frame = bytes(fake.tx)
    assert frame[1] == 0x80 | 126
    first, length, payload = decode_client_frame(frame)
    assert length == TX_BUFFER_SIZE
    assert payload == data[:TX_BUFFER_SIZE]


def test_begin_message_twice_is_api_error(upgraded):
    _, ws = upgraded
    ws.begin_message(MessageType.TEXT)
    with pytest.raises(ApiError):
        ws.begin_message(MessageType.TEXT)


def test_end_message_without_begin_is_api_error(upgraded):
    _, ws = upgraded
    with pytest.raises(ApiError):
        ws.end_message()


def test_write_without_message_takes_nothing(upgraded):
    fake, ws = upgraded
    assert ws.write(b"data") == 0
    assert fake.tx == bytearray()


def test_receive_unmasked_text(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x81\x05hello")
    assert ws.parse_message() == 5
    assert ws.message_type() == MessageType.TEXT
    assert ws.is_final()
    assert ws.read_string() == "hello"
    assert ws.available() == 0


def test_receive_masked_frame(upgraded):
    fake, ws = upgraded
    key = b"\x11\x22\x33\x44"
    payload = b"masked data"
    fake.feed(bytes([0x82, 0x80 | len(payload)]) + key + mask_payload(payload, key))
    assert ws.parse_message() == len(payload)
    assert ws.message_type() == MessageType.BINARY
    assert ws.peek() == payload[0]
    assert ws.read(4) == payload[:4]
    assert ws.read(100) == payload[4:]


def test_receive_fragmented_message(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x01\x03hel")
    assert ws.parse_message() == 3
    assert ws.message_type() == MessageType.TEXT
    assert not ws.is_final()
    assert ws.read_string() == "hel"
    fake.feed(b"\x80\x02lo")
    assert ws.parse_message() == 2
    assert ws.message_type() == MessageType.TEXT
    assert ws.is_final()
    assert ws.read_string() == "lo"


def test_receive_extended_length(upgraded):
    fake, ws = upgraded
    data = bytes(i % 251 for i in range(300))
    fake.feed(b"\x82\x7e" + len(data).to_bytes(2, "big") + data)
    assert ws.parse_message() == len(data)
    assert ws.read(len(data)) == data


def test_unread_data_is_flushed_by_next_parse(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x81\x03abc\x81\x02de")
    assert ws.parse_message() == 3
    assert ws.parse_message() == 2
    assert ws.read_string() == "de"


def test_parse_with_too_little_data(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x81")
    assert ws.parse_message() == 0
    assert fake.rx == bytearray(b"\x81")


def test_ping_is_answered_with_pong(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x89\x04ping")
    assert ws.parse_message() == 0
    first, length, payload = decode_client_frame(bytes(fake.tx))
    assert first == 0x80 | MessageType.PONG
    assert payload == b"ping"
    assert fake.rx == bytearray()


def test_pong_is_discarded(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x8a\x02ab\x81\x01z")
    assert ws.parse_message() == 0
    assert ws.available() == 0
    assert fake.tx == bytearray()
    assert ws.parse_message() == 1
    assert ws.read_string() == "z"


def test_close_stops_connection(upgraded):
    fake, ws = upgraded
    fake.feed(b"\x88\x00")
    assert ws.parse_message() == 0
    assert fake.stopped
    assert not ws.end_of_headers_reached()


def test_ping_sends_sixteen_byte_payload(upgraded):
    fake, ws = upgraded
    ws.ping()
    first, length, _ = decode_client_frame(bytes(fake.tx))
    assert first == 0x80 | MessageType.PING
    assert length == 16


def test_read_byte_without_data(upgraded):
    _, ws = upgraded
    assert ws.read_byte() == -1
    assert ws.peek() == -1