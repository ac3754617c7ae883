# arduhttp

arduhttp is a small, blocking HTTP/1.1 and WebSocket client. It runs over any
byte-stream transport. You write the request one step at a time: the request
line, then the headers, then the body. You read the response back the same
way: the status code, then the headers, then the body. Responses that use
`Transfer-Encoding: chunked` are decoded as they are read. The package uses
only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Making a request

```python
from arduhttp.transport import SocketClient
from arduhttp.http_client import HttpClient

with HttpClient(SocketClient(timeout=5.0), "example.com", 80) as http:
    http.get("/")

    status = http.response_status_code()
    while http.header_available():
        print(http.read_header_name(), "=", http.read_header_value())

    body = http.response_body()
```

Leaving the `with` block calls `stop()`, which closes the connection.

The `server` argument can be a host name or an IP address object. Only a host
name is sent in a `Host` header. That header includes the port unless the port
is 80 or 443. A `User-Agent: Arduino/2.2.0` header is also sent. To leave out
both of these headers, call `no_default_request_headers()`.

By default each request asks for `Connection: close` and opens a new
connection. If you call `connection_keep_alive()`, an open connection is used
again.

### Methods and bodies

`get(path)` sends a GET request. `post`, `put`, `patch` and `delete` also
accept an optional content type and body. The body can be `bytes` or `str`.
When a body is given, a `Content-Length` header is added and the body is sent
right after the headers.

`start_request(path, method, content_type, body)` sends a request with any
method.

### Adding your own headers

1. Call `begin_request()`.
2. Start the request with `get`, `post` or another method. The headers are left
   open.
3. Add headers with `send_header(name, value)` or
   `send_basic_auth(user, password)`.
4. Finish with `end_request()`.

`write(data)` sends body data. If the headers are not yet finished, it
finishes them first.

### Reading the response

- `response_status_code()` returns the status code. It skips informational
  1xx responses, except 101.
- `header_available()` reads the next header line. After that,
  `read_header_name()` and `read_header_value()` return the name and value of
  that line. `header_available()` returns `False` when the headers end.
- `skip_response_headers()` reads all the headers and discards them.
- `content_length()` returns the `Content-Length` value. It returns -1 if the
  response did not have one.
- `response_body()` reads the body and returns it as text. If there is no
  `Content-Length`, it reads until nothing arrives within `read_timeout`
  seconds.
- `available()`, `read_byte()`, `read(size)` and `peek()` read the body a
  little at a time. `end_of_body_reached()` tells you when a body of known
  length has been read in full.

You can change these timing attributes on the client:

| Attribute | Default | Meaning |
|---|---|---|
| `response_timeout` | 30 s | How long to wait for the status line and headers |
| `wait_for_data_delay` | 0.1 s | How long to pause between polls |
| `read_timeout` | 1 s | How long to wait for each body byte |

### Errors

Failures raise subclasses of `arduhttp.transport.HttpClientError`:

- `ApiError` – a method was called in the wrong state, for example reading the
  status before the request was sent.
- `ConnectionFailedError` – the server could not be reached.
- `TimedOutError` – the response did not arrive within the timeout.
- `InvalidResponseError` – the response is not valid HTTP.

## WebSockets

```python
from arduhttp.transport import SocketClient
from arduhttp.websocket_client import MessageType, WebSocketClient

ws = WebSocketClient(SocketClient(timeout=5.0), "example.com", 80)
ws.begin("/")

ws.begin_message(MessageType.TEXT)
ws.write(b"hello")
ws.end_message()

if ws.parse_message() > 0:
    print(ws.message_type(), ws.is_final(), ws.read_string())
```

`begin(path)` performs the upgrade handshake. If the server does not answer
with status 101, it raises `InvalidResponseError`.

Outgoing messages are masked with a random key. A single message carries at
most 128 bytes (`TX_BUFFER_SIZE`). Anything written beyond that is dropped,
and `write` returns the number of bytes it accepted.

`parse_message()` reads the next frame header and returns the size of the
payload. It returns 0 in these cases:

- No frame is ready.
- The frame was a ping. A pong is sent back automatically.
- The frame was a pong. It is discarded.
- The frame was a close frame. The connection is stopped.

`ping()` sends a ping that carries 16 random bytes.

## Utilities

- `arduhttp.urlencoder.encode(text)` percent-encodes text as UTF-8. ASCII
  letters, digits and `-._~` are left as they are.
- `arduhttp.url_parser.parse_url(url, is_connect=False)` finds the schema,
  host, port, path, query, fragment and userinfo in a URL. It returns a
  `ParsedUrlFields`; call `.get(UrlField.HOST)` and similar to read each part.
  If the URL is malformed, it raises `UrlParseError`.
- `arduhttp.url_parser.http_parser_version()` returns the version of the
  parser, packed into one number.
- `arduhttp.parsed_url.ParsedUrl(url)` gives `schema`, `host`, `port`, `path`,
  `query` and `userinfo` as attributes. A missing part is an empty string. The
  port defaults to 443 for `https` and `wss`, and to 80 for everything else.
  An empty path becomes `/`.
- `arduhttp.b64.b64_encode(data)` encodes bytes or text as padded Base64.

## Custom transports

To use your own transport, subclass `arduhttp.transport.Client` and implement
these methods:

- `connect`
- `connected`
- `available`
- `read`
- `peek`
- `write`
- `stop`

The clients then run over anything that moves bytes, such as an in-memory
stream in tests. `SocketClient` is the implementation that is included, and it
uses a plain TCP socket.

## What it does not do

- There is no TLS. `SocketClient` does not encrypt, so HTTPS and `wss` servers
  need a transport that you provide.
- The client does not follow redirects.
- It does not handle cookies.
- It does not decompress response bodies.
- There is no command-line tool. The package is a library only.