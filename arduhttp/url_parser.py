"""A strict URL splitter that locates schema, host, port, path, query,
fragment and user information in a request target."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from types import MappingProxyType
from typing import Mapping

__all__ = [
    "UrlField",
    "FieldSpan",
    "ParsedUrlFields",
    "UrlParseError",
    "parse_url",
    "http_parser_version",
    "VERSION_MAJOR",
    "VERSION_MINOR",
    "VERSION_PATCH",
]

VERSION_MAJOR = 2
VERSION_MINOR = 7
VERSION_PATCH = 1


class UrlField(IntEnum):
    """Parts of a URL that the parser can locate."""

    SCHEMA = 0
    HOST = 1
    PORT = 2
    PATH = 3
    QUERY = 4
    FRAGMENT = 5
    USERINFO = 6


class UrlParseError(ValueError):
    """Raised when a URL cannot be parsed."""


@dataclass(frozen=True)
class FieldSpan:
    """Position of a field within the parsed URL."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class ParsedUrlFields:
    """The fields found in a URL, with the converted port number.

    ``port`` is 0 when the URL names no port.
    """

    url: str
    port: int = 0
    spans: Mapping[UrlField, FieldSpan] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def field_set(self) -> int:
        """Bitmask of ``1 << field`` for every field present."""
        mask = 0
        for url_field in self.spans:
            mask |= 1 << url_field
        return mask

    def get(self, field: UrlField) -> str | None:
        """Return the text of ``field``, or None if the URL lacks it."""
        span = self.spans.get(field)
        if span is None:
            return None
        return self.url[span.offset : span.end]


def http_parser_version() -> int:
    """Return the version packed as major << 16 | minor << 8 | patch."""
    return VERSION_MAJOR * 0x10000 | VERSION_MINOR * 0x100 | VERSION_PATCH


class _State(Enum):
    DEAD = auto()
    SPACES_BEFORE_URL = auto()
    SCHEMA = auto()
    SCHEMA_SLASH = auto()
    SCHEMA_SLASH_SLASH = auto()
    SERVER_START = auto()
    SERVER = auto()
    SERVER_WITH_AT = auto()
    PATH = auto()
    QUERY_STRING_START = auto()
    QUERY_STRING = auto()
    FRAGMENT_START = auto()
    FRAGMENT = auto()


class _HostState(Enum):
    DEAD = auto()
    USERINFO_START = auto()
    USERINFO = auto()
    HOST_START = auto()
    V6_START = auto()
    HOST = auto()
    V6 = auto()
    V6_END = auto()
    V6_ZONE_START = auto()
    V6_ZONE = auto()
    PORT_START = auto()
    PORT = auto()


_ALPHA = frozenset(string.ascii_letters)
_DIGITS = frozenset(string.digits)
_ALNUM = _ALPHA | _DIGITS
_HEX = frozenset(string.hexdigits)
_MARK = frozenset("-_.!~*'()")
_USERINFO = _ALNUM | _MARK | frozenset("%;:&=+$,")
_HOST = _ALNUM | frozenset(".-")
_ZONE = _ALNUM | frozenset("%.-_~")
# Printable ASCII apart from space, '#' and '?'.
_URL = frozenset(chr(c) for c in range(33, 127)) - frozenset("#?")

_DELIMITER_STATES = frozenset(
    {
        _State.SCHEMA_SLASH,
        _State.SCHEMA_SLASH_SLASH,
        _State.SERVER_START,
        _State.QUERY_STRING_START,
        _State.FRAGMENT_START,
    }
)

_FIELD_FOR_STATE = {
    _State.SCHEMA: UrlField.SCHEMA,
    _State.SERVER: UrlField.HOST,
    _State.SERVER_WITH_AT: UrlField.HOST,
    _State.PATH: UrlField.PATH,
    _State.QUERY_STRING: UrlField.QUERY,
    _State.FRAGMENT: UrlField.FRAGMENT,
}

_BAD_HOST_END_STATES = frozenset(
    {
        _HostState.HOST_START,
        _HostState.V6_START,
        _HostState.V6,
        _HostState.V6_ZONE_START,
        _HostState.V6_ZONE,
        _HostState.PORT_START,
        _HostState.USERINFO,
        _HostState.USERINFO_START,
    }
)


def _next_url_state(s: _State, ch: str) -> _State:
    if ch in " \r\n\t\f":
        return _State.DEAD

    if s is _State.SPACES_BEFORE_URL:
        if ch in "/*":
            return _State.PATH
        if ch in _ALPHA:
            return _State.SCHEMA
    elif s is _State.SCHEMA:
        if ch in _ALPHA:
            return s
        if ch == ":":
            return _State.SCHEMA_SLASH
    elif s is _State.SCHEMA_SLASH:
        if ch == "/":
            return _State.SCHEMA_SLASH_SLASH
    elif s is _State.SCHEMA_SLASH_SLASH:
        if ch == "/":
            return _State.SERVER_START
    elif s in (_State.SERVER_WITH_AT, _State.SERVER_START, _State.SERVER):
        if s is _State.SERVER_WITH_AT and ch == "@":
            return _State.DEAD
        if ch == "/":
            return _State.PATH
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "@":
            return _State.SERVER_WITH_AT
        if ch in _USERINFO or ch in "[]":
            return _State.SERVER
    elif s is _State.PATH:
        if ch in _URL:
            return s
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "#":
            return _State.FRAGMENT_START
    elif s in (_State.QUERY_STRING_START, _State.QUERY_STRING):
        if ch in _URL or ch == "?":
            return _State.QUERY_STRING
        if ch == "#":
            return _State.FRAGMENT_START
    elif s is _State.FRAGMENT_START:
        if ch in _URL or ch == "?":
            return _State.FRAGMENT
        if ch == "#":
            return s
    elif s is _State.FRAGMENT:
        if ch in _URL or ch in "?#":
            return s

    return _State.DEAD


def _next_host_state(s: _HostState, ch: str) -> _HostState:
    if s in (_HostState.USERINFO, _HostState.USERINFO_START):
        if ch == "@":
            return _HostState.HOST_START
        if ch in _USERINFO:
            return _HostState.USERINFO
    elif s is _HostState.HOST_START:
        if ch == "[":
            return _HostState.V6_START
        if ch in _HOST:
            return _HostState.HOST
    elif s in (_HostState.HOST, _HostState.V6_END):
        if s is _HostState.HOST and ch in _HOST:
            return _HostState.HOST
        if ch == ":":
            return _HostState.PORT_START
    elif s in (_HostState.V6, _HostState.V6_START):
        if s is _HostState.V6 and ch == "]":
            return _HostState.V6_END
        if ch in _HEX or ch in ":.":
            return _HostState.V6
        if s is _HostState.V6 and ch == "%":
            return _HostState.V6_ZONE_START
    elif s in (_HostState.V6_ZONE, _HostState.V6_ZONE_START):
        if s is _HostState.V6_ZONE and ch == "]":
            return _HostState.V6_END
        if ch in _ZONE:
            return _HostState.V6_ZONE
    elif s in (_HostState.PORT, _HostState.PORT_START):
        if ch in _DIGITS:
            return _HostState.PORT

    return _HostState.DEAD


def _split_host(url: str, spans: dict[UrlField, list[int]], found_at: bool) -> None:
    """Split the server part into userinfo, host and port spans in place."""
    host = spans[UrlField.HOST]
    start, end = host[0], host[0] + host[1]
    host[1] = 0

    s = _HostState.USERINFO_START if found_at else _HostState.HOST_START
    for pos in range(start, end):
        new_s = _next_host_state(s, url[pos])
        if new_s is _HostState.DEAD:
            raise UrlParseError(f"invalid character {url[pos]!r} in host of {url!r}")

        if new_s in (_HostState.HOST, _HostState.V6):
            if s is not new_s:
                host[0] = pos
            host[1] += 1
        elif new_s in (_HostState.V6_ZONE_START, _HostState.V6_ZONE):
            host[1] += 1
        elif new_s is _HostState.PORT:
            if s is not _HostState.PORT:
                spans[UrlField.PORT] = [pos, 0]
            spans[UrlField.PORT][1] += 1
        elif new_s is _HostState.USERINFO:
            if s is not _HostState.USERINFO:
                spans[UrlField.USERINFO] = [pos, 0]
            spans[UrlField.USERINFO][1] += 1
        s = new_s

    if s in _BAD_HOST_END_STATES:
        raise UrlParseError(f"incomplete host in {url!r}")


def parse_url(url: str, is_connect: bool = False) -> ParsedUrlFields:
    """Locate the fields of ``url``.

    With ``is_connect`` the URL must be exactly ``host:port``, as in the
    target of a CONNECT request. Raises :class:`UrlParseError` on failure.
    """
    spans: dict[UrlField, list[int]] = {}
    s = _State.SERVER_START if is_connect else _State.SPACES_BEFORE_URL
    old_field: UrlField | None = None
    found_at = False

    for pos, ch in enumerate(url):
        s = _next_url_state(s, ch)
        if s is _State.DEAD:
            raise UrlParseError(f"invalid character {ch!r} at {pos} in {url!r}")
        if s in _DELIMITER_STATES:
            continue
        if s is _State.SERVER_WITH_AT:
            found_at = True

        current = _FIELD_FOR_STATE[s]
        if current is old_field:
            spans[current][1] += 1
            continue
        spans[current] = [pos, 1]
        old_field = current

    if UrlField.SCHEMA in spans and UrlField.HOST not in spans:
        raise UrlParseError(f"schema without host in {url!r}")

    if UrlField.HOST in spans:
        _split_host(url, spans, found_at)

    if is_connect and set(spans) != {UrlField.HOST, UrlField.PORT}:
        raise UrlParseError(f"CONNECT target must be host:port, got {url!r}")

    port = 0
    if UrlField.PORT in spans:
        offset, length = spans[UrlField.PORT]
        port = int(url[offset : offset + length])
        if port > 0xFFFF:
            raise UrlParseError(f"port {port} out of range in {url!r}")

    frozen = {
        url_field: FieldSpan(offset, length)
        for url_field, (offset, length) in sorted(spans.items())
    }
    return ParsedUrlFields(url=url, port=port, spans=MappingProxyType(frozen))