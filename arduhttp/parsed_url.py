"""Splitting a URL into the parts an HTTP or WebSocket request needs."""

from __future__ import annotations

from .url_parser import UrlField, parse_url

__all__ = ["ParsedUrl"]

_SECURE_SCHEMAS = frozenset({"https", "wss"})


class ParsedUrl:
    """The schema, host, port, path, query and user information of a URL.

    Missing parts are empty strings. The port defaults to 443 for
    ``https`` and ``wss`` and to 80 otherwise, and an empty path becomes
    ``"/"``. The fragment is dropped. Raises
    :class:`~arduhttp.url_parser.UrlParseError` if the URL is malformed.
    """

    __slots__ = ("schema", "host", "port", "path", "query", "userinfo")

    def __init__(self, url: str) -> None:
        fields = parse_url(url, False)

        def text(field: UrlField) -> str:
            return fields.get(field) or ""

        self.schema = text(UrlField.SCHEMA)
        self.host = text(UrlField.HOST)
        self.query = text(UrlField.QUERY)
        self.userinfo = text(UrlField.USERINFO)
        self.path = text(UrlField.PATH) or "/"
        self.port = fields.port or (443 if self.schema in _SECURE_SCHEMAS else 80)

    def __repr__(self) -> str:
        return (
            f"ParsedUrl(schema={self.schema!r}, host={self.host!r}, port={self.port}, "
            f"path={self.path!r}, query={self.query!r}, userinfo={self.userinfo!r})"
        )