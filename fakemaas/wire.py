"""HTTP request and response values handled by the fake MAAS endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union
from urllib.parse import parse_qs, unquote

from .ipaddr import pretty_json
from .stubservers import _parse_multipart

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM_DATA = "multipart/form-data"
_BODY_METHODS = ("POST", "PUT", "PATCH")

Values = dict[str, list[str]]


def _parse_values(text: str) -> Values:
    if not text:
        return {}
    return parse_qs(text, keep_blank_values=True)


def _merge(target: Values, source: Mapping[str, list[str]]) -> None:
    for key, values in source.items():
        target.setdefault(key, []).extend(values)


@dataclass
class Request:
    """A request as seen by an endpoint handler; the path is already unescaped."""

    method: str
    path: str
    raw_query: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def from_target(
        cls,
        method: str,
        target: str,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
    ) -> "Request":
        """Build a request from a request target such as '/a/b/?op=list'."""
        path, _, raw_query = target.partition("?")
        return cls(method.upper(), unquote(path), raw_query, dict(headers or {}), body)

    def header(self, name: str) -> str:
        """Return a header value, matching the name without regard to case."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return ""

    def _media_type(self) -> str:
        return self.header("Content-Type").split(";", 1)[0].strip().lower()

    def query(self) -> Values:
        """Return the values of the query string."""
        return _parse_values(self.raw_query)

    def op(self) -> str:
        """Return the 'op' query value, or an empty string."""
        return self.query().get("op", [""])[0]

    def post_form(self) -> Values:
        """Return the URL-encoded values of the body of a POST, PUT or PATCH."""
        if self.method in _BODY_METHODS and self._media_type() == FORM_URLENCODED:
            return _parse_values(self.body.decode("utf-8", "replace"))
        return {}

    def multipart(self) -> tuple[Values, dict[str, list[bytes]]]:
        """Return the fields and the file contents of a multipart body."""
        if self._media_type() != MULTIPART_FORM_DATA:
            raise ValueError("request Content-Type isn't multipart/form-data")
        return _parse_multipart(self.header("Content-Type"), self.body)

    def form(self) -> Values:
        """Return body values followed by query values, key by key."""
        values: Values = {}
        _merge(values, self.post_form())
        if self.method in _BODY_METHODS and self._media_type() == MULTIPART_FORM_DATA:
            fields, _ = self.multipart()
            _merge(values, fields)
        _merge(values, self.query())
        return values


@dataclass
class Response:
    """A response produced by an endpoint handler."""

    status: int = 200
    body: Union[bytes, str] = b""
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def text(self) -> str:
        """Return the body decoded as UTF-8."""
        return self.body.decode("utf-8", "replace")


def error_response(message: str, status: int) -> Response:
    """A plain-text error reply, the message followed by a newline."""
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "X-Content-Type-Options": "nosniff",
    }
    return Response(status, message + "\n", headers)


def not_found() -> Response:
    """The standard 404 reply."""
    return error_response("404 page not found", 404)


def bad_request(message: str = "") -> Response:
    """A 400 reply whose body is the message as given."""
    return Response(400, message)


def json_response(thing: Any, content_type: Optional[str] = None) -> Response:
    """A 200 reply holding the thing as indented JSON."""
    headers = {"Content-Type": content_type} if content_type else {}
    return Response(200, pretty_json(thing), headers)


def get_value(values: Mapping[str, list[str]], key: str) -> Optional[str]:
    """Return the key's value if it was given exactly once and is not blank."""
    result = values.get(key)
    if not result or len(result) != 1 or result[0] == "":
        return None
    return result[0]


def get_values(values: Mapping[str, list[str]], key: str) -> Optional[list[str]]:
    """Return the key's non-blank values, or None if there are none."""
    output = [value for value in values.get(key, []) if value != ""]
    return output or None