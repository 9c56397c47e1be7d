"""Small canned-response HTTP servers for exercising HTTP clients."""

from __future__ import annotations

import email.parser
import email.policy
import logging
import threading
from dataclasses import dataclass, field
from email.message import Message
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional
from urllib.parse import parse_qs

logger = logging.getLogger(__name__)


@dataclass
class RecordedRequest:
    """A request as received by one of the stub servers."""

    method: str
    uri: str
    headers: Message
    body: bytes
    form: dict[str, list[str]] = field(default_factory=dict)
    files: dict[str, list[bytes]] = field(default_factory=dict)


@dataclass
class _Reply:
    """Response being built; the first status written wins, as on the wire."""

    status: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    parts: list[bytes] = field(default_factory=list)

    def set_header(self, name: str, value: str) -> None:
        if self.status is None:
            self.headers[name] = value

    def write_header(self, status: int) -> None:
        if self.status is None:
            self.status = status

    def write(self, text: str) -> None:
        self.write_header(200)
        self.parts.append(text.encode("utf-8"))

    def error(self, message: str, status: int) -> None:
        self.set_header("Content-Type", "text/plain; charset=utf-8")
        self.set_header("X-Content-Type-Options", "nosniff")
        self.write_header(status)
        self.write(message + "\n")


class _Handler(BaseHTTPRequestHandler):
    def _dispatch(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        request = RecordedRequest(self.command, self.path, self.headers, body)
        reply = _Reply()
        self.server.listener.handle(request, reply)  # type: ignore[attr-defined]
        payload = b"".join(reply.parts)
        self.send_response(reply.status or 200)
        for name, value in reply.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_HEAD = do_OPTIONS = _dispatch

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug(format, *args)


class _Listener:
    """A loopback HTTP server running on a background thread."""

    def __init__(self, handler: Callable[[RecordedRequest, _Reply], None]):
        self._handler = handler
        self._lock = threading.Lock()
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        self._httpd.listener = self  # type: ignore[attr-defined]
        host, port = self._httpd.server_address[:2]
        self.url = f"http://{host}:{port}"
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

    def handle(self, request: RecordedRequest, reply: _Reply) -> None:
        with self._lock:
            self._handler(request, reply)

    def close(self) -> None:
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join()


def _merge(target: dict[str, list[str]], source: dict[str, list[str]]) -> None:
    for key, values in source.items():
        target.setdefault(key, []).extend(values)


def _parse_multipart(
    content_type: str, body: bytes
) -> tuple[dict[str, list[str]], dict[str, list[bytes]]]:
    fields: dict[str, list[str]] = {}
    files: dict[str, list[bytes]] = {}
    raw = b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    message = email.parser.BytesParser(policy=email.policy.HTTP).parsebytes(raw)
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if name is None:
            continue
        payload = part.get_payload(decode=True) or b""
        if part.get_filename() is not None:
            files.setdefault(name, []).append(payload)
        else:
            fields.setdefault(name, []).append(payload.decode("utf-8", "replace"))
    return fields, files


def _parse_form(request: RecordedRequest, allow_multipart: bool) -> None:
    content_type = request.headers.get("Content-Type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    values: dict[str, list[str]] = {}
    if media_type == "application/x-www-form-urlencoded":
        _merge(values, parse_qs(request.body.decode("utf-8", "replace"), keep_blank_values=True))
    elif allow_multipart and content_type.startswith("multipart/form-data;"):
        fields, request.files = _parse_multipart(content_type, request.body)
        _merge(values, fields)
    _merge(values, parse_qs(request.uri.partition("?")[2], keep_blank_values=True))
    request.form = values


class SingleServingServer:
    """Serves one canned response for one URI; later requests get a 503."""

    def __init__(self, uri: str, response: str, code: int):
        self.uri = uri
        self.response = response
        self.code = code
        self.request_content: Optional[str] = None
        self.request_headers: Optional[Message] = None
        self._requested = False
        self._listener = _Listener(self._handle)
        self.url = self._listener.url

    def _handle(self, request: RecordedRequest, reply: _Reply) -> None:
        if self._requested:
            reply.error("Already requested", 503)
        self.request_content = request.body.decode("utf-8", "replace")
        self.request_headers = request.headers
        if request.uri != self.uri:
            reply.error(
                f"Error 404: page not found (expected '{self.uri}', got '{request.uri}').",
                404,
            )
        else:
            reply.write_header(self.code)
            reply.write(self.response)
        self._requested = True

    def close(self) -> None:
        self._listener.close()

    def __enter__(self) -> "SingleServingServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FlakyServer:
    """Answers the first requests with an error code, then with 200 "ok"."""

    def __init__(self, uri: str, code: int, nb_flaky_responses: int):
        self.uri = uri
        self.code = code
        self.nb_flaky_responses = nb_flaky_responses
        self.request_count = 0
        self.requests: list[bytes] = []
        self._listener = _Listener(self._handle)
        self.url = self._listener.url

    def _handle(self, request: RecordedRequest, reply: _Reply) -> None:
        self.request_count += 1
        self.requests.append(request.body)
        if request.uri != self.uri:
            reply.error(
                f"Error 404: page not found (expected '{self.uri}', got '{request.uri}').",
                404,
            )
        elif self.request_count <= self.nb_flaky_responses:
            if self.code == 503:
                reply.set_header("Retry-After", "0")
            reply.write_header(self.code)
            reply.write("flaky")
        else:
            reply.write_header(200)
            reply.write("ok")

    def close(self) -> None:
        self._listener.close()

    def __enter__(self) -> "FlakyServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass
class _Canned:
    status: int
    body: str


_METHODS = ("GET", "PUT", "POST", "DELETE")


class SimpleTestServer:
    """Replays queued responses per method and URI, recording every request."""

    def __init__(self) -> None:
        self._responses: dict[str, dict[str, list[_Canned]]] = {m: {} for m in _METHODS}
        self._indexes: dict[str, dict[str, int]] = {m: {} for m in _METHODS}
        self._requests: list[RecordedRequest] = []
        self._listener: Optional[_Listener] = None
        self.url: Optional[str] = None

    def start(self) -> None:
        if self._listener is not None:
            raise RuntimeError("server already started")
        self._listener = _Listener(self._handle)
        self.url = self._listener.url

    def close(self) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> "SimpleTestServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _add(self, method: str, path: str, status: int, body: str) -> None:
        logger.debug("add %s response for: %s, %d", method.lower(), path, status)
        self._responses[method].setdefault(path, []).append(_Canned(status, body))

    def add_get_response(self, path: str, status: int, body: str) -> None:
        self._add("GET", path, status, body)

    def add_put_response(self, path: str, status: int, body: str) -> None:
        self._add("PUT", path, status, body)

    def add_post_response(self, path: str, status: int, body: str) -> None:
        self._add("POST", path, status, body)

    def add_delete_response(self, path: str, status: int, body: str) -> None:
        self._add("DELETE", path, status, body)

    def last_request(self) -> Optional[RecordedRequest]:
        return self._requests[-1] if self._requests else None

    def last_n_requests(self, n: int) -> list[RecordedRequest]:
        return self._requests[max(0, len(self._requests) - n):]

    def request_count(self) -> int:
        return len(self._requests)

    def reset_requests(self) -> None:
        self._requests = []

    def _handle(self, request: RecordedRequest, reply: _Reply) -> None:
        method = request.method
        if method not in self._responses:
            reply.error(f"unsupported method {method}", 500)
            return
        if method in ("PUT", "POST"):
            _parse_form(request, allow_multipart=method == "POST")
        self._requests.append(request)
        uri = request.uri
        canned = self._responses[method].get(uri)
        if canned is None:
            reply.error(f"Error 404: page not found ('{uri}').", 404)
            return
        index = self._indexes[method].get(uri, 0)
        if index >= len(canned):
            reply.error(f"no more responses for {method} {uri}", 500)
            return
        self._indexes[method][uri] = index + 1
        reply.write_header(canned[index].status)
        reply.write(canned[index].body)