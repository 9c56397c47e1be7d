"""An HTTP server on the loopback interface that behaves like a MAAS server."""

from __future__ import annotations

import threading
from functools import partial
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional

from .catalog import handle_tags
from .devices import handle_devices
from .files import handle_files
from .ipaddresses import handle_ipaddresses, handle_networks
from .networking import (
    handle_spaces,
    handle_static_routes,
    handle_subnets,
    spaces_endpoint,
    static_routes_endpoint,
    subnets_endpoint,
)
from .nodegroups import handle_nodegroups, handle_version, handle_zones
from .nodes import handle_nodes
from .state import MAASState
from .urls import (
    devices_endpoint,
    files_endpoint,
    ipaddresses_endpoint,
    networks_endpoint,
    nodegroups_endpoint,
    nodes_endpoint,
    tags_endpoint,
    version_url,
    zones_endpoint,
)
from .wire import Request, Response, error_response, not_found

Handler = Callable[[Request], Response]


class _HTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, fake: "FakeMAASServer"):
        super().__init__(address, _RequestHandler)
        self.fake = fake


class _RequestHandler(BaseHTTPRequestHandler):
    server: _HTTPServer

    def _serve(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""
        request = Request.from_target(self.command, self.path, dict(self.headers.items()), body)
        try:
            response = self.server.fake.dispatch(request)
        except Exception as exc:  # a failing handler must not bring the server down
            response = error_response(str(exc), 500)
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(response.body)

    do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_HEAD = _serve

    def log_message(self, format, *args):  # noqa: A002
        pass


class FakeMAASServer:
    """A running fake MAAS server; its data lives in `state`, its address in `url`."""

    def __init__(self, version: str = "1.0", host: str = "127.0.0.1"):
        self.version = version
        self.state = MAASState(version)
        self._routes: dict[str, Handler] = {}
        self._lock = threading.Lock()
        for prefix, handler in (
            (devices_endpoint(version), handle_devices),
            (nodes_endpoint(version), handle_nodes),
            (files_endpoint(version), handle_files),
            (networks_endpoint(version), handle_networks),
            (ipaddresses_endpoint(version), handle_ipaddresses),
            (version_url(version), handle_version),
            (nodegroups_endpoint(version), handle_nodegroups),
            (zones_endpoint(version), handle_zones),
            (tags_endpoint(version), handle_tags),
            (subnets_endpoint(version), handle_subnets),
            (spaces_endpoint(version), handle_spaces),
            (static_routes_endpoint(version), handle_static_routes),
        ):
            self.add_route(prefix, partial(handler, self.state))

        self._httpd = _HTTPServer((host, 0), self)
        host_name, port = self._httpd.server_address[:2]
        self.url = f"http://{host_name}:{port}"
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()
        self._closed = False

    def add_route(self, prefix: str, handler: Handler) -> None:
        """Register a handler; a prefix ending in '/' covers every path below it."""
        self._routes[prefix] = handler

    def _lookup(self, path: str) -> Optional[Handler]:
        best: Optional[str] = None
        for pattern in self._routes:
            covers = pattern == path or (pattern.endswith("/") and path.startswith(pattern))
            if covers and (best is None or len(pattern) > len(best)):
                best = pattern
        return None if best is None else self._routes[best]

    def dispatch(self, request: Request) -> Response:
        """Route a request to its handler, one request at a time."""
        with self._lock:
            handler = self._lookup(request.path)
            if handler is not None:
                return handler(request)
            if not request.path.endswith("/") and (request.path + "/") in self._routes:
                location = request.path + "/"
                if request.raw_query:
                    location += "?" + request.raw_query
                return Response(301, b"", {"Location": location})
            return not_found()

    def close(self) -> None:
        """Stop serving and release the listening socket."""
        if self._closed:
            return
        self._closed = True
        self._httpd.shutdown()
        self._httpd.server_close()
        self._thread.join()

    def __enter__(self) -> "FakeMAASServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()