"""The subnets, spaces and static-routes endpoints of the fake MAAS server."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional

from .addressing import (
    Subnet,
    reserved_ip_ranges,
    subnet_statistics,
    unreserved_ip_ranges,
)
from .ipaddr import name_or_id_to_id
from .state import MAASState
from .wire import Request, Response, json_response, not_found

VND_CONTENT_TYPE = "application/vnd.api+json"

_SUBNET_RE = re.compile(r"/subnets/(.+?)/")
_SPACE_RE = re.compile(r"/spaces/(.+?)/")
_STATIC_ROUTE_RE = re.compile(r"/static-routes/(.+?)/")
_TRUE_WORDS = ("true", "yes", "1")


def subnets_endpoint(version: str) -> str:
    return f"/api/{version}/subnets/"


def spaces_endpoint(version: str) -> str:
    return f"/api/{version}/spaces/"


def static_routes_endpoint(version: str) -> str:
    return f"/api/{version}/static-routes/"


def _first(values: Mapping[str, list[str]], key: str) -> str:
    return (values.get(key) or [""])[0]


def _resolve_id(
    pattern: re.Pattern[str], path: str, name_to_id: Mapping[str, int], count: int
) -> tuple[bool, Optional[int]]:
    """Return whether the path names an item, and its ID if it resolves."""
    match = pattern.search(path)
    if match is None:
        return False, 0
    try:
        return True, name_or_id_to_id(match.group(1), dict(name_to_id), 1, count)
    except (ValueError, LookupError, TypeError):
        return True, None


def _compact(thing: Any) -> Response:
    """A 200 reply holding the thing as compact JSON followed by a newline."""
    body = json.dumps(thing, separators=(",", ":"), ensure_ascii=False) + "\n"
    return Response(200, body, {"Content-Type": VND_CONTENT_TYPE})


def _vnd_bad_request() -> Response:
    return Response(400, b"", {"Content-Type": VND_CONTENT_TYPE})


def handle_subnets(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/subnets/', single subnets and their range reports."""
    net = state.network
    query = request.query()
    op = _first(query, "op")
    include_ranges = _first(query, "include_ranges").lower() in _TRUE_WORDS

    named, subnet_id = _resolve_id(
        _SUBNET_RE, request.path, net.subnet_name_to_id, len(net.subnets)
    )
    if subnet_id is None:
        return not_found()

    if request.method == "GET":
        if not net.subnets:
            # Servers too old to know subnets answer 404 here.
            return not_found()
        if request.path == subnets_endpoint(state.version):
            return json_response(
                [subnet.to_json() for subnet in net.ordered_subnets()], VND_CONTENT_TYPE
            )
        if not named:
            return _vnd_bad_request()
        subnet = net.subnets.get(subnet_id) or Subnet()
        if op == "unreserved_ip_ranges":
            ranges = unreserved_ip_ranges(subnet)
            body = [r.to_json() for r in ranges] if ranges else None
            return json_response(body, VND_CONTENT_TYPE)
        if op == "reserved_ip_ranges":
            return json_response(
                [r.to_json() for r in reserved_ip_ranges(subnet)], VND_CONTENT_TYPE
            )
        if op == "statistics":
            return json_response(
                subnet_statistics(subnet, include_ranges).to_json(), VND_CONTENT_TYPE
            )
        return json_response(subnet.to_json(), VND_CONTENT_TYPE)
    if request.method == "POST":
        net.new_subnet(request.body)
        return Response(200)
    if request.method == "PUT":
        net.update_subnet(request.body)
        return Response(200)
    if request.method == "DELETE":
        net.subnets.pop(subnet_id, None)
        return Response(200)
    return Response(400)


def handle_spaces(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/spaces/' and single spaces by name or ID."""
    net = state.network
    if request.op() != "":
        return Response(400)

    named, space_id = _resolve_id(
        _SPACE_RE, request.path, net.space_name_to_id, len(net.spaces)
    )
    if space_id is None:
        return not_found()

    if request.method == "GET":
        if not net.spaces:
            # Servers too old to know spaces answer 404 here.
            return not_found()
        if request.path == spaces_endpoint(state.version):
            return _compact([space.to_json() for space in net.spaces_with_subnets()])
        if not named:
            return _vnd_bad_request()
        space = net.spaces.get(space_id)
        return _compact(None if space is None else space.to_json())
    if request.method in ("POST", "PUT"):
        return Response(200)
    if request.method == "DELETE":
        net.spaces.pop(space_id, None)
        return Response(200)
    return Response(400)


def handle_static_routes(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/static-routes/' and single routes by ID."""
    net = state.network
    if request.op() != "":
        return Response(400)

    # Routes have no names; an empty mapping still gives the ID range check.
    named, route_id = _resolve_id(
        _STATIC_ROUTE_RE, request.path, {}, len(net.static_routes)
    )
    if route_id is None:
        return not_found()

    if request.method == "GET":
        if not net.static_routes:
            return not_found()
        if request.path == static_routes_endpoint(state.version):
            return _compact([route.to_json() for route in net.static_routes_with_subnets()])
        if not named:
            return _vnd_bad_request()
        route = net.static_routes.get(route_id)
        return _compact(None if route is None else route.to_json())
    if request.method in ("POST", "PUT"):
        return Response(501)
    if request.method == "DELETE":
        net.static_routes.pop(route_id, None)
        return Response(200)
    return Response(400)