"""The version, nodegroups and zones endpoints of the fake MAAS server."""

from __future__ import annotations

from .state import RESOURCE_URI, MAASState
from .urls import (
    boot_images_url_re,
    nodegroup_interfaces_url_re,
    nodegroup_url,
    nodegroups_endpoint,
)
from .wire import Request, Response, bad_request, json_response, not_found

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def handle_version(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/version/' with the capabilities document."""
    if request.method != "GET":
        raise ValueError("only version GET operation implemented")
    return Response(200, state.version_json, {"Content-Type": JSON_CONTENT_TYPE})


def _list_nodegroups(state: MAASState, request: Request, op: str) -> Response:
    if request.method != "GET" or op != "list":
        return bad_request()
    nodegroups = [
        {"uuid": uuid, RESOURCE_URI: nodegroup_url(state.version, uuid)}
        for uuid in state.boot_images
    ]
    return json_response(nodegroups)


def _boot_images(state: MAASState, request: Request, uuid: str) -> Response:
    if request.method != "GET":
        return bad_request()
    images = state.boot_images.get(uuid)
    if images is None:
        return not_found()
    return json_response(images)


def _interfaces(state: MAASState, request: Request, uuid: str) -> Response:
    if request.method != "GET":
        return bad_request()
    if uuid not in state.boot_images:
        return not_found()
    return json_response(state.nodegroups_interfaces.get(uuid, []))


def handle_nodegroups(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/nodegroups/', their boot images and interfaces."""
    op = request.op()
    if request.path == nodegroups_endpoint(state.version):
        return _list_nodegroups(state, request, op)
    match = boot_images_url_re(state.version).match(request.path)
    if match is not None:
        return _boot_images(state, request, match.group(1))
    match = nodegroup_interfaces_url_re(state.version).match(request.path)
    if match is not None:
        return _interfaces(state, request, match.group(1))
    return not_found()


def handle_zones(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/zones/'; absent until a zone is added."""
    if request.method != "GET":
        return bad_request()
    if not state.zones:
        # Servers too old to know zones answer 404 here.
        return not_found()
    return json_response(list(state.zones.values()))