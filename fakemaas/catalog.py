"""The tags endpoint of the fake MAAS server."""

from __future__ import annotations

from typing import Any, Mapping

from .ipaddr import pretty_json
from .state import RESOURCE_URI, MAASState
from .urls import tag_url, tag_url_re, tags_endpoint
from .wire import Request, Response, bad_request, get_value, get_values, json_response, not_found

Values = Mapping[str, list[str]]


def _decimal_byte_listing(data: bytes) -> str:
    return "[" + " ".join(str(byte) for byte in data) + "]"


def _new_tag(state: MAASState, name: str, values: Values) -> str:
    """Store a tag and return the reply body announcing it."""
    attrs: dict[str, Any] = {}
    comment = get_value(values, "comment")
    if comment is not None:
        attrs["comment"] = comment
    attrs["name"] = name
    attrs[RESOURCE_URI] = tag_url(state.version, name)
    state.tags[name] = attrs
    # The reply lists the bytes of the tag's JSON as decimal numbers.
    return _decimal_byte_listing(pretty_json(attrs).encode("utf-8"))


def _retag(state: MAASState, system_id: str, name: str, keep: bool) -> None:
    tags = [tag for tag in state.tags_per_node.get(system_id, []) if tag != name]
    if keep:
        tags.append(name)
    state.tags_per_node[system_id] = tags
    state.nodes[system_id]["tag_names"] = [state.tags.get(tag) for tag in tags]


def _update_nodes(state: MAASState, name: str, values: Values) -> Response:
    add = get_values(values, "add")
    remove = get_values(values, "remove")
    if add is None and remove is None:
        return bad_request()
    counts = {"add": len(add or []), "remove": len(remove or [])}
    for keep, system_ids in ((True, add or []), (False, remove or [])):
        for system_id in system_ids:
            if system_id not in state.nodes:
                return bad_request()
            _retag(state, system_id, name, keep)
    return json_response(counts)


def _tag(state: MAASState, request: Request, name: str, op: str, values: Values) -> Response:
    if request.method == "GET":
        if op == "node":
            nodes = [
                node
                for system_id, node in state.nodes.items()
                for tag in state.tags_per_node.get(system_id, [])
                if tag == name
            ]
            return json_response(nodes)
        return json_response(state.tags.get(name))
    if request.method == "POST":
        if op == "update_nodes":
            return _update_nodes(state, name, values)
        return Response(200)
    if request.method == "PUT":
        return Response(200, _new_tag(state, name, values))
    if request.method == "DELETE":
        state.tags.pop(name, None)
        return Response(200)
    return Response(200)


def handle_tags(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/tags/' and the individual tag paths below it."""
    values = request.post_form()
    names = get_values(values, "name")
    op = request.op()
    if request.path == tags_endpoint(state.version):
        if request.method == "GET":
            return json_response(list(state.tags.values()))
        if request.method == "POST" and names is not None:
            if op in ("", "new"):
                return Response(200, "".join(_new_tag(state, name, values) for name in names))
            return bad_request()
        return bad_request()
    match = tag_url_re(state.version).match(request.path)
    if match is not None:
        return _tag(state, request, match.group(1), op, values)
    return not_found()