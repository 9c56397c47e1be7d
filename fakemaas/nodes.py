"""The nodes endpoint of the fake MAAS server."""

from __future__ import annotations

import struct
from typing import Any, Mapping

from .allocation import _request_values, acquire_node, release_nodes
from .state import NODE_STATUS_DEPLOYED, NODE_STATUS_FAILED_DEPLOYMENT, MAASState
from .urls import node_url_re, nodes_endpoint
from .wire import Request, Response, bad_request, json_response, not_found
from .ipaddr import pretty_json

LLDP_XML = '\n<?xml version="1.0" encoding="UTF-8"?>\n<lldp label="LLDP neighbors"/>'

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1
_NODE_POST_OPERATIONS = ("start", "stop", "release")


def _cstring(name: str) -> bytes:
    data = name.encode("utf-8")
    if b"\x00" in data:
        raise ValueError(f"BSON key {name!r} contains a NUL byte")
    return data + b"\x00"


def _element(name: str, value: Any) -> bytes:
    key = _cstring(name)
    if isinstance(value, bool):
        return b"\x08" + key + (b"\x01" if value else b"\x00")
    if value is None:
        return b"\x0a" + key
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return b"\x10" + key + struct.pack("<i", value)
        if _INT64_MIN <= value <= _INT64_MAX:
            return b"\x12" + key + struct.pack("<q", value)
        raise OverflowError(f"integer {value} does not fit in BSON")
    if isinstance(value, float):
        return b"\x01" + key + struct.pack("<d", value)
    if isinstance(value, str):
        data = value.encode("utf-8")
        return b"\x02" + key + struct.pack("<i", len(data) + 1) + data + b"\x00"
    if isinstance(value, (bytes, bytearray)):
        return b"\x05" + key + struct.pack("<i", len(value)) + b"\x00" + bytes(value)
    if isinstance(value, Mapping):
        return b"\x03" + key + encode_bson(value)
    if isinstance(value, (list, tuple)):
        return b"\x04" + key + encode_bson({str(i): item for i, item in enumerate(value)})
    raise TypeError(f"{type(value).__name__} cannot be encoded as BSON")


def encode_bson(document: Mapping[str, Any]) -> bytes:
    """Encode a mapping as a BSON document; bytes become generic binary."""
    body = b"".join(_element(key, value) for key, value in document.items())
    return struct.pack("<i", len(body) + 5) + body + b"\x00"


def _list_nodes(state: MAASState, request: Request) -> Response:
    ids = request.query().get("id")
    nodes = [
        node for system_id, node in state.nodes.items() if ids is None or system_id in ids
    ]
    return json_response(nodes)


def _deployment_status(state: MAASState, request: Request) -> Response:
    statuses: dict[str, str] = {}
    for system_id in request.query().get("nodes", []):
        status = state.nodes.get(system_id, {}).get("status")
        if not isinstance(status, str):
            continue
        if status == NODE_STATUS_DEPLOYED:
            statuses[system_id] = "Deployed"
        elif status == NODE_STATUS_FAILED_DEPLOYMENT:
            statuses[system_id] = "Failed deployment"
        else:
            statuses[system_id] = "Not in Deployment"
    return json_response(statuses)


def _top_level(state: MAASState, request: Request, op: str) -> Response:
    if request.method == "GET" and op == "list":
        return _list_nodes(state, request)
    if request.method == "GET" and op == "deployment_status":
        return _deployment_status(state, request)
    if request.method == "POST" and op == "acquire":
        return acquire_node(state, request)
    if request.method == "POST" and op == "release":
        return release_nodes(state, request)
    return bad_request()


def _node_details(state: MAASState, system_id: str) -> Response:
    document = {
        "lldp": LLDP_XML,
        "lshw": state.node_details.get(system_id, "").encode("utf-8"),
    }
    return Response(200, encode_bson(document), {"Content-Type": "application/bson"})


def _node(state: MAASState, request: Request, system_id: str, op: str) -> Response:
    node = state.nodes.get(system_id)
    if node is None:
        return not_found()
    node_id = node.get("system_id")
    if isinstance(node_id, str):
        interfaces = state.network.node_metadata.get(node_id)
        node["interface_set"] = (
            None if interfaces is None else [interface.to_json() for interface in interfaces]
        )

    if request.method == "GET":
        if op == "":
            return Response(200, pretty_json(node))
        if op == "details":
            return _node_details(state, system_id)
        return bad_request()
    if request.method == "POST":
        if op not in _NODE_POST_OPERATIONS:
            return bad_request()
        state.add_node_operation(system_id, op, _request_values(request))
        if op == "release":
            state.owned_nodes.discard(system_id)
        return Response(200, pretty_json(node))
    if request.method == "DELETE":
        del state.nodes[system_id]
        return Response(200)
    return not_found()


def handle_nodes(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/nodes/' and the individual node paths below it."""
    op = request.op()
    if request.path == nodes_endpoint(state.version):
        return _top_level(state, request, op)
    match = node_url_re(state.version).match(request.path)
    if match is not None:
        return _node(state, request, match.group(1), op)
    return not_found()