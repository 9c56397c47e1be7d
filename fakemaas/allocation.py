"""Acquiring and releasing nodes on the fake MAAS server."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .state import MAASState
from .wire import FORM_URLENCODED, Request, Response, json_response
from .ipaddr import pretty_json

Values = Mapping[str, list[str]]


def _request_values(request: Request) -> Optional[dict[str, list[str]]]:
    """Return the body values of a URL-encoded form request, else None."""
    if request.header("Content-Type") == FORM_URLENCODED:
        return request.post_form()
    return None


def _first(filters: Values, key: str) -> str:
    values = filters.get(key)
    return values[0] if values else ""


def _match_field(node: Mapping[str, Any], key: str, value: str) -> bool:
    field = node.get(key)
    return isinstance(field, str) and field == value


def _match_numeric_field(node: Mapping[str, Any], key: str, value: str) -> bool:
    field = node.get(key)
    if isinstance(field, bool) or not isinstance(field, (int, float)):
        return False
    try:
        constraint = float(value)
    except ValueError:
        return False
    return constraint <= field


def _match_architecture(node: Mapping[str, Any], key: str, value: str) -> bool:
    field = node.get(key)
    if not isinstance(field, str):
        return False
    return field.split("/")[0] == value


def find_free_node(state: MAASState, filters: Optional[Values]) -> Optional[dict[str, Any]]:
    """Return an unowned node matching the filters, tagging it with the agent name."""
    filters = filters or {}
    agent_name = _first(filters, "agent_name")
    node_name = _first(filters, "name")
    zone_name = _first(filters, "zone")
    tag_name = _first(filters, "tags")
    mem = _first(filters, "mem")
    arch = _first(filters, "arch")
    cpu_cores = _first(filters, "cpu-cores")

    for system_id, node in state.nodes.items():
        if system_id in state.owned_nodes:
            continue
        if node_name and not _match_field(node, "hostname", node_name):
            continue
        if zone_name and not _match_field(node, "zone", zone_name):
            continue
        if tag_name and not _match_field(node, "tag_names", tag_name):
            continue
        if mem and not _match_numeric_field(node, "memory", mem):
            continue
        if arch and not _match_architecture(node, "architecture", arch):
            continue
        if cpu_cores and not _match_numeric_field(node, "cpu_count", cpu_cores):
            continue
        if agent_name:
            node["agent_name"] = agent_name
        else:
            node.pop("agent_name", None)
        return node
    return None


def acquire_node(state: MAASState, request: Request) -> Response:
    """Allocate a free node matching the request, or answer 409 if there is none."""
    values = state.add_nodes_operation("acquire", _request_values(request))
    node = find_free_node(state, values)
    if node is None:
        return Response(409)
    system_id = node.get("system_id")
    if not isinstance(system_id, str):
        raise ValueError("the acquired node has no string 'system_id'")
    state.owned_nodes.add(system_id)
    body = pretty_json(node)
    state.add_node_operation(system_id, "acquire", values)
    return Response(200, body)


def release_nodes(state: MAASState, request: Request) -> Response:
    """Release the owned nodes among those named; unknown names fail the lot."""
    values = state.add_nodes_operation("release", _request_values(request))
    system_ids = (values or {}).get("nodes", [])
    unknown = [system_id for system_id in system_ids if system_id not in state.nodes]
    if unknown:
        return Response(400, f"Unknown node(s): {', '.join(unknown)}.")
    released = []
    for system_id in system_ids:
        if system_id not in state.owned_nodes:
            continue
        state.owned_nodes.discard(system_id)
        released.append(state.nodes[system_id])
    return json_response(released)