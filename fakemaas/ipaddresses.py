"""The networks and IP address endpoints of the fake MAAS server."""

from __future__ import annotations

import ipaddress
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .state import RESOURCE_URI, MAASState
from .urls import ipaddresses_endpoint, network_url_re
from .wire import Request, Response, bad_request, json_response, not_found

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_PREFIX = re.compile(r"[0-9]+\Z")


def _parse_ip(text: str) -> Optional[Address]:
    """Parse a plain IPv4 or IPv6 address; IPv4-mapped addresses become IPv4."""
    if "%" in text:
        return None
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def _parse_cidr(text: str) -> Optional[Network]:
    """Parse 'address/prefix' notation; host bits may be set."""
    address, sep, prefix = text.partition("/")
    if not sep or not _PREFIX.match(prefix) or _parse_ip(address) is None:
        return None
    try:
        return ipaddress.ip_network(f"{address}/{int(prefix)}", strict=False)
    except ValueError:
        return None


def _ipnet_string(ip_text: str, netmask_text: str) -> str:
    """Render an address and dotted netmask the way the API compares networks."""
    mask = bytes(int(part) & 0xFF for part in netmask_text.split("."))
    address = _parse_ip(ip_text)
    if address is None:
        return "<nil>"
    raw = address.packed
    if len(mask) == 4:
        if len(raw) != 4:
            return "<nil>"
    elif len(mask) == 16:
        if len(raw) == 4:
            mask = mask[12:]
    else:
        return "<nil>"
    bits = "".join(f"{byte:08b}" for byte in mask)
    ones = len(bits) - len(bits.lstrip("1"))
    shown = str(ipaddress.ip_address(raw))
    if "1" in bits[ones:]:
        return f"{shown}/{mask.hex()}"
    return f"{shown}/{ones}"


def _field(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} is not a string")
    return value


def _ip_address_object(state: MAASState, ip: str) -> dict[str, Any]:
    return {
        "alloc_type": 4,
        "ip": ip,
        RESOURCE_URI: ipaddresses_endpoint(state.version),
        "created": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }


def _list_connected_macs(state: MAASState, request: Request) -> Response:
    match = network_url_re(state.version).match(request.path)
    if match is None:
        return not_found()
    macs = list(state.mac_addresses_per_network.get(match.group(1), {}).values())
    return json_response(macs)


def handle_networks(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/networks/': a node's networks or a network's MACs."""
    if request.method != "GET":
        raise ValueError("only networks GET operation implemented")
    query = request.query()
    op = query.get("op", [""])[0]
    system_id = query.get("node", [""])[0]
    if op == "list_connected_macs":
        return _list_connected_macs(state, request)
    if op != "":
        raise ValueError("only list_connected_macs and default operations implemented")
    if system_id == "":
        raise ValueError("network missing associated node system id")
    networks = [state.networks.get(name) for name in state.networks_per_node.get(system_id, [])]
    return json_response(networks, JSON_CONTENT_TYPE)


def _list_ip_addresses(state: MAASState) -> Response:
    results = [
        _ip_address_object(state, ip)
        for ips in state.ip_addresses_per_network.values()
        for ip in ips
    ]
    return json_response(results, JSON_CONTENT_TYPE)


def _find_network_name(state: MAASState, network: str) -> Optional[str]:
    for name, attrs in state.networks.items():
        if _ipnet_string(_field(attrs, "ip"), _field(attrs, "netmask")) == network:
            return name
    return None


def _reserve(state: MAASState, network: str, requested: str) -> Response:
    parsed = _parse_cidr(network)
    if parsed is None:
        return bad_request(f"Invalid network parameter {network}")
    if requested != "":
        requested_ip = _parse_ip(requested)
        if requested_ip is None:
            return bad_request(f"failed to detect a valid IP address from u'{requested}'")
        if requested_ip.version != parsed.version or requested_ip not in parsed:
            return bad_request(f"{requested} is not inside the range {parsed}")
    name = _find_network_name(state, network)
    if name is None:
        return bad_request(f"No network found matching {network}")
    ips = state.ip_addresses_per_network.setdefault(name, [])
    if requested != "":
        # No duplicate check: whatever was asked for is handed out.
        reserved = requested
    else:
        raw = bytearray(parsed.network_address.packed)
        raw[-1] = (raw[-1] + len(ips) + 1) & 0xFF
        reserved = str(ipaddress.ip_address(bytes(raw)))
    ips.append(reserved)
    return json_response(_ip_address_object(state, reserved), JSON_CONTENT_TYPE)


def _release(state: MAASState, ip: str) -> Response:
    if _parse_ip(ip) is None:
        return not_found()
    if state.remove_ip_address(ip):
        return Response(200)
    return not_found()


def handle_ipaddresses(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/ipaddresses/': list, reserve and release addresses."""
    values = request.form()

    def first(key: str) -> str:
        return (values.get(key) or [""])[0]

    op = first("op")
    if request.method == "GET":
        if op != "":
            raise ValueError("expected empty op for GET, got " + op)
        return _list_ip_addresses(state)
    if request.method == "POST":
        if op == "reserve":
            return _reserve(state, first("network"), first("requested_address"))
        if op == "release":
            return _release(state, first("ip"))
        raise ValueError("expected op=release|reserve for POST, got " + op)
    return not_found()