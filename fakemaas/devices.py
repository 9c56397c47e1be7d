"""The devices endpoint of the fake MAAS server."""

from __future__ import annotations

import json
import uuid

from .state import Device, MAASState
from .urls import device_url_re, devices_endpoint
from .wire import Request, Response, bad_request, get_value, get_values, not_found


def _mac_entry(mac: str) -> str:
    return f'\n\t    {{\n\t\t"mac_address": "{mac}"\n\t    }}'


def render_device(device: Device) -> str:
    """Render a device as the JSON document the API returns for it."""
    macs = ",".join(_mac_entry(mac) for mac in device.mac_addresses)
    ips = ", ".join(json.dumps(ip, ensure_ascii=False) for ip in device.ip_addresses)
    version = device.api_version
    return (
        "{\n"
        f'\t"macaddress_set": [{macs}\n'
        "\t],\n"
        '\t"zone": {\n'
        f'\t    "resource_uri": "/MAAS/api/{version}/zones/default/",\n'
        '\t    "name": "default",\n'
        '\t    "description": ""\n'
        "\t},\n"
        f'\t"parent": "{device.parent}",\n'
        f'\t"ip_addresses": [{ips}],\n'
        f'\t"hostname": "{device.hostname}",\n'
        '\t"tag_names": [],\n'
        '\t"owner": "maas-admin",\n'
        f'\t"system_id": "{device.system_id}",\n'
        f'\t"resource_uri": "/MAAS/api/{version}/devices/{device.system_id}/"\n'
        "}"
    )


def _list_devices(state: MAASState, request: Request) -> Response:
    macs = request.query().get("mac_address")
    if macs is None:
        matched = list(state.devices.values())
    else:
        matched = [
            device
            for mac in macs
            for device in state.devices.values()
            if mac in device.mac_addresses
        ]
    return Response(200, "[" + ", ".join(render_device(d) for d in matched) + "]")


def _new_device(state: MAASState, request: Request) -> Response:
    values = request.post_form()
    macs = get_values(values, "mac_addresses")
    hostname = get_value(values, "hostname")
    parent = get_value(values, "parent")
    if hostname is None or macs is None or parent is None:
        return bad_request()
    system_id = f"node-{uuid.uuid4()}"
    device = Device(
        mac_addresses=macs,
        api_version=state.version,
        parent=parent,
        hostname=hostname,
        system_id=system_id,
    )
    rendered = render_device(device)
    state.devices[system_id] = device
    return Response(200, rendered)


def _device(state: MAASState, request: Request, system_id: str, op: str) -> Response:
    device = state.devices.get(system_id)
    if device is None:
        return not_found()
    if request.method == "GET":
        return Response(200, render_device(device)) if op == "" else bad_request()
    if request.method == "POST":
        if op != "claim_sticky_ip_address":
            return bad_request()
        address = get_value(request.post_form(), "requested_address")
        if address is None:
            return bad_request()
        device.ip_addresses.append(address)
        return Response(200, render_device(device))
    if request.method == "DELETE":
        del state.devices[system_id]
        return Response(204)
    return not_found()


def handle_devices(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/devices/' and the individual device paths below it."""
    op = request.op()
    if request.path == devices_endpoint(state.version):
        if request.method == "GET" and op == "list":
            return _list_devices(state, request)
        if request.method == "POST" and op == "new":
            return _new_device(state, request)
        return bad_request()
    match = device_url_re(state.version).match(request.path)
    if match is not None:
        return _device(state, request, match.group(1), op)
    return not_found()