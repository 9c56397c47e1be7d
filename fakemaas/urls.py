"""URL paths and path patterns of the fake MAAS API."""

from __future__ import annotations

import re
from urllib.parse import quote, quote_plus

_PATH_SAFE = "$&+,/:;=@"


def _pattern(version: str, tail: str) -> re.Pattern[str]:
    return re.compile(f"^/api/{re.escape(version)}/{tail}\\Z")


def nodes_endpoint(version: str) -> str:
    return f"/api/{version}/nodes/"


def node_url(version: str, system_id: str) -> str:
    return f"/api/{version}/nodes/{system_id}/"


def node_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "nodes/([^/]*)/")


def devices_endpoint(version: str) -> str:
    return f"/api/{version}/devices/"


def device_url(version: str, system_id: str) -> str:
    return f"/api/{version}/devices/{system_id}/"


def device_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "devices/([^/]*)/")


def files_endpoint(version: str) -> str:
    return f"/api/{version}/files/"


def file_url(version: str, filename: str) -> str:
    """Return the file's path, percent-escaped so the name is kept whole."""
    return quote(f"/api/{version}/files/{filename}/", safe=_PATH_SAFE)


def file_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "files/(.*)/")


def networks_endpoint(version: str) -> str:
    return f"/api/{version}/networks/"


def network_url(version: str, name: str) -> str:
    return f"/api/{version}/networks/{name}/"


def network_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "networks/(.*)/")


def ipaddresses_endpoint(version: str) -> str:
    return f"/api/{version}/ipaddresses/"


def mac_address_url(version: str, system_id: str, mac_address: str) -> str:
    return f"/api/{version}/nodes/{system_id}/macs/{quote_plus(mac_address, safe='')}/"


def version_url(version: str) -> str:
    return f"/api/{version}/version/"


def nodegroups_endpoint(version: str) -> str:
    return f"/api/{version}/nodegroups/"


def nodegroup_url(version: str, uuid: str) -> str:
    return f"/api/{version}/nodegroups/{uuid}/"


def nodegroup_interfaces_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "nodegroups/([^/]*)/interfaces/")


def boot_images_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "nodegroups/([^/]*)/boot-images/")


def zones_endpoint(version: str) -> str:
    return f"/api/{version}/zones/"


def tags_endpoint(version: str) -> str:
    return f"/api/{version}/tags/"


def tag_url(version: str, tag_name: str) -> str:
    return f"/api/{version}/tags/{tag_name}/"


def tag_url_re(version: str) -> re.Pattern[str]:
    return _pattern(version, "tags/([^/]*)/")