"""Spaces and static routes as the fake MAAS API models them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .addressing import JSONSource, Subnet, _get_str, _get_uint, _read_json_object


@dataclass
class CreateSpace:
    """A space as posted to the API."""

    name: str = ""

    def to_json(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass
class Space:
    """A space and the subnets that belong to it."""

    name: str = ""
    subnets: list[Subnet] = field(default_factory=list)
    resource_uri: str = ""
    id: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subnets": [subnet.to_json() for subnet in self.subnets],
            "resource_uri": self.resource_uri,
            "id": self.id,
        }


@dataclass
class CreateStaticRoute:
    """A static route as posted to the API, naming its subnets by CIDR."""

    source_cidr: str = ""
    destination_cidr: str = ""
    gateway_ip: str = ""
    metric: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "source": self.source_cidr,
            "destination": self.destination_cidr,
            "gateway_ip": self.gateway_ip,
            "metric": self.metric,
        }


@dataclass
class StaticRoute:
    """A static route between two subnets."""

    destination: Subnet = field(default_factory=Subnet)
    source: Subnet = field(default_factory=Subnet)
    metric: int = 0
    gateway_ip: str = ""
    resource_uri: str = ""
    id: int = 0
    source_cidr: str = field(default="", repr=False)
    destination_cidr: str = field(default="", repr=False)

    def to_json(self) -> dict[str, Any]:
        return {
            "destination": self.destination.to_json(),
            "source": self.source.to_json(),
            "metric": self.metric,
            "gateway_ip": self.gateway_ip,
            "resource_uri": self.resource_uri,
            "id": self.id,
        }


def decode_posted_space(space_json: JSONSource) -> CreateSpace:
    """Decode a posted space from text, bytes or a stream."""
    obj = _read_json_object(space_json)
    return CreateSpace(name=_get_str(obj, "name"))


def decode_posted_static_route(static_route_json: JSONSource) -> CreateStaticRoute:
    """Decode a posted static route from text, bytes or a stream."""
    obj = _read_json_object(static_route_json)
    return CreateStaticRoute(
        source_cidr=_get_str(obj, "source"),
        destination_cidr=_get_str(obj, "destination"),
        gateway_ip=_get_str(obj, "gateway_ip"),
        metric=_get_uint(obj, "metric"),
    )