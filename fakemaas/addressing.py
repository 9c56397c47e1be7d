"""Subnet records and the address-range arithmetic behind the subnet endpoints."""

from __future__ import annotations

import ipaddress
import json
import math
import struct
from dataclasses import dataclass, field
from typing import IO, Any, Iterator, Optional, Union

from .ipaddr import IP, ip_from_int, ip_from_string

JSONSource = Union[str, bytes, bytearray, IO[str], IO[bytes]]

_UINT64 = 0xFFFFFFFFFFFFFFFF


def _read_json_object(source: JSONSource) -> dict[str, Any]:
    """Decode one JSON object from text, bytes or a readable stream."""
    text = source.read() if hasattr(source, "read") else source
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8")
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError("expected a JSON object")
    return value


def _get_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _get_optional_uint(obj: dict[str, Any], key: str) -> Optional[int]:
    value = obj.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field {key!r} must be a non-negative integer")
    return value


def _get_uint(obj: dict[str, Any], key: str) -> int:
    value = _get_optional_uint(obj, key)
    return 0 if value is None else value


def _get_str_list(obj: dict[str, Any], key: str) -> Optional[list[str]]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return list(value)


def _f32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


@dataclass
class AddressRange:
    """An inclusive run of addresses, optionally tagged with purposes."""

    start: str = ""
    end: str = ""
    purpose: list[str] = field(default_factory=list)
    num_addresses: int = 0
    start_int: int = field(default=0, repr=False)
    end_int: int = field(default=0, repr=False)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"start": self.start, "end": self.end}
        if self.purpose:
            data["purpose"] = list(self.purpose)
        data["num_addresses"] = self.num_addresses
        return data


@dataclass
class AddressRangeList:
    """Accumulates address ranges built from pairs of IPs."""

    ranges: list[AddressRange] = field(default_factory=list)

    def append(self, start_ip: IP, end_ip: IP) -> None:
        start, end = start_ip.to_int(), end_ip.to_int()
        self.ranges.append(
            AddressRange(
                start=str(start_ip),
                end=str(end_ip),
                purpose=list(start_ip.purpose),
                num_addresses=1 + end - start,
                start_int=start,
                end_int=end,
            )
        )

    def __iter__(self) -> Iterator[AddressRange]:
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)


@dataclass
class CreateSubnet:
    """A subnet as posted to the API."""

    dns_servers: list[str] = field(default_factory=list)
    name: str = ""
    space: str = ""
    gateway_ip: str = ""
    cidr: str = ""
    vlan: Optional[int] = None
    fabric: Optional[int] = None
    vid: Optional[int] = None
    id: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "dns_servers": list(self.dns_servers),
            "name": self.name,
            "space": self.space,
            "gateway_ip": self.gateway_ip,
            "cidr": self.cidr,
            "vlan": self.vlan,
            "fabric": self.fabric,
            "vid": self.vid,
            "id": self.id,
        }


@dataclass
class Subnet:
    """A subnet as the API reports it, plus the addresses in use within it."""

    dns_servers: Optional[list[str]] = None
    name: str = ""
    space: str = ""
    vlan: dict[str, Any] = field(default_factory=dict)
    gateway_ip: str = ""
    cidr: str = ""
    resource_uri: str = ""
    id: int = 0
    in_use_ip_addresses: list[IP] = field(default_factory=list)
    fixed_address_ranges: list[AddressRange] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "dns_servers": None if self.dns_servers is None else list(self.dns_servers),
            "name": self.name,
            "space": self.space,
            "vlan": dict(self.vlan),
            "gateway_ip": self.gateway_ip,
            "cidr": self.cidr,
            "resource_uri": self.resource_uri,
            "id": self.id,
        }


@dataclass
class SubnetStats:
    """Usage statistics of a subnet."""

    num_available: int = 0
    largest_available: int = 0
    num_unavailable: int = 0
    total_addresses: int = 0
    usage: float = 0.0
    usage_string: str = ""
    ranges: Optional[list[AddressRange]] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "num_available": self.num_available,
            "largest_available": self.largest_available,
            "num_unavailable": self.num_unavailable,
            "total_addresses": self.total_addresses,
            "usage": self.usage,
            "usage_string": self.usage_string,
            "ranges": None if self.ranges is None else [r.to_json() for r in self.ranges],
        }


@dataclass
class NetworkLink:
    """A link between a node's interface and a subnet."""

    id: int = 0
    mode: str = ""
    subnet: Optional[Subnet] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mode": self.mode,
            "subnet": None if self.subnet is None else self.subnet.to_json(),
        }


@dataclass
class NodeNetworkInterface:
    """A network interface attached to a node."""

    name: str = ""
    links: list[NetworkLink] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"name": self.name, "links": [link.to_json() for link in self.links]}


def decode_posted_subnet(subnet_json: JSONSource) -> CreateSubnet:
    """Decode a posted subnet; a missing DNS server list becomes empty."""
    obj = _read_json_object(subnet_json)
    return CreateSubnet(
        dns_servers=_get_str_list(obj, "dns_servers") or [],
        name=_get_str(obj, "name"),
        space=_get_str(obj, "space"),
        gateway_ip=_get_str(obj, "gateway_ip"),
        cidr=_get_str(obj, "cidr"),
        vlan=_get_optional_uint(obj, "vlan"),
        fabric=_get_optional_uint(obj, "fabric"),
        vid=_get_optional_uint(obj, "vid"),
        id=_get_uint(obj, "id"),
    )


def subnet_from_create_subnet(posted: CreateSubnet) -> Subnet:
    """Build the stored subnet from a posted one."""
    return Subnet(
        dns_servers=list(posted.dns_servers),
        name=posted.name,
        space=posted.space,
        gateway_ip=posted.gateway_ip,
        cidr=posted.cidr,
        id=posted.id,
    )


def _fixed_range_addresses(subnet: Subnet) -> Iterator[IP]:
    for address_range in subnet.fixed_address_ranges:
        for value in range(address_range.start_int, address_range.end_int + 1):
            ip = ip_from_int(value)
            ip.purpose = list(address_range.purpose)
            yield ip


def _sorted_addresses(subnet: Subnet) -> list[IP]:
    addresses = list(subnet.in_use_ip_addresses)
    addresses.extend(_fixed_range_addresses(subnet))
    return sorted(addresses, key=IP.to_int)


def unreserved_ip_ranges(subnet: Subnet) -> list[AddressRange]:
    """Return the runs of usable addresses not in use or in a fixed range."""
    addresses = _sorted_addresses(subnet)
    network = ipaddress.ip_network(subnet.cidr, strict=False)
    host_bits = network.max_prefixlen - network.prefixlen

    # The lowest usable address is one above the network address.
    start = IP(network.network_address)
    start.set_int(start.to_int() + 1)

    host_mask = _UINT64 if host_bits >= 64 else (1 << host_bits) - 1
    # One below the broadcast address.
    last_usable = ip_from_int(((start.to_int() | host_mask) - 1) & _UINT64)

    ranges = AddressRangeList()
    for ip in addresses:
        end = ip.to_int()
        if end == start.to_int():
            if end != last_usable.to_int():
                start.set_int(end + 1)
            continue
        if end == last_usable.to_int():
            continue
        ranges.append(start, ip_from_int(end - 1))
        start.set_int(end + 1)

    if start.to_int() != last_usable.to_int():
        ranges.append(start, last_usable)
    return ranges.ranges


def reserved_ip_ranges(subnet: Subnet) -> list[AddressRange]:
    """Return contiguous runs of reserved addresses that share a purpose."""
    addresses = _sorted_addresses(subnet)
    if not addresses:
        return []
    ranges = AddressRangeList()
    start = last = addresses[0]
    for ip in addresses:
        mismatch = len(ip.purpose) > len(start.purpose) or any(
            mine != theirs for mine, theirs in zip(start.purpose, ip.purpose)
        )
        value, last_value = ip.to_int(), last.to_int()
        if (value != last_value and value != last_value + 1) or mismatch:
            ranges.append(start, last)
            start = ip
        last = ip

    if not ranges.ranges or ranges.ranges[-1].end_int != last.to_int():
        ranges.append(start, last)
    return ranges.ranges


def subnet_statistics(subnet: Subnet, include_ranges: bool) -> SubnetStats:
    """Compute usage statistics; the unreserved ranges are included on request."""
    network = ipaddress.ip_network(subnet.cidr, strict=False)
    host_bits = network.max_prefixlen - network.prefixlen
    total = (1 << host_bits) - 2
    unavailable = len(subnet.in_use_ip_addresses)
    if total:
        usage = _f32(unavailable / total)
    else:
        usage = math.nan if unavailable == 0 else math.inf
    unreserved = unreserved_ip_ranges(subnet)
    largest = max((r.num_addresses for r in unreserved), default=0)
    return SubnetStats(
        num_available=total - unavailable,
        largest_available=max(largest, 0),
        num_unavailable=unavailable,
        total_addresses=total,
        usage=usage,
        usage_string=f"{_f32(usage * 100):.1f}%",
        ranges=unreserved if include_ranges else None,
    )


__all__ = [
    "AddressRange",
    "AddressRangeList",
    "CreateSubnet",
    "NetworkLink",
    "NodeNetworkInterface",
    "Subnet",
    "SubnetStats",
    "decode_posted_subnet",
    "ip_from_string",
    "reserved_ip_ranges",
    "subnet_from_create_subnet",
    "subnet_statistics",
    "unreserved_ip_ranges",
]