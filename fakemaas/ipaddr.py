"""IP address value used by the fake server's address bookkeeping."""

from __future__ import annotations

import ipaddress
import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_UINT32 = 0xFFFFFFFF
_UINT64 = 0xFFFFFFFFFFFFFFFF
_V4_MAPPED_PREFIX = 0xFFFF << 32
_IPV6_GUESS = ipaddress.IPv6Address("2001:4860:0:2001::68")
_DECIMAL = re.compile(r"[+-]?[0-9]+\Z")
_HTML_ESCAPES = {
    ord("<"): "\\u003c",
    ord(">"): "\\u003e",
    ord("&"): "\\u0026",
    0x2028: "\\u2028",
    0x2029: "\\u2029",
}


@dataclass
class IP:
    """An IP address together with the purposes it is reserved for."""

    address: Optional[Address] = None
    purpose: list[str] = field(default_factory=list)

    def _v4(self) -> Optional[ipaddress.IPv4Address]:
        if isinstance(self.address, ipaddress.IPv4Address):
            return self.address
        if isinstance(self.address, ipaddress.IPv6Address):
            return self.address.ipv4_mapped
        return None

    def __str__(self) -> str:
        if self.address is None:
            return "<nil>"
        v4 = self._v4()
        return str(v4 if v4 is not None else self.address)

    def to_int(self) -> int:
        """Return the address as an integer: all 32 bits for IPv4, the top 64 for IPv6."""
        if self.address is None:
            return 0
        v4 = self._v4()
        if v4 is not None:
            return int(v4)
        return int(self.address) >> 64

    def set_int(self, value: int) -> None:
        """Overwrite the address from an integer, the inverse of to_int."""
        value &= _UINT64
        if self.address is None:
            # No family yet: small values are taken to be IPv4.
            self.address = ipaddress.IPv4Address(0) if value <= _UINT32 else _IPV6_GUESS
        if self._v4() is not None:
            new = value & _UINT32
            if isinstance(self.address, ipaddress.IPv4Address):
                self.address = ipaddress.IPv4Address(new)
            else:
                self.address = ipaddress.IPv6Address(_V4_MAPPED_PREFIX | new)
        else:
            low = int(self.address) & _UINT64
            self.address = ipaddress.IPv6Address((value << 64) | low)


def ip_from_string(value: str) -> IP:
    """Parse a textual IPv4 or IPv6 address; raise ValueError if it is not one."""
    return IP(ipaddress.ip_address(value))


def ip_from_int(value: int) -> IP:
    """Build an IP from its integer form, guessing the family from the size."""
    ip = IP()
    ip.set_int(value)
    return ip


def name_or_id_to_id(
    value: str,
    name_to_id: Optional[Mapping[str, int]],
    min_id: int,
    max_id: int,
) -> int:
    """Resolve a name or a decimal ID to an ID within [min_id, max_id]."""
    if name_to_id and value in name_to_id:
        ident = name_to_id[value]
    else:
        if not _DECIMAL.match(value):
            raise ValueError(f"invalid ID {value!r}")
        ident = int(value)
    if ident < min_id or ident > max_id:
        raise ValueError("ID out of range")
    return ident


def _encode(obj: Any) -> Any:
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return to_json()
    raise TypeError(f"{type(obj).__name__} is not JSON serialisable")


def pretty_json(thing: Any) -> str:
    """Serialise to JSON indented by two spaces, escaping HTML-sensitive characters."""
    text = json.dumps(thing, indent=2, ensure_ascii=False, default=_encode)
    return text.translate(_HTML_ESCAPES)