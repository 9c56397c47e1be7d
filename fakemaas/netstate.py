"""In-memory subnets, spaces, static routes and node interface links."""

from __future__ import annotations

from typing import Iterator

from .addressing import (
    AddressRange,
    JSONSource,
    NodeNetworkInterface,
    Subnet,
    decode_posted_subnet,
    subnet_from_create_subnet,
)
from .ipaddr import ip_from_string
from .topology import Space, StaticRoute, decode_posted_space, decode_posted_static_route


class NetworkModel:
    """The network side of the fake server's state, keyed by numeric IDs."""

    def __init__(self, version: str):
        self.version = version
        self.clear()

    def clear(self) -> None:
        """Forget every subnet, space, static route and interface link."""
        self.subnets: dict[int, Subnet] = {}
        self.subnet_name_to_id: dict[str, int] = {}
        self.next_subnet = 1
        self.spaces: dict[int, Space] = {}
        self.space_name_to_id: dict[str, int] = {}
        self.next_space = 1
        self.static_routes: dict[int, StaticRoute] = {}
        self.next_static_route = 1
        self.node_metadata: dict[str, list[NodeNetworkInterface]] = {}

    @staticmethod
    def _in_order(items: dict, next_id: int) -> Iterator:
        return (items[ident] for ident in range(1, next_id) if ident in items)

    def new_subnet(self, subnet_json: JSONSource) -> Subnet:
        """Store a posted subnet under the next free ID."""
        subnet = subnet_from_create_subnet(decode_posted_subnet(subnet_json))
        subnet.id = self.next_subnet
        self.subnets[subnet.id] = subnet
        self.subnet_name_to_id[subnet.name] = subnet.id
        self.next_subnet += 1
        return subnet

    def update_subnet(self, subnet_json: JSONSource) -> Subnet:
        """Replace the subnet with the ID given in the posted document."""
        subnet = subnet_from_create_subnet(decode_posted_subnet(subnet_json))
        self.subnets[subnet.id] = subnet
        return subnet

    def ordered_subnets(self) -> list[Subnet]:
        """Return the subnets in order of ID."""
        return list(self._in_order(self.subnets, self.next_subnet))

    def add_fixed_address_range(self, subnet_id: int, address_range: AddressRange) -> None:
        """Reserve a fixed range of addresses in a subnet."""
        subnet = self.subnets[subnet_id]
        address_range.start_int = ip_from_string(address_range.start).to_int()
        address_range.end_int = ip_from_string(address_range.end).to_int()
        subnet.fixed_address_ranges.append(address_range)

    def reserve_address(self, subnet_name: str, ip_address: str) -> None:
        """Mark an address as assigned in the named subnet."""
        subnet = self.subnets[self.subnet_name_to_id[subnet_name]]
        try:
            ip = ip_from_string(ip_address)
        except ValueError:
            raise ValueError(f"{ip_address} is invalid") from None
        ip.purpose = ["assigned-ip"]
        subnet.in_use_ip_addresses.append(ip)

    def new_space(self, space_json: JSONSource) -> Space:
        """Store a posted space under the next free ID."""
        posted = decode_posted_space(space_json)
        space = Space(
            name=posted.name,
            id=self.next_space,
            resource_uri=f"/api/{self.version}/spaces/{self.next_space}/",
        )
        self.spaces[space.id] = space
        self.space_name_to_id[space.name] = space.id
        self.next_space += 1
        return space

    def spaces_with_subnets(self) -> list[Space]:
        """Return the spaces in order of ID, each filled with its subnets."""
        subnets = self.ordered_subnets()
        spaces = list(self._in_order(self.spaces, self.next_space))
        for space in spaces:
            space.subnets = [s for s in subnets if s.space == space.name]
        return spaces

    def new_static_route(self, static_route_json: JSONSource) -> StaticRoute:
        """Store a posted static route under the next free ID."""
        posted = decode_posted_static_route(static_route_json)
        route = StaticRoute(
            destination_cidr=posted.destination_cidr,
            source_cidr=posted.source_cidr,
            metric=posted.metric,
            gateway_ip=posted.gateway_ip,
            id=self.next_static_route,
            resource_uri=f"/api/{self.version}/static-routes/{self.next_static_route}/",
        )
        self.static_routes[route.id] = route
        self.next_static_route += 1
        return route

    def static_routes_with_subnets(self) -> list[StaticRoute]:
        """Return the static routes in order of ID, with their subnets filled in."""
        subnets = self.ordered_subnets()
        routes = list(self._in_order(self.static_routes, self.next_static_route))
        for route in routes:
            for subnet in subnets:
                if subnet.cidr == route.source_cidr:
                    route.source = subnet
                elif subnet.cidr == route.destination_cidr:
                    route.destination = subnet
        return routes

    def set_node_network_link(self, system_id: str, interface: NodeNetworkInterface) -> None:
        """Record a node's interface, replacing one of the same name."""
        interfaces = self.node_metadata.setdefault(system_id, [])
        for position, existing in enumerate(interfaces):
            if existing.name == interface.name:
                interfaces[position] = interface
                return
        interfaces.append(interface)

    def node_interfaces(self, system_id: str) -> list[NodeNetworkInterface]:
        """Return the interfaces recorded for a node."""
        return list(self.node_metadata.get(system_id, []))