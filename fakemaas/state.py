"""The data held and recorded by the fake MAAS server."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import quote_plus

from .netstate import NetworkModel
from .urls import file_url, mac_address_url, network_url, node_url, tag_url

NODE_STATUS_DEPLOYED = "6"
NODE_STATUS_FAILED_DEPLOYMENT = "11"

DEFAULT_VERSION_JSON = (
    '{"capabilities": ["networks-management","static-ipaddresses",'
    '"devices-management","network-deployment-ubuntu"]}'
)

NODEGROUP_INTERFACE_MEMBERS = (
    "ip_range_high",
    "ip_range_low",
    "broadcast_ip",
    "static_ip_range_low",
    "static_ip_range_high",
    "name",
    "ip",
    "subnet_mask",
    "management",
    "interface",
)

RESOURCE_URI = "resource_uri"


def _load_object(json_text: str) -> dict[str, Any]:
    value = json.loads(json_text)
    if not isinstance(value, dict):
        raise ValueError("The given json string is not a map.")
    return value


@dataclass
class Device:
    """A device registered with the fake server."""

    ip_addresses: list[str] = field(default_factory=list)
    system_id: str = ""
    mac_addresses: list[str] = field(default_factory=list)
    parent: str = ""
    hostname: str = ""
    api_version: str = ""


class MAASState:
    """Everything the fake server stores: nodes, files, networks, tags and more."""

    def __init__(self, version: str):
        self.version = version
        self.network = NetworkModel(version)
        self.clear()

    def clear(self) -> None:
        """Forget all stored data and every recorded operation."""
        self.nodes: dict[str, dict[str, Any]] = {}
        self.owned_nodes: set[str] = set()
        self.nodes_operations: list[str] = []
        self.node_operations: dict[str, list[str]] = {}
        self.nodes_operation_request_values: list[Optional[Mapping[str, list[str]]]] = []
        self.node_operation_request_values: dict[
            str, list[Optional[Mapping[str, list[str]]]]
        ] = {}
        self.files: dict[str, dict[str, Any]] = {}
        self.networks: dict[str, dict[str, Any]] = {}
        self.networks_per_node: dict[str, list[str]] = {}
        self.ip_addresses_per_network: dict[str, list[str]] = {}
        self.tags_per_node: dict[str, list[str]] = {}
        self.mac_addresses_per_network: dict[str, dict[str, dict[str, Any]]] = {}
        self.node_details: dict[str, str] = {}
        self.boot_images: dict[str, list[dict[str, Any]]] = {}
        self.nodegroups_interfaces: dict[str, list[dict[str, Any]]] = {}
        self.zones: dict[str, dict[str, Any]] = {}
        self.tags: dict[str, dict[str, Any]] = {}
        self.version_json = DEFAULT_VERSION_JSON
        self.devices: dict[str, Device] = {}
        self.network.clear()

    def set_version_json(self, text: str) -> None:
        """Set the capabilities document served by the version endpoint."""
        self.version_json = text

    def add_nodes_operation(self, operation: str, values):
        """Record an operation performed at the nodes level."""
        self.nodes_operations.append(operation)
        self.nodes_operation_request_values.append(values)
        return values

    def add_node_operation(self, system_id: str, operation: str, values):
        """Record an operation performed on one node."""
        if (system_id in self.node_operations) != (
            system_id in self.node_operation_request_values
        ):
            raise RuntimeError(
                "inconsistent state: nodeOperations and nodeOperationRequestValues "
                "don't have the same keys."
            )
        self.node_operations.setdefault(system_id, []).append(operation)
        self.node_operation_request_values.setdefault(system_id, []).append(values)
        return values

    def new_node(self, json_text: str) -> dict[str, Any]:
        """Create a node from a JSON map holding a string 'system_id'."""
        attrs = _load_object(json_text)
        if "system_id" not in attrs:
            raise ValueError("The given map json string does not contain a 'system_id' value.")
        system_id = attrs["system_id"]
        if not isinstance(system_id, str):
            raise ValueError("The 'system_id' value must be a string.")
        attrs[RESOURCE_URI] = node_url(self.version, system_id)
        attrs.setdefault("status", NODE_STATUS_DEPLOYED)
        self.nodes[system_id] = attrs
        return attrs

    def change_node(self, system_id: str, key: str, value: Any) -> None:
        """Set one field of a node."""
        node = self.nodes.get(system_id)
        if node is None:
            raise LookupError("No node with such 'system_id'.")
        node[key] = value

    def new_file(self, filename: str, content: bytes) -> dict[str, Any]:
        """Store a file; its content is kept base64-encoded."""
        attrs = {
            RESOURCE_URI: file_url(self.version, filename),
            "content": base64.b64encode(content).decode("ascii"),
            "filename": filename,
            "anon_resource_uri": "/maas/1.0/files/?op=get_by_key&key="
            + quote_plus(filename, safe="")
            + "_key",
        }
        self.files[filename] = attrs
        return attrs

    def new_ip_address(self, ip_address: str, network_or_subnet: str) -> None:
        """Reserve an address in the named network or, failing that, subnet."""
        if network_or_subnet in self.networks:
            self.ip_addresses_per_network.setdefault(network_or_subnet, []).append(ip_address)
        elif network_or_subnet in self.network.subnet_name_to_id:
            self.network.reserve_address(network_or_subnet, ip_address)
        else:
            raise LookupError("No such network or subnet: " + network_or_subnet)

    def remove_ip_address(self, ip_address: str) -> bool:
        """Remove a reserved address from a network or a device; report success."""
        for ips in self.ip_addresses_per_network.values():
            if ip_address in ips:
                ips.remove(ip_address)
                return True
        for device in self.devices.values():
            if ip_address in device.ip_addresses:
                device.ip_addresses.remove(ip_address)
                return True
        return False

    def new_network(self, json_text: str) -> dict[str, Any]:
        """Create a network from a JSON map with 'name', 'ip' and 'netmask'."""
        attrs = _load_object(json_text)
        if not all(key in attrs for key in ("name", "ip", "netmask")):
            raise ValueError(
                "The given map json string does not contain a 'name', 'ip', or 'netmask' value."
            )
        name = attrs["name"]
        attrs[RESOURCE_URI] = network_url(self.version, name)
        self.networks[name] = attrs
        return attrs

    def new_nodegroup_interface(self, uuid: str, json_text: str) -> dict[str, Any]:
        """Add an interface to an existing nodegroup."""
        if uuid not in self.boot_images:
            raise LookupError("no nodegroup with the given UUID")
        attrs = _load_object(json_text)
        for member in NODEGROUP_INTERFACE_MEMBERS:
            if member not in attrs:
                raise ValueError(
                    f"The given map json string does not contain a required {member!r}"
                )
        self.nodegroups_interfaces.setdefault(uuid, []).append(attrs)
        return attrs

    def _require_node_and_network(self, system_id: str, name: str) -> dict[str, Any]:
        node = self.nodes.get(system_id)
        if node is None:
            raise LookupError("no node with the given system id")
        if name not in self.networks:
            raise LookupError("no network with the given name")
        return node

    def connect_node_to_network(self, system_id: str, name: str) -> None:
        """Attach a node to a network."""
        self._require_node_and_network(system_id, name)
        self.networks_per_node.setdefault(system_id, []).append(name)

    def connect_node_to_network_with_mac_address(
        self, system_id: str, network_name: str, mac_address: str
    ) -> None:
        """Attach a node to a network through the given MAC address."""
        node = self._require_node_and_network(system_id, network_name)
        self.networks_per_node.setdefault(system_id, []).append(network_name)
        attrs = {
            RESOURCE_URI: mac_address_url(self.version, system_id, mac_address),
            "mac_address": mac_address,
        }
        existing = node.get("macaddress_set", [])
        if not isinstance(existing, list):
            raise ValueError("the node's 'macaddress_set' is not a list")
        node["macaddress_set"] = [*existing, dict(attrs)]
        self.mac_addresses_per_network.setdefault(network_name, {})[system_id] = dict(attrs)

    def add_boot_image(self, nodegroup_uuid: str, json_text: str) -> None:
        """Add a boot image, creating the nodegroup if needed."""
        attrs = _load_object(json_text)
        if "architecture" not in attrs:
            raise ValueError("The boot-image json string does not contain an 'architecture' value.")
        if "release" not in attrs:
            raise ValueError("The boot-image json string does not contain a 'release' value.")
        self.boot_images.setdefault(nodegroup_uuid, []).append(attrs)

    def add_zone(self, name: str, description: str) -> None:
        """Add a physical zone."""
        self.zones[name] = {"name": name, "description": description}

    def add_tag(self, name: str, comment: str) -> None:
        """Add a tag."""
        self.tags[name] = {
            "name": name,
            "comment": comment,
            RESOURCE_URI: tag_url(self.version, name),
        }

    def add_device(self, device: Device) -> None:
        """Register a device under its system ID."""
        self.devices[device.system_id] = device

    def add_node_details(self, system_id: str, xml_text: str) -> None:
        """Store a node's hardware details, as XML text."""
        if system_id not in self.nodes:
            raise LookupError("no node with the given system id")
        self.node_details[system_id] = xml_text