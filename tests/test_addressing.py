import io
import json
import random

import pytest

from fakemaas.addressing import (
    AddressRange,
    AddressRangeList,
    CreateSubnet,
    NetworkLink,
    NodeNetworkInterface,
    Subnet,
    decode_posted_subnet,
    reserved_ip_ranges,
    subnet_from_create_subnet,
    subnet_statistics,
    unreserved_ip_ranges,
)
from fakemaas.ipaddr import ip_from_string


def default_subnet(**overrides):
    data = {
        "dns_servers": ["192.168.1.2"],
        "name": "maas-eth0",
        "space": "space-0",
        "gateway_ip": "192.168.1.1",
        "cidr": "192.168.1.0/24",
        "id": 1,
    }
    data.update(overrides)
    return subnet_from_create_subnet(decode_posted_subnet(json.dumps(data)))


def assigned(address):
    ip = ip_from_string(address)
    ip.purpose = ["assigned-ip"]
    return ip


def fixed_range(start, end, purpose):
    return AddressRange(
        start=start,
        end=end,
        purpose=purpose,
        start_int=ip_from_string(start).to_int(),
        end_int=ip_from_string(end).to_int(),
    )


def last_octet(text):
    return int(text.rsplit(".", 1)[1])


def test_decode_posted_subnet_fields():
    posted = decode_posted_subnet(
        '{"dns_servers": ["192.168.1.2"], "name": "maas-eth0", "space": "space-0",'
        ' "gateway_ip": "192.168.1.1", "cidr": "192.168.1.0/24", "id": 1, "vid": 3}'
    )
    assert posted.dns_servers == ["192.168.1.2"]
    assert posted.name == "maas-eth0"
    assert posted.cidr == "192.168.1.0/24"
    assert posted.id == 1
    assert posted.vid == 3
    assert posted.vlan is None


def test_decode_posted_subnet_null_dns_servers_becomes_empty():
    posted = decode_posted_subnet(io.BytesIO(b'{"name": "x", "dns_servers": null}'))
    assert posted.dns_servers == []


def test_decode_posted_subnet_rejects_bad_json():
    with pytest.raises(ValueError):
        decode_posted_subnet("invalid:json")


def test_decode_posted_subnet_rejects_wrong_types():
    with pytest.raises(ValueError):
        decode_posted_subnet('{"name": 5}')
    with pytest.raises(ValueError):
        decode_posted_subnet('{"id": -1}')


def test_create_subnet_round_trip():
    original = CreateSubnet(dns_servers=["10.0.0.2"], name="n", space="s", cidr="10.0.0.0/8", id=7)
    assert decode_posted_subnet(json.dumps(original.to_json())) == original


def test_subnet_from_create_subnet_copies_fields():
    subnet = default_subnet()
    assert subnet.name == "maas-eth0"
    assert subnet.space == "space-0"
    assert subnet.gateway_ip == "192.168.1.1"
    assert subnet.dns_servers == ["192.168.1.2"]
    assert subnet.id == 1
    assert subnet.to_json()["vlan"] == {}


def test_subnet_json_hides_bookkeeping():
    subnet = default_subnet()
    subnet.in_use_ip_addresses.append(assigned("192.168.1.10"))
    data = subnet.to_json()
    assert set(data) == {
        "dns_servers", "name", "space", "vlan", "gateway_ip", "cidr", "resource_uri", "id",
    }


def test_address_range_json_omits_empty_purpose():
    assert AddressRange(start="a", end="b", num_addresses=2).to_json() == {
        "start": "a",
        "end": "b",
        "num_addresses": 2,
    }
    assert AddressRange(start="a", end="b", purpose=["dynamic"], num_addresses=2).to_json()[
        "purpose"
    ] == ["dynamic"]


def test_address_range_list_append():
    ranges = AddressRangeList()
    ranges.append(assigned("192.168.1.100"), ip_from_string("192.168.1.200"))
    assert len(ranges) == 1
    entry = ranges.ranges[0]
    assert entry.start == "192.168.1.100"
    assert entry.end == "192.168.1.200"
    assert entry.num_addresses == 101
    assert entry.purpose == ["assigned-ip"]


def test_unreserved_empty_subnet():
    ranges = unreserved_ip_ranges(default_subnet())
    assert [(r.start, r.end, r.num_addresses) for r in ranges] == [
        ("192.168.1.1", "192.168.1.254", 254)
    ]


def test_unreserved_with_gaps():
    subnet = default_subnet()
    subnet.in_use_ip_addresses += [assigned("192.168.1.20"), assigned("192.168.1.10")]
    ranges = unreserved_ip_ranges(subnet)
    assert [(r.start, r.end) for r in ranges] == [
        ("192.168.1.1", "192.168.1.9"),
        ("192.168.1.11", "192.168.1.19"),
        ("192.168.1.21", "192.168.1.254"),
    ]


def test_reserved_empty_subnet():
    assert reserved_ip_ranges(default_subnet()) == []


def test_reserved_with_fixed_range():
    subnet = default_subnet()
    subnet.in_use_ip_addresses.append(assigned("192.168.1.10"))
    subnet.fixed_address_ranges.append(fixed_range("192.168.1.100", "192.168.1.200", ["dynamic"]))
    ranges = reserved_ip_ranges(subnet)
    assert ranges[0].start == "192.168.1.10"
    assert ranges[0].end == "192.168.1.10"
    assert ranges[0].num_addresses == 1
    assert ranges[0].purpose == ["assigned-ip"]
    assert ranges[1].start == "192.168.1.100"
    assert ranges[1].end == "192.168.1.200"
    assert ranges[1].num_addresses == 101
    assert ranges[1].purpose == ["dynamic"]


def test_reserved_merges_contiguous():
    subnet = default_subnet()
    for octet in (7, 5, 9, 6):
        subnet.in_use_ip_addresses.append(assigned(f"192.168.1.{octet}"))
    ranges = reserved_ip_ranges(subnet)
    assert [(r.start, r.end, r.num_addresses) for r in ranges] == [
        ("192.168.1.5", "192.168.1.7", 3),
        ("192.168.1.9", "192.168.1.9", 1),
    ]


def random_reservations():
    octets = random.Random(6).sample(range(1, 253), 200)
    subnet = default_subnet()
    subnet.in_use_ip_addresses += [assigned(f"192.168.1.{o}") for o in octets]
    return subnet, set(octets)


def test_reserved_ranges_cover_exactly_reservations():
    subnet, reserved = random_reservations()
    remaining = set(reserved)
    for r in reserved_ip_ranges(subnet):
        start, end = last_octet(r.start), last_octet(r.end)
        assert r.num_addresses == 1 + end - start
        assert start <= end < 255
        for octet in range(start, end + 1):
            assert octet in remaining
            remaining.discard(octet)
    assert remaining == set()


def test_unreserved_ranges_complement_reservations():
    subnet, reserved = random_reservations()
    unreserved = set()
    for r in unreserved_ip_ranges(subnet):
        start, end = last_octet(r.start), last_octet(r.end)
        assert r.num_addresses == 1 + end - start
        assert start <= end < 255
        for octet in range(start, end + 1):
            assert octet not in reserved
            unreserved.add(octet)
    assert reserved | unreserved == set(range(1, 255))
    assert len(reserved) + len(unreserved) == 254


def test_statistics_of_empty_subnet():
    stats = subnet_statistics(default_subnet(), False)
    assert stats.num_available == 254
    assert stats.largest_available == 254
    assert stats.num_unavailable == 0
    assert stats.total_addresses == 254
    assert stats.usage == 0
    assert stats.usage_string == "0.0%"
    assert stats.ranges is None


def test_statistics_after_reservations():
    subnet = default_subnet()
    subnet.in_use_ip_addresses += [assigned(f"192.168.1.{o}") for o in range(1, 201)]
    stats = subnet_statistics(subnet, True)
    assert stats.num_available == 54
    assert stats.num_unavailable == 200
    assert stats.total_addresses == 254
    assert stats.usage == pytest.approx(0.787401556968689, rel=1e-7)
    assert stats.usage_string == "78.7%"
    assert stats.largest_available == 54
    assert stats.ranges == unreserved_ip_ranges(subnet)
    assert stats.to_json()["ranges"][0]["start"] == "192.168.1.201"


def test_node_interface_json():
    subnet = default_subnet()
    interface = NodeNetworkInterface(name="eth0", links=[NetworkLink(1, "auto", subnet)])
    data = interface.to_json()
    assert data["name"] == "eth0"
    assert data["links"][0]["id"] == 1
    assert data["links"][0]["mode"] == "auto"
    assert data["links"][0]["subnet"]["name"] == "maas-eth0"
    assert NetworkLink().to_json()["subnet"] is None