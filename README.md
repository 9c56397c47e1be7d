# fakemaas

`fakemaas` is a fake MAAS server that runs inside your test process. You point
the HTTP client code under test at it in place of a real MAAS region
controller. It keeps all its data in memory, answers the MAAS HTTP API, and
records what the client asked for so that your tests can make assertions
about it.

It uses only the Python standard library.

## Installing

```
pip install fakemaas
```

To run the package's own tests:

```
pip install "fakemaas[test]"
pytest
```

## The fake server

```python
from fakemaas.server import FakeMAASServer

with FakeMAASServer("1.0") as server:
    server.state.new_node('{"system_id": "node-a"}')
    # the client under test talks to server.url + "/api/1.0/nodes/?op=list"
```

`FakeMAASServer(version="1.0", host="127.0.0.1")` listens on a port that the
system chooses and serves requests on a background thread. The base address
is in `server.url`. Each request goes to the handler registered for the
longest matching path prefix under `/api/<version>/`:

| Path               | Handler                                    |
|--------------------|--------------------------------------------|
| `nodes/`           | `fakemaas.nodes.handle_nodes`              |
| `devices/`         | `fakemaas.devices.handle_devices`          |
| `files/`           | `fakemaas.files.handle_files`              |
| `networks/`        | `fakemaas.ipaddresses.handle_networks`     |
| `ipaddresses/`     | `fakemaas.ipaddresses.handle_ipaddresses`  |
| `version/`         | `fakemaas.nodegroups.handle_version`       |
| `nodegroups/`      | `fakemaas.nodegroups.handle_nodegroups`    |
| `zones/`           | `fakemaas.nodegroups.handle_zones`         |
| `tags/`            | `fakemaas.catalog.handle_tags`             |
| `subnets/`         | `fakemaas.networking.handle_subnets`       |
| `spaces/`          | `fakemaas.networking.handle_spaces`        |
| `static-routes/`   | `fakemaas.networking.handle_static_routes` |

- `add_route(prefix, handler)` registers another handler. A prefix that ends
  in `/` covers every path below it. The handler takes a
  `fakemaas.wire.Request` and returns a `fakemaas.wire.Response`.
- `dispatch(request)` routes a `Request` without going over the network.
  Requests are handled one at a time. A path that lacks the trailing slash of
  a registered route gets a 301 redirect. A path that matches no route gets a
  404.
- `close()` stops the server. You can also use the server as a context
  manager.

When a handler raises an exception, for example for an operation the fake
does not support, the client receives a 500 response whose body is the
error message.

### Endpoint behaviour

- **nodes**: `?op=list`, optionally filtered by `id`. `?op=deployment_status`.
  `POST ?op=acquire` and `POST ?op=release` (see below). For a single node:
  `GET`, `GET ?op=details`, which returns a BSON document with `lldp` and
  `lshw` entries, `POST ?op=start|stop|release`, and `DELETE`.
- **devices**: `?op=list`, optionally filtered by `mac_address`.
  `POST ?op=new`, which requires `mac_addresses`, `hostname` and `parent`.
  For a single device: `GET`, `POST ?op=claim_sticky_ip_address` with
  `requested_address`, and `DELETE`, which answers 204.
- **files**: `?op=list`, optionally filtered by `prefix`, sorted by name and
  without the content. `?op=get&filename=...` returns the raw content.
  `POST ?op=add` takes a multipart upload that holds exactly one file. For a
  single file, at `files/<name>/`: `GET` and `DELETE`.
- **networks**: `GET ?node=<system_id>` lists the node's networks.
  `networks/<name>/?op=list_connected_macs` lists the MAC addresses connected
  to a network.
- **ipaddresses**: `GET` lists the reserved addresses. `POST ?op=reserve`
  takes `network` (CIDR) and an optional `requested_address`.
  `POST ?op=release` takes `ip`.
- **version**: returns the capabilities document.
- **nodegroups**: `?op=list`, `<uuid>/boot-images/`, `<uuid>/interfaces/`.
- **zones**: lists the zones. It answers 404 until a zone has been added.
- **tags**: lists tags and creates them (`POST` with `name`). For a single
  tag: `GET`, `GET ?op=node`, `POST ?op=update_nodes` with `add` and/or
  `remove`, `PUT` and `DELETE`.
- **subnets**: lists subnets in order of ID, or returns one subnet by name
  or ID. For a single subnet, `?op=reserved_ip_ranges`,
  `?op=unreserved_ip_ranges` and `?op=statistics` are also available;
  `include_ranges=true` adds the unreserved ranges to the statistics. `POST`
  creates a subnet, `PUT` updates one and `DELETE` removes one. The endpoint
  answers 404 while there are no subnets.
- **spaces**: lists the spaces, each with its subnets, or returns one space
  by name or ID. `DELETE` removes a space. The endpoint answers 404 while
  there are no spaces.
- **static-routes**: lists the routes with their source and destination
  subnets filled in by CIDR, or returns one route by ID. `DELETE` removes a
  route. The endpoint answers 404 while there are no routes.

## Filling in the state

All the server's data lives in `server.state`, a `fakemaas.state.MAASState`:

- `new_node(json_text)`: the JSON map must hold a string `system_id`. A node
  with no `status` is marked as deployed.
- `change_node(system_id, key, value)`
- `new_file(filename, content)`
- `new_network(json_text)`: the map needs `name`, `ip` and `netmask`.
- `new_ip_address(ip_address, network_or_subnet)` and
  `remove_ip_address(ip_address)`
- `connect_node_to_network(system_id, name)` and
  `connect_node_to_network_with_mac_address(system_id, network_name, mac_address)`
- `add_boot_image(nodegroup_uuid, json_text)`,
  `new_nodegroup_interface(uuid, json_text)`, `add_zone(name, description)`,
  `add_tag(name, comment)`, `add_device(device)` with a
  `fakemaas.state.Device`, and `add_node_details(system_id, xml_text)`
- `set_version_json(text)`
- `clear()`: forgets everything.

Each operation performed on nodes is recorded, together with the form values
that came with it. The recordings are kept in `nodes_operations`,
`node_operations`, `nodes_operation_request_values` and
`node_operation_request_values`. The set `owned_nodes` holds the nodes that
are currently acquired.

Subnets, spaces and static routes are kept in `state.network`, a
`fakemaas.netstate.NetworkModel`. It offers `new_subnet`, `update_subnet`,
`add_fixed_address_range`, `new_space`, `new_static_route` and
`set_node_network_link`, each of which takes a JSON document as text, bytes
or a stream where one is needed. The record types `CreateSubnet`,
`CreateSpace` and `CreateStaticRoute` produce such documents through
`to_json()`.

The range arithmetic lives in `fakemaas.addressing` and works on a subnet's
in-use addresses and fixed ranges: `reserved_ip_ranges`,
`unreserved_ip_ranges` and `subnet_statistics`.

## Acquiring and releasing nodes

`fakemaas.allocation.find_free_node` picks an unowned node. It can filter on
`name`, `zone`, `tags`, `mem`, `cpu-cores` and `arch`, and it stores any
`agent_name` on the node it picks. When no node matches, `acquire` answers
409 Conflict. `release` frees the owned nodes among those named. If any of
the named nodes is unknown, it answers 400 and releases none of them.

## Simple stub servers

Some tests need only canned HTTP responses. For those,
`fakemaas.stubservers` has three servers. Each one listens on the loopback
interface and publishes its address in `url`:

- `SingleServingServer(uri, response, code)` answers a request for one URI.
  Later requests are answered with 503.
- `FlakyServer(uri, code, nb_flaky_responses)` answers with `code` the given
  number of times, then with 200 `ok`.
- `SimpleTestServer` replays queued responses for each method and URI. You
  queue them with `add_get_response`, `add_put_response`,
  `add_post_response` and `add_delete_response`. It records every request,
  which you can inspect with `last_request()`, `last_n_requests(n)`,
  `request_count()` and `reset_requests()`. Call `start()` first and
  `close()` when done, or use the server as a context manager.

## Helpers

```python
from fakemaas.ipaddr import ip_from_int, ip_from_string, name_or_id_to_id
from fakemaas.urls import node_url

ip_from_string("1.2.3.4").to_int()   # 0x01020304
str(ip_from_int(0x01020304))         # "1.2.3.4"
node_url("0.1", "test")              # "/api/0.1/nodes/test/"
name_or_id_to_id("2", {}, 1, 3)      # 2
```

`name_or_id_to_id` raises `ValueError` when the value is neither a known name
nor a decimal number, or when the resulting ID falls outside the allowed
range. `fakemaas.ipaddr.pretty_json` renders JSON indented by two spaces.

## What it does not do

- It contains no MAAS client. Your tests reach the server through their own
  HTTP calls, or through `dispatch`.
- It does no authentication, and it ignores credentials.
- Nothing is persisted. All data is lost when the process ends or when
  `clear()` is called.
- Creating or updating spaces over HTTP has no effect. Creating or updating
  static routes over HTTP answers 501. Use `NetworkModel` to add them.
- There is no command-line program.