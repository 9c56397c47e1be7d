import json
from urllib.parse import urlencode

import pytest

from fakemaas.catalog import handle_tags
from fakemaas.state import MAASState
from fakemaas.wire import FORM_URLENCODED, Request

TAGS = "/api/1.0/tags/"


@pytest.fixture
def state():
    s = MAASState("1.0")
    s.new_node('{"system_id": "n0"}')
    s.new_node('{"system_id": "n1"}')
    return s


def _get(target):
    return Request.from_target("GET", target)


def _send(method, target, values):
    body = urlencode(values, doseq=True).encode()
    return Request.from_target(method, target, {"Content-Type": FORM_URLENCODED}, body)


def _json(response):
    return json.loads(response.text())


def _decode_listing(text):
    return json.loads(bytes(int(part) for part in text[1:-1].split()).decode("utf-8"))


def test_list_tags(state):
    expected = {"tag0": "Develop", "tag1": "Lack01"}
    for name, comment in expected.items():
        state.add_tag(name, comment)
    response = handle_tags(state, _get(TAGS))
    assert response.status == 200
    assert {t["name"]: t["comment"] for t in _json(response)} == expected


def test_new_tag_with_comment(state):
    response = handle_tags(state, _send("POST", TAGS, {"name": "gpu", "comment": "fast"}))
    assert response.status == 200
    text = response.text()
    assert text.startswith("[") and text.endswith("]")
    assert _decode_listing(text) == {
        "comment": "fast",
        "name": "gpu",
        "resource_uri": "/api/1.0/tags/gpu/",
    }
    assert state.tags["gpu"]["comment"] == "fast"


def test_new_tag_without_comment(state):
    handle_tags(state, _send("POST", TAGS + "?op=new", {"name": "plain"}))
    assert state.tags["plain"] == {"name": "plain", "resource_uri": "/api/1.0/tags/plain/"}


def test_new_tag_needs_name(state):
    assert handle_tags(state, _send("POST", TAGS, {"comment": "x"})).status == 400
    assert state.tags == {}


def test_new_tag_unknown_op(state):
    assert handle_tags(state, _send("POST", TAGS + "?op=frob", {"name": "t"})).status == 400


def test_get_single_tag(state):
    state.add_tag("tag0", "Develop")
    response = handle_tags(state, _get(TAGS + "tag0/"))
    assert _json(response) == {
        "name": "tag0",
        "comment": "Develop",
        "resource_uri": "/api/1.0/tags/tag0/",
    }


def test_get_missing_tag_is_null(state):
    assert handle_tags(state, _get(TAGS + "none/")).text() == "null"


def test_update_nodes_add_and_remove(state):
    state.add_tag("gpu", "fast")
    response = handle_tags(
        state, _send("POST", TAGS + "gpu/?op=update_nodes", {"add": ["n0", "n1"]})
    )
    assert _json(response) == {"add": 2, "remove": 0}
    assert state.tags_per_node["n0"] == ["gpu"]
    assert state.nodes["n0"]["tag_names"] == [state.tags["gpu"]]

    nodes = _json(handle_tags(state, _get(TAGS + "gpu/?op=node")))
    assert sorted(node["system_id"] for node in nodes) == ["n0", "n1"]

    response = handle_tags(state, _send("POST", TAGS + "gpu/?op=update_nodes", {"remove": "n0"}))
    assert _json(response) == {"add": 0, "remove": 1}
    assert state.tags_per_node["n0"] == []
    assert state.nodes["n0"]["tag_names"] == []
    nodes = _json(handle_tags(state, _get(TAGS + "gpu/?op=node")))
    assert [node["system_id"] for node in nodes] == ["n1"]


def test_update_nodes_adding_twice_keeps_one(state):
    state.add_tag("gpu", "fast")
    for _ in range(2):
        handle_tags(state, _send("POST", TAGS + "gpu/?op=update_nodes", {"add": "n0"}))
    assert state.tags_per_node["n0"] == ["gpu"]


def test_update_nodes_requires_add_or_remove(state):
    response = handle_tags(state, _send("POST", TAGS + "gpu/?op=update_nodes", {}))
    assert response.status == 400


def test_update_nodes_unknown_node(state):
    response = handle_tags(state, _send("POST", TAGS + "gpu/?op=update_nodes", {"add": "zz"}))
    assert response.status == 400


def test_put_creates_tag(state):
    response = handle_tags(state, _send("PUT", TAGS + "new/", {"comment": "c"}))
    assert response.status == 200
    assert _decode_listing(response.text())["name"] == "new"
    assert state.tags["new"]["comment"] == "c"


def test_delete_tag(state):
    state.add_tag("gone", "bye")
    response = handle_tags(state, Request.from_target("DELETE", TAGS + "gone/"))
    assert response.status == 200
    assert "gone" not in state.tags


def test_unknown_path(state):
    assert handle_tags(state, _get(TAGS + "a/b/")).status == 404


def test_put_on_listing_is_bad_request(state):
    assert handle_tags(state, _send("PUT", TAGS, {"name": "x"})).status == 400