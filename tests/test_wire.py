import json

import pytest

from fakemaas.wire import (
    Request,
    Response,
    bad_request,
    get_value,
    get_values,
    json_response,
    not_found,
)

URLENCODED = {"Content-Type": "application/x-www-form-urlencoded"}


def test_query_keeps_repeats_and_blanks():
    request = Request("GET", "/x/", raw_query="a=1&a=2&b=")
    assert request.query() == {"a": ["1", "2"], "b": [""]}


def test_op_is_first_op_or_empty():
    assert Request("GET", "/x/", raw_query="op=list&op=other").op() == "list"
    assert Request("GET", "/x/", raw_query="a=1").op() == ""


def test_from_target_unescapes_path_and_keeps_query():
    request = Request.from_target("get", "/api/1.0/files/aa%3Fbb/?op=get&filename=f")
    assert request.method == "GET"
    assert request.path == "/api/1.0/files/aa?bb/"
    assert request.op() == "get"
    assert request.query()["filename"] == ["f"]


def test_header_lookup_ignores_case():
    request = Request("GET", "/", headers={"content-type": "text/plain"})
    assert request.header("Content-Type") == "text/plain"
    assert request.header("X-Missing") == ""


def test_post_form_parses_urlencoded_body():
    request = Request("POST", "/", headers=URLENCODED, body=b"key=value&key=other")
    assert request.post_form() == {"key": ["value", "other"]}


def test_post_form_ignores_other_content_types_and_get():
    assert Request("POST", "/", headers={"Content-Type": "text/plain"}, body=b"k=v").post_form() == {}
    assert Request("GET", "/", headers=URLENCODED, body=b"k=v").post_form() == {}


def test_form_puts_body_values_before_query_values():
    request = Request("POST", "/", raw_query="k=q&op=new", headers=URLENCODED, body=b"k=b")
    form = request.form()
    assert form["k"] == ["b", "q"]
    assert form["op"] == ["new"]


def test_multipart_returns_fields_and_files():
    boundary = "XyZ"
    body = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="filename"\r\n\r\n'
        "myfile.txt\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="file"; filename="file"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
        "uploaded contents\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    request = Request(
        "POST",
        "/",
        raw_query="op=add",
        headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
        body=body,
    )
    fields, files = request.multipart()
    assert fields == {"filename": ["myfile.txt"]}
    assert files == {"file": [b"uploaded contents"]}
    assert request.form()["filename"] == ["myfile.txt"]
    assert request.form()["op"] == ["add"]


def test_multipart_rejects_other_bodies():
    with pytest.raises(ValueError):
        Request("POST", "/", headers=URLENCODED, body=b"a=b").multipart()


def test_response_text_round_trips_str_body():
    assert Response(200, "héllo").text() == "héllo"
    assert Response(201, b"raw").body == b"raw"


def test_not_found_is_404():
    response = not_found()
    assert response.status == 404
    assert "not found" in response.text()


def test_bad_request_carries_message():
    response = bad_request("Unknown node(s): what.")
    assert response.status == 400
    assert response.text() == "Unknown node(s): what."
    assert bad_request().body == b""


def test_json_response_round_trips():
    thing = {"a": [1, "two"], "b": None}
    response = json_response(thing, "application/json; charset=utf-8")
    assert response.status == 200
    assert json.loads(response.text()) == thing
    assert response.headers["Content-Type"] == "application/json; charset=utf-8"
    assert "Content-Type" not in json_response([]).headers


def test_get_value_requires_single_non_blank():
    assert get_value({"hostname": ["bar"]}, "hostname") == "bar"
    assert get_value({"hostname": ["bar", "baz"]}, "hostname") is None
    assert get_value({"hostname": [""]}, "hostname") is None
    assert get_value({}, "hostname") is None


def test_get_values_drops_blanks():
    assert get_values({"mac_addresses": ["foo", "", "boo"]}, "mac_addresses") == ["foo", "boo"]
    assert get_values({"mac_addresses": ["", ""]}, "mac_addresses") is None
    assert get_values({}, "mac_addresses") is None