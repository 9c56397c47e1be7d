import urllib.error
import urllib.request

import pytest

from fakemaas.stubservers import FlakyServer, SimpleTestServer, SingleServingServer

_OPENER = urllib.request.build_opener(urllib.request.ProxyHandler({}))


def fetch(url, method="GET", data=None, headers=None):
    request = urllib.request.Request(url, data=data, method=method, headers=headers or {})
    try:
        with _OPENER.open(request, timeout=5) as response:
            return response.status, response.read().decode(), response.headers
    except urllib.error.HTTPError as err:
        with err:
            return err.code, err.read().decode(), err.headers


@pytest.fixture
def simple():
    server = SimpleTestServer()
    server.start()
    yield server
    server.close()


def test_single_serving_returns_response():
    with SingleServingServer("/path/", "hello", 201) as server:
        status, body, _ = fetch(
            server.url + "/path/", "POST", b"payload", {"X-Probe": "yes"}
        )
        assert status == 201
        assert body == "hello"
        assert server.request_content == "payload"
        assert server.request_headers["X-Probe"] == "yes"


def test_single_serving_wrong_uri():
    with SingleServingServer("/right/", "hello", 200) as server:
        status, body, _ = fetch(server.url + "/wrong/")
        assert status == 404
        assert body.startswith(
            "Error 404: page not found (expected '/right/', got '/wrong/')."
        )


def test_single_serving_second_request_unavailable():
    with SingleServingServer("/path/", "hello", 200) as server:
        fetch(server.url + "/path/")
        status, body, _ = fetch(server.url + "/path/")
        assert status == 503
        assert body.startswith("Already requested\n")


def test_flaky_then_ok():
    with FlakyServer("/flaky/", 503, 2) as server:
        first = fetch(server.url + "/flaky/", "POST", b"one")
        second = fetch(server.url + "/flaky/", "POST", b"two")
        third = fetch(server.url + "/flaky/", "POST", b"three")
        assert (first[0], first[1]) == (503, "flaky")
        assert first[2]["Retry-After"] == "0"
        assert (second[0], second[1]) == (503, "flaky")
        assert (third[0], third[1]) == (200, "ok")
        assert server.request_count == 3
        assert server.requests == [b"one", b"two", b"three"]


def test_flaky_other_code_has_no_retry_after():
    with FlakyServer("/flaky/", 409, 1) as server:
        status, body, headers = fetch(server.url + "/flaky/")
        assert (status, body) == (409, "flaky")
        assert headers.get("Retry-After") is None


def test_flaky_wrong_uri():
    with FlakyServer("/flaky/", 503, 1) as server:
        status, body, _ = fetch(server.url + "/other/")
        assert status == 404
        assert "expected '/flaky/', got '/other/'" in body
        assert server.request_count == 1


def test_simple_get_responses_in_order(simple):
    simple.add_get_response("/a/", 200, "first")
    simple.add_get_response("/a/", 202, "second")
    assert fetch(simple.url + "/a/")[:2] == (200, "first")
    assert fetch(simple.url + "/a/")[:2] == (202, "second")
    assert simple.request_count() == 2


def test_simple_unknown_path(simple):
    status, body, _ = fetch(simple.url + "/missing/")
    assert status == 404
    assert body.startswith("Error 404: page not found ('/missing/').")


def test_simple_records_requests(simple):
    simple.add_get_response("/a/", 200, "x")
    simple.add_delete_response("/b/", 204, "")
    assert simple.last_request() is None
    fetch(simple.url + "/a/")
    fetch(simple.url + "/b/", "DELETE")
    assert simple.last_request().method == "DELETE"
    assert [r.uri for r in simple.last_n_requests(5)] == ["/a/", "/b/"]
    assert [r.uri for r in simple.last_n_requests(1)] == ["/b/"]
    simple.reset_requests()
    assert simple.request_count() == 0


def test_simple_post_form(simple):
    simple.add_post_response("/p/?op=go", 200, "done")
    status, body, _ = fetch(
        simple.url + "/p/?op=go",
        "POST",
        b"name=value&name=other",
        {"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert (status, body) == (200, "done")
    assert simple.last_request().form == {"name": ["value", "other"], "op": ["go"]}


def test_simple_put_form(simple):
    simple.add_put_response("/q/", 200, "put")
    fetch(
        simple.url + "/q/",
        "PUT",
        b"key=v",
        {"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert simple.last_request().form == {"key": ["v"]}


def test_simple_post_multipart(simple):
    simple.add_post_response("/upload/", 200, "")
    boundary = "BOUNDARY"
    body = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="filename"\r\n\r\n'
        "doc\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="file"; filename="doc"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
        "hello\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    fetch(
        simple.url + "/upload/",
        "POST",
        body,
        {"Content-Type": f"multipart/form-data; boundary={boundary}"},
    )
    request = simple.last_request()
    assert request.form["filename"] == ["doc"]
    assert request.files["file"] == [b"hello"]


def test_simple_unsupported_method(simple):
    status, body, _ = fetch(simple.url + "/a/", "PATCH")
    assert status == 500
    assert "unsupported method PATCH" in body


def test_simple_start_twice_fails(simple):
    with pytest.raises(RuntimeError):
        simple.start()