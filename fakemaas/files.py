"""The files endpoint of the fake MAAS server."""

from __future__ import annotations

import base64
import binascii

from .state import MAASState
from .urls import file_url_re, files_endpoint
from .wire import Request, Response, error_response, json_response, not_found


def list_filenames(state: MAASState, prefix: str) -> list[str]:
    """Return the stored file names starting with the prefix, sorted."""
    return sorted(name for name in state.files if name.startswith(prefix))


def _list_files(state: MAASState, request: Request) -> Response:
    prefix = request.query().get("prefix", [""])[0]
    listing = [
        {key: value for key, value in state.files[name].items() if key != "content"}
        for name in list_filenames(state, prefix)
    ]
    return json_response(listing)


def _get_file(state: MAASState, request: Request) -> Response:
    filename = request.query().get("filename", [""])[0]
    file = state.files.get(filename)
    if file is None:
        return not_found()
    encoded = file.get("content")
    if not isinstance(encoded, str):
        return error_response("the file has no string 'content' field", 500)
    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        return error_response(str(exc), 500)
    return Response(200, content)


def _add_file(state: MAASState, request: Request) -> Response:
    fields, uploads = request.multipart()
    filename = (request.query().get("filename") or fields.get("filename") or [""])[0]
    if not filename:
        raise ValueError("upload has no filename")
    if len(uploads) != 1:
        raise ValueError("the payload should contain one file and one file only")
    content = next(iter(uploads.values()))[0]
    state.new_file(filename, content)
    return Response(200)


def _file(state: MAASState, request: Request, filename: str) -> Response:
    if request.method == "DELETE":
        state.files.pop(filename, None)
        return Response(200)
    if request.method == "GET":
        file = state.files.get(filename)
        if file is None:
            return not_found()
        return json_response(file)
    return not_found()


def handle_files(state: MAASState, request: Request) -> Response:
    """Serve '/api/<version>/files/' and the individual file paths below it."""
    op = request.op()
    at_listing = request.path == files_endpoint(state.version)
    if request.method == "GET" and op == "list" and at_listing:
        return _list_files(state, request)
    if request.method == "GET" and op == "get" and at_listing:
        return _get_file(state, request)
    if request.method == "POST" and op == "add" and at_listing:
        return _add_file(state, request)
    match = file_url_re(state.version).match(request.path)
    if match is not None:
        return _file(state, request, match.group(1))
    return not_found()