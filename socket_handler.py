"""Blocking socket reads and writes for the threaded engine."""

from __future__ import annotations

import socket

from config import READ_CHUNK_SIZE
from request import HTTPRequest, MalformedRequestError, RequestTimeoutError, split_request
from response import HTTPResponse, close_stream, prepare_response


def read_request(
    client_socket: socket.socket,
    carry: bytes = b"",
) -> tuple[HTTPRequest | None, bytes]:
    """Block until one request is buffered; returns ``(request, leftover)``.

    A peer that hangs up between requests yields ``(None, b"")``.
    """
    buffer = bytearray(carry)
    while True:
        split = split_request(bytes(buffer))
        if split is not None:
            return split

        try:
            chunk = client_socket.recv(READ_CHUNK_SIZE)
        except socket.timeout as exc:
            raise RequestTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if buffer:
                raise MalformedRequestError("Connection closed before request completed")
            return None, b""
        buffer.extend(chunk)


def write_response(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Send ``response``, reading file or stream bytes only as the socket drains.

    Any ``OSError`` (peer gone, file removed since resolution) propagates after
    the body source has been released.
    """
    prepared = prepare_response(response)
    try:
        client_socket.sendall(prepared.head)
        bytes_sent = len(prepared.head)

        if prepared.body:
            client_socket.sendall(prepared.body)
            bytes_sent += len(prepared.body)
        elif prepared.stream is not None:
            for wire_chunk in prepared.iter_stream():
                client_socket.sendall(wire_chunk)
                bytes_sent += len(wire_chunk)
        elif prepared.file_path is not None:
            with prepared.file_path.open("rb") as file_obj:
                bytes_sent += client_socket.sendfile(file_obj)
        return bytes_sent
    finally:
        close_stream(prepared.stream)
