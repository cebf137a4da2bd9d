"""Request framing and parsing.

Both engines hand their receive buffer to :func:`split_request`, which returns
the first complete request once its head and any body have arrived. Bodies are
stepped over to find the next request but never decoded.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

from config import MAX_BODY_BYTES, MAX_HEADER_BYTES, MAX_REQUEST_BYTES, MAX_TARGET_LENGTH

HEAD_TERMINATOR = b"\r\n\r\n"
HTTP_VERSIONS = ("HTTP/1.0", "HTTP/1.1")
METHODS = frozenset(
    {"GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "TRACE", "CONNECT"}
)


class RequestError(Exception):
    """A request the server answers with ``status_code`` before hanging up."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class MalformedRequestError(RequestError):
    status_code = 400


class HeaderTooLargeError(RequestError):
    status_code = 431


class PayloadTooLargeError(RequestError):
    status_code = 413


class RequestTimeoutError(RequestError):
    status_code = 408


@dataclass(frozen=True, slots=True)
class HTTPRequest:
    method: str
    target: str
    version: str = "HTTP/1.1"
    headers: dict[str, str] = field(default_factory=dict)
    size: int = 0

    @property
    def path(self) -> str:
        return urlsplit(self.target).path or "/"

    @property
    def keep_alive(self) -> bool:
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return "close" not in connection
        return "keep-alive" in connection

    @property
    def accepts_chunked(self) -> bool:
        return self.version == "HTTP/1.1"


def parse_head(head: bytes) -> HTTPRequest:
    """Parse a request line plus header block (without the blank line)."""
    request_line, *header_lines = head.decode("iso-8859-1").split("\r\n")
    parts = request_line.split(" ")
    if len(parts) != 3 or not all(parts):
        raise MalformedRequestError(f"Invalid request line: {request_line!r}")

    method, target, version = parts
    method = method.upper()
    if method not in METHODS:
        raise RequestError(f"Method not implemented: {method}", status_code=501)
    if version not in HTTP_VERSIONS:
        raise RequestError(f"Unsupported HTTP version: {version}", status_code=505)
    if len(target) > MAX_TARGET_LENGTH:
        raise RequestError("Request target too long", status_code=414)

    headers = dict(_iter_headers(header_lines))
    if version == "HTTP/1.1" and "host" not in headers:
        raise MalformedRequestError("Host header required for HTTP/1.1")
    return HTTPRequest(method=method, target=target, version=version, headers=headers)


def split_request(buffer: bytes) -> tuple[HTTPRequest, bytes] | None:
    """Return the first complete request in ``buffer`` and the bytes after it.

    ``None`` means more bytes are needed. Oversized or malformed input raises a
    :class:`RequestError` as soon as it is detectable.
    """
    if len(buffer) > MAX_REQUEST_BYTES:
        raise PayloadTooLargeError("Request exceeded MAX_REQUEST_BYTES")

    head_end = buffer.find(HEAD_TERMINATOR)
    if head_end == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None
    body_start = head_end + len(HEAD_TERMINATOR)
    if body_start > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    request = parse_head(buffer[:head_end])
    body_length = _body_length(request, buffer[body_start:])
    if body_length is None:
        return None
    request_end = body_start + body_length
    return replace(request, size=request_end), buffer[request_end:]


def _iter_headers(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    for line in lines:
        if not line:
            continue
        name, separator, value = line.partition(":")
        name = name.strip().lower()
        if not separator or not name:
            raise MalformedRequestError(f"Malformed header line: {line!r}")
        yield name, value.strip()


def _body_length(request: HTTPRequest, body: bytes) -> int | None:
    content_length = request.headers.get("content-length")
    if "chunked" in request.headers.get("transfer-encoding", "").lower():
        if content_length is not None:
            raise MalformedRequestError("Content-Length cannot be combined with chunked transfer")
        return _chunked_length(body)

    if content_length is None:
        return 0
    if not content_length.isdecimal():
        raise MalformedRequestError(f"Invalid Content-Length header: {content_length!r}")
    length = int(content_length)
    if length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")
    return length if len(body) >= length else None


def _chunked_length(body: bytes) -> int | None:
    """Encoded length of the chunked body at the front of ``body``, if complete."""
    position = 0
    decoded = 0
    while True:
        line_end = body.find(b"\r\n", position)
        if line_end == -1:
            return None
        size_field = body[position:line_end].split(b";", 1)[0].strip()
        try:
            size = int(size_field, 16)
        except ValueError as exc:
            raise MalformedRequestError("Malformed chunk size") from exc
        if size < 0:
            raise MalformedRequestError("Malformed chunk size")
        position = line_end + 2

        if size == 0:
            return _trailer_end(body, position)

        decoded += size
        if decoded > MAX_BODY_BYTES:
            raise PayloadTooLargeError("Decoded chunked body exceeded MAX_BODY_BYTES")
        chunk_end = position + size
        if len(body) < chunk_end + 2:
            return None
        if body[chunk_end : chunk_end + 2] != b"\r\n":
            raise MalformedRequestError("Chunk missing CRLF terminator")
        position = chunk_end + 2


def _trailer_end(body: bytes, position: int) -> int | None:
    while True:
        line_end = body.find(b"\r\n", position)
        if line_end == -1:
            return None
        if line_end == position:
            return line_end + 2
        if b":" not in body[position:line_end]:
            raise MalformedRequestError("Malformed chunked trailer")
        position = line_end + 2
