"""HTTP response model and serializer."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from email.utils import formatdate
from pathlib import Path

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    302: "Found",
    400: "Bad Request",
    404: "Not Found",
    408: "Request Timeout",
    413: "Payload Too Large",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class PreparedResponse:
    head: bytes
    body: bytes | None = None
    stream: Iterator[bytes] | None = None
    file_path: Path | None = None
    chunked: bool = True

    def iter_stream(self) -> Iterator[bytes]:
        """Wire bytes of a streamed body: chunk-framed, or raw when the close ends it."""
        if self.stream is None:
            return iter(())
        if self.chunked:
            return iter_chunked_encoded(self.stream)
        return (chunk for chunk in self.stream if chunk)


@dataclass(slots=True)
class HTTPResponse:
    """A response ready for either engine.

    ``delay_secs`` holds the whole response back, head included, for that long
    after it was produced. ``close_delimited`` drops length framing for bodies
    of unknown size; the connection must close once the body is out.
    """

    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    stream: Iterable[bytes] | None = None
    file_path: Path | None = None
    content_length_override: int | None = None
    delay_secs: float = 0.0
    close_delimited: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.stream is not None and self.file_path is not None:
            raise ValueError("Response cannot set both stream and file_path")
        if self.file_path is not None and self.body:
            raise ValueError("Response cannot set both body and file_path")
        if self.delay_secs < 0:
            raise ValueError("delay_secs cannot be negative")

    @property
    def length_unknown(self) -> bool:
        return self.stream is not None or self.headers.get("Transfer-Encoding") == "chunked"


def prepare_response(response: HTTPResponse) -> PreparedResponse:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    normalized_headers = dict(response.headers)
    normalized_headers.setdefault(
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    normalized_headers.setdefault("Server", SERVER_NAME)
    if response.close_delimited:
        normalized_headers.pop("Transfer-Encoding", None)
        normalized_headers.pop("Content-Length", None)

    body: bytes | None = None
    stream: Iterator[bytes] | None = None
    file_path: Path | None = None
    if response.stream is not None:
        normalized_headers.pop("Content-Length", None)
        if not response.close_delimited:
            normalized_headers["Transfer-Encoding"] = "chunked"
        stream = iter(response.stream)
    elif response.file_path is not None:
        file_path = response.file_path
        content_length = response.content_length_override
        if content_length is None:
            content_length = file_path.stat().st_size
        normalized_headers["Content-Length"] = str(content_length)
    else:
        body = response.body
        if body:
            normalized_headers.setdefault("Content-Type", "text/plain; charset=utf-8")
        content_length = response.content_length_override
        if content_length is None:
            content_length = len(body)
        # HEAD replies to streamed bodies carry the GET framing, not a length
        if "Transfer-Encoding" not in normalized_headers and not response.close_delimited:
            normalized_headers["Content-Length"] = str(content_length)

    header_lines = [f"HTTP/1.1 {response.status_code} {reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
    head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
    return PreparedResponse(
        head=head,
        body=body,
        stream=stream,
        file_path=file_path,
        chunked=not response.close_delimited,
    )


def iter_chunked_encoded(chunks: Iterable[bytes]) -> Iterator[bytes]:
    for chunk in chunks:
        # a zero-length chunk would terminate the body early
        if not chunk:
            continue
        yield f"{len(chunk):X}\r\n".encode("ascii")
        yield chunk
        yield b"\r\n"
    yield b"0\r\n\r\n"


def close_stream(stream: Iterable[bytes] | None) -> None:
    """Release whatever a body iterator holds open (generators, file readers)."""
    close = getattr(stream, "close", None)
    if close is not None:
        close()
