"""Static file handler: resolve a request against the root and build the response."""

from __future__ import annotations

import zlib
from collections.abc import Iterator
from pathlib import Path

from config import WRITE_CHUNK_SIZE, ServerConfig
from request import HTTPRequest
from request_log import RequestLog
from resolver import NotFound, Redirect, Serve, join_root, request_path, resolve
from response import HTTPResponse

NOT_FOUND_BODY = b"404 Not Found\n"
GZIP_WBITS = zlib.MAX_WBITS | 16


def iter_gzip_file(file_path: Path, chunk_size: int = WRITE_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a gzip member for ``file_path`` one read at a time.

    Nothing is opened until the first chunk is requested, and closing the
    generator closes the file.
    """
    compressor = zlib.compressobj(wbits=GZIP_WBITS)
    with file_path.open("rb") as file_obj:
        while True:
            chunk = file_obj.read(chunk_size)
            if not chunk:
                break
            compressed = compressor.compress(chunk)
            if compressed:
                yield compressed
    yield compressor.flush()


def serve(target: Serve, config: ServerConfig) -> HTTPResponse:
    rule = target.rule
    headers: dict[str, str] = {}
    if rule.mime_type is not None:
        headers["Content-Type"] = rule.mime_type

    file_path = Path(target.absolute_path)
    if rule.compressible and config.compression_enabled:
        headers["Content-Encoding"] = "gzip"
        return HTTPResponse(
            status_code=200,
            headers=headers,
            stream=iter_gzip_file(file_path),
            delay_secs=config.lag_secs,
        )

    return HTTPResponse(
        status_code=200,
        headers=headers,
        file_path=file_path,
        delay_secs=config.lag_secs,
    )


def not_found(delay_secs: float = 0.0) -> HTTPResponse:
    return HTTPResponse(
        status_code=404,
        headers={"Content-Type": "text/plain"},
        body=NOT_FOUND_BODY,
        delay_secs=delay_secs,
    )


def redirect(location: str) -> HTTPResponse:
    return HTTPResponse(status_code=302, headers={"Location": location}, body=b"")


def handle_request(
    request: HTTPRequest,
    config: ServerConfig,
    request_log: RequestLog,
) -> HTTPResponse:
    for name, value in request.headers.items():
        request_log.log("header:               %s - %s", name, value)

    raw_path = request_path(request.target)
    request_log.log("full url:             %s", request.target)
    request_log.log("url:                  %s", raw_path)
    request_log.log("filename:             %s", join_root(config.root_dir, raw_path))

    target = resolve(request.target, config.root_dir)

    if isinstance(target, Redirect):
        request_log.log("redirecting to:       %s", target.location)
        return redirect(target.location)

    if isinstance(target, NotFound):
        request_log.log("transformed filename: %s", target.path)
        request_log.log("%s - error 404", target.path)
        return not_found(config.lag_secs)

    request_log.log("transformed filename: %s", target.absolute_path)
    response = serve(target, config)
    if "Content-Encoding" in response.headers:
        request_log.log("%s - ok 200 (compressed)", target.absolute_path)
    else:
        request_log.log("%s - ok 200", target.absolute_path)
    return response
