"""Socket-level tests for serving a directory tree over both engines."""

import gzip
import logging
import os
import socket
import threading
import time
from pathlib import Path

import pytest

from config import ServerConfig
from request_log import REQUEST_LOGGER_NAME
from server import HTTPServer

INDEX_HTML = b"<!doctype html><h1>Static file is working</h1>\n"


def _start_server(root: Path, **overrides: object) -> tuple[HTTPServer, threading.Thread]:
    config = ServerConfig(host="127.0.0.1", port=0, root_dir=str(root), **overrides)  # type: ignore[arg-type]
    server = HTTPServer(config)
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()

    deadline = time.time() + 3
    while server.port == 0 and time.time() < deadline:
        time.sleep(0.01)

    if server.port == 0:
        raise RuntimeError("Server did not bind to a port")
    return server, thread


def _stop_server(server: HTTPServer, thread: threading.Thread) -> None:
    server.stop()
    thread.join(timeout=2)


def _request(host: str, port: int, target: str, method: str = "GET") -> bytes:
    payload = (
        f"{method} {target} HTTP/1.1\r\n"
        "Host: localhost\r\n"
        "Connection: close\r\n"
        "\r\n"
    ).encode("iso-8859-1")
    with socket.create_connection((host, port), timeout=5) as sock:
        sock.sendall(payload)
        chunks: list[bytes] = []
        while True:
            chunk = sock.recv(65_536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def _decode_chunked(body: bytes) -> bytes:
    decoded = bytearray()
    position = 0
    while True:
        line_end = body.index(b"\r\n", position)
        size = int(body[position:line_end], 16)
        position = line_end + 2
        if size == 0:
            return bytes(decoded)
        decoded.extend(body[position : position + size])
        position += size + 2


def _parse(raw_response: bytes) -> tuple[str, dict[str, str], bytes]:
    head, body = raw_response.split(b"\r\n\r\n", 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    headers: dict[str, str] = {}
    for line in lines[1:]:
        name, value = line.split(":", 1)
        headers[name.strip().lower()] = value.strip()
    if headers.get("transfer-encoding") == "chunked" and body:
        body = _decode_chunked(body)
    return lines[0], headers, body


@pytest.fixture(params=["threaded", "selectors"])
def engine(request: pytest.FixtureRequest) -> str:
    return request.param


@pytest.fixture
def site(tmp_path: Path) -> Path:
    (tmp_path / "index.html").write_bytes(INDEX_HTML)
    (tmp_path / "docs").mkdir()
    (tmp_path / "empty").mkdir()
    (tmp_path / "docs" / "index.html").write_bytes(b"<h1>docs</h1>")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + os.urandom(4096))
    lines = [f'{{"row": {index}, "value": "{index * 7919 % 104729}"}}' for index in range(40_000)]
    (tmp_path / "big.json").write_text("[" + ",\n".join(lines) + "]")
    (tmp_path / "blob.bin").write_bytes(os.urandom(1_500_000))
    return tmp_path


def test_html_file_is_served(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        raw = _request(server.host, server.port, "/index.html")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-type"] == "text/html"
    assert "content-encoding" not in headers
    assert headers["content-length"] == str(len(INDEX_HTML))
    assert body == INDEX_HTML


def test_compressed_html_decompresses_to_source(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        raw = _request(server.host, server.port, "/index.html")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-type"] == "text/html"
    assert headers["content-encoding"] == "gzip"
    assert headers["transfer-encoding"] == "chunked"
    assert gzip.decompress(body) == INDEX_HTML


def test_large_compressible_file_round_trips(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        raw = _request(server.host, server.port, "/big.json")
    finally:
        _stop_server(server, thread)

    _status, headers, body = _parse(raw)
    assert headers["content-type"] == "application/json"
    assert gzip.decompress(body) == (site / "big.json").read_bytes()


def test_large_binary_file_is_sent_whole(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        raw = _request(server.host, server.port, "/blob.bin")
    finally:
        _stop_server(server, thread)

    _status, headers, body = _parse(raw)
    assert headers["content-type"] == "application/octet-stream"
    assert "content-encoding" not in headers
    assert body == (site / "blob.bin").read_bytes()


@pytest.mark.parametrize("compression_enabled", [False, True])
def test_png_is_never_gzipped(site: Path, engine: str, compression_enabled: bool) -> None:
    server, thread = _start_server(
        site, engine=engine, compression_enabled=compression_enabled
    )
    try:
        raw = _request(server.host, server.port, "/logo.png")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-type"] == "image/png"
    assert "content-encoding" not in headers
    assert body == (site / "logo.png").read_bytes()


def test_directory_without_slash_redirects(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        raw = _request(server.host, server.port, "/docs")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 302 Found"
    assert headers["location"] == "/docs/"
    assert body == b""


def test_directory_with_slash_serves_index(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        raw = _request(server.host, server.port, "/docs/")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-type"] == "text/html"
    assert body == b"<h1>docs</h1>"


def test_directory_without_index_is_404(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        raw = _request(server.host, server.port, "/empty/")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 404 Not Found"
    assert headers["content-type"] == "text/plain"
    assert body == b"404 Not Found\n"


@pytest.mark.parametrize("flags", [{}, {"compression_enabled": True, "logging_enabled": True}])
def test_missing_path_is_404(site: Path, engine: str, flags: dict[str, bool]) -> None:
    server, thread = _start_server(site, engine=engine, **flags)
    try:
        raw = _request(server.host, server.port, "/nope/missing.css")
    finally:
        _stop_server(server, thread)

    status, _headers, body = _parse(raw)
    assert status == "HTTP/1.1 404 Not Found"
    assert body == b"404 Not Found\n"


def test_head_returns_headers_only(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        plain = _request(server.host, server.port, "/logo.png", method="HEAD")
        gzipped = _request(server.host, server.port, "/index.html", method="HEAD")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(plain)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-length"] == str((site / "logo.png").stat().st_size)
    assert body == b""

    _status, headers, body = _parse(gzipped)
    assert headers["content-encoding"] == "gzip"
    assert "content-length" not in headers
    assert body == b""


def test_keep_alive_serves_two_requests(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        with socket.create_connection((server.host, server.port), timeout=3) as sock:
            sock.sendall(
                b"GET /index.html HTTP/1.1\r\n"
                b"Host: localhost\r\n"
                b"\r\n"
                b"GET /missing HTTP/1.1\r\n"
                b"Host: localhost\r\n"
                b"Connection: close\r\n"
                b"\r\n"
            )
            chunks: list[bytes] = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
    finally:
        _stop_server(server, thread)

    raw = b"".join(chunks)
    first_end = raw.index(b"\r\n\r\n") + 4 + len(INDEX_HTML)
    first, second = raw[:first_end], raw[first_end:]
    assert first.startswith(b"HTTP/1.1 200 OK")
    assert b"Connection: keep-alive" in first
    assert first.endswith(INDEX_HTML)
    assert second.startswith(b"HTTP/1.1 404 Not Found")
    assert b"Connection: close" in second


def test_malformed_request_returns_400(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        with socket.create_connection((server.host, server.port), timeout=3) as sock:
            sock.sendall(b"BROKEN\r\n\r\n")
            response = sock.recv(4096)
    finally:
        _stop_server(server, thread)

    assert response.startswith(b"HTTP/1.1 400 Bad Request")


def test_server_survives_failed_requests(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        with socket.create_connection((server.host, server.port), timeout=3) as sock:
            sock.sendall(b"GET /index.html HTTP/1.1\r\nHost: localhost\r\n")
        raw = _request(server.host, server.port, "/index.html")
    finally:
        _stop_server(server, thread)

    assert raw.startswith(b"HTTP/1.1 200 OK")


def test_logging_flag_gates_request_log(
    site: Path,
    engine: str,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=REQUEST_LOGGER_NAME)

    quiet, quiet_thread = _start_server(site, engine=engine)
    try:
        _request(quiet.host, quiet.port, "/index.html")
    finally:
        _stop_server(quiet, quiet_thread)
    assert not [r for r in caplog.records if r.name == REQUEST_LOGGER_NAME]

    loud, loud_thread = _start_server(site, engine=engine, logging_enabled=True)
    try:
        _request(loud.host, loud.port, "/docs")
    finally:
        _stop_server(loud, loud_thread)

    messages = [r.getMessage() for r in caplog.records if r.name == REQUEST_LOGGER_NAME]
    assert "redirecting to:       /docs/" in messages
    assert any("status=302" in message and f"engine={engine}" in message for message in messages)


def _request_http10(host: str, port: int, target: str, method: str = "GET") -> bytes:
    with socket.create_connection((host, port), timeout=5) as sock:
        sock.sendall(f"{method} {target} HTTP/1.0\r\n\r\n".encode("iso-8859-1"))
        chunks: list[bytes] = []
        while True:
            chunk = sock.recv(65_536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


@pytest.mark.parametrize("target", ["/index.html", "/big.json"])
def test_http10_client_gets_unchunked_gzip(site: Path, engine: str, target: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        raw = _request_http10(server.host, server.port, target)
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-encoding"] == "gzip"
    assert headers["connection"] == "close"
    assert "transfer-encoding" not in headers
    assert "content-length" not in headers
    assert gzip.decompress(body) == (site / target.lstrip("/")).read_bytes()


def test_http10_keep_alive_is_dropped_for_gzip(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        with socket.create_connection((server.host, server.port), timeout=5) as sock:
            sock.sendall(b"GET /index.html HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
            chunks: list[bytes] = []
            while True:
                chunk = sock.recv(65_536)
                if not chunk:
                    break
                chunks.append(chunk)
    finally:
        _stop_server(server, thread)

    _status, headers, body = _parse(b"".join(chunks))
    assert headers["connection"] == "close"
    assert gzip.decompress(body) == INDEX_HTML


def test_http10_head_for_gzip_has_no_chunked_marker(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine, compression_enabled=True)
    try:
        raw = _request_http10(server.host, server.port, "/index.html", method="HEAD")
    finally:
        _stop_server(server, thread)

    status, headers, body = _parse(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers["content-encoding"] == "gzip"
    assert "transfer-encoding" not in headers
    assert body == b""


def test_http10_plain_file_keeps_content_length(site: Path, engine: str) -> None:
    server, thread = _start_server(site, engine=engine)
    try:
        raw = _request_http10(server.host, server.port, "/index.html")
    finally:
        _stop_server(server, thread)

    _status, headers, body = _parse(raw)
    assert headers["content-length"] == str(len(INDEX_HTML))
    assert body == INDEX_HTML
