"""Static file server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import heapq
import json
import logging
import os
import selectors
import socket
import sys
import threading
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import BinaryIO, NoReturn

from config import (
    ENGINES,
    HOST,
    IDLE_SWEEP_INTERVAL_SECS,
    KEEPALIVE_TIMEOUT_SECS,
    LOG_FORMATS,
    MAX_ACTIVE_CONNECTIONS,
    MAX_KEEPALIVE_REQUESTS,
    PORT,
    READ_CHUNK_SIZE,
    SELECT_TIMEOUT_SECS,
    SERVER_ENGINE,
    SOCKET_TIMEOUT_SECS,
    WRITE_CHUNK_SIZE,
    ServerConfig,
)
from handlers.static_files import handle_request
from request import HTTPRequest, RequestError, split_request
from request_log import RequestLog, build_request_log
from response import REASON_PHRASES, HTTPResponse, close_stream, prepare_response
from socket_handler import read_request, write_response

logger = logging.getLogger(__name__)


def _error_response(status_code: int) -> HTTPResponse:
    return HTTPResponse(
        status_code=status_code,
        headers={"Connection": "close"},
        body=REASON_PHRASES.get(status_code, "Bad Request"),
    )


@dataclass(slots=True)
class OutboundResponse:
    """Tracks incremental write state for a queued HTTP response."""

    response: HTTPResponse
    method: str
    path: str
    started_at: float
    connection_reused: bool
    connection_id: int
    request_id: int
    bytes_in: int
    close_after: bool
    ready_at: float = 0.0
    pending_chunks: deque[memoryview] = field(default_factory=deque)
    stream_iter: Iterator[bytes] | None = None
    body_stream: Iterator[bytes] | None = None
    file_obj: BinaryIO | None = None
    file_remaining: int = 0
    file_offset: int = 0
    bytes_sent: int = 0

    @classmethod
    def from_http_response(
        cls,
        *,
        response: HTTPResponse,
        method: str,
        path: str,
        started_at: float,
        connection_reused: bool,
        connection_id: int,
        request_id: int,
        bytes_in: int,
        close_after: bool,
    ) -> "OutboundResponse":
        prepared = prepare_response(response)
        outbound = cls(
            response=response,
            method=method,
            path=path,
            started_at=started_at,
            connection_reused=connection_reused,
            connection_id=connection_id,
            request_id=request_id,
            bytes_in=bytes_in,
            close_after=close_after,
            ready_at=time.monotonic() + response.delay_secs,
        )
        outbound.pending_chunks.append(memoryview(prepared.head))
        if prepared.body:
            outbound.pending_chunks.append(memoryview(prepared.body))
        elif prepared.stream is not None:
            outbound.body_stream = prepared.stream
            outbound.stream_iter = prepared.iter_stream()
        elif prepared.file_path is not None:
            outbound.file_obj = prepared.file_path.open("rb")
            outbound.file_remaining = os.fstat(outbound.file_obj.fileno()).st_size
        return outbound

    def close_resources(self) -> None:
        if self.file_obj is not None:
            self.file_obj.close()
            self.file_obj = None
        if self.body_stream is not None:
            close_stream(self.body_stream)
            self.body_stream = None
            self.stream_iter = None


@dataclass(slots=True)
class ConnectionState:
    sock: socket.socket
    address: tuple[str, int]
    connection_id: int
    recv_buffer: bytearray = field(default_factory=bytearray)
    queued_responses: deque[OutboundResponse] = field(default_factory=deque)
    current_response: OutboundResponse | None = None
    requests_served: int = 0
    last_activity: float = field(default_factory=time.monotonic)
    closing: bool = False
    registered: bool = False
    timer_armed_for: float | None = None

    def next_outbound(self) -> OutboundResponse | None:
        if self.current_response is not None:
            return self.current_response
        if self.queued_responses:
            return self.queued_responses[0]
        return None


class HTTPServer:
    def __init__(
        self,
        config: ServerConfig | None = None,
        request_log: RequestLog | None = None,
        *,
        max_active_connections: int = MAX_ACTIVE_CONNECTIONS,
        keepalive_timeout_secs: int = KEEPALIVE_TIMEOUT_SECS,
    ) -> None:
        self.config = config or ServerConfig()
        self.request_log = request_log or build_request_log(self.config.logging_enabled)
        self.host = self.config.host
        self.port = self.config.port
        self.engine = self.config.engine
        self.max_active_connections = max_active_connections
        self.keepalive_timeout_secs = keepalive_timeout_secs

        self._server_socket: socket.socket | None = None
        self._connection_slots = threading.BoundedSemaphore(max_active_connections)
        self._selector_connections: dict[int, ConnectionState] = {}
        self._timers: list[tuple[float, int, int]] = []
        self._next_connection_id = 0
        self._running = False

    def start(self) -> None:
        """Start listening and process clients according to the configured engine."""
        if self.engine == "threaded":
            self._start_threaded()
            return
        if self.engine == "selectors":
            self._start_selectors()
            return
        raise ValueError(f"Unsupported engine: {self.engine}")

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _bind(self, server_socket: socket.socket) -> None:
        self._server_socket = server_socket
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server_socket.bind((self.host, self.port))
        server_socket.listen(128)
        self.port = server_socket.getsockname()[1]

    def _send_busy_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
    ) -> None:
        with client_socket:
            client_socket.settimeout(SOCKET_TIMEOUT_SECS)
            started_at = time.perf_counter()
            try:
                bytes_sent = write_response(client_socket, _error_response(503))
            except OSError:
                return
            self._record_and_log(
                address=address,
                method="-",
                path="-",
                status_code=503,
                bytes_out=bytes_sent,
                bytes_in=0,
                started_at=started_at,
                connection_reused=False,
                connection_id=0,
                request_id=0,
            )

    # -- threaded engine ---------------------------------------------------

    def _start_threaded(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._bind(server_socket)
            server_socket.settimeout(0.2)
            self._running = True
            while self._running:
                try:
                    client_socket, address = server_socket.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break

                if not self._connection_slots.acquire(blocking=False):
                    self._send_busy_response(client_socket, address)
                    continue

                self._next_connection_id += 1
                worker = threading.Thread(
                    target=self._run_connection,
                    args=(client_socket, address, self._next_connection_id),
                    name=f"lagserve-conn-{self._next_connection_id}",
                    daemon=True,
                )
                worker.start()

    def _run_connection(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        connection_id: int,
    ) -> None:
        try:
            self._handle_client(client_socket, address, connection_id)
        finally:
            self._connection_slots.release()

    def _handle_client(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        connection_id: int,
    ) -> None:
        with client_socket:
            client_socket.settimeout(min(SOCKET_TIMEOUT_SECS, self.keepalive_timeout_secs))
            carry = b""
            for request_count in range(1, MAX_KEEPALIVE_REQUESTS + 1):
                started_at = time.perf_counter()
                try:
                    request, carry = read_request(client_socket, carry)
                except RequestError as exc:
                    self._reply_and_close(
                        client_socket, address, exc.status_code, started_at, connection_id
                    )
                    return
                except OSError:
                    return

                if request is None:
                    return

                response = self._dispatch(request)
                should_close = self._apply_connection_headers(request, response, request_count)

                # each connection owns its thread, so sleeping holds up nobody else
                if response.delay_secs > 0:
                    time.sleep(response.delay_secs)

                try:
                    bytes_sent = write_response(client_socket, response)
                except OSError as exc:
                    logger.debug("Aborted response to %s: %s", address[0], exc)
                    return

                self._record_and_log(
                    address=address,
                    method=request.method,
                    path=request.path,
                    status_code=response.status_code,
                    bytes_out=bytes_sent,
                    bytes_in=request.size,
                    started_at=started_at,
                    connection_reused=request_count > 1,
                    connection_id=connection_id,
                    request_id=request_count,
                )
                if should_close:
                    return

    def _reply_and_close(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        status_code: int,
        started_at: float,
        connection_id: int,
    ) -> None:
        try:
            bytes_sent = write_response(client_socket, _error_response(status_code))
        except OSError:
            return
        self._record_and_log(
            address=address,
            method="-",
            path="-",
            status_code=status_code,
            bytes_out=bytes_sent,
            bytes_in=0,
            started_at=started_at,
            connection_reused=False,
            connection_id=connection_id,
            request_id=0,
        )

    # -- selectors engine --------------------------------------------------

    def _start_selectors(self) -> None:
        with (
            socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket,
            selectors.DefaultSelector() as selector,
        ):
            self._bind(server_socket)
            server_socket.setblocking(False)
            selector.register(server_socket, selectors.EVENT_READ, data=None)
            self._running = True

            last_idle_sweep = time.monotonic()
            try:
                while self._running:
                    try:
                        events = selector.select(timeout=self._select_timeout())
                    except OSError:
                        if not self._running:
                            break
                        raise

                    for key, mask in events:
                        if key.data is None:
                            self._accept_selector_clients(server_socket, selector)
                            continue

                        state: ConnectionState = key.data
                        if mask & selectors.EVENT_READ:
                            self._handle_selector_read(state, selector)
                        if mask & selectors.EVENT_WRITE:
                            self._handle_selector_write(state, selector)

                    self._fire_due_timers(selector)

                    now = time.monotonic()
                    if now - last_idle_sweep >= IDLE_SWEEP_INTERVAL_SECS:
                        self._sweep_idle_connections(selector, now)
                        last_idle_sweep = now
            finally:
                for state in list(self._selector_connections.values()):
                    self._close_selector_connection(state, selector)
                self._selector_connections.clear()
                self._timers.clear()

    def _select_timeout(self) -> float:
        if not self._timers:
            return SELECT_TIMEOUT_SECS
        until_next = self._timers[0][0] - time.monotonic()
        return max(0.0, min(SELECT_TIMEOUT_SECS, until_next))

    def _fire_due_timers(self, selector: selectors.BaseSelector) -> None:
        now = time.monotonic()
        while self._timers and self._timers[0][0] <= now:
            _ready_at, fileno, connection_id = heapq.heappop(self._timers)
            state = self._selector_connections.get(fileno)
            if state is None or state.connection_id != connection_id:
                continue
            state.timer_armed_for = None
            self._update_selector_interest(state, selector)

    def _accept_selector_clients(
        self,
        server_socket: socket.socket,
        selector: selectors.BaseSelector,
    ) -> None:
        while True:
            try:
                client_socket, address = server_socket.accept()
            except OSError:
                return

            if len(self._selector_connections) >= self.max_active_connections:
                self._send_busy_response(client_socket, address)
                continue

            client_socket.setblocking(False)
            self._next_connection_id += 1
            state = ConnectionState(
                sock=client_socket,
                address=address,
                connection_id=self._next_connection_id,
            )
            self._selector_connections[client_socket.fileno()] = state
            self._set_interest(state, selector, selectors.EVENT_READ)

    def _handle_selector_read(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        try:
            chunk = state.sock.recv(READ_CHUNK_SIZE)
        except BlockingIOError:
            return
        except OSError:
            self._close_selector_connection(state, selector)
            return

        if not chunk:
            state.closing = True
            self._update_selector_interest(state, selector)
            return

        state.last_activity = time.monotonic()
        state.recv_buffer.extend(chunk)

        while not state.closing:
            started_at = time.perf_counter()
            try:
                split = split_request(bytes(state.recv_buffer))
            except RequestError as exc:
                self._queue_error_response(state, exc.status_code, 0, started_at)
                break

            if split is None:
                break

            request, leftover = split
            state.recv_buffer = bytearray(leftover)

            state.requests_served += 1
            response = self._dispatch(request)
            should_close = self._apply_connection_headers(request, response, state.requests_served)
            queued = self._queue_selector_response(
                state,
                response,
                method=request.method,
                path=request.path,
                started_at=started_at,
                request_id=state.requests_served,
                bytes_in=request.size,
                close_after=should_close,
            )
            if not queued:
                self._close_selector_connection(state, selector)
                return
            if should_close:
                state.closing = True

        self._update_selector_interest(state, selector)

    def _queue_error_response(
        self,
        state: ConnectionState,
        status_code: int,
        bytes_in: int,
        started_at: float,
    ) -> None:
        self._queue_selector_response(
            state,
            _error_response(status_code),
            method="-",
            path="-",
            started_at=started_at,
            request_id=state.requests_served + 1,
            bytes_in=bytes_in,
            close_after=True,
        )
        state.closing = True

    def _queue_selector_response(
        self,
        state: ConnectionState,
        response: HTTPResponse,
        *,
        method: str,
        path: str,
        started_at: float,
        request_id: int,
        bytes_in: int,
        close_after: bool,
    ) -> bool:
        try:
            outbound = OutboundResponse.from_http_response(
                response=response,
                method=method,
                path=path,
                started_at=started_at,
                connection_reused=state.requests_served > 1,
                connection_id=state.connection_id,
                request_id=request_id,
                bytes_in=bytes_in,
                close_after=close_after,
            )
        except OSError as exc:
            # the file went away between resolution and opening it
            logger.debug("Dropping connection %s: %s", state.connection_id, exc)
            close_stream(response.stream)
            return False
        state.queued_responses.append(outbound)
        return True

    def _handle_selector_write(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        while True:
            if state.current_response is None:
                if not state.queued_responses:
                    break
                if state.queued_responses[0].ready_at > time.monotonic():
                    break
                state.current_response = state.queued_responses.popleft()

            outbound = state.current_response

            if outbound.pending_chunks:
                view = outbound.pending_chunks[0]
                try:
                    sent = state.sock.send(view)
                except BlockingIOError:
                    return
                except OSError:
                    self._close_selector_connection(state, selector)
                    return

                if sent <= 0:
                    return
                state.last_activity = time.monotonic()
                outbound.bytes_sent += sent
                if sent < len(view):
                    outbound.pending_chunks[0] = view[sent:]
                    return
                outbound.pending_chunks.popleft()
                continue

            if outbound.stream_iter is not None:
                try:
                    next_chunk = next(outbound.stream_iter)
                except StopIteration:
                    outbound.close_resources()
                    continue
                except OSError as exc:
                    logger.debug("Stream failed on connection %s: %s", state.connection_id, exc)
                    self._close_selector_connection(state, selector)
                    return
                outbound.pending_chunks.append(memoryview(next_chunk))
                continue

            if outbound.file_obj is not None and outbound.file_remaining > 0:
                if not self._send_file_slice(state, outbound, selector):
                    return
                continue

            outbound.close_resources()
            self._finalize_selector_response(state, outbound, selector)
            if state.sock.fileno() not in self._selector_connections:
                return
            state.current_response = None
            if state.closing and not state.queued_responses:
                break

        self._update_selector_interest(state, selector)

    def _send_file_slice(
        self,
        state: ConnectionState,
        outbound: OutboundResponse,
        selector: selectors.BaseSelector,
    ) -> bool:
        """Push the next slice of a file body; False means stop for now."""
        assert outbound.file_obj is not None
        if hasattr(os, "sendfile"):
            try:
                sent = os.sendfile(
                    state.sock.fileno(),
                    outbound.file_obj.fileno(),
                    outbound.file_offset,
                    min(WRITE_CHUNK_SIZE, outbound.file_remaining),
                )
            except BlockingIOError:
                return False
            except OSError:
                self._close_selector_connection(state, selector)
                return False

            if not sent:
                # file shrank underneath us; the promised length can't be met
                self._close_selector_connection(state, selector)
                return False
            state.last_activity = time.monotonic()
            outbound.bytes_sent += sent
            outbound.file_offset += sent
            outbound.file_remaining -= sent
            if outbound.file_remaining > 0:
                return False
            outbound.close_resources()
            return True

        try:
            chunk = outbound.file_obj.read(min(WRITE_CHUNK_SIZE, outbound.file_remaining))
        except OSError:
            self._close_selector_connection(state, selector)
            return False
        if not chunk:
            self._close_selector_connection(state, selector)
            return False
        outbound.pending_chunks.append(memoryview(chunk))
        outbound.file_remaining -= len(chunk)
        return True

    def _finalize_selector_response(
        self,
        state: ConnectionState,
        outbound: OutboundResponse,
        selector: selectors.BaseSelector,
    ) -> None:
        self._record_and_log(
            address=state.address,
            method=outbound.method,
            path=outbound.path,
            status_code=outbound.response.status_code,
            bytes_out=outbound.bytes_sent,
            bytes_in=outbound.bytes_in,
            started_at=outbound.started_at,
            connection_reused=outbound.connection_reused,
            connection_id=outbound.connection_id,
            request_id=outbound.request_id,
        )

        if outbound.close_after:
            self._close_selector_connection(state, selector)

    def _sweep_idle_connections(
        self,
        selector: selectors.BaseSelector,
        now: float,
    ) -> None:
        for state in list(self._selector_connections.values()):
            if state.closing or state.next_outbound() is not None:
                continue
            if now - state.last_activity <= self.keepalive_timeout_secs:
                continue
            self._queue_error_response(state, 408, 0, time.perf_counter())
            self._update_selector_interest(state, selector)

    def _update_selector_interest(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        fileno = state.sock.fileno()
        if fileno not in self._selector_connections:
            return

        outbound = state.next_outbound()
        if state.closing and outbound is None:
            self._close_selector_connection(state, selector)
            return

        events = 0
        if not state.closing:
            events |= selectors.EVENT_READ
        if outbound is not None:
            if outbound.ready_at > time.monotonic():
                self._arm_timer(state, outbound.ready_at)
            else:
                events |= selectors.EVENT_WRITE

        self._set_interest(state, selector, events)

    def _arm_timer(self, state: ConnectionState, ready_at: float) -> None:
        if state.timer_armed_for == ready_at:
            return
        state.timer_armed_for = ready_at
        heapq.heappush(self._timers, (ready_at, state.sock.fileno(), state.connection_id))

    def _set_interest(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
        events: int,
    ) -> None:
        try:
            if not events:
                # parked until its timer fires
                if state.registered:
                    selector.unregister(state.sock)
                    state.registered = False
                return
            if state.registered:
                selector.modify(state.sock, events, data=state)
            else:
                selector.register(state.sock, events, data=state)
                state.registered = True
        except (KeyError, ValueError, OSError):
            self._close_selector_connection(state, selector)

    def _close_selector_connection(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        fileno = state.sock.fileno()
        if fileno not in self._selector_connections:
            return

        if state.registered:
            try:
                selector.unregister(state.sock)
            except (KeyError, ValueError):
                pass
            state.registered = False

        if state.current_response is not None:
            state.current_response.close_resources()
            state.current_response = None
        while state.queued_responses:
            state.queued_responses.popleft().close_resources()

        try:
            state.sock.close()
        except OSError:
            pass

        self._selector_connections.pop(fileno, None)

    # -- shared ------------------------------------------------------------

    def _apply_connection_headers(
        self,
        request: HTTPRequest,
        response: HTTPResponse,
        request_count: int,
    ) -> bool:
        should_close = (not request.keep_alive) or request_count >= MAX_KEEPALIVE_REQUESTS
        if response.length_unknown and not request.accepts_chunked:
            # HTTP/1.0 peers cannot parse chunks; the close marks the end of the body
            response.close_delimited = True
            should_close = True
        if should_close:
            response.headers.setdefault("Connection", "close")
        else:
            response.headers.setdefault("Connection", "keep-alive")
            response.headers.setdefault(
                "Keep-Alive",
                (
                    f"timeout={self.keepalive_timeout_secs}, "
                    f"max={MAX_KEEPALIVE_REQUESTS - request_count}"
                ),
            )
        return should_close

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        try:
            response = handle_request(request, self.config, self.request_log)
            if request.method == "HEAD":
                return self._as_head_response(response)
            return response
        except Exception:
            logger.exception("Unhandled error while serving %s", request.target)
            return HTTPResponse(status_code=500, body="Internal Server Error")

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        status_code: int,
        bytes_out: int,
        bytes_in: int,
        started_at: float,
        connection_reused: bool,
        connection_id: int,
        request_id: int,
    ) -> None:
        if not self.request_log.enabled:
            return

        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": status_code,
            "engine": self.engine,
            "connection_id": connection_id,
            "request_id": request_id,
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "latency_ms": round(duration_ms, 3),
            "connection_reused": connection_reused,
        }
        if self.config.log_format == "json":
            self.request_log.log("%s", json.dumps(event, sort_keys=True))
            return

        self.request_log.log(
            (
                "client=%s method=%s path=%s status=%s engine=%s "
                "connection_id=%s request_id=%s bytes_in=%s bytes_out=%s "
                "duration_ms=%.2f connection_reused=%s"
            ),
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["engine"],
            event["connection_id"],
            event["request_id"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
            event["connection_reused"],
        )

    def _as_head_response(self, get_response: HTTPResponse) -> HTTPResponse:
        headers = dict(get_response.headers)
        if get_response.stream is not None:
            close_stream(get_response.stream)
            headers["Transfer-Encoding"] = "chunked"
            return HTTPResponse(
                status_code=get_response.status_code,
                reason_phrase=get_response.reason_phrase,
                headers=headers,
                body=b"",
                delay_secs=get_response.delay_secs,
            )

        if get_response.file_path is not None:
            body_size = get_response.file_path.stat().st_size
            return HTTPResponse(
                status_code=get_response.status_code,
                reason_phrase=get_response.reason_phrase,
                headers=headers,
                body=b"",
                content_length_override=body_size,
                delay_secs=get_response.delay_secs,
            )

        return HTTPResponse(
            status_code=get_response.status_code,
            reason_phrase=get_response.reason_phrase,
            headers=headers,
            body=b"",
            content_length_override=len(get_response.body),
            delay_secs=get_response.delay_secs,
        )


class _ArgumentParser(argparse.ArgumentParser):
    """Prints the full help text, not just usage, on a bad command line."""

    def error(self, message: str) -> NoReturn:
        self.print_help(sys.stderr)
        self.exit(2, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="lagserve",
        description="Serve the current directory over HTTP",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-h", "-help", action="help", help="show this help and exit")
    parser.add_argument(
        "-compress",
        action="store_true",
        help="if used, will compress data before sending",
    )
    parser.add_argument(
        "-port",
        type=int,
        default=PORT,
        help="specify the port to use for listening",
    )
    parser.add_argument("-log", action="store_true", help="if used, will log what's happening")
    parser.add_argument(
        "-lag",
        type=int,
        default=0,
        help="set a delay in milliseconds before answering requests",
    )
    parser.add_argument("-host", default=HOST, help="address to bind")
    parser.add_argument("-root", default=None, help="directory to serve (default: cwd)")
    parser.add_argument("-engine", choices=ENGINES, default=SERVER_ENGINE)
    parser.add_argument("-log-format", dest="log_format", choices=LOG_FORMATS, default="plain")
    return parser


def _parse_args(
    argv: list[str] | None = None,
) -> tuple[argparse.ArgumentParser, argparse.Namespace]:
    parser = _build_parser()
    return parser, parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        compression_enabled=args.compress,
        logging_enabled=args.log,
        port=args.port,
        lag_ms=args.lag,
        root_dir=os.path.abspath(args.root) if args.root else os.getcwd(),
        host=args.host,
        engine=args.engine,
        log_format=args.log_format,
    )


def describe_config(config: ServerConfig) -> list[str]:
    lag = f"{config.lag_ms}ms" if config.lag_ms > 0 else "none"
    return [
        f"compression : {str(config.compression_enabled).lower()}",
        f"log         : {str(config.logging_enabled).lower()}",
        f"port        : {config.port}",
        f"lag         : {lag}",
    ]


def main(argv: list[str] | None = None) -> int:
    parser, args = _parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(level=logging.INFO)
    for line in describe_config(config):
        print(line)

    server = HTTPServer(config)
    print(f"Static file server running at http://localhost:{config.port}/\nCTRL + C to shutdown")
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
