"""Configuration constants and the immutable per-process server settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

HOST: str = "0.0.0.0"
PORT: int = 8000
READ_CHUNK_SIZE: int = 8192
WRITE_CHUNK_SIZE: int = 65_536
SOCKET_TIMEOUT_SECS: int = 5
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 524_288
MAX_TARGET_LENGTH: int = 8192
KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 100
IDLE_SWEEP_INTERVAL_SECS: float = 1.0
SELECT_TIMEOUT_SECS: float = 0.2
MAX_ACTIVE_CONNECTIONS: int = 1024
SERVER_ENGINE: str = "threaded"
LOG_FORMAT: str = "plain"
SERVER_NAME: str = "lagserve/1.0"
INDEX_FILE: str = "index.html"

ENGINES: tuple[str, ...] = ("threaded", "selectors")
LOG_FORMATS: tuple[str, ...] = ("plain", "json")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Settings captured once at startup and shared read-only by every request."""

    compression_enabled: bool = False
    logging_enabled: bool = False
    port: int = PORT
    lag_ms: int = 0
    root_dir: str = field(default_factory=os.getcwd)
    host: str = HOST
    engine: str = SERVER_ENGINE
    log_format: str = LOG_FORMAT

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {self.port}")
        if self.lag_ms < 0:
            raise ValueError(f"lag must not be negative, got {self.lag_ms}")
        if self.engine not in ENGINES:
            raise ValueError(f"Unsupported engine: {self.engine}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Unsupported log format: {self.log_format}")

    @property
    def lag_secs(self) -> float:
        return self.lag_ms / 1000
