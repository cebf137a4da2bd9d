"""Request tracing that is either forwarded to ``logging`` or discarded."""

from __future__ import annotations

import logging
from typing import Protocol

REQUEST_LOGGER_NAME = "lagserve.requests"


class RequestLog(Protocol):
    enabled: bool

    def log(self, message: str, *args: object) -> None: ...


class NullRequestLog:
    enabled = False

    def log(self, message: str, *args: object) -> None:
        return None


class LoggingRequestLog:
    enabled = True

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(REQUEST_LOGGER_NAME)

    def log(self, message: str, *args: object) -> None:
        self._logger.info(message, *args)


def build_request_log(enabled: bool) -> RequestLog:
    """Pick the request log implementation once, at startup."""
    if enabled:
        return LoggingRequestLog()
    return NullRequestLog()
