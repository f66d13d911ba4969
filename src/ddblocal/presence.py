from __future__ import annotations

import json
import time
from collections.abc import Callable
from http.client import HTTPException
from typing import Protocol
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from .utils.logging import get_logger

DEFAULT_TYPE_PREFIX = "com.amazonaws.dynamodb"
DEFAULT_TIMEOUT = 0.5

_log = get_logger(__name__)


class PresenceDetector(Protocol):
    """Checks whether DynamoDB Local is already listening on a port."""

    def is_present(self, port: int) -> bool: ...


class HttpPresenceDetector:
    """
    Detects a running DynamoDB Local by the shape of its unauthenticated reply.

    A bare GET to the emulator root answers like this:

        HTTP/1.1 400 Bad Request
        Content-Type: application/x-amz-json-1.0

        {
            "__type": "com.amazonaws.dynamodb.v20120810#MissingAuthenticationToken",
            "message": "Request must contain either a valid (registered) AWS access key ID or X.509 certificate."
        }

    Only that combination (status 400 and a `__type` starting with
    `type_prefix`) counts as present. Every failure, including timeouts and
    refused connections, is reported as "not present" rather than raised.
    """

    def __init__(
        self,
        host: str = "localhost",
        timeout: float = DEFAULT_TIMEOUT,
        type_prefix: str = DEFAULT_TYPE_PREFIX,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self.type_prefix = type_prefix

    def is_present(self, port: int) -> bool:
        url = f"http://{self.host}:{port}/"
        try:
            status, body = self._get(url)
        except (OSError, HTTPException, ValueError) as e:
            _log.debug("Presence probe failed", url=url, error=repr(e))
            return False

        if status != 400:
            _log.debug("Presence probe got unexpected status", url=url, status=status)
            return False

        try:
            payload = json.loads(body.decode("utf-8"))
        except ValueError:
            _log.debug("Presence probe got a non-JSON body", url=url)
            return False

        type_ = payload.get("__type") if isinstance(payload, dict) else None
        if not isinstance(type_, str) or not type_.startswith(self.type_prefix):
            _log.debug("Presence probe got a foreign error type", url=url, type=type_)
            return False

        return True

    def _get(self, url: str) -> tuple[int, bytes]:
        req = Request(url, method="GET")
        try:
            with urlopen(req, timeout=self.timeout) as resp:  # nosec - local endpoint
                return resp.getcode() or 0, resp.read()
        except HTTPError as e:
            # 4xx/5xx replies arrive as exceptions; the 400 is what we look for
            with e:
                return e.code, e.read()


class PresenceDetectorFunc:
    """Adapts a plain `(port) -> bool` callable to the PresenceDetector protocol."""

    def __init__(self, func: Callable[[int], bool]) -> None:
        self._func = func

    def is_present(self, port: int) -> bool:
        return self._func(port)


def wait_until_present(
    detector: PresenceDetector,
    port: int,
    *,
    timeout: float,
    interval: float = 0.25,
) -> bool:
    """
    Poll `detector` until it reports the emulator on `port` or `timeout`
    seconds elapse. Returns whether the emulator became present.
    """
    deadline = time.monotonic() + timeout
    while True:
        if detector.is_present(port):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(interval)


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_TYPE_PREFIX",
    "HttpPresenceDetector",
    "PresenceDetector",
    "PresenceDetectorFunc",
    "wait_until_present",
]
