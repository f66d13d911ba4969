from __future__ import annotations

import socket
from typing import cast


def is_listening(host: str, port: int, timeout: float = 0.5) -> bool:
    """
    Check that (host, port) is accepting TCP connections.

    Args:
        host: Address to check, for example "localhost".
        port: Port to check.
        timeout: Connection timeout in seconds.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def get_free_port() -> int:
    """
    Find a free TCP port on localhost.

    Note: a race condition is possible between returning the value and actual use.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        addr_port = cast(tuple[str, int], s.getsockname())
        return addr_port[1]
