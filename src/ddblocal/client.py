from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError

from .errors import ClientInitError
from .utils.logging import get_logger

_log = get_logger(__name__)


class ClientFactory(Protocol):
    """Builds a DynamoDB client bound to the emulator on a port."""

    def init_client(self, port: int) -> Any: ...


class Boto3ClientFactory:
    """
    Builds a boto3 DynamoDB client for a local emulator.

    The credentials and region are placeholders; DynamoDB Local accepts any
    values. Reachability of the endpoint is not checked here.
    """

    def __init__(
        self,
        host: str = "localhost",
        region: str = "test",
        access_key: str = "test",
        secret_key: str = "test",
    ) -> None:
        self.host = host
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key

    def init_client(self, port: int) -> Any:
        endpoint = f"http://{self.host}:{port}"
        try:
            session = boto3.session.Session(
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                region_name=self.region,
            )
            client = session.client("dynamodb", endpoint_url=endpoint)
        except (BotoCoreError, ValueError) as e:
            raise ClientInitError(f"failed to build DynamoDB client for {endpoint}: {e}") from e

        _log.debug("DynamoDB client created", endpoint=endpoint, region=self.region)
        return client


class ClientFactoryFunc:
    """Adapts a plain `(port) -> client` callable to the ClientFactory protocol."""

    def __init__(self, func: Callable[[int], Any]) -> None:
        self._func = func

    def init_client(self, port: int) -> Any:
        return self._func(port)


__all__ = ["Boto3ClientFactory", "ClientFactory", "ClientFactoryFunc"]
