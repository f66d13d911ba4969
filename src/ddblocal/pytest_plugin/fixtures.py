from __future__ import annotations

from collections.abc import Callable, Generator, Mapping
from typing import Any

import allure
import pytest

from ..config.loader import load_settings
from ..config.models import Settings
from ..emulator import Emulator, TableBody
from ..utils.logging import bind_context, clear_contextvars, get_logger, setup_logging

_logger = get_logger(__name__)


@pytest.fixture(scope="session")
def ddblocal_settings(pytestconfig: pytest.Config) -> Settings:
    """
    Load emulator settings once per session.

    Supports overriding via command-line options:
      --ddblocal-config <path>
      --ddblocal-port <port>
    """
    with allure.step("Load DynamoDB Local configuration"):
        s = load_settings(pytestconfig.getoption("--ddblocal-config"))

        port: int | None = pytestconfig.getoption("--ddblocal-port")
        if port:
            s = s.model_copy(update={"port": port})

        return s


@pytest.fixture(scope="session")
def ddblocal(ddblocal_settings: Settings) -> Generator[Emulator, None, None]:
    """
    DynamoDB Local emulator shared by the whole test session.

    - If an emulator already answers on the configured port, it is reused.
    - Otherwise a new process is launched and awaited.
    - At session end the process is killed if this session started it.
    """
    with allure.step(f"Start DynamoDB Local on port {ddblocal_settings.port}"):
        emulator = Emulator(settings=ddblocal_settings)
    _logger.info(
        "Session emulator ready",
        endpoint=ddblocal_settings.endpoint,
        started=emulator.started,
    )
    try:
        yield emulator
    finally:
        with allure.step("Stop DynamoDB Local"):
            emulator.close()


@pytest.fixture
def ddblocal_client(ddblocal: Emulator) -> Any:
    """DynamoDB client bound to the session emulator."""
    return ddblocal.client


@pytest.fixture
def ddblocal_runner(
    ddblocal: Emulator, request: pytest.FixtureRequest
) -> Callable[[Mapping[str, Any], TableBody], None]:
    """
    Emulator.runner bound to the requesting test.

    Usage:
        def test_put(ddblocal_runner):
            def body(client, table_name):
                client.put_item(TableName=table_name, Item=...)

            ddblocal_runner(definition, body)
    """

    def run(definition: Mapping[str, Any], body: TableBody) -> None:
        ddblocal.runner(request, definition, body)

    return run


# ----- Logging: initialization and context -----
@pytest.fixture(scope="session", autouse=True)
def _ddblocal_setup_structlog() -> None:
    """One-time structured logging setup for the entire test session."""
    setup_logging()


@pytest.fixture(autouse=True)
def _ddblocal_bind_test_logging_context(
    request: pytest.FixtureRequest,
) -> Generator[None, None, None]:
    """Bind the test name to the logging context for the duration of each test."""
    bind_context(test_name=request.node.name)
    try:
        yield
    finally:
        clear_contextvars()
