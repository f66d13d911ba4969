from __future__ import annotations

import copy
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from types import TracebackType
from typing import Any, Protocol

import pytest
from structlog.contextvars import bound_contextvars

from .client import Boto3ClientFactory, ClientFactory, ClientFactoryFunc
from .config.models import Settings
from .errors import EmulatorStartError, EmulatorTerminateError, TableError
from .names import NameGenerator, NameGeneratorFunc, RandomNameGenerator
from .presence import (
    HttpPresenceDetector,
    PresenceDetector,
    PresenceDetectorFunc,
    wait_until_present,
)
from .process import ProcessSupervisor, SubprocessSupervisor
from .utils.logging import get_logger
from .utils.net import is_listening

PAY_PER_REQUEST = "PAY_PER_REQUEST"

EmulatorOption = Callable[["Emulator"], None]
TableBody = Callable[[Any, str], None]


class FinalizerScope(Protocol):
    """Anything that can run a callback when a test finishes (pytest request or item)."""

    def addfinalizer(self, finalizer: Callable[[], object]) -> None: ...


def prepare_definition(
    definition: Mapping[str, Any],
    table_name: str,
    *,
    read_capacity: int = 1,
    write_capacity: int = 1,
) -> dict[str, Any]:
    """
    Return a copy of a `create_table` definition bound to `table_name`.

    TableName is always overwritten. Unless the table is billed per request,
    a ProvisionedThroughput is injected into the table and into every global
    secondary index that lacks one. The caller's mapping is left untouched.
    """
    table_input: dict[str, Any] = copy.deepcopy(dict(definition))
    table_input["TableName"] = table_name

    if table_input.get("BillingMode") == PAY_PER_REQUEST:
        return table_input

    def throughput() -> dict[str, int]:
        return {"ReadCapacityUnits": read_capacity, "WriteCapacityUnits": write_capacity}

    if not table_input.get("ProvisionedThroughput"):
        table_input["ProvisionedThroughput"] = throughput()
    for index in table_input.get("GlobalSecondaryIndexes") or []:
        if not index.get("ProvisionedThroughput"):
            index["ProvisionedThroughput"] = throughput()

    return table_input


class Emulator:
    """
    Wraps a DynamoDB Local process for programmatic control in tests.

    Construction resolves Settings (defaults plus DDBLOCAL_* environment),
    applies the options in order, reuses an emulator already listening on the
    configured port or launches a new one, and builds the client. One
    instance is meant to be shared by a whole test session; `runner()` and
    `table()` give every test its own randomly named table so tests can run
    in parallel against the shared emulator.

    Example:
        with Emulator(custom_port(8001)) as ddb:
            with ddb.table(definition) as name:
                ddb.client.put_item(TableName=name, Item=...)
    """

    def __init__(self, *options: EmulatorOption, settings: Settings | None = None) -> None:
        self._settings = settings if settings is not None else Settings()
        self._name_generator: NameGenerator | None = None
        self._process_supervisor: ProcessSupervisor | None = None
        self._presence_detector: PresenceDetector | None = None
        self._client_factory: ClientFactory | None = None
        self._client: Any = None
        self._started = False

        for option in options:
            option(self)

        s = self._settings
        if self._name_generator is None:
            self._name_generator = RandomNameGenerator()
        if self._process_supervisor is None:
            self._process_supervisor = SubprocessSupervisor(log_file=s.process_log)
        if self._presence_detector is None:
            self._presence_detector = HttpPresenceDetector(
                host=s.host, timeout=s.presence_timeout, type_prefix=s.type_prefix
            )
        if self._client_factory is None:
            self._client_factory = Boto3ClientFactory(
                host=s.host, region=s.region, access_key=s.access_key, secret_key=s.secret_key
            )

        self._log = get_logger(__name__).bind(port=s.port)

        self._start()
        self._init_client()

    # ------------------------
    # Public API
    # ------------------------
    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def port(self) -> int:
        return self._settings.port

    @property
    def client(self) -> Any:
        """The DynamoDB client bound to the emulator."""
        return self._client

    @property
    def started(self) -> bool:
        """Whether this instance launched the emulator (False when it reused one)."""
        return self._started

    def command_args(self) -> list[str]:
        """Arguments passed to the java executable when launching the emulator."""
        s = self._settings
        return [
            f"-Djava.library.path={s.lib}",
            "-jar",
            s.jar,
            "-port",
            str(s.port),
            "-sharedDb",
            "-inMemory",
        ]

    def runner(self, scope: FinalizerScope, definition: Mapping[str, Any], body: TableBody) -> None:
        """
        Run `body(client, table_name)` against a freshly created, randomly named table.

        The table is deleted by a finalizer registered on `scope` (a pytest
        request or item), so cleanup happens when the test finishes whether
        or not the body failed. Name generation, creation and deletion errors
        fail the test.
        """
        try:
            table_name = self._name_generator.generate()
        except Exception as e:
            pytest.fail(f"failed to generate table name: {e}", pytrace=False)

        try:
            self._create_table(definition, table_name)
        except TableError as e:
            pytest.fail(str(e), pytrace=False)

        scope.addfinalizer(lambda: self._delete_table_or_fail(table_name))

        with bound_contextvars(table=table_name):
            body(self._client, table_name)

    @contextmanager
    def table(self, definition: Mapping[str, Any]) -> Iterator[str]:
        """
        Create a randomly named table for the duration of the `with` block.

        Yields the table name; the table is always deleted on exit.

        Raises:
            TableError: If the table cannot be created or deleted.
        """
        table_name = self._name_generator.generate()
        self._create_table(definition, table_name)
        try:
            with bound_contextvars(table=table_name):
                yield table_name
        finally:
            self._delete_table(table_name)

    def close(self) -> None:
        """
        Kill the emulator process if this instance started one.

        Errors from the supervisor propagate unchanged. Safe to call more than once.
        """
        self._process_supervisor.terminate()
        if self._started:
            self._log.info("Emulator closed", action="emulator_close")
        self._started = False

    def __enter__(self) -> Emulator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Emulator(endpoint={self._settings.endpoint!r}, started={self._started})"

    # ------------------------
    # Helper methods
    # ------------------------
    def _start(self) -> None:
        """Launch DynamoDB Local unless one already answers on the port."""
        s = self._settings
        if self._presence_detector.is_present(s.port):
            self._log.info("DynamoDB Local detected - reusing it", action="emulator_reuse")
            return

        if is_listening(s.host, s.port):
            self._log.warning(
                "Port is taken by something that is not DynamoDB Local",
                host=s.host,
            )
        if not s.jar:
            self._log.warning("No jar path configured (set DDBLOCAL_JAR)")

        self._log.info("Starting DynamoDB Local", action="emulator_start", jar=s.jar)
        self._process_supervisor.execute(s.java, *self.command_args())
        self._started = True

        if s.ready_timeout > 0:
            self._wait_until_ready()

    def _wait_until_ready(self) -> None:
        s = self._settings
        if wait_until_present(
            self._presence_detector, s.port, timeout=s.ready_timeout, interval=s.ready_interval
        ):
            self._log.info("DynamoDB Local is ready", action="emulator_ready")
            return

        self._log.error(
            "DynamoDB Local did not become ready within the timeout",
            action="emulator_ready_timeout",
            timeout=s.ready_timeout,
        )
        self._abort_start()
        raise EmulatorStartError(
            f"DynamoDB Local did not answer on {s.endpoint} within {s.ready_timeout} seconds"
        )

    def _abort_start(self) -> None:
        """Kill a process this instance launched when construction cannot complete."""
        if not self._started:
            return
        try:
            self._process_supervisor.terminate()
        except EmulatorTerminateError as e:
            self._log.error("Failed to kill the emulator after a failed start", error=str(e))
        self._started = False

    def _init_client(self) -> None:
        try:
            self._client = self._client_factory.init_client(self._settings.port)
        except Exception:
            self._abort_start()
            raise

    def _create_table(self, definition: Mapping[str, Any], table_name: str) -> None:
        s = self._settings
        table_input = prepare_definition(
            definition,
            table_name,
            read_capacity=s.read_capacity,
            write_capacity=s.write_capacity,
        )
        try:
            self._client.create_table(**table_input)
        except Exception as e:
            raise TableError(f"failed to create table {table_name}: {e}", table_name) from e
        self._log.debug("Table created", table=table_name)

    def _delete_table(self, table_name: str) -> None:
        try:
            self._client.delete_table(TableName=table_name)
        except Exception as e:
            raise TableError(f"failed to delete table {table_name}: {e}", table_name) from e
        self._log.debug("Table deleted", table=table_name)

    def _delete_table_or_fail(self, table_name: str) -> None:
        try:
            self._delete_table(table_name)
        except TableError as e:
            pytest.fail(str(e), pytrace=False)


# ------------------------
# Options
# ------------------------
def custom_name_generator(generator: NameGenerator | Callable[[], str]) -> EmulatorOption:
    """Use an alternative table name generator (object or plain callable)."""
    if not hasattr(generator, "generate"):
        generator = NameGeneratorFunc(generator)

    def option(e: Emulator) -> None:
        e._name_generator = generator

    return option


def custom_process_supervisor(supervisor: ProcessSupervisor) -> EmulatorOption:
    """Use an alternative implementation of the process supervisor."""

    def option(e: Emulator) -> None:
        e._process_supervisor = supervisor

    return option


def custom_presence_detector(detector: PresenceDetector | Callable[[int], bool]) -> EmulatorOption:
    """Use an alternative presence detector (object or plain callable)."""
    if not hasattr(detector, "is_present"):
        detector = PresenceDetectorFunc(detector)

    def option(e: Emulator) -> None:
        e._presence_detector = detector

    return option


def custom_client_factory(factory: ClientFactory | Callable[[int], Any]) -> EmulatorOption:
    """Use an alternative client factory (object or plain callable)."""
    if not hasattr(factory, "init_client"):
        factory = ClientFactoryFunc(factory)

    def option(e: Emulator) -> None:
        e._client_factory = factory

    return option


def custom_settings(settings: Settings) -> EmulatorOption:
    """Replace the whole configuration, e.g. with one loaded from YAML."""

    def option(e: Emulator) -> None:
        e._settings = settings

    return option


def _update_settings(**update: Any) -> EmulatorOption:
    def option(e: Emulator) -> None:
        e._settings = e._settings.model_copy(update=update)

    return option


def custom_port(port: int) -> EmulatorOption:
    """Override the emulator port (default 8000)."""
    return _update_settings(port=port)


def custom_lib_path(lib_path: str) -> EmulatorOption:
    """Override the native library path (default from DDBLOCAL_LIB)."""
    return _update_settings(lib=lib_path)


def custom_jar_path(jar_path: str) -> EmulatorOption:
    """Override the jar path (default from DDBLOCAL_JAR)."""
    return _update_settings(jar=jar_path)


__all__ = [
    "Emulator",
    "EmulatorOption",
    "FinalizerScope",
    "custom_client_factory",
    "custom_jar_path",
    "custom_lib_path",
    "custom_name_generator",
    "custom_port",
    "custom_presence_detector",
    "custom_process_supervisor",
    "custom_settings",
    "prepare_definition",
]
