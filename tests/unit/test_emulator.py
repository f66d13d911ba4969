from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from ddblocal.config.models import Settings
from ddblocal.emulator import (
    Emulator,
    custom_client_factory,
    custom_jar_path,
    custom_lib_path,
    custom_name_generator,
    custom_port,
    custom_presence_detector,
    custom_process_supervisor,
    custom_settings,
    prepare_definition,
)
from ddblocal.errors import (
    ClientInitError,
    EmulatorStartError,
    EmulatorTerminateError,
    TableError,
)

DEFAULT_THROUGHPUT = {"ReadCapacityUnits": 1, "WriteCapacityUnits": 1}


class FakeDetector:
    def __init__(self, present: bool = False) -> None:
        self.present = present
        self.ports: list[int] = []

    def is_present(self, port: int) -> bool:
        self.ports.append(port)
        return self.present


class FakeSupervisor:
    """Records calls; a launch makes the paired detector report presence."""

    def __init__(self, detector: FakeDetector | None = None) -> None:
        self.detector = detector
        self.executed: list[tuple[str, tuple[str, ...]]] = []
        self.terminated = 0
        self.execute_error: Exception | None = None
        self.terminate_error: Exception | None = None

    def execute(self, name: str, *args: str) -> None:
        if self.execute_error is not None:
            raise self.execute_error
        self.executed.append((name, args))
        if self.detector is not None:
            self.detector.present = True

    def terminate(self) -> None:
        if self.terminate_error is not None:
            raise self.terminate_error
        self.terminated += 1


class FakeClient:
    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.deleted: list[dict[str, Any]] = []
        self.create_error: Exception | None = None
        self.delete_error: Exception | None = None

    def create_table(self, **kwargs: Any) -> dict[str, Any]:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(kwargs)
        return {}

    def delete_table(self, **kwargs: Any) -> dict[str, Any]:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(kwargs)
        return {}


class FakeScope:
    """Stands in for pytest's request: collects finalizers and runs them LIFO."""

    def __init__(self) -> None:
        self.finalizers: list[Callable[[], object]] = []

    def addfinalizer(self, finalizer: Callable[[], object]) -> None:
        self.finalizers.append(finalizer)

    def finalize(self) -> None:
        while self.finalizers:
            self.finalizers.pop()()


class Harness:
    def __init__(self) -> None:
        self.detector = FakeDetector()
        self.supervisor = FakeSupervisor(self.detector)
        self.client = FakeClient()
        self.client_ports: list[int] = []

    def init_client(self, port: int) -> FakeClient:
        self.client_ports.append(port)
        return self.client

    def emulator(self, *options: Any, settings: Settings | None = None) -> Emulator:
        return Emulator(
            custom_process_supervisor(self.supervisor),
            custom_presence_detector(self.detector),
            custom_client_factory(self.init_client),
            custom_name_generator(lambda: "test_name"),
            *options,
            settings=settings,
        )


@pytest.fixture
def h() -> Harness:
    return Harness()


# ------------------------
# Construction
# ------------------------
def test_init_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DDBLOCAL_LIB", "test_lib_path")
    monkeypatch.setenv("DDBLOCAL_JAR", "test_jar_path")

    detector = FakeDetector()
    supervisor = FakeSupervisor(detector)
    ddb = Emulator(custom_process_supervisor(supervisor), custom_presence_detector(detector))

    assert supervisor.executed == [
        (
            "java",
            (
                "-Djava.library.path=test_lib_path",
                "-jar",
                "test_jar_path",
                "-port",
                "8000",
                "-sharedDb",
                "-inMemory",
            ),
        )
    ]
    assert ddb.started
    assert ddb.client.meta.endpoint_url == "http://localhost:8000"


def test_init_custom_port(h: Harness) -> None:
    ddb = h.emulator(custom_port(8888))

    _, args = h.supervisor.executed[0]
    assert args[args.index("-port") + 1] == "8888"
    assert set(h.detector.ports) == {8888}
    assert h.client_ports == [8888]
    assert ddb.port == 8888


def test_init_custom_lib_and_jar_paths(h: Harness) -> None:
    h.emulator(custom_lib_path("my_lib"), custom_jar_path("my.jar"))

    _, args = h.supervisor.executed[0]
    assert args[0] == "-Djava.library.path=my_lib"
    assert args[1:3] == ("-jar", "my.jar")


def test_options_apply_in_order(h: Harness) -> None:
    ddb = h.emulator(custom_port(8001), custom_port(8002))
    assert ddb.port == 8002


def test_custom_settings_then_port_override(h: Harness) -> None:
    s = Settings(port=9000, jar="from_settings.jar", java="/opt/java/bin/java")
    ddb = h.emulator(custom_settings(s), custom_port(9001))

    name, args = h.supervisor.executed[0]
    assert name == "/opt/java/bin/java"
    assert "from_settings.jar" in args
    assert ddb.port == 9001
    assert s.port == 9000  # the passed settings object is untouched


def test_existing_emulator_is_reused(h: Harness) -> None:
    h.detector.present = True
    ddb = h.emulator()

    assert h.supervisor.executed == []
    assert not ddb.started
    assert ddb.client is h.client


def test_launch_error_is_fatal(h: Harness) -> None:
    h.supervisor.execute_error = EmulatorStartError("failed to start 'java'")
    with pytest.raises(EmulatorStartError):
        h.emulator()
    assert h.client_ports == []


def test_client_init_error_is_fatal(h: Harness) -> None:
    def broken(port: int) -> Any:
        raise ClientInitError("bad options")

    with pytest.raises(ClientInitError):
        h.emulator(custom_client_factory(broken))
    # the freshly launched process is not left behind
    assert h.supervisor.terminated == 1


def test_readiness_timeout_terminates_and_raises(h: Harness) -> None:
    h.supervisor.detector = None  # launch never becomes present
    s = Settings(ready_timeout=0.1, ready_interval=0.02)
    with pytest.raises(EmulatorStartError, match="did not answer"):
        h.emulator(settings=s)
    assert h.supervisor.terminated == 1


def test_readiness_wait_can_be_disabled(h: Harness) -> None:
    h.supervisor.detector = None
    ddb = h.emulator(settings=Settings(ready_timeout=0))
    assert ddb.started
    assert h.detector.ports == [8000]


# ------------------------
# Close
# ------------------------
def test_close_delegates_to_supervisor(h: Harness) -> None:
    ddb = h.emulator()
    ddb.close()
    assert h.supervisor.terminated == 1
    assert not ddb.started


def test_close_is_idempotent() -> None:
    """With the real supervisor and nothing launched, close never errors."""
    ddb = Emulator(
        custom_presence_detector(lambda port: True),
        custom_client_factory(lambda port: FakeClient()),
    )
    ddb.close()
    ddb.close()


def test_close_propagates_terminate_error(h: Harness) -> None:
    ddb = h.emulator()
    h.supervisor.terminate_error = EmulatorTerminateError("no permission")
    with pytest.raises(EmulatorTerminateError):
        ddb.close()


def test_context_manager_closes(h: Harness) -> None:
    with h.emulator() as ddb:
        assert ddb.started
    assert h.supervisor.terminated == 1


# ------------------------
# Runner
# ------------------------
def test_runner_creates_table_correctly(h: Harness) -> None:
    ddb = h.emulator()
    scope = FakeScope()
    received: list[tuple[Any, str]] = []

    definition = {"GlobalSecondaryIndexes": [{"IndexName": "GSI"}]}
    ddb.runner(scope, definition, lambda client, name: received.append((client, name)))

    assert received == [(h.client, "test_name")]
    assert h.client.created == [
        {
            "TableName": "test_name",
            "ProvisionedThroughput": DEFAULT_THROUGHPUT,
            "GlobalSecondaryIndexes": [
                {"IndexName": "GSI", "ProvisionedThroughput": DEFAULT_THROUGHPUT}
            ],
        }
    ]


def test_runner_deletes_table_on_finalize(h: Harness) -> None:
    ddb = h.emulator()
    scope = FakeScope()
    ddb.runner(scope, {}, lambda client, name: None)

    assert h.client.deleted == []  # not before the test scope ends
    scope.finalize()
    assert h.client.deleted == [{"TableName": "test_name"}]


def test_runner_cleanup_runs_when_body_fails(h: Harness) -> None:
    ddb = h.emulator()
    scope = FakeScope()

    def body(client: Any, name: str) -> None:
        raise AssertionError("body failed")

    with pytest.raises(AssertionError, match="body failed"):
        ddb.runner(scope, {}, body)

    assert len(scope.finalizers) == 1
    scope.finalize()
    assert h.client.deleted == [{"TableName": "test_name"}]


def test_runner_name_generation_failure_fails_test(h: Harness) -> None:
    def broken() -> str:
        raise OSError("no entropy")

    ddb = h.emulator(custom_name_generator(broken))
    scope = FakeScope()
    called: list[str] = []

    with pytest.raises(pytest.fail.Exception, match="failed to generate table name"):
        ddb.runner(scope, {}, lambda client, name: called.append(name))

    assert called == []
    assert h.client.created == []
    assert scope.finalizers == []


def test_runner_create_failure_fails_test(h: Harness) -> None:
    ddb = h.emulator()
    h.client.create_error = RuntimeError("ResourceInUseException")
    scope = FakeScope()
    called: list[str] = []

    with pytest.raises(pytest.fail.Exception, match="failed to create table test_name"):
        ddb.runner(scope, {}, lambda client, name: called.append(name))

    assert called == []
    assert scope.finalizers == []


def test_runner_delete_failure_fails_at_cleanup(h: Harness) -> None:
    ddb = h.emulator()
    h.client.delete_error = RuntimeError("ResourceNotFoundException")
    scope = FakeScope()

    ddb.runner(scope, {}, lambda client, name: None)  # body itself succeeds
    with pytest.raises(pytest.fail.Exception, match="failed to delete table test_name"):
        scope.finalize()


def test_runner_does_not_mutate_definition(h: Harness) -> None:
    names = iter(["first_table1", "second_table"])
    ddb = h.emulator(custom_name_generator(lambda: next(names)))
    definition: dict[str, Any] = {"GlobalSecondaryIndexes": [{"IndexName": "GSI"}]}

    ddb.runner(FakeScope(), definition, lambda client, name: None)
    ddb.runner(FakeScope(), definition, lambda client, name: None)

    assert definition == {"GlobalSecondaryIndexes": [{"IndexName": "GSI"}]}
    assert [c["TableName"] for c in h.client.created] == ["first_table1", "second_table"]


def test_runner_uses_configured_capacity(h: Harness) -> None:
    ddb = h.emulator(settings=Settings(read_capacity=5, write_capacity=3))
    ddb.runner(FakeScope(), {}, lambda client, name: None)
    assert h.client.created[0]["ProvisionedThroughput"] == {
        "ReadCapacityUnits": 5,
        "WriteCapacityUnits": 3,
    }


# ------------------------
# table() context manager
# ------------------------
def test_table_context_manager_creates_and_deletes(h: Harness) -> None:
    ddb = h.emulator()
    with ddb.table({}) as name:
        assert name == "test_name"
        assert h.client.created[0]["TableName"] == "test_name"
        assert h.client.deleted == []
    assert h.client.deleted == [{"TableName": "test_name"}]


def test_table_context_manager_deletes_on_error(h: Harness) -> None:
    ddb = h.emulator()
    with pytest.raises(KeyError):
        with ddb.table({}):
            raise KeyError("boom")
    assert h.client.deleted == [{"TableName": "test_name"}]


def test_table_context_manager_raises_table_error(h: Harness) -> None:
    ddb = h.emulator()
    h.client.create_error = RuntimeError("ValidationException")
    with pytest.raises(TableError) as excinfo:
        with ddb.table({}):
            pass
    assert excinfo.value.table_name == "test_name"
    assert h.client.deleted == []


# ------------------------
# prepare_definition
# ------------------------
def test_prepare_definition_keeps_explicit_throughput() -> None:
    explicit = {"ReadCapacityUnits": 10, "WriteCapacityUnits": 20}
    out = prepare_definition(
        {
            "TableName": "ignored",
            "ProvisionedThroughput": explicit,
            "GlobalSecondaryIndexes": [
                {"IndexName": "a", "ProvisionedThroughput": explicit},
                {"IndexName": "b"},
            ],
        },
        "generated",
    )

    assert out["TableName"] == "generated"
    assert out["ProvisionedThroughput"] == explicit
    assert out["GlobalSecondaryIndexes"][0]["ProvisionedThroughput"] == explicit
    assert out["GlobalSecondaryIndexes"][1]["ProvisionedThroughput"] == DEFAULT_THROUGHPUT


def test_prepare_definition_skips_pay_per_request() -> None:
    out = prepare_definition(
        {"BillingMode": "PAY_PER_REQUEST", "GlobalSecondaryIndexes": [{"IndexName": "a"}]},
        "generated",
    )
    assert "ProvisionedThroughput" not in out
    assert "ProvisionedThroughput" not in out["GlobalSecondaryIndexes"][0]


def test_prepare_definition_injects_independent_copies() -> None:
    out = prepare_definition({"GlobalSecondaryIndexes": [{"IndexName": "a"}]}, "t")
    out["ProvisionedThroughput"]["ReadCapacityUnits"] = 99
    assert out["GlobalSecondaryIndexes"][0]["ProvisionedThroughput"]["ReadCapacityUnits"] == 1
