from __future__ import annotations


class DDBLocalError(Exception):
    """Base class for errors raised by ddblocal."""


class EmulatorStartError(DDBLocalError):
    """The emulator process could not be launched or never became reachable."""


class EmulatorTerminateError(DDBLocalError):
    """The tracked emulator process could not be killed."""


class ClientInitError(DDBLocalError):
    """The DynamoDB client for the emulator could not be constructed."""


class TableError(DDBLocalError):
    """A per-test table could not be created or deleted."""

    def __init__(self, message: str, table_name: str | None = None) -> None:
        super().__init__(message)
        self.table_name = table_name
