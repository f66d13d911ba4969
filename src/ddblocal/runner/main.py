from __future__ import annotations

import time
from typing import Any

import pytest
import typer

from ..config.loader import load_settings
from ..config.models import Settings
from ..emulator import Emulator
from ..presence import HttpPresenceDetector

app = typer.Typer(add_completion=False, help="Manage a DynamoDB Local emulator for tests.")


def _settings(config: str | None, port: int | None) -> Settings:
    s = load_settings(config)
    if port:
        s = s.model_copy(update={"port": port})
    return s


@app.command()
def status(
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
    port: int = typer.Option(None, help="Emulator port (default from configuration)"),
) -> None:
    """Report whether DynamoDB Local answers on the configured port (exit code 1 if not)."""
    s = _settings(config, port)
    detector = HttpPresenceDetector(host=s.host, timeout=s.presence_timeout, type_prefix=s.type_prefix)
    if detector.is_present(s.port):
        typer.echo(f"present: {s.endpoint}")
        return
    typer.echo(f"absent: {s.endpoint}")
    raise typer.Exit(code=1)


@app.command()
def start(
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
    port: int = typer.Option(None, help="Emulator port (default from configuration)"),
) -> None:
    """
    Start DynamoDB Local (or reuse a running one) and keep it up until Ctrl+C.

    Handy for running several test processes against one emulator.
    """
    s = _settings(config, port)
    with Emulator(settings=s) as emulator:
        state = "started" if emulator.started else "reused"
        typer.echo(f"DynamoDB Local {state} at {s.endpoint}. Press Ctrl+C to exit.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            typer.echo("Stopping DynamoDB Local")


@app.command()
def test(
    config: str = typer.Option(None, help="Path to the YAML configuration file"),
    port: int = typer.Option(None, help="Emulator port"),
    integration: bool = typer.Option(False, help="Also run tests that need a real emulator"),
    tests_path: str = typer.Option("tests", help="Path to the tests to run"),
    extra: str = typer.Option("", help="Additional arguments for pytest (space-separated)"),
) -> Any:
    """
    Run pytest with the ddblocal plugin options.

    Example:
        ddblocal test --integration --extra "-k runner -x"
    """
    args = [tests_path]
    if config:
        args += ["--ddblocal-config", config]
    if port:
        args += ["--ddblocal-port", str(port)]
    if integration:
        args.append("--ddblocal-integration")
    if extra:
        args += extra.split()

    raise SystemExit(pytest.main(args))


if __name__ == "__main__":
    app()
