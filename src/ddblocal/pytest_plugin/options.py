import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Registers command-line options of the ddblocal plugin:
      --ddblocal-config <path> : Path to the YAML configuration file.
      --ddblocal-port <port>   : Port override for the emulator.
      --ddblocal-integration   : Also run tests marked `ddblocal_integration`.
    """
    g = parser.getgroup("ddblocal")
    g.addoption(
        "--ddblocal-config",
        action="store",
        default=None,
        help="Path to YAML configuration file for DynamoDB Local",
    )
    g.addoption(
        "--ddblocal-port",
        action="store",
        type=int,
        default=None,
        help="Port of the DynamoDB Local emulator (default 8000)",
    )
    g.addoption(
        "--ddblocal-integration",
        action="store_true",
        default=False,
        help="Also run tests that need a real DynamoDB Local emulator",
    )
