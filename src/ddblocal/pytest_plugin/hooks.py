from __future__ import annotations

import os
from typing import Any

import allure
import pytest

from ddblocal.utils.logging import current_test_log_path

INTEGRATION_MARKER = "ddblocal_integration"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{INTEGRATION_MARKER}: test needs a real DynamoDB Local "
        "(skipped unless --ddblocal-integration is given)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--ddblocal-integration"):
        return
    skip = pytest.mark.skip(reason="needs --ddblocal-integration")
    for item in items:
        if INTEGRATION_MARKER in item.keywords:
            item.add_marker(skip)


def pytest_runtest_makereport(item: Any, call: Any) -> None:
    """
    When the test body (call phase) fails, attach the tail of the test's
    ddblocal log to the Allure report.
    """
    if getattr(call, "when", None) != "call" or getattr(call, "excinfo", None) is None:
        return

    path = current_test_log_path(getattr(item, "name", None))
    content = ""
    try:
        if os.path.exists(path):
            with open(path, encoding="utf-8", errors="ignore") as f:
                content = "".join(f.readlines()[-200:])
    except OSError:
        content = ""

    if content:
        allure.attach(
            content,
            name="ddblocal logs",
            attachment_type=allure.attachment_type.TEXT,
        )
