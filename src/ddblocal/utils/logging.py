from __future__ import annotations

import json
import os
import threading
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

_LOG_DIR = Path("artifacts/logs")
_MAIN_LOG = _LOG_DIR / "ddblocal.log"


def _ensure_log_dir() -> None:
    try:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass


def _level_from_env() -> int:
    """Get log level from DDBLOCAL_LOG_LEVEL (TRACE|DEBUG|INFO|WARNING|ERROR)."""
    import logging

    raw = os.getenv("DDBLOCAL_LOG_LEVEL", "INFO").upper()
    if raw == "TRACE":
        return 5
    return getattr(logging, raw, logging.INFO)


_file_lock = threading.RLock()


def _drop_none_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if v is not None}


def _safe_test_name(test_name: str) -> str:
    return str(test_name).replace(os.sep, "_").replace("/", "_").replace(" ", "_").replace(":", "_")


def _file_sink_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Duplicate every record into artifacts/logs/ddblocal.log, and into
    artifacts/logs/test_<name>.log when a test is bound to the context.
    """
    _ensure_log_dir()

    line = json.dumps(event_dict, ensure_ascii=False, default=str)

    test_name = event_dict.get("test")
    test_path = None
    if isinstance(test_name, str) and test_name:
        test_path = _LOG_DIR / f"test_{_safe_test_name(test_name)}.log"

    try:
        with _file_lock:
            with _MAIN_LOG.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
            if test_path is not None:
                with test_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
    except OSError:
        # Log files are a convenience; stdout still gets the record
        pass

    return event_dict


def current_test_log_path(test_name: str | None = None) -> Path:
    """
    Return the log file path for a test, or the main log when no name is given.
    """
    _ensure_log_dir()
    if not test_name:
        return _MAIN_LOG
    return _LOG_DIR / f"test_{_safe_test_name(test_name)}.log"


def bind_context(
    *,
    port: int | None = None,
    table: str | None = None,
    test_name: str | None = None,
) -> None:
    """Bind emulator port, table name and test name into the logging context."""
    values: dict[str, Any] = {}
    if port is not None:
        values["port"] = port
    if table is not None:
        values["table"] = table
    if test_name is not None:
        values["test"] = test_name
    bind_contextvars(**values)


_CONFIGURED = False


def setup_logging() -> None:
    """
    Configure structlog once per process.

    - Level from DDBLOCAL_LOG_LEVEL
    - ISO 8601 timestamp under "timestamp"
    - Context (port, table, test) via contextvars
    - JSON lines on stdout, duplicated into artifacts/logs/
    """
    import logging

    global _CONFIGURED
    if _CONFIGURED:
        return

    _ensure_log_dir()

    level = _level_from_env()

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.MODULE]
            ),
            _drop_none_values,
            _file_sink_processor,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    # botocore is chatty at DEBUG
    logging.getLogger().setLevel(level)
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))

    _CONFIGURED = True


def get_logger(name: str | None = None) -> Any:
    """
    Get a structlog logger, configuring logging on first use so that plain
    library usage outside the pytest plugin logs the same way.
    """
    if not _CONFIGURED:
        setup_logging()
    return structlog.get_logger(name or __name__)


__all__ = [
    "setup_logging",
    "bind_context",
    "current_test_log_path",
    "get_logger",
    "clear_contextvars",
]
