from __future__ import annotations

import os
from typing import Any

import yaml

from .models import Settings

# Can be overridden with the "DDBLOCAL_CONFIG" environment variable.
DEFAULT_CONFIG: str = os.getenv("DDBLOCAL_CONFIG", "configs/ddblocal.yaml")


def load_settings(path: str | None = None) -> Settings:
    """
    Load emulator settings from a YAML file.

    Environment variables still take precedence over values from the file.
    A missing or empty file yields the default settings.
    """
    file_path: str = path or DEFAULT_CONFIG
    data: dict[str, Any] = {}

    if os.path.exists(file_path):
        with open(file_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
            if isinstance(loaded, dict):
                data = loaded

    return Settings(**data)
