"""Test configuration for pytest."""
from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

ENV_VARS = [
    'SSORG_MODE',
    'SSORG_CACHE_FILE',
    'SSORG_CATALOG_URL',
    'SSORG_PACK_DIR',
    'SSORG_MAX_WORKERS',
    'SSORG_WAIT_TIMEOUT',
    'SSORG_DRY_RUN',
    'SSORG_VERBOSE',
    'SSORG_NO_PAUSE',
]


@pytest.fixture(autouse=True)
def change_to_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Change to temporary directory for each test."""
    original_dir = os.getcwd()
    monkeypatch.chdir(tmp_path)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield
    os.chdir(original_dir)
