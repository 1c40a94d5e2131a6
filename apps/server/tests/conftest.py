"""Shared test helpers for the piclimate test suite."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest

os.environ.setdefault("PICLIMATE_DISABLE_AUTO_APP", "1")

from piclimate.config import AppConfig, _deep_merge, load_config  # noqa: E402


def wait_until(predicate, timeout_s: float = 2.0, step_s: float = 0.02) -> bool:
    """Poll *predicate* until it returns truthy, or *timeout_s* expires."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step_s)
    return False


async def async_wait_until(predicate, timeout_s: float = 2.0, step_s: float = 0.02) -> bool:
    """Async version of :func:`wait_until`; yields to the event loop between polls."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step_s)
    return False


def make_config(tmp_path: Path, overrides: dict | None = None) -> AppConfig:
    """Load a config rooted in *tmp_path* so databases land in the test directory."""
    base = {"database": {"path": str(tmp_path / "measurements.db")}}
    return load_config(tmp_path / "config.yaml", overrides=_deep_merge(base, overrides or {}))


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return make_config(tmp_path)
