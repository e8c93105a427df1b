"""Pytest configuration and fixtures for objstore tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from objstore.observability.tracing import clear_test_spans, configure_tracing, reset_tracing


@pytest.fixture(autouse=True)
def clean_objstore_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove OBJSTORE_* variables so the host environment cannot leak in.

    Tests that need configuration set it explicitly with monkeypatch.
    """
    for key in list(os.environ):
        if key.startswith("OBJSTORE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def temp_storage_dir() -> Iterator[Path]:
    """Create a temporary directory for storage tests."""
    with tempfile.TemporaryDirectory(prefix="objstore_test_storage_") as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def otel_capture(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Enable tracing with the in-memory span exporter."""
    monkeypatch.setenv("OBJSTORE_OTEL_ENABLED", "1")
    monkeypatch.setenv("OBJSTORE_OTEL_TEST_CAPTURE", "1")
    configure_tracing()
    clear_test_spans()
    yield
    reset_tracing()
