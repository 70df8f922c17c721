"""Shared fixtures: isolate configuration and log context per test."""

import pytest

from papyrus.observability import clear_log_context


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config loading at a file that does not exist."""
    monkeypatch.setenv("PAPYRUS_CONFIG", str(tmp_path / "missing.json"))


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()
