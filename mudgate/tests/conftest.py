"""Pytest configuration and fixtures."""

# 3rd party
import pytest


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Event log directory isolated from the user's XDG data directory."""
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
    return str(tmp_path / "data")
