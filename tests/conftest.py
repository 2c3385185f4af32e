"""Pytest fixtures for easyfix tests."""

import os

import pytest

from easyfix.mode import ENV_MODE
from easyfix.config import ENV_CONFIG

pytest_plugins = ["easyfix.pytest_plugin"]


@pytest.fixture
def fixture_dir(tmp_path):
    """Provide an existing fixture directory."""
    path = tmp_path / "fixtures"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def reset_env(tmp_path, monkeypatch):
    """Isolate tests from TEST_MODE and any easyfix.yaml on the host."""
    original_env = os.environ.copy()
    monkeypatch.delenv(ENV_MODE, raising=False)
    monkeypatch.delenv(ENV_CONFIG, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    os.environ.clear()
    os.environ.update(original_env)
