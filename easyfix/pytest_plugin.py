"""
pytest integration.

Enable it from a top-level conftest.py::

    pytest_plugins = ["easyfix.pytest_plugin"]

then pick the mode for a whole run with ``--easyfix-mode capture``.
Wrappers created through the ``wrap_async`` fixture are installed with
``monkeypatch`` and restored when the test finishes.
"""

from typing import Any, Callable, Optional

import pytest

from easyfix.config import normalize_options
from easyfix.mode import Mode
from easyfix.wrap import wrap_async_method


def pytest_addoption(parser: Any) -> None:
    group = parser.getgroup("easyfix")
    group.addoption(
        "--easyfix-mode",
        action="store",
        default=None,
        choices=[mode.value for mode in Mode],
        help="Default mode for wrap_async wrappers (overrides TEST_MODE).",
    )


@pytest.fixture
def easyfix_mode(request: Any) -> Optional[Mode]:
    """Mode given with --easyfix-mode, or None."""
    value = request.config.getoption("--easyfix-mode")
    return Mode(value) if value else None


@pytest.fixture
def wrap_async(monkeypatch: Any, easyfix_mode: Optional[Mode]) -> Callable[..., Any]:
    """Factory fixture around wrap_async_method that restores on teardown.

    Usage::

        def test_fetch(wrap_async):
            wrap_async(client, "fetch", "tests/data")
    """

    def _wrap(target: Any, method_name: str, options: Any = None, **overrides: Any) -> Any:
        merged = {"stubber": monkeypatch}
        if easyfix_mode is not None:
            merged["mode"] = easyfix_mode
        merged.update(normalize_options(options))
        merged.update(overrides)
        return wrap_async_method(target, method_name, merged)

    return _wrap
