"""
Configuration for wrapped methods.

A WrapConfiguration is resolved once per wrapped method from, in order:
- Options passed to ``wrap_async_method``
- The TEST_MODE environment variable (mode only)
- An optional ``easyfix.yaml`` project config file
- Built-in defaults
"""

import asyncio
import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

import yaml

from .mode import Mode, coerce_mode, resolve_mode
from .serialize import parse, stringify_safe

ENV_CONFIG = "EASYFIX_CONFIG"
CONFIG_FILENAME = "easyfix.yaml"
DEFAULT_DIR = "tests/data"


# ---------------------------------------------------------------------------
# Strategy interfaces
# ---------------------------------------------------------------------------

class Serializer(Protocol):
    """Turns call arguments or an outcome into a string."""

    def __call__(self, value: Any) -> str: ...


class Deserializer(Protocol):
    """Turns a serialized string back into a value."""

    def __call__(self, text: str) -> Any: ...


class CallbackSwap(Protocol):
    """Replaces the trailing callback in ``args`` and returns the original."""

    def __call__(self, args: List[Any], proxy: Callable[..., Any]) -> Callable[..., Any]: ...


class Scheduler(Protocol):
    """Runs ``fn`` on a later scheduling turn."""

    def __call__(self, fn: Callable[[], Any]) -> None: ...


class Stubber(Protocol):
    """Installs attributes and owns their restoration (e.g. pytest's monkeypatch)."""

    def setattr(self, target: Any, name: str, value: Any) -> None: ...


def swap_last_argument(args: List[Any], proxy: Callable[..., Any]) -> Callable[..., Any]:
    """Default callback swap: replace the last argument with ``proxy``."""
    original = args[-1]
    args[-1] = proxy
    return original


def call_soon(fn: Callable[[], Any]) -> None:
    """Default scheduler: run ``fn`` on the next turn of the running event loop.

    Outside a running loop ``fn`` runs on a short-lived daemon thread instead,
    so it still never runs before the caller gets control back.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(0, fn)
        timer.daemon = True
        timer.start()
        return
    loop.call_soon(fn)


# ---------------------------------------------------------------------------
# Project config file
# ---------------------------------------------------------------------------

class EasyFixConfig:
    """Configuration loaded from easyfix.yaml"""

    def __init__(self, config_dict: Dict[str, Any]):
        self._config = config_dict

    @property
    def fixture_dir(self) -> Optional[str]:
        """Default fixture directory, if configured"""
        return self._config.get("dir")

    @property
    def mode(self) -> Optional[str]:
        """Default mode, if configured"""
        return self._config.get("mode")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key"""
        return self._config.get(key, default)


def load_config(config_path: Optional[Union[str, Path]] = None) -> EasyFixConfig:
    """
    Load configuration from easyfix.yaml.

    Search order:
    1. Provided config_path
    2. EASYFIX_CONFIG environment variable
    3. ./easyfix.yaml in current directory
    4. easyfix.yaml in parent directories (walk up the tree)

    Args:
        config_path: Optional explicit path to config file

    Returns:
        EasyFixConfig instance (empty when no file is found)
    """
    if config_path:
        return _load_from_path(Path(config_path))

    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return _load_from_path(Path(env_path))

    current = Path.cwd()
    while True:
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            return _load_from_path(config_file)

        if current == current.parent:
            break
        current = current.parent

    return EasyFixConfig({})


def _load_from_path(path: Path) -> EasyFixConfig:
    """Load config from a specific path (JSON or YAML)"""
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            config_dict = json.load(f)
        else:
            config_dict = yaml.safe_load(f)
    return EasyFixConfig(config_dict or {})


# ---------------------------------------------------------------------------
# Per-wrapper configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WrapConfiguration:
    """
    Immutable settings of one wrapped method.

    Attributes:
        directory: Directory holding fixture files
        prefix: Fixture file name prefix
        mode: Resolved operating mode
        argument_serializer: Serializes call arguments (and drives the fingerprint)
        response_serializer: Serializes callback and awaitable settlement arguments
        return_value_serializer: Serializes synchronous return values
        deserializer: Parses serialized fields back during replay
        callback_swap: Substitutes the trailing callback with a recording proxy
        scheduler: Defers replayed callbacks to a later scheduling turn
        stubber: Optional collaborator that installs and restores the wrapper
    """
    directory: Path
    prefix: str
    mode: Mode
    argument_serializer: Serializer = stringify_safe
    response_serializer: Serializer = stringify_safe
    return_value_serializer: Serializer = stringify_safe
    deserializer: Deserializer = parse
    callback_swap: CallbackSwap = swap_last_argument
    scheduler: Scheduler = call_soon
    stubber: Optional[Stubber] = None


OPTION_NAMES = frozenset({
    "dir",
    "prefix",
    "mode",
    "argument_serializer",
    "response_serializer",
    "return_value_serializer",
    "deserializer",
    "callback_swap",
    "scheduler",
    "stubber",
})


def normalize_options(options: Union[str, "os.PathLike[str]", Mapping[str, Any], None]) -> Dict[str, Any]:
    """Turn the ``options`` argument into a dict; a bare path means ``dir``."""
    if options is None:
        return {}
    if isinstance(options, (str, os.PathLike)):
        return {"dir": options}
    return dict(options)


def resolve_configuration(
    method_name: str,
    options: Union[str, "os.PathLike[str]", Mapping[str, Any], None] = None,
    **overrides: Any,
) -> WrapConfiguration:
    """
    Build the WrapConfiguration for a method.

    Args:
        method_name: Name of the wrapped method, the default prefix
        options: Directory shorthand or mapping of option names
        **overrides: Option names that take precedence over ``options``

    Returns:
        Resolved WrapConfiguration

    Raises:
        TypeError: If an option name is not recognised
        ValueError: If an explicit mode is not a known mode
    """
    merged = normalize_options(options)
    merged.update(overrides)

    unknown = set(merged) - OPTION_NAMES
    if unknown:
        raise TypeError(f"Unknown easyfix option(s): {', '.join(sorted(unknown))}")

    settings = {k: v for k, v in merged.items() if v is not None}

    file_config: Optional[EasyFixConfig] = None
    if "dir" not in settings or "mode" not in settings:
        file_config = load_config()

    if "dir" in settings:
        directory = Path(settings.pop("dir"))
    else:
        directory = Path(file_config.fixture_dir or DEFAULT_DIR)

    explicit_mode = settings.pop("mode", None)
    mode = resolve_mode(
        coerce_mode(explicit_mode) if explicit_mode is not None else None,
        file_config.mode if file_config is not None else None,
    )

    prefix = settings.pop("prefix", None) or method_name

    return WrapConfiguration(directory=directory, prefix=prefix, mode=mode, **settings)
