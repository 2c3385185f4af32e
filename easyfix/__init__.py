"""
easyfix - deterministic fixtures for asynchronous dependencies

This package provides tools for wrapping a method so that tests can:
- Pass calls through to the real implementation (live)
- Run the real implementation once and record its outcome (capture)
- Skip the real implementation and rebuild the outcome from a fixture (replay)

Callback-style, awaitable-returning, and plain synchronous methods are
all supported.
"""

from easyfix.config import (
    WrapConfiguration,
    EasyFixConfig,
    load_config,
    resolve_configuration,
    swap_last_argument,
)
from easyfix.errors import (
    EasyFixError,
    MissingFixtureError,
    UnsettledDeferredFixtureError,
    ReplayedError,
)
from easyfix.fingerprint import fingerprint, HASH_LENGTH
from easyfix.mode import Mode, resolve_mode, ENV_MODE
from easyfix.serialize import stringify_safe, parse
from easyfix.store import FixtureRecord, FixtureStore
from easyfix.wrap import OutcomeShape, classify_outcome, wrap_async_method

__version__ = "0.1.0"

__all__ = [
    # Wrapping
    "wrap_async_method",
    "OutcomeShape",
    "classify_outcome",
    # Configuration
    "WrapConfiguration",
    "EasyFixConfig",
    "load_config",
    "resolve_configuration",
    "swap_last_argument",
    # Mode
    "Mode",
    "resolve_mode",
    "ENV_MODE",
    # Serialization
    "stringify_safe",
    "parse",
    "fingerprint",
    "HASH_LENGTH",
    # Store
    "FixtureRecord",
    "FixtureStore",
    # Errors
    "EasyFixError",
    "MissingFixtureError",
    "UnsettledDeferredFixtureError",
    "ReplayedError",
]
