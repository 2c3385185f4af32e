"""
Exceptions raised by easyfix wrappers.

Only a missing fixture file is re-signaled with guidance. Every other
filesystem or parse failure propagates unchanged.
"""

from pathlib import Path
from typing import Union


MISSING_FIXTURE_HEADER = (
    "This test (in replay mode) could not read the expected mock data from"
)
SERIALIZED_ARGS_LABEL = "Serialized arguments"
MISSING_FIXTURE_FOOTER = (
    "If you have not already, try running this test in capture mode to "
    "generate new test fixtures.  If you continue to see this error, a likely "
    "cause is a differing (frequently changing) argument for the wrapped "
    "asynchronous task.  This can be mitigated by defining an "
    "argument_serializer option that ignores the frequently-changing argument."
)
UNSETTLED_DEFERRED_MESSAGE = (
    "easyfix retained no resolution/rejection arguments for this wrapped awaitable"
)


class EasyFixError(Exception):
    """Base class for easyfix errors."""


class MissingFixtureError(EasyFixError):
    """Raised when replay mode cannot find the fixture file for a call.

    Attributes:
        path: Fixture path that was expected to exist.
        call_args: Serialized call arguments the path was derived from.
    """

    def __init__(self, path: Union[str, Path], call_args: str):
        self.path = Path(path)
        self.call_args = call_args
        super().__init__(
            f'{MISSING_FIXTURE_HEADER} "{self.path}"\n\n'
            f"{SERIALIZED_ARGS_LABEL}:\n{call_args}\n\n"
            f"{MISSING_FIXTURE_FOOTER}"
        )


class UnsettledDeferredFixtureError(EasyFixError):
    """Raised by a replayed awaitable whose fixture has no settlement data."""

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(UNSETTLED_DEFERRED_MESSAGE)


class ReplayedError(EasyFixError):
    """Stand-in for a recorded exception whose class could not be rebuilt.

    Attributes:
        type_name: Qualified name of the exception type that was recorded.
        message: ``str()`` of the recorded exception.
    """

    def __init__(self, type_name: str, message: str):
        self.type_name = type_name
        self.message = message
        super().__init__(message)
