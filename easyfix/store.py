"""
Fixture store for reading and writing recorded calls.

Directory structure:
    directory/
        <prefix>-<fingerprint>.json

One file per fingerprint. A capture rewrites the whole file on every settle
event, so the file converges to its final content at the last one.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import MissingFixtureError
from .fingerprint import fingerprint, fixture_filename
from .serialize import stringify_safe

logger = logging.getLogger(__name__)


@dataclass
class FixtureRecord:
    """
    Persisted record of one wrapped call.

    Every outcome field holds a serialized string that is parsed again when
    the fixture is replayed.

    Attributes:
        call_args: Serialized call arguments (always present)
        callback_args: Serialized arguments delivered to the trailing callback
        returned_deferred: True when the real method returned an awaitable
        resolution_args: Serialized ``[value]`` the awaitable resolved with
        rejection_args: Serialized ``[exception]`` the awaitable raised
        return_value: Serialized synchronous return value
    """
    call_args: str
    callback_args: Optional[str] = None
    returned_deferred: bool = False
    resolution_args: Optional[str] = None
    rejection_args: Optional[str] = None
    return_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk mapping, omitting absent outcome fields."""
        data: Dict[str, Any] = {"callArgs": self.call_args}
        if self.callback_args is not None:
            data["callbackArgs"] = self.callback_args
        if self.returned_deferred:
            data["returnedDeferred"] = True
        if self.resolution_args is not None:
            data["resolutionArgs"] = self.resolution_args
        if self.rejection_args is not None:
            data["rejectionArgs"] = self.rejection_args
        if self.return_value is not None:
            data["returnValue"] = self.return_value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixtureRecord":
        return cls(
            call_args=data.get("callArgs", ""),
            callback_args=data.get("callbackArgs"),
            returned_deferred=bool(data.get("returnedDeferred", False)),
            resolution_args=data.get("resolutionArgs"),
            rejection_args=data.get("rejectionArgs"),
            return_value=data.get("returnValue"),
        )


class FixtureStore:
    """
    Filesystem storage for the fixtures of one wrapped method.

    The directory is expected to exist already; writing into a missing
    directory raises the underlying ``OSError``.
    """

    def __init__(self, directory: Union[str, Path], prefix: str):
        """
        Initialize the fixture store.

        Args:
            directory: Directory holding fixture files
            prefix: File name prefix, usually the method name
        """
        self.directory = Path(directory)
        self.prefix = prefix

    def path_for(self, call_args: str) -> Path:
        """Resolve the fixture path for serialized call arguments."""
        return self.directory / fixture_filename(self.prefix, fingerprint(call_args))

    def write(self, path: Path, record: FixtureRecord) -> None:
        """Overwrite ``path`` with the pretty-printed record."""
        with open(path, "w", encoding="utf-8", errors="surrogatepass", newline="") as f:
            f.write(stringify_safe(record.to_dict(), indent=2) + os.linesep)
        logger.debug("Wrote fixture %s", path)

    def read(self, path: Path, call_args: str) -> FixtureRecord:
        """
        Read a recorded fixture.

        Args:
            path: Fixture path
            call_args: Serialized call arguments, reported if the file is missing

        Returns:
            The parsed FixtureRecord

        Raises:
            MissingFixtureError: If the fixture file does not exist
        """
        try:
            with open(path, "r", encoding="utf-8", errors="surrogatepass") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise MissingFixtureError(path, call_args) from None
        logger.debug("Read fixture %s", path)
        return FixtureRecord.from_dict(data)
