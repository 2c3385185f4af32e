"""
Mode selection for wrapped methods.

The mode is resolved once, when a method is wrapped, and never re-read
during calls.

Environment Variables:
    TEST_MODE: Default mode (live, capture, replay) for wrappers that do not
        set one explicitly
"""

import logging
import os
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)

ENV_MODE = "TEST_MODE"


class Mode(Enum):
    """Wrapper operating modes."""
    LIVE = "live"
    CAPTURE = "capture"
    REPLAY = "replay"


def coerce_mode(value: Union[Mode, str]) -> Mode:
    """Convert a Mode or its string value to a Mode.

    Raises:
        ValueError: If the string is not a known mode
    """
    if isinstance(value, Mode):
        return value
    return Mode(str(value).strip().lower())


def resolve_mode(
    explicit: Union[Mode, str, None] = None,
    file_default: Union[Mode, str, None] = None,
) -> Mode:
    """
    Resolve the effective mode for a new wrapper.

    Resolution order:
    1. Explicit mode option
    2. TEST_MODE environment variable
    3. ``mode`` from the project config file
    4. Replay

    Args:
        explicit: Mode passed to the wrapper, if any
        file_default: Mode read from the project config file, if any

    Returns:
        The resolved Mode
    """
    if explicit is not None:
        return coerce_mode(explicit)

    env_value = os.environ.get(ENV_MODE)
    if env_value:
        try:
            mode = coerce_mode(env_value)
        except ValueError:
            logger.warning("Unknown %s=%r, falling back to replay", ENV_MODE, env_value)
            return Mode.REPLAY
        logger.debug("Mode %s taken from %s", mode.value, ENV_MODE)
        return mode

    if file_default is not None:
        return coerce_mode(file_default)

    return Mode.REPLAY
