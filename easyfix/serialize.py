"""
Cycle-safe JSON serialization for call arguments and outcomes.

Produces deterministic output for structurally equal inputs by:
- Sorting dictionary keys
- Using compact separators (unless an indent is requested)
- Replacing back-references to an ancestor with a circular marker

Values that JSON cannot hold directly are normalized first:
- Datetime objects, Decimals, Enums, bytes, sets
- Dataclasses and plain objects (by their attributes)
- Exceptions (tagged so that ``parse`` can revive them)
"""

import dataclasses
import json
import math
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ReplayedError


CIRCULAR_ROOT = "[Circular ~]"
EXCEPTION_TAG = "__easyfix_exception__"
EXCEPTION_FIELDS = frozenset({"type", "module", "message", "args"})


@dataclass
class _Traversal:
    """Ancestors of the value being encoded and the keys leading to each.

    ``keys[i]`` is the key under which ``stack[i + 1]`` was reached, so the
    path from the root to ``stack[i]`` is ``keys[:i]``.
    """

    stack: List[Any] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)

    def ancestor_index(self, value: Any) -> int:
        for index, ancestor in enumerate(self.stack):
            if ancestor is value:
                return index
        return -1

    def marker(self, index: int) -> str:
        if index == 0:
            return CIRCULAR_ROOT
        return f"[Circular ~.{'.'.join(self.keys[:index])}]"


def stringify_safe(value: Any, indent: Optional[int] = None) -> str:
    """
    Serialize any value to JSON without failing on circular references.

    Args:
        value: Value to serialize
        indent: Optional indent for human-readable output

    Returns:
        JSON string
    """
    encoded = _encode(value, _Traversal())
    separators = None if indent is not None else (",", ":")
    return json.dumps(
        encoded,
        sort_keys=True,
        ensure_ascii=False,
        indent=indent,
        separators=separators,
    )


def parse(text: str) -> Any:
    """Parse JSON produced by ``stringify_safe``, reviving recorded exceptions."""
    return json.loads(text, object_hook=_revive)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _encode(value: Any, ctx: _Traversal) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if isinstance(value, Decimal):
        return _encode(float(value), ctx)

    if isinstance(value, Enum):
        return _encode(value.value, ctx)

    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()

    if hasattr(value, "isoformat") and not isinstance(value, type):
        return value.isoformat()

    if callable(value) and not _has_attributes(value):
        return f"[Function {getattr(value, '__qualname__', type(value).__qualname__)}]"

    index = ctx.ancestor_index(value)
    if index >= 0:
        return ctx.marker(index)

    ctx.stack.append(value)
    try:
        if isinstance(value, BaseException):
            return {EXCEPTION_TAG: _encode_children(_exception_fields(value), ctx)}
        if isinstance(value, dict):
            return _encode_children(value, ctx)
        if isinstance(value, (list, tuple)):
            return [_encode_child(str(i), item, ctx) for i, item in enumerate(value)]
        if isinstance(value, (set, frozenset)):
            items = [_encode_child(str(i), item, ctx) for i, item in enumerate(value)]
            return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
        if dataclasses.is_dataclass(value):
            return _encode_children(
                {f.name: getattr(value, f.name) for f in dataclasses.fields(value)},
                ctx,
            )
        if _has_attributes(value):
            return _encode_children(vars(value), ctx)
        return str(value)
    finally:
        ctx.stack.pop()


def _encode_children(mapping: Dict[Any, Any], ctx: _Traversal) -> Dict[str, Any]:
    encoded = {}
    for k, v in mapping.items():
        key = _key_text(k)
        encoded[key] = _encode_child(key, v, ctx)
    return encoded


def _key_text(key: Any) -> str:
    """Mapping key as JSON text; non-str keys are tagged with their type."""
    if isinstance(key, str):
        return key
    return f"[{type(key).__qualname__} {key!r}]"


def _encode_child(key: str, value: Any, ctx: _Traversal) -> Any:
    ctx.keys.append(key)
    try:
        return _encode(value, ctx)
    finally:
        ctx.keys.pop()


def _has_attributes(value: Any) -> bool:
    """True for plain instances carrying a ``__dict__`` (not classes, functions or modules)."""
    if isinstance(value, type) or not hasattr(value, "__dict__"):
        return False
    return type(value).__module__ not in ("builtins", "types", "functools")


def _exception_fields(exc: BaseException) -> Dict[str, Any]:
    cls = type(exc)
    return {
        "type": cls.__qualname__,
        "module": cls.__module__,
        "message": str(exc),
        "args": list(exc.args),
    }


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _revive(obj: Dict[str, Any]) -> Any:
    if set(obj) != {EXCEPTION_TAG}:
        return obj
    if not isinstance(obj[EXCEPTION_TAG], dict) or set(obj[EXCEPTION_TAG]) != EXCEPTION_FIELDS:
        return obj

    fields = obj[EXCEPTION_TAG]
    type_name = fields.get("type", "Exception")
    message = fields.get("message", "")
    cls = _lookup_exception_type(fields.get("module", ""), type_name)
    if cls is None or cls is ReplayedError:
        return ReplayedError(type_name, message)

    try:
        return cls(*fields.get("args", []))
    except TypeError:
        return ReplayedError(type_name, message)


def _lookup_exception_type(module_name: str, qualname: str) -> Optional[type]:
    """Find an exception class among modules that are already imported."""
    target: Any = sys.modules.get(module_name)
    if target is None:
        return None
    for part in qualname.split("."):
        target = getattr(target, part, None)
        if target is None:
            return None
    if isinstance(target, type) and issubclass(target, BaseException):
        return target
    return None
