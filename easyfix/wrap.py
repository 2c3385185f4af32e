"""
wrap_async_method() for replacing an asynchronous dependency with fixtures.

Live mode: the wrapper forwards calls to the real method unchanged.

Capture mode: the real method runs; its outcome is written to a fixture
file every time it settles (callback fired, awaitable resolved or raised,
or plain value returned) and handed back to the caller unchanged.

Replay mode: the real method never runs; the outcome is rebuilt from the
fixture. Callbacks and awaitables settle on a later loop turn, plain
return values come back immediately.

Fixture path = {dir}/{prefix}-{sha256(serialized args)[:12]}.json
"""

import asyncio
import enum
import functools
import inspect
import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .config import WrapConfiguration, resolve_configuration
from .errors import ReplayedError, UnsettledDeferredFixtureError
from .mode import Mode
from .store import FixtureRecord, FixtureStore

logger = logging.getLogger(__name__)

KWARGS_KEY = "**kwargs"


class OutcomeShape(enum.Flag):
    """How a call communicates its result."""
    SYNCHRONOUS = 0
    CALLBACK = enum.auto()
    DEFERRED = enum.auto()


def classify_outcome(has_callback: bool, result: Any) -> OutcomeShape:
    """Classify a call from its trailing callback and its return value.

    Both checks are independent, so ``CALLBACK | DEFERRED`` is possible.
    """
    shape = OutcomeShape.SYNCHRONOUS
    if has_callback:
        shape |= OutcomeShape.CALLBACK
    if inspect.isawaitable(result):
        shape |= OutcomeShape.DEFERRED
    return shape


# ---------------------------------------------------------------------------
# Argument packing
# ---------------------------------------------------------------------------

def _pack(args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> List[Any]:
    """Positional args, plus a trailing kwargs mapping when there are any."""
    packed = list(args)
    if kwargs:
        packed.append({KWARGS_KEY: kwargs})
    return packed


def _unpack(values: Any) -> Tuple[List[Any], Dict[str, Any]]:
    if not isinstance(values, list):
        return [values], {}
    if values and isinstance(values[-1], dict) and set(values[-1]) == {KWARGS_KEY}:
        return values[:-1], dict(values[-1][KWARGS_KEY])
    return list(values), {}


def _first(values: Any) -> Any:
    if isinstance(values, list):
        return values[0] if values else None
    return values


# ---------------------------------------------------------------------------
# One intercepted call
# ---------------------------------------------------------------------------

class _InterceptedCall:
    """State of a single capture or replay invocation."""

    def __init__(
        self,
        config: WrapConfiguration,
        store: FixtureStore,
        args: Tuple[Any, ...],
        kwargs: Dict[str, Any],
    ):
        self.config = config
        self.store = store
        self.args = list(args)
        self.kwargs = kwargs
        self.has_callback = bool(self.args) and callable(self.args[-1])

        fingerprinted = self.args[:-1] if self.has_callback else self.args
        self.call_args = config.argument_serializer(_pack(tuple(fingerprinted), kwargs))
        self.path = store.path_for(self.call_args)
        self.record = FixtureRecord(call_args=self.call_args)
        self.callback: Optional[Callable[..., Any]] = None

    def _flush(self) -> None:
        self.store.write(self.path, self.record)

    # -- Capture ---------------------------------------------------------------

    def capture(self, invoke: Callable[..., Any]) -> Any:
        if self.has_callback:
            self.callback = self.config.callback_swap(self.args, self._callback_proxy)

        result = invoke(*self.args, **self.kwargs)
        shape = classify_outcome(self.has_callback, result)
        logger.debug("Captured %s call as %s", self.config.prefix, shape)

        if OutcomeShape.DEFERRED in shape:
            self.record.returned_deferred = True
            return self._chain(result)

        if shape == OutcomeShape.SYNCHRONOUS:
            self.record.return_value = self.config.return_value_serializer(result)
            self._flush()
        return result

    def _callback_proxy(self, *cb_args: Any, **cb_kwargs: Any) -> Any:
        self.record.callback_args = self.config.response_serializer(_pack(cb_args, cb_kwargs))
        self._flush()
        return self.callback(*cb_args, **cb_kwargs)

    def _resolved(self, value: Any) -> None:
        self.record.resolution_args = self.config.response_serializer([value])
        self._flush()

    def _rejected(self, exc: BaseException) -> None:
        self.record.rejection_args = self.config.response_serializer([exc])
        self._flush()

    def _chain(self, awaitable: Awaitable[Any]) -> Any:
        if asyncio.isfuture(awaitable):
            return self._chain_future(awaitable)
        return self._observe(awaitable)

    def _chain_future(self, inner: "asyncio.Future[Any]") -> "asyncio.Future[Any]":
        outer = inner.get_loop().create_future()

        def relay(done: "asyncio.Future[Any]") -> None:
            if done.cancelled():
                outer.cancel()
                return
            exc = done.exception()
            if exc is not None:
                self._rejected(exc)
                if not outer.done():
                    outer.set_exception(exc)
            else:
                value = done.result()
                self._resolved(value)
                if not outer.done():
                    outer.set_result(value)

        inner.add_done_callback(relay)
        return outer

    async def _observe(self, awaitable: Awaitable[Any]) -> Any:
        try:
            value = await awaitable
        except Exception as exc:
            self._rejected(exc)
            raise
        self._resolved(value)
        return value

    # -- Replay ----------------------------------------------------------------

    def replay(self) -> Any:
        record = self.store.read(self.path, self.call_args)
        parse = self.config.deserializer

        if record.callback_args is not None:
            if self.has_callback:
                cb_args, cb_kwargs = _unpack(parse(record.callback_args))
                self.config.scheduler(functools.partial(self.args[-1], *cb_args, **cb_kwargs))
            else:
                logger.warning(
                    "Fixture %s holds callback arguments but the call passed no callback",
                    self.path,
                )

        if record.returned_deferred:
            return self._settle_later(record)

        if record.return_value is None:
            return None
        return parse(record.return_value)

    async def _settle_later(self, record: FixtureRecord) -> Any:
        await asyncio.sleep(0)
        parse = self.config.deserializer
        if record.resolution_args is not None:
            return _first(parse(record.resolution_args))
        if record.rejection_args is not None:
            reason = _first(parse(record.rejection_args))
            if isinstance(reason, BaseException):
                raise reason
            raise ReplayedError(type(reason).__name__, str(reason))
        raise UnsettledDeferredFixtureError(self.path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _build_wrapper(
    original: Callable[..., Any],
    config: WrapConfiguration,
    with_receiver: bool,
) -> Callable[..., Any]:
    """Build the replacement callable.

    With ``with_receiver`` the first positional argument (``self``/``cls``) is
    passed through to the original but left out of the fingerprint.
    """
    store = FixtureStore(config.directory, config.prefix)

    @functools.wraps(original)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if config.mode is Mode.LIVE:
            return original(*args, **kwargs)

        invoke = original
        if with_receiver:
            receiver, args = args[0], args[1:]
            invoke = functools.partial(original, receiver)

        call = _InterceptedCall(config, store, args, kwargs)
        if config.mode is Mode.CAPTURE:
            return call.capture(invoke)
        return call.replay()

    return wrapper


def wrap_async_method(
    target: Any,
    method_name: str,
    options: Union[str, "os.PathLike[str]", Mapping[str, Any], None] = None,
    **overrides: Any,
) -> Callable[..., Any]:
    """
    Replace ``target.method_name`` with a fixture-backed wrapper.

    Args:
        target: Instance, module, or class that owns the method
        method_name: Attribute name of the method to wrap
        options: Fixture directory, or a mapping of options (dir, prefix,
            mode, argument_serializer, response_serializer,
            return_value_serializer, deserializer, callback_swap,
            scheduler, stubber)
        **overrides: Options that take precedence over ``options``

    Returns:
        The installed wrapper. Without a stubber it has a ``restore()``
        method that puts the original back.

    Usage::

        fetch = wrap_async_method(client, "fetch", "tests/data")
        try:
            result = await client.fetch(42)
        finally:
            fetch.restore()
    """
    config = resolve_configuration(method_name, options, **overrides)
    static = inspect.getattr_static(target, method_name)
    owned = method_name in getattr(target, "__dict__", {})

    if inspect.isclass(target) and isinstance(static, staticmethod):
        wrapper = _build_wrapper(static.__func__, config, with_receiver=False)
        installed: Any = staticmethod(wrapper)
    elif inspect.isclass(target) and isinstance(static, classmethod):
        wrapper = _build_wrapper(static.__func__, config, with_receiver=True)
        installed = classmethod(wrapper)
    elif inspect.isclass(target) and inspect.isfunction(static):
        wrapper = _build_wrapper(static, config, with_receiver=True)
        installed = wrapper
    else:
        wrapper = _build_wrapper(getattr(target, method_name), config, with_receiver=False)
        installed = wrapper

    logger.debug(
        "Wrapping %s in %s mode (fixtures in %s)",
        method_name, config.mode.value, config.directory,
    )

    if config.stubber is not None:
        config.stubber.setattr(target, method_name, installed)
        return wrapper

    setattr(target, method_name, installed)

    def restore() -> None:
        if owned:
            setattr(target, method_name, static)
        else:
            delattr(target, method_name)

    wrapper.restore = restore  # type: ignore[attr-defined]
    return wrapper
