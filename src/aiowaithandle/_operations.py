#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from abc import ABC, abstractmethod
from concurrent.futures import Future, wait as futures_wait
from functools import partial
from itertools import count
from typing import TYPE_CHECKING, Any, Final, Generic, NoReturn, TypeVar, Union

from ._awaiter import WaitHandleAwaiter, WaitState, _check_handle
from ._cancellation import CancellationToken
from ._exceptions import InvalidUsageError, OperationCancelledError
from ._flag import Flag
from ._service import get_default_service
from ._timeouts import normalize_timeout
from .lowlevel import create_async_event
from .meta import MISSING, SingletonEnum

if TYPE_CHECKING:
    from ._handles import WaitHandle
    from ._service import WaitService
    from ._timeouts import Timeout

    if sys.version_info >= (3, 11):
        from typing import Literal
    else:
        from typing_extensions import Literal

if sys.version_info >= (3, 11):
    from typing import final
else:
    from typing_extensions import final

if sys.version_info >= (3, 9):
    from collections.abc import Generator, Iterable
else:
    from typing import Generator, Iterable

_T = TypeVar("_T")


@final
class WaitTimeoutType(SingletonEnum):
    """
    A singleton class for :data:`WAIT_TIMEOUT`.
    """

    WAIT_TIMEOUT = "WAIT_TIMEOUT"

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = __class__  # an implicit closure reference
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)


#: The result of :func:`wait_any` when every handle has timed out.
WAIT_TIMEOUT: Final[Literal[WaitTimeoutType.WAIT_TIMEOUT]] = (
    WaitTimeoutType.WAIT_TIMEOUT
)


class WaitOperation(ABC, Generic[_T]):
    """
    The eventual outcome of a wait over one or more handles.

    An operation is hot: it is already waiting when it is returned, and it
    resolves exactly once, whichever of its completion sources (signals,
    timeouts, cancellation) decides first. Every registration it made is
    released by then.

    It can be awaited from :mod:`asyncio` or :mod:`trio`, waited on from a
    thread with :meth:`wait`, or observed through :attr:`future`.
    """

    __slots__ = (
        "__weakref__",
        "_awaiters",
        "_decision",
        "_future",
        "_token_registration",
    )

    def __init__(self, /, size: int) -> None:
        self._awaiters = [None] * size
        self._decision = Flag()
        self._future = Future()
        self._token_registration = None

        # only the decision can complete the future
        self._future.set_running_or_notify_cancel()

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = f"{cls_repr}(<{len(self._awaiters)} handles>)"

        if self._future.done():
            exc = self._future.exception()

            if isinstance(exc, OperationCancelledError):
                extra = "cancelled"
            else:
                extra = f"finished, result={self._future.result()!r}"
        else:
            extra = "pending"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    def __await__(self, /) -> Generator[Any, Any, _T]:
        if not self._future.done():
            event = create_async_event()
            self._future.add_done_callback(lambda _: event.set())

            try:
                yield from event.__await__()
            except BaseException:
                self.cancel()
                raise

        try:
            return self._future.result()
        except BaseException:
            self = None  # noqa: PLW0642
            raise

    def wait(self, /, timeout: Timeout = None) -> _T:
        """
        Block the current thread until the operation resolves, and return its
        result.

        Raises:
          OperationCancelledError:
            if the operation has been cancelled.
          TimeoutError:
            if *timeout* seconds have passed first. The operation keeps
            waiting in this case.
        """

        timeout = normalize_timeout(timeout)

        if not self._future.done():
            done, _ = futures_wait((self._future,), timeout)

            if not done:
                msg = "the operation has not resolved in time"
                raise TimeoutError(msg)

        try:
            return self._future.result()
        except BaseException:
            self = None  # noqa: PLW0642
            raise

    def done(self, /) -> bool:
        """..."""

        return self._future.done()

    def cancel(self, /) -> bool:
        """
        Resolve the operation as cancelled, releasing all its registrations.

        Returns :data:`True` if the operation had not been resolved yet.
        """

        return self._settle(exception=_cancelled())

    @property
    def future(self, /) -> Future[_T]:
        """
        A :class:`concurrent.futures.Future` completed with the outcome.
        """

        return self._future

    def _start(
        self,
        /,
        handles: list[WaitHandle],
        timeout: float | None,
        cancellation: CancellationToken,
        service: WaitService,
    ) -> None:
        if cancellation.can_be_cancelled:
            self._token_registration = cancellation.register(
                self._on_cancel_requested,
            )

            if self._decision:
                self._token_registration.dispose()

        try:
            for index, handle in enumerate(handles):
                if self._decision:
                    break

                awaiter = WaitHandleAwaiter.start(
                    handle,
                    timeout,
                    cancellation,
                    service=service,
                )

                self._awaiters[index] = awaiter

                # decided while starting: the winner may have missed this one
                if self._decision:
                    awaiter.cancel_as_loser()
                    break

                awaiter.on_completed(
                    partial(self._on_completed, index, awaiter),
                )
        except BaseException:
            # the caller never sees this operation
            self._settle(exception=_cancelled())
            raise

    @abstractmethod
    def _on_completed(self, /, index: int, awaiter: WaitHandleAwaiter) -> None:
        raise NotImplementedError

    def _on_cancel_requested(self, /) -> None:
        self._settle(exception=_cancelled())

    def _settle(
        self,
        /,
        result: object = MISSING,
        exception: BaseException | None = None,
    ) -> bool:
        if not self._decision.set():
            return False

        for awaiter in self._awaiters:
            if awaiter is not None:
                awaiter.cancel_as_loser()

        if (token_registration := self._token_registration) is not None:
            token_registration.dispose()

        if exception is not None:
            self._future.set_exception(exception)
        else:
            self._future.set_result(result)

        return True


@final
class WaitOneOperation(WaitOperation[bool]):
    """
    The outcome of :func:`wait_one`: :data:`True` if the handle has been
    signaled, :data:`False` if the wait has timed out.
    """

    __slots__ = ()

    def _on_completed(self, /, index: int, awaiter: WaitHandleAwaiter) -> None:
        state = awaiter.state

        if state is WaitState.SIGNALED:
            self._settle(True)
        elif state is WaitState.TIMED_OUT:
            self._settle(False)
        else:
            self._settle(exception=_cancelled())


@final
class WaitAnyOperation(WaitOperation[Union[int, WaitTimeoutType]]):
    """
    The outcome of :func:`wait_any`: the index of the first handle observed
    signaled, or :data:`WAIT_TIMEOUT` if every handle has timed out.
    """

    __slots__ = ("_timed_out_count",)

    def __init__(self, /, size: int) -> None:
        super().__init__(size)

        self._timed_out_count = count(1).__next__

    def _on_completed(self, /, index: int, awaiter: WaitHandleAwaiter) -> None:
        state = awaiter.state

        if state is WaitState.SIGNALED:
            self._settle(index)
        elif state is WaitState.TIMED_OUT:
            if self._timed_out_count() == len(self._awaiters):
                self._settle(WAIT_TIMEOUT)
        else:
            self._settle(exception=_cancelled())


@final
class WaitAllOperation(WaitOperation[bool]):
    """
    The outcome of :func:`wait_all`: :data:`True` if every handle has been
    signaled, :data:`False` as soon as one of them times out.

    The handles are waited on one by one, not as an atomic operation: a
    signal consumed from an auto-reset handle is not given back if another
    handle times out.
    """

    __slots__ = ("_signaled_count",)

    def __init__(self, /, size: int) -> None:
        super().__init__(size)

        self._signaled_count = count(1).__next__

    def _on_completed(self, /, index: int, awaiter: WaitHandleAwaiter) -> None:
        state = awaiter.state

        if state is WaitState.SIGNALED:
            if self._signaled_count() == len(self._awaiters):
                self._settle(True)
        elif state is WaitState.TIMED_OUT:
            self._settle(False)
        else:
            self._settle(exception=_cancelled())


def _cancelled() -> OperationCancelledError:
    msg = "the operation has been cancelled"
    return OperationCancelledError(msg)


def _collect_handles(handles: Iterable[WaitHandle], /) -> list[WaitHandle]:
    if handles is None:
        msg = "the wait handle collection is None"
        raise InvalidUsageError(msg)

    try:
        handles = list(handles)
    except TypeError:
        msg = (
            "the wait handle collection must be iterable,"
            f" not {type(handles).__name__!r}"
        )
        raise InvalidUsageError(msg) from None

    for index, handle in enumerate(handles):
        _check_handle(handle, index)

    return handles


def _begin(
    operation: WaitOperation[Any],
    handles: list[WaitHandle],
    timeout: Timeout,
    cancellation: CancellationToken | None,
    service: WaitService | None,
    /,
    empty_result: object,
) -> None:
    timeout = normalize_timeout(timeout)

    if cancellation is None:
        cancellation = CancellationToken.NONE

    if cancellation.cancelled:
        operation._settle(exception=_cancelled())
    elif not handles:
        operation._settle(empty_result)
    else:
        if service is None:
            service = get_default_service()

        operation._start(handles, timeout, cancellation, service)


def wait_one(
    handle: WaitHandle,
    /,
    timeout: Timeout = None,
    cancellation: CancellationToken | None = None,
    *,
    service: WaitService | None = None,
) -> WaitOneOperation:
    """
    Start waiting for *handle* without blocking.

    Returns an operation that resolves to :data:`True` if the handle is
    signaled, or to :data:`False` if *timeout* seconds pass first, and fails
    with :exc:`OperationCancelledError` if *cancellation* is cancelled first.

    Raises:
      InvalidUsageError:
        if *handle* is :data:`None` or has ownership affinity.
    """

    _check_handle(handle)

    operation = WaitOneOperation(1)

    _begin(operation, [handle], timeout, cancellation, service, MISSING)

    return operation


def wait_any(
    handles: Iterable[WaitHandle],
    /,
    timeout: Timeout = None,
    cancellation: CancellationToken | None = None,
    *,
    service: WaitService | None = None,
) -> WaitAnyOperation:
    """
    Start waiting for any of *handles* without blocking.

    Returns an operation that resolves to the index of the first handle
    observed signaled, or to :data:`WAIT_TIMEOUT` if every handle times out
    (each one after *timeout* seconds from its own registration). Only the
    winner's signal is consumed. An empty collection resolves to
    :data:`WAIT_TIMEOUT` immediately.

    There is no limit on the number of handles, since they are not waited on
    as an atomic operation but registered one by one.

    Raises:
      InvalidUsageError:
        if *handles* is not a collection, or if any of its items is
        :data:`None` or has ownership affinity. Nothing is registered in this
        case.
    """

    handles = _collect_handles(handles)

    operation = WaitAnyOperation(len(handles))

    _begin(operation, handles, timeout, cancellation, service, WAIT_TIMEOUT)

    return operation


def wait_all(
    handles: Iterable[WaitHandle],
    /,
    timeout: Timeout = None,
    cancellation: CancellationToken | None = None,
    *,
    service: WaitService | None = None,
) -> WaitAllOperation:
    """
    Start waiting for all of *handles* without blocking.

    Returns an operation that resolves to :data:`True` once every handle has
    been signaled, or to :data:`False` as soon as any of them times out. An
    empty collection resolves to :data:`True` immediately.

    Raises:
      InvalidUsageError:
        if *handles* is not a collection, or if any of its items is
        :data:`None` or has ownership affinity. Nothing is registered in this
        case.
    """

    handles = _collect_handles(handles)

    operation = WaitAllOperation(len(handles))

    _begin(operation, handles, timeout, cancellation, service, True)

    return operation
