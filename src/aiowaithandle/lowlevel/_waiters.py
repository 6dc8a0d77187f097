#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from math import isinf, isnan
from typing import TYPE_CHECKING, Any, Literal, NoReturn, Protocol, final

from ._libraries import current_async_library
from ._locks import create_thread_lock, once

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Generator
    else:
        from typing import Generator


class Waiter(Protocol):
    """
    An object that suspends exactly one task or thread and can be woken from
    any thread.
    """

    __slots__ = ()

    def wake(self, /) -> None:
        """
        Resume the suspended task or thread. Does nothing if it has already
        been resumed, or if it has not been suspended yet (in which case the
        next suspension returns immediately).
        """


class GreenWaiter(Waiter, Protocol):
    """..."""

    __slots__ = ()

    def wait(self, /, timeout: float | None = None) -> bool:
        """
        Block the current thread until :meth:`wake` is called or *timeout*
        seconds pass. Return :data:`True` if woken.
        """

    def wake(self, /) -> None:
        """..."""


class AsyncWaiter(Waiter, Protocol):
    """..."""

    __slots__ = ()

    def __await__(self, /) -> Generator[Any, Any, bool]:
        """
        Suspend the current task until :meth:`wake` is called. The task can be
        cancelled by its async library in the meantime.
        """

    def wake(self, /) -> None:
        """..."""


@once
def _get_threading_waiter_class() -> type[GreenWaiter]:
    from threading import TIMEOUT_MAX

    @final
    class _ThreadingWaiter(GreenWaiter):
        __slots__ = ("__lock",)

        def __init__(self, /) -> None:
            self.__lock = create_thread_lock()
            self.__lock.acquire()

        def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
            bcs = _ThreadingWaiter
            bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

            msg = f"type '{bcs_repr}' is not an acceptable base type"
            raise TypeError(msg)

        def __reduce__(self, /) -> NoReturn:
            msg = f"cannot reduce {self!r}"
            raise TypeError(msg)

        def wait(self, /, timeout: float | None = None) -> bool:
            if timeout is not None:
                if isnan(timeout):
                    msg = "timeout must be non-NaN"
                    raise ValueError(msg)

                if timeout < 0:
                    msg = "timeout must be non-negative"
                    raise ValueError(msg)

                if isinf(timeout):
                    timeout = None

            if timeout is None:
                return self.__lock.acquire()
            elif timeout:
                return self.__lock.acquire(True, min(timeout, TIMEOUT_MAX))
            else:
                return self.__lock.acquire(False)

        def wake(self, /) -> None:
            try:
                self.__lock.release()
            except RuntimeError:  # unlocked
                pass

    return _ThreadingWaiter


@once
def _get_asyncio_waiter_class() -> type[AsyncWaiter]:
    from asyncio import (
        InvalidStateError,
        _get_running_loop as get_running_loop_if_exists,
        get_running_loop,
    )

    @final
    class _AsyncioWaiter(AsyncWaiter):
        __slots__ = (
            "__future",
            "__loop",
            "__woken",
        )

        def __init__(self, /) -> None:
            self.__future = None
            self.__loop = get_running_loop()
            self.__woken = False

        def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
            bcs = _AsyncioWaiter
            bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

            msg = f"type '{bcs_repr}' is not an acceptable base type"
            raise TypeError(msg)

        def __reduce__(self, /) -> NoReturn:
            msg = f"cannot reduce {self!r}"
            raise TypeError(msg)

        def __await__(self, /) -> Generator[Any, Any, bool]:
            self.__future = self.__loop.create_future()

            if self.__woken:
                self.__future.set_result(True)

            try:
                yield from self.__future.__await__()
            finally:
                self.__future = None

            return True

        def __notify(self, /) -> None:
            self.__woken = True

            if self.__future is not None:
                try:
                    self.__future.set_result(True)
                except InvalidStateError:  # task is cancelled
                    pass

        def wake(self, /) -> None:
            if get_running_loop_if_exists() is self.__loop:
                self.__notify()
            else:
                try:
                    self.__loop.call_soon_threadsafe(self.__notify)
                except RuntimeError:  # event loop is closed
                    pass

    return _AsyncioWaiter


@once
def _get_trio_waiter_class() -> type[AsyncWaiter]:
    from trio import RunFinishedError
    from trio.lowlevel import (
        Abort,
        current_task,
        current_trio_token,
        reschedule,
        wait_task_rescheduled,
    )

    def _abort(raise_cancel: Any) -> Literal[Abort.SUCCEEDED]:
        return Abort.SUCCEEDED

    @final
    class _TrioWaiter(AsyncWaiter):
        __slots__ = (
            "__task",
            "__token",
            "__woken",
        )

        def __init__(self, /) -> None:
            self.__task = None
            self.__token = current_trio_token()
            self.__woken = False

        def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
            bcs = _TrioWaiter
            bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

            msg = f"type '{bcs_repr}' is not an acceptable base type"
            raise TypeError(msg)

        def __reduce__(self, /) -> NoReturn:
            msg = f"cannot reduce {self!r}"
            raise TypeError(msg)

        def __await__(self, /) -> Generator[Any, Any, bool]:
            if self.__woken:
                return True

            self.__task = current_task()

            try:
                yield from wait_task_rescheduled(_abort).__await__()
            finally:
                self.__task = None

            return True

        def __notify(self, /) -> None:
            self.__woken = True

            if self.__task is not None:
                task, self.__task = self.__task, None
                reschedule(task)

        def wake(self, /) -> None:
            try:
                current_token = current_trio_token()
            except RuntimeError:  # no called trio.run()
                current_token = None

            if current_token is self.__token:
                self.__notify()
            else:
                try:
                    self.__token.run_sync_soon(self.__notify)
                except RunFinishedError:  # trio.run() is finished
                    pass

    return _TrioWaiter


def _create_threading_waiter() -> GreenWaiter:
    global _create_threading_waiter

    _create_threading_waiter = _get_threading_waiter_class()

    return _create_threading_waiter()


def _create_asyncio_waiter() -> AsyncWaiter:
    global _create_asyncio_waiter

    _create_asyncio_waiter = _get_asyncio_waiter_class()

    return _create_asyncio_waiter()


def _create_trio_waiter() -> AsyncWaiter:
    global _create_trio_waiter

    _create_trio_waiter = _get_trio_waiter_class()

    return _create_trio_waiter()


def create_green_waiter() -> GreenWaiter:
    """
    Create a waiter for the current thread.
    """

    return _create_threading_waiter()


def create_async_waiter() -> AsyncWaiter:
    """
    Create a waiter for the current task of the running async library.

    Raises:
      RuntimeError:
        if the running async library is not supported.
    """

    library = current_async_library()

    if library == "asyncio":
        return _create_asyncio_waiter()

    if library == "trio":
        return _create_trio_waiter()

    msg = f"unsupported async library {library!r}"
    raise RuntimeError(msg)
