#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import os
import sys

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from heapq import heapify, heappop, heappush
from itertools import count
from logging import Logger, getLogger
from threading import TIMEOUT_MAX, Condition, Thread
from time import monotonic
from typing import TYPE_CHECKING, Any, Final, final

from ._timeouts import normalize_timeout
from .lowlevel import create_thread_lock, once

if TYPE_CHECKING:
    from types import TracebackType

    from ._handles import WaitHandle
    from ._timeouts import Timeout

    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

if sys.version_info >= (3, 9):
    from collections.abc import Callable
else:
    from typing import Callable

LOGGER: Final[Logger] = getLogger(__name__)

# cancelled timers are dropped eagerly only when they dominate the heap
_MIN_CANCELLED_TIMERS: Final[int] = 100


class WaitRegistration(ABC):
    """
    A live request to be notified when a handle signals or a timeout elapses.
    """

    __slots__ = ()

    @abstractmethod
    def unregister(self, /) -> bool:
        """
        Release the registration.

        Returns :data:`True` if the registration was still active, which
        guarantees that its callback will never be called. Idempotent.
        """

        raise NotImplementedError

    @property
    @abstractmethod
    def active(self, /) -> bool:
        """
        :data:`True` until the callback is scheduled or the registration is
        released.
        """

        raise NotImplementedError


class TimerHandle(ABC):
    """..."""

    __slots__ = ()

    @abstractmethod
    def cancel(self, /) -> bool:
        """
        Prevent the scheduled call. Returns :data:`True` if it had not
        happened yet.
        """

        raise NotImplementedError


class WaitService(ABC):
    """
    Invokes callbacks when handles signal or timeouts elapse, on workers that
    are never the registering thread.
    """

    __slots__ = ("__weakref__",)

    @abstractmethod
    def register_wait(
        self,
        /,
        handle: WaitHandle,
        callback: Callable[[bool], object],
        timeout: Timeout = None,
    ) -> WaitRegistration:
        """
        Call ``callback(timed_out)`` exactly once: with :data:`False` when
        *handle* is observed signaled (consuming the signal as a direct wait
        would), or with :data:`True` after *timeout* seconds. Nothing is
        called once the returned registration is unregistered.
        """

        raise NotImplementedError

    @abstractmethod
    def call_later(
        self,
        /,
        delay: float,
        callback: Callable[[], object],
    ) -> TimerHandle:
        """
        Call ``callback()`` on a worker after *delay* seconds.
        """

        raise NotImplementedError


@final
class _Timer(TimerHandle):
    __slots__ = (
        "_callback",
        "_cancelled",
        "_queue",
        "deadline",
    )

    def __init__(
        self,
        /,
        queue: _TimerQueue,
        deadline: float,
        callback: Callable[[], object],
    ) -> None:
        self._callback = callback
        self._cancelled = False
        self._queue = queue
        self.deadline = deadline

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._cancelled:
            extra = "cancelled"
        else:
            extra = f"deadline={self.deadline!r}"

        return f"<{cls_repr} object at {id(self):#x} [{extra}]>"

    def cancel(self, /) -> bool:
        return self._queue._cancel(self)

    def _run(self, /) -> None:
        try:
            self._callback()
        except Exception:
            LOGGER.exception("exception calling callback for %r", self)


@final
class _TimerQueue:
    __slots__ = (
        "_cancelled_count",
        "_closed",
        "_condition",
        "_heap",
        "_name",
        "_sequence",
        "_thread",
    )

    def __init__(self, /, name: str) -> None:
        self._cancelled_count = 0
        self._closed = False
        self._condition = Condition(create_thread_lock())
        self._heap = []
        self._name = name
        self._sequence = count().__next__
        self._thread = None

    def schedule(
        self,
        /,
        delay: float,
        callback: Callable[[], object],
    ) -> _Timer:
        timer = _Timer(self, monotonic() + delay, callback)

        with self._condition:
            if self._closed:
                msg = "cannot schedule new timers after shutdown"
                raise RuntimeError(msg)

            heappush(self._heap, (timer.deadline, self._sequence(), timer))

            if self._thread is None:
                self._thread = Thread(
                    target=self._run,
                    name=self._name,
                    daemon=True,
                )
                self._thread.start()
            elif self._heap[0][2] is timer:
                self._condition.notify()

        return timer

    def close(self, /) -> None:
        with self._condition:
            self._closed = True
            self._heap.clear()
            self._condition.notify_all()

    def _cancel(self, /, timer: _Timer) -> bool:
        with self._condition:
            if timer._cancelled:
                return False

            timer._cancelled = True
            self._cancelled_count += 1

            if (
                self._cancelled_count > _MIN_CANCELLED_TIMERS
                and self._cancelled_count * 2 > len(self._heap)
            ):
                self._heap = [
                    entry for entry in self._heap if not entry[2]._cancelled
                ]
                heapify(self._heap)

                self._cancelled_count = 0

            return True

    def _next(self, /) -> _Timer | None:
        with self._condition:
            while not self._closed:
                if not self._heap:
                    self._condition.wait()
                    continue

                deadline, _, timer = self._heap[0]

                if timer._cancelled:
                    heappop(self._heap)
                    self._cancelled_count = max(self._cancelled_count - 1, 0)
                    continue

                delay = deadline - monotonic()

                if delay > 0:
                    self._condition.wait(min(delay, TIMEOUT_MAX))
                    continue

                heappop(self._heap)

                # a fired timer can no longer be cancelled
                timer._cancelled = True

                return timer

            return None

    def _run(self, /) -> None:
        while (timer := self._next()) is not None:
            timer._run()


@final
class _Registration(WaitRegistration):
    __slots__ = (
        "_active",
        "_callback",
        "_handle",
        "_lock",
        "_service",
        "_timeout",
        "_timer",
    )

    def __init__(
        self,
        /,
        service: ThreadPoolWaitService,
        handle: WaitHandle,
        callback: Callable[[bool], object],
        timeout: float | None,
    ) -> None:
        self._active = True
        self._callback = callback
        self._handle = handle
        self._lock = create_thread_lock()
        self._service = service
        self._timeout = timeout
        self._timer = None

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._handle!r}, timeout={self._timeout!r})"
        )

        if self._active:
            extra = "active"
        else:
            extra = "released"

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    @property
    def active(self, /) -> bool:
        return self._active

    def unregister(self, /) -> bool:
        with self._lock:
            if not self._active:
                return False

            self._active = False

        self._release()

        return True

    def _start(self, /) -> None:
        self._handle.add_listener(self._on_signal)

        if self._timeout is not None:
            with self._lock:
                if self._active:
                    self._timer = self._service._timers.schedule(
                        self._timeout,
                        self._on_timeout,
                    )

        # the handle may have been signaled before the listener was added
        self._on_signal()

    def _on_signal(self, /) -> None:
        with self._lock:
            if not self._active or not self._handle.poll():
                return

            self._active = False

        self._release()
        self._service._submit(self._callback, False)

    def _on_timeout(self, /) -> None:
        with self._lock:
            if not self._active:
                return

            self._active = False

        self._release()
        self._service._submit(self._callback, True)

    def _release(self, /) -> None:
        self._handle.remove_listener(self._on_signal)

        if (timer := self._timer) is not None:
            timer.cancel()

        self._service._discard(self)


class ThreadPoolWaitService(WaitService):
    """
    A wait service that runs callbacks on a thread pool.

    Signals are observed through handle listeners and timeouts through a
    single timer thread, so no thread is blocked per registration. The pool
    threads only run the callbacks.

    Can be used as a context manager, which shuts the service down on exit.
    """

    __slots__ = (
        "_executor",
        "_lock",
        "_registrations",
        "_shutdown",
        "_timers",
    )

    def __init__(
        self,
        /,
        max_workers: int | None = None,
        *,
        thread_name_prefix: str = "aiowaithandle",
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._lock = create_thread_lock()
        self._registrations = set()
        self._shutdown = False
        self._timers = _TimerQueue(f"{thread_name_prefix}-timer")

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._shutdown:
            extra = "shutdown"
        else:
            extra = f"pending={self.pending}"

        return f"<{cls_repr} object at {id(self):#x} [{extra}]>"

    def __enter__(self, /) -> Self:
        return self

    def __exit__(
        self,
        /,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown()

    def register_wait(
        self,
        /,
        handle: WaitHandle,
        callback: Callable[[bool], object],
        timeout: Timeout = None,
    ) -> WaitRegistration:
        registration = _Registration(
            self,
            handle,
            callback,
            normalize_timeout(timeout),
        )

        with self._lock:
            if self._shutdown:
                msg = "cannot register new waits after shutdown"
                raise RuntimeError(msg)

            self._registrations.add(registration)

        registration._start()

        return registration

    def call_later(
        self,
        /,
        delay: float,
        callback: Callable[[], object],
    ) -> TimerHandle:
        if self._shutdown:
            msg = "cannot schedule new calls after shutdown"
            raise RuntimeError(msg)

        return self._timers.schedule(delay, lambda: self._submit(callback))

    def shutdown(self, /, wait: bool = True) -> None:
        """
        Release all registrations and stop the workers.

        Callbacks that are already scheduled still run; if *wait* is
        :data:`True`, the call returns after they have finished.
        """

        with self._lock:
            self._shutdown = True

            registrations = list(self._registrations)

        for registration in registrations:
            registration.unregister()

        self._timers.close()
        self._executor.shutdown(wait)

    @property
    def pending(self, /) -> int:
        """
        The current number of registrations that have neither fired nor been
        released.
        """

        return len(self._registrations)

    def _discard(self, /, registration: _Registration) -> None:
        with self._lock:
            self._registrations.discard(registration)

    def _submit(self, /, callback: Callable[..., object], *args: Any) -> None:
        try:
            self._executor.submit(self._call, callback, *args)
        except RuntimeError:  # shut down in parallel
            LOGGER.error(
                "callback %r dropped: %r is shut down",
                callback,
                self,
            )

    @staticmethod
    def _call(callback: Callable[..., object], /, *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("exception calling callback %r", callback)


@once
def get_default_service() -> WaitService:
    """
    Return the process-wide service used when no service is passed.

    Created on first use. The number of its worker threads can be set with
    the ``AIOWAITHANDLE_MAX_WORKERS`` environment variable.
    """

    return ThreadPoolWaitService(_get_max_workers())


def _get_max_workers() -> int | None:
    value = os.getenv("AIOWAITHANDLE_MAX_WORKERS", "").strip()

    if not value:
        return None

    try:
        max_workers = int(value)
    except ValueError:
        max_workers = 0

    if max_workers < 1:
        msg = (
            "AIOWAITHANDLE_MAX_WORKERS must be a positive integer,"
            f" got {value!r}"
        )
        raise ValueError(msg) from None

    return max_workers
