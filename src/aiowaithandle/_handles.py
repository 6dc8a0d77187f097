#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from abc import ABC, abstractmethod
from threading import get_ident
from time import monotonic
from typing import TYPE_CHECKING, Any, ClassVar

from ._timeouts import normalize_timeout
from .lowlevel import create_green_waiter, create_thread_lock

if TYPE_CHECKING:
    from ._awaiter import WaitHandleAwaiter
    from ._cancellation import CancellationToken
    from ._service import WaitService
    from ._timeouts import Timeout
    from .lowlevel import GreenWaiter

if sys.version_info >= (3, 9):
    from collections.abc import Callable, Generator
else:
    from typing import Callable, Generator


class WaitHandle(ABC):
    """
    A synchronization primitive that can be waited on.

    Subclasses implement :meth:`poll` and call :meth:`_notify` whenever the
    handle may have become signaled. Anything that waits, blocking or not,
    only observes the handle through these two points.
    """

    __slots__ = (
        "__weakref__",
        "_listeners",
        "_listeners_lock",
    )

    #: :data:`True` for primitives that belong to the thread that acquired
    #: them, which cannot be acquired on behalf of that thread by a worker.
    owner_affine: ClassVar[bool] = False

    def __init__(self, /) -> None:
        self._listeners = {}
        self._listeners_lock = create_thread_lock()

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        return f"<{cls_repr} object at {id(self):#x} [{self._state_repr()}]>"

    def __await__(self, /) -> Generator[Any, Any, None]:
        return (yield from self.wait_async().__await__())

    @abstractmethod
    def poll(self, /) -> bool:
        """
        Return :data:`True` if the handle is signaled, without blocking.

        Consumes the signal exactly as a successful wait would (takes a
        permit, resets an auto-reset event, acquires ownership).
        """

        raise NotImplementedError

    def add_listener(self, /, callback: Callable[[], object]) -> None:
        """
        Call *callback* on the signaling thread each time the handle may have
        become signaled, until it is removed. Adding the same callback twice
        has no effect.
        """

        with self._listeners_lock:
            self._listeners[callback] = None

    def remove_listener(self, /, callback: Callable[[], object]) -> None:
        """
        Stop calling *callback*. Does nothing if it is not registered.
        """

        with self._listeners_lock:
            self._listeners.pop(callback, None)

    def wait(self, /, timeout: Timeout = None) -> bool:
        """
        Block the current thread until the handle is signaled or *timeout*
        seconds pass. Return :data:`True` if signaled.
        """

        timeout = normalize_timeout(timeout)

        if timeout is None:
            deadline = None
        else:
            deadline = monotonic() + timeout

        return _wait_until(self, deadline)

    def wait_async(
        self,
        /,
        timeout: Timeout = None,
        cancellation: CancellationToken | None = None,
        *,
        service: WaitService | None = None,
    ) -> WaitHandleAwaiter:
        """
        Start waiting for the handle without blocking, and return the awaiter
        that tracks the wait.

        Shortcut for :meth:`WaitHandleAwaiter.start`.
        """

        from ._awaiter import WaitHandleAwaiter

        return WaitHandleAwaiter.start(
            self,
            timeout,
            cancellation,
            service=service,
        )

    def _notify(self, /) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)

        # outside the lock so that listeners may remove themselves
        for listener in listeners:
            listener()

    def _state_repr(self, /) -> str:
        return "signaled" if self._is_signaled() else "unsignaled"

    def _is_signaled(self, /) -> bool:
        return False


def _wait_until(
    handle: WaitHandle,
    deadline: float | None,
    /,
    waiter: GreenWaiter | None = None,
    interrupted: Callable[[], bool] | None = None,
) -> bool:
    if interrupted is not None and interrupted():
        return False

    if handle.poll():
        return True

    if waiter is None:
        waiter = create_green_waiter()

    handle.add_listener(waiter.wake)

    try:
        while True:
            if interrupted is not None and interrupted():
                return False

            if handle.poll():
                return True

            if deadline is None:
                waiter.wait()
            else:
                remaining = deadline - monotonic()

                if remaining <= 0:
                    return False

                waiter.wait(remaining)
    finally:
        handle.remove_listener(waiter.wake)


class ManualResetEvent(WaitHandle):
    """
    An event that stays signaled until it is reset, releasing every waiter
    in the meantime.
    """

    __slots__ = ("_is_set",)

    def __init__(self, /, initially_set: bool = False) -> None:
        super().__init__()

        self._is_set = initially_set

    def poll(self, /) -> bool:
        return self._is_set

    def set(self, /) -> None:
        """..."""

        self._is_set = True
        self._notify()

    def reset(self, /) -> None:
        """..."""

        self._is_set = False

    def is_set(self, /) -> bool:
        """..."""

        return self._is_set

    def _is_signaled(self, /) -> bool:
        return self._is_set


class AutoResetEvent(WaitHandle):
    """
    An event that releases exactly one waiter per :meth:`set` and then
    resets itself. Setting an already set event has no effect.
    """

    __slots__ = (
        "_is_set",
        "_lock",
    )

    def __init__(self, /, initially_set: bool = False) -> None:
        super().__init__()

        self._is_set = initially_set
        self._lock = create_thread_lock()

    def poll(self, /) -> bool:
        with self._lock:
            if not self._is_set:
                return False

            self._is_set = False

        return True

    def set(self, /) -> None:
        """..."""

        with self._lock:
            if self._is_set:
                return

            self._is_set = True

        self._notify()

    def reset(self, /) -> None:
        """..."""

        with self._lock:
            self._is_set = False

    def is_set(self, /) -> bool:
        """..."""

        return self._is_set

    def _is_signaled(self, /) -> bool:
        return self._is_set


class Semaphore(WaitHandle):
    """
    A counting semaphore: signaled while its count is positive, each
    successful wait takes one from the count.

    Unlike a mutex, it has no owner, so it can be released by any thread and
    waited on asynchronously. ``Semaphore(1, 1)`` is the asynchronous-safe
    substitute for :class:`Mutex`.
    """

    __slots__ = (
        "_count",
        "_lock",
        "_maximum_count",
    )

    def __init__(
        self,
        /,
        initial_count: int,
        maximum_count: int | None = None,
    ) -> None:
        if initial_count < 0:
            msg = "initial_count must be >= 0"
            raise ValueError(msg)

        if maximum_count is not None:
            if maximum_count < 1:
                msg = "maximum_count must be >= 1"
                raise ValueError(msg)

            if initial_count > maximum_count:
                msg = "initial_count must be <= maximum_count"
                raise ValueError(msg)

        super().__init__()

        self._count = initial_count
        self._lock = create_thread_lock()
        self._maximum_count = maximum_count

    def poll(self, /) -> bool:
        with self._lock:
            if self._count <= 0:
                return False

            self._count -= 1

        return True

    def release(self, /, count: int = 1) -> int:
        """
        Add *count* to the semaphore count and return the previous count.

        Raises:
          ValueError:
            if *count* is less than one, or if the count would exceed
            :attr:`maximum_count`.
        """

        if count < 1:
            msg = "count must be >= 1"
            raise ValueError(msg)

        with self._lock:
            previous_count = self._count

            if (
                self._maximum_count is not None
                and previous_count + count > self._maximum_count
            ):
                msg = "semaphore count would exceed its maximum"
                raise ValueError(msg)

            self._count = previous_count + count

        self._notify()

        return previous_count

    @property
    def count(self, /) -> int:
        """
        The current number of available permits.
        """

        return self._count

    @property
    def maximum_count(self, /) -> int | None:
        """..."""

        return self._maximum_count

    def _state_repr(self, /) -> str:
        if self._maximum_count is None:
            return f"count={self._count}"

        return f"count={self._count}/{self._maximum_count}"


class Mutex(WaitHandle):
    """
    A reentrant lock owned by the thread that acquired it.

    Only the owner can release it, so it can only be waited on
    synchronously: asynchronous waits would acquire it on a worker thread.
    """

    __slots__ = (
        "_level",
        "_lock",
        "_owner",
    )

    owner_affine = True

    def __init__(self, /, initially_owned: bool = False) -> None:
        super().__init__()

        self._lock = create_thread_lock()

        if initially_owned:
            self._level = 1
            self._owner = get_ident()
        else:
            self._level = 0
            self._owner = None

    def poll(self, /) -> bool:
        ident = get_ident()

        with self._lock:
            if self._owner is None:
                self._level = 1
                self._owner = ident

                return True

            if self._owner == ident:
                self._level += 1

                return True

        return False

    def release(self, /) -> None:
        """
        Raises:
          RuntimeError:
            if the current thread does not own the mutex.
        """

        with self._lock:
            if self._owner != get_ident():
                msg = "cannot release un-acquired mutex"
                raise RuntimeError(msg)

            self._level -= 1

            if self._level:
                return

            self._owner = None

        self._notify()

    def locked(self, /) -> bool:
        """..."""

        return self._owner is not None

    def _state_repr(self, /) -> str:
        if self._owner is None:
            return "unlocked"

        return f"locked, owner={self._owner}, level={self._level}"
