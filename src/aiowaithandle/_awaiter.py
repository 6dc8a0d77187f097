#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from enum import IntEnum
from time import monotonic
from typing import TYPE_CHECKING, Any, NoReturn, final

from ._cancellation import CancellationToken
from ._cells import Continuation
from ._exceptions import InvalidUsageError, OperationCancelledError
from ._flag import Flag
from ._handles import WaitHandle, _wait_until
from ._service import get_default_service
from ._timeouts import normalize_timeout
from .lowlevel import (
    create_async_event,
    create_green_waiter,
    create_thread_lock,
)

if TYPE_CHECKING:
    from ._service import WaitService
    from ._timeouts import Timeout

    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

if sys.version_info >= (3, 9):
    from collections.abc import Callable, Generator
else:
    from typing import Callable, Generator


class WaitState(IntEnum):
    """
    The lifecycle of a single wait. ``COMPLETING`` is transient; the last
    three states are terminal.
    """

    PENDING = 0
    COMPLETING = 1
    SIGNALED = 2
    TIMED_OUT = 3
    CANCELLED = 4


def _check_handle(handle: object, /, index: int | None = None) -> None:
    if index is None:
        subject = "wait handle"
    else:
        subject = f"wait handle at index {index}"

    if handle is None:
        msg = f"the {subject} is None"
        raise InvalidUsageError(msg)

    if not isinstance(handle, WaitHandle):
        msg = f"the {subject} is not a WaitHandle: {handle!r}"
        raise InvalidUsageError(msg)

    if handle.owner_affine:
        msg = (
            f"the {subject} ({type(handle).__name__}) has ownership affinity"
            " and cannot be waited on asynchronously: asynchronous waits are"
            " completed on worker threads, while it can only be released by"
            " the thread that acquired it. Consider using a Semaphore with a"
            " maximum count of 1 instead (it has no ownership)."
        )
        raise InvalidUsageError(msg)


@final
class WaitHandleAwaiter:
    """
    The state machine of a single non-blocking wait on a handle.

    Started with :meth:`start` (or :meth:`WaitHandle.wait_async`), it ends in
    exactly one of the terminal states of :class:`WaitState`, whichever of
    signal, timeout, and cancellation happens first. Both registrations (with
    the service and with the cancellation token) are released on the way to
    the terminal state.

    Awaiting it returns :data:`None` when signaled, raises
    :exc:`TimeoutError` when timed out, and raises
    :exc:`~aiowaithandle.OperationCancelledError` when cancelled.

    Example:
      >>> from aiowaithandle import ManualResetEvent
      >>> event = ManualResetEvent(initially_set=True)
      >>> awaiter = event.wait_async(timeout=1)
      >>> awaiter.wait()  # blocking
      >>> awaiter.state
      <WaitState.SIGNALED: 2>
    """

    __slots__ = (
        "__weakref__",
        "_cancellation",
        "_claim",
        "_continuation",
        "_deadline",
        "_finished",
        "_handle",
        "_interrupt",
        "_registration",
        "_service",
        "_state",
        "_timeout",
        "_token_registration",
    )

    def __init__(
        self,
        /,
        handle: WaitHandle,
        timeout: float | None,
        cancellation: CancellationToken,
        service: WaitService,
    ) -> None:
        self._cancellation = cancellation
        self._claim = Flag()
        self._continuation = Continuation()
        self._deadline = None
        self._finished = create_thread_lock()
        self._handle = handle
        self._interrupt = None
        self._registration = None
        self._service = service
        self._state = WaitState.PENDING
        self._timeout = timeout
        self._token_registration = None

        # released on reaching a terminal state
        self._finished.acquire()

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = WaitHandleAwaiter
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        object_repr = (
            f"{cls_repr}({self._handle!r}, timeout={self._timeout!r})"
        )

        extra = self._state.name.lower().replace("_", " ")

        return f"<{object_repr} at {id(self):#x} [{extra}]>"

    @classmethod
    def start(
        cls,
        /,
        handle: WaitHandle,
        timeout: Timeout = None,
        cancellation: CancellationToken | None = None,
        *,
        service: WaitService | None = None,
    ) -> Self:
        """
        Validate *handle* and start waiting for it.

        Raises:
          InvalidUsageError:
            if *handle* is :data:`None` or has ownership affinity. Nothing is
            registered in this case.
        """

        _check_handle(handle)

        timeout = normalize_timeout(timeout)

        if cancellation is None:
            cancellation = CancellationToken.NONE

        if service is None:
            service = get_default_service()

        self = cls(handle, timeout, cancellation, service)

        if cancellation.cancelled:
            self._complete(WaitState.CANCELLED)

            return self

        if timeout is not None:
            self._deadline = monotonic() + timeout

        self._registration = service.register_wait(
            handle,
            self._on_wait_completed,
            timeout,
        )

        if self._claim:  # completed before the registration was stored
            self._registration.unregister()

            return self

        if cancellation.can_be_cancelled:
            self._token_registration = cancellation.register(
                self._on_cancel_requested,
            )

            if self._claim:
                self._token_registration.dispose()

        return self

    def __await__(self, /) -> Generator[Any, Any, None]:
        if not self.done:
            event = create_async_event()

            self.on_completed(event.set)

            try:
                yield from event.__await__()
            except BaseException:
                self._complete(WaitState.CANCELLED)
                raise

        return self.get_result()

    def on_completed(self, /, callback: Callable[[], object]) -> None:
        """
        Call *callback* once the wait reaches a terminal state, on the thread
        that completes it, or right away if it already has.

        Raises:
          RuntimeError:
            if a callback has already been set (awaiting sets one too).
        """

        self._continuation.arm(callback)

    def get_result(self, /) -> None:
        """
        Return the outcome of the wait, blocking the current thread until it
        is known.

        If the wait is still in progress, the current thread takes it over
        and waits on the handle directly for the rest of the timeout.

        Raises:
          TimeoutError:
            if the wait timed out.
          OperationCancelledError:
            if the wait was cancelled.
        """

        if not self.done:
            self._wait_directly()

        state = self._state

        if state is WaitState.SIGNALED:
            return

        if state is WaitState.TIMED_OUT:
            msg = "the wait has timed out"
            raise TimeoutError(msg)

        msg = "the wait has been cancelled"
        raise OperationCancelledError(msg)

    def wait(self, /) -> None:
        """
        The same as :meth:`get_result`.
        """

        self.get_result()

    def cancel_as_loser(self, /) -> bool:
        """
        Complete the wait as cancelled without calling the continuation.

        Used to release the registrations of waits whose outcome no longer
        matters. Returns :data:`True` if the wait was still in progress.
        """

        self._continuation.detach()

        return self._complete(WaitState.CANCELLED)

    def _wait_directly(self, /) -> None:
        registration = self._registration

        if registration is not None and registration.unregister():
            waiter = create_green_waiter()

            self._interrupt = waiter.wake

            signaled = _wait_until(
                self._handle,
                self._deadline,
                waiter,
                self._claim.__bool__,
            )

            if signaled:
                self._complete(WaitState.SIGNALED)
            else:
                self._complete(WaitState.TIMED_OUT)

        # the winner may still be releasing registrations
        with self._finished:
            pass

    def _complete(self, /, state: WaitState) -> bool:
        if not self._claim.set():
            return False

        self._state = WaitState.COMPLETING

        if (registration := self._registration) is not None:
            registration.unregister()

        if (token_registration := self._token_registration) is not None:
            token_registration.dispose()

        if (interrupt := self._interrupt) is not None:
            interrupt()

        self._state = state
        self._finished.release()
        self._continuation.fire()

        return True

    def _on_wait_completed(self, /, timed_out: bool) -> None:
        if timed_out:
            self._complete(WaitState.TIMED_OUT)
        else:
            self._complete(WaitState.SIGNALED)

    def _on_cancel_requested(self, /) -> None:
        self._complete(WaitState.CANCELLED)

    @property
    def handle(self, /) -> WaitHandle:
        """..."""

        return self._handle

    @property
    def timeout(self, /) -> float | None:
        """
        The timeout in seconds, :data:`None` if infinite.
        """

        return self._timeout

    @property
    def cancellation(self, /) -> CancellationToken:
        """..."""

        return self._cancellation

    @property
    def service(self, /) -> WaitService:
        """
        The service that completes the wait.
        """

        return self._service

    @property
    def state(self, /) -> WaitState:
        """..."""

        return self._state

    @property
    def done(self, /) -> bool:
        """
        :data:`True` once a terminal state is reached.
        """

        return self._state >= WaitState.SIGNALED

    @property
    def signaled(self, /) -> bool:
        """..."""

        return self._state is WaitState.SIGNALED

    @property
    def timed_out(self, /) -> bool:
        """..."""

        return self._state is WaitState.TIMED_OUT

    @property
    def cancelled(self, /) -> bool:
        """..."""

        return self._state is WaitState.CANCELLED
