#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from logging import Logger, getLogger
from typing import TYPE_CHECKING, Any, ClassVar, Final, NoReturn, final

from ._exceptions import OperationCancelledError
from ._flag import Flag
from ._service import get_default_service
from ._timeouts import normalize_timeout
from .lowlevel import create_thread_lock

if TYPE_CHECKING:
    from types import TracebackType

    from ._service import TimerHandle, WaitService
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


@final
class CancellationRegistration:
    """
    A callback registered on a :class:`CancellationToken`.

    Disposing it guarantees that the callback will not be called later (it
    may still be running if cancellation happened in parallel). Can be used as
    a context manager, which disposes the registration on exit.
    """

    __slots__ = (
        "_callback",
        "_source",
    )

    def __init__(
        self,
        /,
        source: CancellationSource | None,
        callback: Callable[[], object],
    ) -> None:
        self._callback = callback
        self._source = source

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = CancellationRegistration
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._source is not None:
            extra = "active"
        else:
            extra = "disposed"

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
        self.dispose()

    def dispose(self, /) -> bool:
        """
        Remove the callback from its token. Idempotent.

        Returns :data:`True` if the callback was still registered.
        """

        source, self._source = self._source, None

        if source is None:
            return False

        return source._unregister(self)


@final
class CancellationSource:
    """
    The owning side of a cancellation signal.

    Hands out :class:`CancellationToken` objects through :attr:`token` and
    cancels all of them at once with :meth:`cancel`. Cancellation is
    one-way: a cancelled source stays cancelled.

    Example:
      >>> source = CancellationSource()
      >>> registration = source.token.register(lambda: print('cancelled'))
      >>> source.cancel()
      cancelled
      True
      >>> source.cancel()
      False
    """

    __slots__ = (
        "__weakref__",
        "_callbacks",
        "_cancelled",
        "_lock",
    )

    def __init__(self, /) -> None:
        self._callbacks = {}
        self._cancelled = Flag()
        self._lock = create_thread_lock()

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = CancellationSource
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._cancelled:
            extra = "cancelled"
        else:
            extra = f"callbacks={len(self._callbacks)}"

        return f"<{cls_repr} object at {id(self):#x} [{extra}]>"

    def cancel(self, /) -> bool:
        """
        Request cancellation and run the registered callbacks on the current
        thread, in registration order.

        Exceptions raised by the callbacks are logged and do not stop the
        remaining ones. Returns :data:`True` only for the call that actually
        cancelled the source.
        """

        if not self._cancelled.set():
            return False

        with self._lock:
            callbacks = list(self._callbacks.values())

            self._callbacks.clear()

        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOGGER.exception("exception calling callback for %r", self)

        return True

    def cancel_after(
        self,
        /,
        delay: Timeout,
        *,
        service: WaitService | None = None,
    ) -> TimerHandle | None:
        """
        Schedule :meth:`cancel` to be called after *delay* seconds on a
        worker of *service* (the default service if omitted).

        Returns a handle whose ``cancel()`` method revokes the schedule, or
        :data:`None` if *delay* is infinite.
        """

        delay = normalize_timeout(delay)

        if delay is None:
            return None

        if service is None:
            service = get_default_service()

        return service.call_later(delay, self.cancel)

    @property
    def token(self, /) -> CancellationToken:
        """
        A token observing this source.
        """

        return CancellationToken(self)

    @property
    def cancelled(self, /) -> bool:
        """..."""

        return bool(self._cancelled)

    def _register(
        self,
        /,
        callback: Callable[[], object],
    ) -> CancellationRegistration:
        registration = CancellationRegistration(self, callback)

        with self._lock:
            if not self._cancelled:
                self._callbacks[registration] = callback

                return registration

        registration._source = None

        callback()

        return registration

    def _unregister(self, /, registration: CancellationRegistration) -> bool:
        with self._lock:
            return self._callbacks.pop(registration, None) is not None


@final
class CancellationToken:
    """
    The observing side of a cancellation signal.

    :attr:`NONE` is a token that can never be cancelled: registering on it
    does nothing, so waits that use it need no cancellation bookkeeping.
    """

    __slots__ = ("_source",)

    NONE: ClassVar[CancellationToken]

    def __init__(self, /, source: CancellationSource | None = None) -> None:
        self._source = source

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = CancellationToken
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._source is None:
            return f"{cls_repr}.NONE"

        if self.cancelled:
            extra = "cancelled"
        else:
            extra = "not cancelled"

        return f"<{cls_repr} object at {id(self):#x} [{extra}]>"

    def __eq__(self, /, other: object) -> bool:
        if not isinstance(other, CancellationToken):
            return NotImplemented

        return self._source is other._source

    def __hash__(self, /) -> int:
        return hash((CancellationToken, id(self._source)))

    def register(
        self,
        /,
        callback: Callable[[], object],
    ) -> CancellationRegistration:
        """
        Call *callback* once when the token is cancelled.

        If the token is already cancelled, *callback* is called synchronously
        before returning, and its exceptions propagate to the caller.
        """

        if self._source is None:
            return CancellationRegistration(None, callback)

        return self._source._register(callback)

    def raise_if_cancelled(self, /) -> None:
        """
        Raises:
          OperationCancelledError:
            if the token is cancelled.
        """

        if self.cancelled:
            msg = "the operation has been cancelled"
            raise OperationCancelledError(msg)

    @property
    def cancelled(self, /) -> bool:
        """..."""

        return self._source is not None and self._source.cancelled

    @property
    def can_be_cancelled(self, /) -> bool:
        """
        :data:`False` only for tokens that will never be cancelled.
        """

        return self._source is not None


CancellationToken.NONE = CancellationToken()
