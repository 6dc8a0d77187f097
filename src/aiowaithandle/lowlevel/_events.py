#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, NoReturn, Protocol

from ._waiters import create_async_waiter, create_green_waiter

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Generator
    else:
        from typing import Generator


class Event(Protocol):
    """
    A one-shot event: it can be set once, awaited (or waited) once, and is
    cancelled if the waiting side gives up before it is set.
    """

    __slots__ = ()

    def __bool__(self, /) -> bool:
        """..."""

    def set(self, /) -> bool:
        """
        Set the event and wake the waiting side. Can be called from any
        thread.

        Returns :data:`True` only for the call that actually set the event,
        that is, if the event was neither set nor cancelled before.
        """

    def is_set(self, /) -> bool:
        """..."""

    def cancelled(self, /) -> bool:
        """..."""


class GreenEvent(ABC, Event):
    """..."""

    __slots__ = ()

    @abstractmethod
    def wait(self, /, timeout: float | None = None) -> bool:
        """..."""

        raise NotImplementedError


class AsyncEvent(ABC, Event):
    """..."""

    __slots__ = ()

    @abstractmethod
    def __await__(self, /) -> Generator[Any, Any, bool]:
        """..."""

        raise NotImplementedError


class _BaseEvent(ABC, Event):
    __slots__ = (
        "_is_cancelled",
        "_is_pending",
        "_is_set",
        "_is_unset",
        "_waiter",
    )

    def __init__(self, /) -> None:
        # single-element lists: a successful pop() is the one-time transition
        self._is_cancelled = False
        self._is_pending = [True]
        self._is_set = False
        self._is_unset = [True]
        self._waiter = None

    def __reduce__(self, /) -> NoReturn:
        msg = f"cannot reduce {self!r}"
        raise TypeError(msg)

    def __bool__(self, /) -> bool:
        return self._is_set

    def set(self, /) -> bool:
        if self._is_set or self._is_cancelled:
            return False

        try:
            self._is_unset.pop()
        except IndexError:
            return False

        self._is_set = True

        if (waiter := self._waiter) is not None:
            waiter.wake()

        return True

    def is_set(self, /) -> bool:
        return self._is_set

    def cancelled(self, /) -> bool:
        return self._is_cancelled

    def _acquire_pending(self, /) -> None:
        try:
            self._is_pending.pop()
        except IndexError:
            msg = "this event is already in use"
            raise RuntimeError(msg) from None

    def _finalize(self, /) -> None:
        if not self._is_set:
            try:
                self._is_unset.pop()
            except IndexError:  # set in parallel
                self._is_set = True
            else:
                self._is_cancelled = True


class _GreenEventImpl(_BaseEvent, GreenEvent):
    __slots__ = ()

    def __repr__(self, /) -> str:
        cls_repr = f"{GreenEvent.__module__}.GreenEvent"

        if self._is_set:
            state = "set"
        elif self._is_cancelled:
            state = "cancelled"
        else:
            state = "unset"

        return f"<{cls_repr} object at {id(self):#x}: {state}>"

    def wait(self, /, timeout: float | None = None) -> bool:
        if self._is_set:
            return True

        if self._is_cancelled:
            return False

        self._acquire_pending()

        self._waiter = create_green_waiter()

        try:
            if self._is_set:
                return True

            try:
                self._waiter.wait(timeout)
            finally:
                self._finalize()

            return self._is_set
        finally:
            self._waiter = None


class _AsyncEventImpl(_BaseEvent, AsyncEvent):
    __slots__ = ()

    def __repr__(self, /) -> str:
        cls_repr = f"{AsyncEvent.__module__}.AsyncEvent"

        if self._is_set:
            state = "set"
        elif self._is_cancelled:
            state = "cancelled"
        else:
            state = "unset"

        return f"<{cls_repr} object at {id(self):#x}: {state}>"

    def __await__(self, /) -> Generator[Any, Any, bool]:
        if self._is_set:
            return True

        if self._is_cancelled:
            return False

        self._acquire_pending()

        self._waiter = create_async_waiter()

        try:
            if self._is_set:
                return True

            try:
                yield from self._waiter.__await__()
            finally:
                self._finalize()

            return self._is_set
        finally:
            self._waiter = None


def create_green_event() -> GreenEvent:
    """
    Create a one-shot event that blocks the current thread on waiting.
    """

    return _GreenEventImpl()


def create_async_event() -> AsyncEvent:
    """
    Create a one-shot event that suspends the current task on awaiting.
    """

    return _AsyncEventImpl()
