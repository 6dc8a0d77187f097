#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from _thread import LockType as ThreadLock, RLock as ThreadRLock, allocate_lock
from functools import partial, wraps
from typing import TypeVar

from aiowaithandle.meta import MISSING, MissingType

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

if sys.version_info >= (3, 9):
    from collections.abc import Callable
else:
    from typing import Callable

_T = TypeVar("_T")


def create_thread_lock() -> ThreadLock:
    """
    Create a new instance of a primitive lock that blocks threads.

    The same as :class:`threading.Lock`, but without the Python-level wrapper.
    """

    return allocate_lock()


def create_thread_rlock() -> ThreadRLock:
    """
    Create a new instance of a reentrant lock that blocks threads.
    """

    return ThreadRLock()


@overload
def once(
    wrapped: MissingType = MISSING,
    /,
    *,
    reentrant: bool = False,
) -> Callable[[Callable[[], _T]], Callable[[], _T]]: ...
@overload
def once(wrapped: Callable[[], _T], /) -> Callable[[], _T]: ...
def once(wrapped=MISSING, /, *, reentrant=False):
    """
    Transform *wrapped* into a one-time function.

    Blocks threads attempting to execute the function in parallel and wakes
    them up at once upon completion. The result is stored in the closure of the
    new function and is returned on each subsequent call.

    Args:
      reentrant:
        Unless set to :data:`True`, recursive attempts to call the function
        will raise the :exc:`RuntimeError` exception.

    Raises:
      RuntimeError:
        if called recursively and ``reentrant=False``.
    """

    if wrapped is MISSING:
        return partial(once, reentrant=reentrant)

    lock = create_thread_rlock()
    executing = False
    result = MISSING

    @wraps(wrapped)
    def wrapper():
        nonlocal executing
        nonlocal result

        if result is MISSING:
            with lock:
                if result is MISSING:
                    if executing:
                        if not reentrant:
                            msg = "this function is already executing"
                            raise RuntimeError(msg)

                        return wrapped()

                    executing = True

                    try:
                        result = wrapped()
                    finally:
                        executing = False

        return result

    return wrapper
