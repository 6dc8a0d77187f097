#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from inspect import iscoroutinefunction
from typing import TYPE_CHECKING, Any, Final, TypeVar

if sys.version_info >= (3, 10):
    from typing import ParamSpec
else:
    from typing_extensions import ParamSpec

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import Callable, Coroutine
    else:
        from typing import Callable, Coroutine

_T = TypeVar("_T")
_P = ParamSpec("_P")

GREEN_LIBRARIES: Final[tuple[str, ...]] = ("threading",)
ASYNC_LIBRARIES: Final[tuple[str, ...]] = ("asyncio", "trio")


def run(
    func: Callable[_P, Coroutine[Any, Any, _T]],
    /,
    *args: _P.args,
    library: str,
    **kwargs: _P.kwargs,
) -> _T:
    """
    Run the coroutine function *func* to completion in a new event loop of
    *library* on the current thread.
    """

    if library == "asyncio":
        import asyncio

        return asyncio.run(func(*args, **kwargs))

    if library == "trio":
        import trio

        return trio.run(partial(func, *args, **kwargs))

    msg = f"unsupported async library {library!r}"
    raise ValueError(msg)


class TaskExecutor(ThreadPoolExecutor):
    """
    An executor that runs coroutine functions in a new event loop of its
    library, and plain functions as they are. Every call gets its own worker
    thread if needed, so calls never wait for each other.
    """

    def __init__(self, /, library: str) -> None:
        super().__init__(64, thread_name_prefix=f"TaskExecutor-{library}")

        self.library = library

    def submit(self, func, /, *args, **kwargs) -> Future[Any]:
        if iscoroutinefunction(func):
            return super().submit(
                run,
                func,
                *args,
                library=self.library,
                **kwargs,
            )

        return super().submit(func, *args, **kwargs)


def create_executor(library: str) -> TaskExecutor:
    """..."""

    if library not in GREEN_LIBRARIES and library not in ASYNC_LIBRARIES:
        msg = f"unsupported library {library!r}"
        raise ValueError(msg)

    return TaskExecutor(library)
