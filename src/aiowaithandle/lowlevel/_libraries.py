#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from typing import TYPE_CHECKING, Literal

from sniffio import (
    AsyncLibraryNotFoundError as AsyncLibraryNotFoundError,
    current_async_library_cvar,
    thread_local,
)
from wrapt import when_imported

from aiowaithandle.meta import replaces

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

if TYPE_CHECKING:
    from sniffio._impl import _ThreadLocal

current_async_library_tlocal: _ThreadLocal = thread_local


def _asyncio_running() -> bool:
    return False


@when_imported("asyncio")
def _(_):
    @replaces(globals())
    def _asyncio_running():
        # asyncio.get_running_loop() raises a RuntimeError when there is no
        # loop, so we use asyncio._get_running_loop(), which returns None in
        # that case.

        from asyncio import _get_running_loop

        @replaces(globals())
        def _asyncio_running():
            return _get_running_loop() is not None

        return _asyncio_running()


@overload
def current_async_library(*, failsafe: Literal[False] = False) -> str: ...
@overload
def current_async_library(*, failsafe: Literal[True]) -> str | None: ...
def current_async_library(*, failsafe=False):
    """
    Detect which async library is currently running.

    Args:
      failsafe:
        Unless set to :data:`True`, the function will raise an exception when
        there is no current async library. Otherwise the function returns
        :data:`None` in that case.

    Returns:
      A string like ``"trio"`` or :data:`None`.

    Raises:
      AsyncLibraryNotFoundError:
        if the current async library was not recognized.
    """

    if (name := current_async_library_tlocal.name) is not None:
        return name

    if (name := current_async_library_cvar.get()) is not None:
        return name

    if _asyncio_running():
        return "asyncio"

    if failsafe:
        return None

    msg = "unknown async library, or not in async context"
    raise AsyncLibraryNotFoundError(msg)

