#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
This package implements the building blocks that resume a suspended task or
thread from an arbitrary worker thread: waiters for each supported library,
one-shot events on top of them, and async library detection.
"""

from ._events import (
    AsyncEvent as AsyncEvent,
    Event as Event,
    GreenEvent as GreenEvent,
    create_async_event as create_async_event,
    create_green_event as create_green_event,
)
from ._libraries import (
    AsyncLibraryNotFoundError as AsyncLibraryNotFoundError,
    current_async_library as current_async_library,
    current_async_library_tlocal as current_async_library_tlocal,
)
from ._locks import (
    ThreadLock as ThreadLock,
    ThreadRLock as ThreadRLock,
    create_thread_lock as create_thread_lock,
    create_thread_rlock as create_thread_rlock,
    once as once,
)
from ._waiters import (
    AsyncWaiter as AsyncWaiter,
    GreenWaiter as GreenWaiter,
    Waiter as Waiter,
    create_async_waiter as create_async_waiter,
    create_green_waiter as create_green_waiter,
)
