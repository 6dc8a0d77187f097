#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
Non-blocking waits on blocking synchronization primitives

This package lets async code (and threads that should not be blocked) wait on
primitives such as events and semaphores that are normally waited on by
blocking a thread:

* ``await handle`` or ``await handle.wait_async(timeout, cancellation)``
  waits for one handle and raises on timeout or cancellation
* ``wait_one()``, ``wait_any()`` and ``wait_all()`` return hot operations
  that resolve to a value (timeouts included) and can be awaited from asyncio
  or trio, or waited on from threads

No thread is blocked per wait: handles notify a shared service, which runs
the completions on a small pool of worker threads.
"""

from __future__ import annotations

__author__: str = "Ilya Egorov <0x42005e1f@gmail.com>"
__version__: str = "0.1.0"

from . import (  # noqa: F401
    lowlevel,
    meta,
)
from ._awaiter import (
    WaitHandleAwaiter as WaitHandleAwaiter,
    WaitState as WaitState,
)
from ._cancellation import (
    CancellationRegistration as CancellationRegistration,
    CancellationSource as CancellationSource,
    CancellationToken as CancellationToken,
)
from ._exceptions import (
    InvalidUsageError as InvalidUsageError,
    OperationCancelledError as OperationCancelledError,
)
from ._flag import (
    Flag as Flag,
)
from ._handles import (
    AutoResetEvent as AutoResetEvent,
    ManualResetEvent as ManualResetEvent,
    Mutex as Mutex,
    Semaphore as Semaphore,
    WaitHandle as WaitHandle,
)
from ._operations import (
    WAIT_TIMEOUT as WAIT_TIMEOUT,
    WaitAllOperation as WaitAllOperation,
    WaitAnyOperation as WaitAnyOperation,
    WaitOneOperation as WaitOneOperation,
    WaitOperation as WaitOperation,
    WaitTimeoutType as WaitTimeoutType,
    wait_all as wait_all,
    wait_any as wait_any,
    wait_one as wait_one,
)
from ._service import (
    ThreadPoolWaitService as ThreadPoolWaitService,
    TimerHandle as TimerHandle,
    WaitRegistration as WaitRegistration,
    WaitService as WaitService,
    get_default_service as get_default_service,
)
from ._timeouts import (
    Timeout as Timeout,
    normalize_timeout as normalize_timeout,
)

meta.export(globals())
