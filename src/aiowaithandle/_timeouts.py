#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

from datetime import timedelta
from math import isinf, isnan
from typing import Union

Timeout = Union[float, timedelta, None]


def normalize_timeout(timeout: Timeout, /) -> float | None:
    """
    Convert *timeout* to a non-negative number of seconds, or :data:`None`
    for an infinite wait.

    Accepts :data:`None` and :data:`math.inf` (both infinite), a non-negative
    :class:`int` or :class:`float` number of seconds, or a
    :class:`datetime.timedelta`.

    Raises:
      TypeError:
        if *timeout* is of an unsupported type.
      ValueError:
        if *timeout* is negative or NaN.

    Example:
      >>> normalize_timeout(None) is None
      True
      >>> normalize_timeout(timedelta(milliseconds=200))
      0.2
      >>> normalize_timeout(float('inf')) is None
      True
    """

    if timeout is None:
        return None

    if isinstance(timeout, timedelta):
        timeout = timeout.total_seconds()
    elif isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        msg = (
            "timeout must be a number of seconds, a timedelta, or None,"
            f" not {type(timeout).__name__!r}"
        )
        raise TypeError(msg)

    if isinstance(timeout, int):
        try:
            timeout = float(timeout)
        except OverflowError:
            timeout = (-1 if timeout < 0 else 1) * float("inf")

    if isnan(timeout):
        msg = "timeout must be non-NaN"
        raise ValueError(msg)

    if timeout < 0:
        msg = "timeout must be non-negative"
        raise ValueError(msg)

    if isinf(timeout):
        return None

    return timeout
