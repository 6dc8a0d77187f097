#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations


class InvalidUsageError(ValueError):
    """
    Raised synchronously, before anything is registered, when a wait is
    requested for something that cannot be waited on asynchronously: a missing
    handle, a handle with ownership affinity, or an invalid collection.
    """


class OperationCancelledError(Exception):
    """
    Raised by a wait whose cancellation token has been cancelled, or whose
    operation has been cancelled explicitly.
    """
