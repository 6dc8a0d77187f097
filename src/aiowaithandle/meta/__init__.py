#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

"""
This package implements the metaprogramming helpers that the library uses for
its own needs: singleton markers, global rebinding, and export preparation.
"""

from ._exports import (
    export as export,
)
from ._functions import (
    replaces as replaces,
)
from ._markers import (
    MISSING as MISSING,
    MissingType as MissingType,
    SingletonEnum as SingletonEnum,
)
