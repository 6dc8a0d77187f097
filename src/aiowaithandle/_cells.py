#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from typing import Any, NoReturn, final

from ._flag import Flag

if sys.version_info >= (3, 9):
    from collections.abc import Callable
else:
    from typing import Callable


@final
class Continuation:
    """
    A single-assignment cell for a completion callback.

    The callback is called exactly once, after both :meth:`arm` and
    :meth:`fire` have happened, in whichever order and on whichever thread
    comes last. :meth:`detach` makes the cell inert: a callback that has not
    been called yet will never be.
    """

    __slots__ = (
        "_armed",
        "_callback",
        "_fired",
        "_ready",
    )

    def __init__(self, /) -> None:
        self._armed = Flag()
        self._callback = None
        self._fired = Flag()
        self._ready = False

    def __init_subclass__(cls, /, **kwargs: Any) -> NoReturn:
        bcs = Continuation
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        if self._fired:
            if self._callback is not None and self._ready:
                extra = "fired"
            else:
                extra = "detached"
        elif self._armed:
            extra = "armed"
        else:
            extra = "empty"

        return f"<{cls_repr} object at {id(self):#x} [{extra}]>"

    def arm(self, /, callback: Callable[[], object]) -> None:
        """
        Store *callback*, calling it right away if the cell has already been
        fired.

        Raises:
          RuntimeError:
            if a callback has already been stored.
        """

        if not self._armed.set():
            msg = "continuation is already set"
            raise RuntimeError(msg)

        self._callback = callback

        if self._ready:
            self._run()

    def fire(self, /) -> None:
        """
        Mark the cell as ready and call the stored callback, if any.
        """

        self._ready = True
        self._run()

    def detach(self, /) -> None:
        """
        Make sure that no callback is ever called. A callback stored later is
        accepted but ignored.
        """

        self._fired.set()

    @property
    def armed(self, /) -> bool:
        """..."""

        return bool(self._armed)

    def _run(self, /) -> None:
        callback = self._callback

        if callback is not None and self._fired.set():
            callback()
