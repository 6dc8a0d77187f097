#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2024 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from typing import TYPE_CHECKING, Generic

from .meta import MISSING, MissingType

if sys.version_info >= (3, 13):
    from typing import TypeVar
else:
    from typing_extensions import TypeVar

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

if TYPE_CHECKING:
    if sys.version_info >= (3, 11):
        from typing import Self
    else:
        from typing_extensions import Self

_T = TypeVar("_T", default=object)
_D = TypeVar("_D")


class Flag(Generic[_T]):
    """
    A single-assignment marker cell.

    The first :meth:`set` call wins and stores its marker; every later call
    observes the stored marker and reports a loss. This is the claim primitive
    used wherever exactly one of several concurrent paths must become
    authoritative (a one-time state transition, or the decision of a
    multi-handle wait).

    Example:
      >>> decision = Flag()
      >>> decision.set('signaled')
      True
      >>> decision.set('cancelled')
      False
      >>> decision.get()
      'signaled'
    """

    __slots__ = (
        "__weakref__",
        "_markers",
    )

    def __new__(cls, /, marker: _T | MissingType = MISSING) -> Self:
        self = object.__new__(cls)

        if marker is not MISSING:
            self._markers = [marker]
        else:
            self._markers = []

        return self

    def __reduce__(self, /) -> tuple[type[Self], tuple[object, ...]]:
        marker = self.get(MISSING)

        if marker is MISSING:
            return (self.__class__, ())

        return (self.__class__, (marker,))

    def __repr__(self, /) -> str:
        cls = self.__class__
        cls_repr = f"{cls.__module__}.{cls.__qualname__}"

        marker = self.get(MISSING)

        if marker is MISSING:
            return f"{cls_repr}()"

        return f"{cls_repr}({marker!r})"

    def __bool__(self, /) -> bool:
        """
        Returns :data:`True` if the flag is set.
        """

        return bool(self._markers)

    @overload
    def get(self, /) -> _T: ...
    @overload
    def get(self, /, default: _D) -> _T | _D: ...
    def get(self, /, default=MISSING):
        """
        Return the stored marker, or *default* if the flag is not set.

        Raises:
          LookupError:
            if the flag is not set and no *default* is given.
        """

        if self._markers:
            try:
                return self._markers[0]
            except IndexError:
                pass

        if default is not MISSING:
            return default

        raise LookupError(self)

    @overload
    def set(self: Flag[object], /, marker: MissingType = MISSING) -> bool: ...
    @overload
    def set(self, /, marker: _T) -> bool: ...
    def set(self, /, marker=MISSING):
        """
        Try to store *marker* (a fresh object if omitted).

        Returns :data:`True` only for the call whose marker was stored. Safe
        to call from any number of threads at once.
        """

        markers = self._markers

        if not markers:
            if marker is MISSING:
                marker = object()

            markers.append(marker)

            if len(markers) > 1:
                del markers[1:]

        if marker is not MISSING:
            try:
                return marker is markers[0]
            except IndexError:
                pass

        return False
