#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import enum
import sys

from inspect import ismemberdescriptor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Final, NoReturn

if sys.version_info >= (3, 11):  # `EnumMeta` has been renamed to `EnumType`
    from enum import EnumType
else:
    from enum import EnumMeta as EnumType

if TYPE_CHECKING:
    if sys.version_info >= (3, 11):
        from typing import Literal
    else:
        from typing_extensions import Literal

    if sys.version_info >= (3, 11):
        from typing import Never
    else:
        from typing_extensions import Never

if sys.version_info >= (3, 11):  # runtime introspection support
    from typing import final
else:
    from typing_extensions import final

# Singletons are built on top of `enum` so that type checkers can narrow
# `value is SINGLETON` checks (see "Support for singleton types in unions" in
# PEP 484).


class _SingletonMeta(EnumType):
    # to allow `type(SINGLETON)() is SINGLETON`
    def __call__(cls, /, *args, **kwargs):
        if len(cls) != 1 or args or kwargs:
            return super().__call__(*args, **kwargs)

        return super().__call__(next(iter(cls)).value)


class SingletonEnum(enum.Enum, metaclass=_SingletonMeta):
    """
    A base class for creating type-checker-friendly singleton classes whose
    instances will be defined at the module level.

    Unlike :class:`enum.Enum`, it prohibits setting attributes that are not
    explicitly declared (via :ref:`slots`).

    Example:
      >>> class SingletonType(SingletonEnum):
      ...     SINGLETON = 'SINGLETON'
      >>> SINGLETON = SingletonType.SINGLETON
      >>> SingletonType() is SINGLETON
      True
      >>> SINGLETON._y = 2
      Traceback (most recent call last):
      AttributeError: 'SingletonType' object has no attribute '_y'
    """

    def __setattr__(self, /, name: str, value: object) -> None:
        if name.startswith("_") and name.endswith("_"):  # used by `enum.Enum`
            super().__setattr__(name, value)
            return

        cls = self.__class__

        if ismemberdescriptor(getattr(cls, name, None)):
            super().__setattr__(name, value)
            return

        msg = f"{cls.__qualname__!r} object has no attribute {name!r}"
        raise AttributeError(msg)

    def __repr__(self, /) -> str:
        return f"{self.__class__.__module__}.{self._name_}"

    def __str__(self, /) -> str:  # overridden by `enum.Enum`
        return f"{self.__class__.__module__}.{self._name_}"


@final
class MissingType(SingletonEnum):
    """
    A singleton class for :data:`MISSING`; mimics :data:`~types.NoneType`.
    """

    MISSING = object()

    def __init_subclass__(cls, /, **kwargs: Never) -> NoReturn:
        bcs = __class__  # an implicit closure reference
        bcs_repr = f"{bcs.__module__}.{bcs.__qualname__}"

        msg = f"type '{bcs_repr}' is not an acceptable base type"
        raise TypeError(msg)

    def __bool__(self, /) -> Literal[False]:
        return False


MISSING: Final[Literal[MissingType.MISSING]] = MissingType.MISSING
