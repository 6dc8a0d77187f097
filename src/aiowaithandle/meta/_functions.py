#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from functools import partial, update_wrapper
from typing import TYPE_CHECKING

from ._markers import MISSING

if TYPE_CHECKING:
    from typing import Any, Protocol, TypeVar

    from ._markers import MissingType

    if sys.version_info >= (3, 9):
        from collections.abc import Callable, MutableMapping
    else:
        from typing import Callable, MutableMapping

if sys.version_info >= (3, 11):
    from typing import overload
else:
    from typing_extensions import overload

if TYPE_CHECKING:

    class _NamedCallable(Protocol):
        def __call__(self, /, *args: Any, **kwargs: Any) -> Any: ...
        @property
        def __name__(self, /) -> str: ...  # noqa: PLW3201

    _NamedCallableT = TypeVar("_NamedCallableT", bound=_NamedCallable)


@overload
def replaces(
    namespace: MutableMapping[str, object],
    replacer: MissingType = MISSING,
    /,
) -> Callable[[_NamedCallableT], _NamedCallableT]: ...
@overload
def replaces(
    namespace: MutableMapping[str, object],
    replacer: _NamedCallableT,
    /,
) -> _NamedCallableT: ...
def replaces(namespace, replacer=MISSING, /):
    """
    Wrap and replace the function of the same name in *namespace*.

    Unlike :func:`functools.wraps`, excludes the ``__wrapped__`` attribute so
    that sequential replacements do not keep each other alive.

    Used for global rebinding of lazily specialized functions.

    Raises:
      LookupError:
        if there is no function of the same name in *namespace*.

    Example:
      >>> def detect():
      ...     return 'slow'
      >>> def specialize():
      ...     @replaces(globals())
      ...     def detect():
      ...         return 'fast'
      >>> detect()
      'slow'
      >>> specialize()
      >>> detect()
      'fast'
    """

    if replacer is MISSING:
        return partial(replaces, namespace)

    name = replacer.__name__

    try:
        wrapped = namespace[name]
    except KeyError:
        if "__spec__" in namespace:  # a module namespace
            namespace_repr = f"module {namespace['__name__']!r}"
        else:
            namespace_repr = "`namespace`"

        msg = f"{namespace_repr} has no function {name!r}"
        raise LookupError(msg) from None
    else:
        update_wrapper(replacer, wrapped)

    try:
        del replacer.__wrapped__
    except AttributeError:  # deleted in parallel
        pass

    namespace[name] = replacer

    return replacer
