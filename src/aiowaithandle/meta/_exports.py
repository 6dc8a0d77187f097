#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: ISC

from __future__ import annotations

import sys

from types import FunctionType, ModuleType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    if sys.version_info >= (3, 9):
        from collections.abc import MutableMapping
    else:
        from typing import MutableMapping


def _issubmodule(module_name: str | None, package_name: str, /) -> bool:
    return module_name is not None and (
        module_name == package_name
        or module_name.startswith(f"{package_name}.")
    )


def _export_one(
    package_name: str,
    qualname: str,
    name: str,
    value: object,
    /,
    *,
    visited: set[int] | None = None,
) -> None:
    # Only classes and plain functions are processed: singletons and other
    # objects may provide a read-only `__module__` attribute.

    if isinstance(value, type):
        if not _issubmodule(value.__module__, package_name):
            return  # skip foreign ones

        if visited is None:
            visited = set()
        elif id(value) in visited:
            return  # skip visited ones

        visited.add(id(value))

        try:
            # copy the namespace so that it works in case of parallel calls
            for attr_name, attr_value in {**vars(value)}.items():
                if attr_name.startswith("_"):
                    continue  # skip non-public ones

                _export_one(
                    package_name,
                    f"{qualname}.{attr_name}",
                    attr_name,
                    attr_value,
                    visited=visited,
                )
        finally:
            visited.remove(id(value))

        value.__name__ = name
        value.__qualname__ = qualname
        value.__module__ = package_name
    elif isinstance(value, FunctionType):
        if not _issubmodule(value.__module__, package_name):
            return  # skip foreign ones

        value.__name__ = name
        value.__qualname__ = qualname
        value.__module__ = package_name
    elif isinstance(value, (classmethod, staticmethod)):
        _export_one(package_name, qualname, name, value.__func__)
    elif isinstance(value, property):
        for func in (value.fget, value.fset, value.fdel):
            if func is None:
                continue

            _export_one(package_name, qualname, name, func)


def export(
    package_namespace: ModuleType | MutableMapping[str, object],
    /,
) -> None:
    """
    Prepare *package_namespace* for external use.

    Every public member (a name that does not start with the underscore
    character) is updated so that it looks as if it were defined directly in
    the package, which keeps representations and pickling stable when the
    implementation is moved between private submodules. Public subpackages
    are processed recursively. Additionally, a sorted
    :keyword:`__all__ <import>` is built for each processed namespace.

    Typically, the usage is as follows: ``export(globals())`` near the end of
    ``__init__.py``.
    """

    if TYPE_CHECKING:
        return

    if isinstance(package_namespace, ModuleType):
        package_name = package_namespace.__name__
        package_namespace = vars(package_namespace)
    else:
        package_name = package_namespace["__name__"]

    public_names = []

    # copy the namespace so that it works in case of parallel calls
    for name, value in {**package_namespace}.items():
        if name.startswith("_"):
            continue  # skip non-public ones

        if isinstance(value, ModuleType):
            if value.__name__.rpartition(".")[0] != package_name:
                continue  # skip indirect ones

            export(value)
        else:
            public_names.append(name)

            _export_one(package_name, name, name, value)

    # constants first, then the rest in alphabetical order
    public_names.sort()
    public_names.sort(key=str.isupper, reverse=True)

    package_namespace.setdefault("__all__", tuple(public_names))
