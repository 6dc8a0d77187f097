#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import inspect

from functools import wraps

import pytest

import aiowaithandle
import aiowaithandle._testing


def _spawn_decorator(func):
    @wraps(func)
    def wrapper(*args, spawn, **kwargs):
        return spawn(func, *args, spawn=spawn, **kwargs).result(timeout=60)

    return wrapper


@pytest.fixture(scope="session")
def spawn(request):
    library = request.param

    if library != "threading":
        pytest.importorskip(library)

    executor = aiowaithandle._testing.create_executor(library)

    with executor:

        def _spawn(func, /, *args, **kwargs):
            return executor.submit(func, *args, **kwargs)

        _spawn.library = library

        yield _spawn


@pytest.fixture
def service():
    with aiowaithandle.ThreadPoolWaitService(
        4,
        thread_name_prefix="test-service",
    ) as service:
        yield service


def pytest_addoption(parser):
    parser.addoption(
        "--thread-safety",
        action="store_true",
        default=False,
        help="run thread-safety tests",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "threadsafe: mark test as thread-safety test",
    )


def pytest_generate_tests(metafunc):
    if "spawn" in metafunc.fixturenames:
        if inspect.iscoroutinefunction(metafunc.function):
            metafunc.parametrize(
                "spawn",
                aiowaithandle._testing.ASYNC_LIBRARIES,
                indirect=True,
            )
        else:
            metafunc.parametrize(
                "spawn",
                aiowaithandle._testing.GREEN_LIBRARIES,
                indirect=True,
            )


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "spawn" in item.fixturenames:
            item.obj = _spawn_decorator(item.obj)

        if "threadsafe" in item.keywords:
            if not config.getoption("--thread-safety"):
                item.add_marker(
                    pytest.mark.skip(
                        reason="need --thread-safety option to run",
                    )
                )


class CountingService(aiowaithandle.WaitService):
    __slots__ = ("calls", "service")

    def __init__(self, service):
        self.calls = 0
        self.service = service

    def register_wait(self, handle, callback, timeout=None):
        self.calls += 1

        return self.service.register_wait(handle, callback, timeout)

    def call_later(self, delay, callback):
        return self.service.call_later(delay, callback)


@pytest.fixture
def counting_service(service):
    return CountingService(service)
