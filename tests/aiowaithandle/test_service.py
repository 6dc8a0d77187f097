#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import logging
import threading
import time

from concurrent.futures import Future, TimeoutError as WaitTimeout

import pytest

import aiowaithandle


def _recorder():
    future = Future()

    def callback(timed_out):
        future.set_result((timed_out, threading.get_ident()))

    return future, callback


def test_signal(service):
    event = aiowaithandle.ManualResetEvent()
    future, callback = _recorder()

    registration = service.register_wait(event, callback, None)

    assert registration.active
    assert service.pending == 1

    event.set()

    timed_out, ident = future.result(5)

    assert not timed_out
    assert ident != threading.get_ident()
    assert not registration.active
    assert not registration.unregister()
    assert service.pending == 0


def test_already_signaled(service):
    future, callback = _recorder()
    semaphore = aiowaithandle.Semaphore(1)

    service.register_wait(semaphore, callback, 0)

    assert future.result(5)[0] is False
    assert semaphore.count == 0  # consumed


def test_timeout(service):
    event = aiowaithandle.AutoResetEvent()
    future, callback = _recorder()

    start = time.monotonic()
    service.register_wait(event, callback, 0.1)

    assert future.result(5)[0] is True
    assert time.monotonic() - start >= 0.09
    assert service.pending == 0

    event.set()

    assert event.poll()  # not consumed by the expired registration


def test_unregister(service):
    event = aiowaithandle.AutoResetEvent()
    calls = []

    registration = service.register_wait(event, calls.append, 0.05)

    assert registration.unregister()
    assert not registration.unregister()
    assert service.pending == 0

    event.set()
    time.sleep(0.1)

    assert calls == []
    assert event.poll()


def test_auto_reset_releases_one(service):
    event = aiowaithandle.AutoResetEvent()
    futures = []

    for _ in range(3):
        future, callback = _recorder()
        futures.append(future)
        service.register_wait(event, callback, None)

    event.set()

    done = [future for future in futures if _completes(future)]

    assert len(done) == 1
    assert service.pending == 2


def test_call_later(service):
    future = Future()
    start = time.monotonic()

    service.call_later(0.05, lambda: future.set_result(time.monotonic()))

    assert future.result(5) - start >= 0.04

    calls = []
    handle = service.call_later(0.05, lambda: calls.append(1))

    assert handle.cancel()
    assert not handle.cancel()

    time.sleep(0.1)

    assert calls == []


def test_callback_exceptions_are_logged(service, caplog):
    event = aiowaithandle.ManualResetEvent(initially_set=True)
    done = threading.Event()

    def callback(timed_out):
        done.set()
        raise ZeroDivisionError

    with caplog.at_level(logging.ERROR, logger="aiowaithandle._service"):
        service.register_wait(event, callback, None)

        assert done.wait(5)

        deadline = time.monotonic() + 5

        while not caplog.records and time.monotonic() < deadline:
            time.sleep(0.01)

    assert caplog.records
    assert caplog.records[0].exc_info[0] is ZeroDivisionError


def test_shutdown():
    event = aiowaithandle.ManualResetEvent()
    calls = []

    with aiowaithandle.ThreadPoolWaitService(1) as service:
        registration = service.register_wait(event, calls.append, 10)

        assert "pending=1" in repr(service)

    assert not registration.active
    assert "shutdown" in repr(service)

    event.set()

    assert calls == []

    with pytest.raises(RuntimeError):
        service.register_wait(event, calls.append, None)


def test_many_timers(service):
    # cancelled timers must not keep later ones from firing
    handles = [service.call_later(10, lambda: None) for _ in range(300)]

    for handle in handles:
        handle.cancel()

    future = Future()
    service.call_later(0.01, lambda: future.set_result(True))

    assert future.result(5)


def test_default_service():
    service = aiowaithandle.get_default_service()

    assert service is aiowaithandle.get_default_service()
    assert isinstance(service, aiowaithandle.ThreadPoolWaitService)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", None),
        ("  ", None),
        ("3", 3),
        (" 16 ", 16),
    ],
)
def test_max_workers_from_environment(monkeypatch, value, expected):
    monkeypatch.setenv("AIOWAITHANDLE_MAX_WORKERS", value)

    assert aiowaithandle._service._get_max_workers() == expected


def test_max_workers_unset(monkeypatch):
    monkeypatch.delenv("AIOWAITHANDLE_MAX_WORKERS", raising=False)

    assert aiowaithandle._service._get_max_workers() is None


@pytest.mark.parametrize("value", ["four", "0", "-2", "1.5"])
def test_max_workers_invalid(monkeypatch, value):
    monkeypatch.setenv("AIOWAITHANDLE_MAX_WORKERS", value)

    with pytest.raises(ValueError, match="AIOWAITHANDLE_MAX_WORKERS"):
        aiowaithandle._service._get_max_workers()


def _completes(future):
    try:
        future.result(0.2)
    except WaitTimeout:
        return False

    return True
