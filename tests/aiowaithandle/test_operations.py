#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import pickle
import threading
import time

import pytest

import aiowaithandle

from aiowaithandle import WAIT_TIMEOUT, wait_all, wait_any, wait_one


async def test_wait_one_signaled(spawn, service):
    event = aiowaithandle.AutoResetEvent()
    operation = wait_one(event, service=service)

    threading.Timer(0.05, event.set).start()

    start = time.monotonic()

    assert await operation is True
    assert time.monotonic() - start < 1
    assert operation.done()
    assert service.pending == 0


async def test_wait_one_timed_out(spawn, service):
    event = aiowaithandle.AutoResetEvent()

    start = time.monotonic()
    operation = wait_one(event, 0.2, service=service)

    assert not operation.done()
    assert await operation is False
    assert time.monotonic() - start >= 0.19
    assert service.pending == 0


async def test_wait_any(spawn, service):
    events = [aiowaithandle.AutoResetEvent() for _ in range(3)]
    operation = wait_any(events, service=service)

    threading.Timer(0.05, events[1].set).start()

    assert await operation == 1
    assert service.pending == 0

    # losers never consume later signals
    events[0].set()
    events[2].set()

    assert events[0].poll()
    assert events[2].poll()


async def test_wait_any_timed_out(spawn, service):
    events = [aiowaithandle.ManualResetEvent() for _ in range(3)]

    assert await wait_any(events, 0.05, service=service) is WAIT_TIMEOUT
    assert service.pending == 0


async def test_wait_any_cancelled(spawn, service):
    events = [aiowaithandle.AutoResetEvent() for _ in range(3)]
    source = aiowaithandle.CancellationSource()
    operation = wait_any(events, None, source.token, service=service)

    threading.Timer(0.05, source.cancel).start()

    with pytest.raises(aiowaithandle.OperationCancelledError):
        await operation

    assert service.pending == 0

    events[0].set()

    assert events[0].poll()


async def test_wait_all(spawn, service):
    events = [aiowaithandle.ManualResetEvent() for _ in range(3)]
    operation = wait_all(events, 5, service=service)

    for event in events:
        threading.Timer(0.02, event.set).start()

    assert await operation is True
    assert service.pending == 0


async def test_wait_all_first_timeout(spawn, service):
    slow = aiowaithandle.AutoResetEvent()
    fast = aiowaithandle.AutoResetEvent()

    timer = threading.Timer(2, slow.set)
    timer.start()

    start = time.monotonic()

    try:
        assert await wait_all([fast, slow], 0.1, service=service) is False
        assert time.monotonic() - start < 1
    finally:
        timer.cancel()

    assert service.pending == 0


async def test_task_cancellation(spawn, service):
    event = aiowaithandle.ManualResetEvent()
    operation = wait_any([event], service=service)

    if spawn.library == "asyncio":
        import asyncio

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(operation, 0.05)
    else:
        import trio

        with trio.move_on_after(0.05):
            await operation

    assert operation.done()
    assert isinstance(
        operation.future.exception(),
        aiowaithandle.OperationCancelledError,
    )
    assert service.pending == 0


def test_blocking_wait(service):
    semaphore = aiowaithandle.Semaphore(0, 2)
    operation = wait_all([semaphore, semaphore], service=service)

    with pytest.raises(TimeoutError):
        operation.wait(0.05)

    assert not operation.done()

    semaphore.release(2)

    assert operation.wait(5) is True
    assert semaphore.count == 0


def test_wait_all_partially_signaled(service):
    events = [aiowaithandle.ManualResetEvent() for _ in range(2)]
    operation = wait_all(events, 5, service=service)

    events[0].set()
    time.sleep(0.1)

    assert not operation.done()
    assert service.pending == 1

    events[1].set()

    assert operation.wait(5) is True
    assert service.pending == 0


def test_repeated_timed_out_waits(service):
    event = aiowaithandle.ManualResetEvent()
    operation = wait_one(event, service=service)

    for _ in range(20):
        with pytest.raises(TimeoutError):
            operation.wait(0.005)

    assert not operation.future._done_callbacks

    event.set()

    assert operation.wait(5) is True


class RefusingService(aiowaithandle.WaitService):
    __slots__ = ("calls", "limit", "service")

    def __init__(self, service, limit):
        self.calls = 0
        self.limit = limit
        self.service = service

    def register_wait(self, handle, callback, timeout=None):
        self.calls += 1

        if self.calls >= self.limit:
            msg = "registration refused"
            raise RuntimeError(msg)

        return self.service.register_wait(handle, callback, timeout)

    def call_later(self, delay, callback):
        return self.service.call_later(delay, callback)


@pytest.mark.parametrize("factory", [wait_any, wait_all])
def test_failed_registration(service, factory):
    events = [aiowaithandle.AutoResetEvent() for _ in range(5)]
    source = aiowaithandle.CancellationSource()

    with pytest.raises(RuntimeError, match="registration refused"):
        factory(
            events,
            None,
            source.token,
            service=RefusingService(service, 3),
        )

    assert service.pending == 0

    events[0].set()
    time.sleep(0.05)

    assert events[0].poll()
    assert not source._callbacks


def test_cancel(service):
    event = aiowaithandle.AutoResetEvent()
    operation = wait_one(event, service=service)

    assert operation.cancel()
    assert not operation.cancel()
    assert "[cancelled]" in repr(operation)

    with pytest.raises(aiowaithandle.OperationCancelledError):
        operation.wait()

    assert service.pending == 0

    # the future is completed only through the operation
    assert not operation.future.cancel()


def test_empty(counting_service):
    assert wait_all([], service=counting_service).wait(0) is True
    assert wait_any([], service=counting_service).wait(0) is WAIT_TIMEOUT
    assert wait_any(iter([]), service=counting_service).wait(0) is WAIT_TIMEOUT
    assert counting_service.calls == 0


@pytest.mark.parametrize("factory", [wait_one, wait_any, wait_all])
def test_already_cancelled(counting_service, factory):
    events = [aiowaithandle.ManualResetEvent(initially_set=True)]
    source = aiowaithandle.CancellationSource()
    source.cancel()

    if factory is wait_one:
        target = events[0]
    else:
        target = events

    operation = factory(target, 1, source.token, service=counting_service)

    assert operation.done()
    assert counting_service.calls == 0

    with pytest.raises(aiowaithandle.OperationCancelledError):
        operation.wait()


@pytest.mark.parametrize("factory", [wait_any, wait_all])
@pytest.mark.parametrize(
    "handles",
    [
        None,
        42,
        [aiowaithandle.ManualResetEvent(), None],
        [aiowaithandle.Semaphore(1), aiowaithandle.Mutex()],
    ],
)
def test_invalid_usage(counting_service, factory, handles):
    with pytest.raises(aiowaithandle.InvalidUsageError):
        factory(handles, service=counting_service)

    assert counting_service.calls == 0


def test_invalid_usage_index(counting_service):
    handles = [aiowaithandle.ManualResetEvent(), None]

    with pytest.raises(aiowaithandle.InvalidUsageError, match="index 1"):
        wait_any(handles, service=counting_service)

    with pytest.raises(aiowaithandle.InvalidUsageError):
        wait_one(aiowaithandle.Mutex(), service=counting_service)

    assert counting_service.calls == 0


def test_cancelled_during_registration(service):
    source = aiowaithandle.CancellationSource()

    class CancellingService(aiowaithandle.WaitService):
        calls = 0

        def register_wait(self, handle, callback, timeout=None):
            type(self).calls += 1

            registration = service.register_wait(handle, callback, timeout)

            if self.calls == 2:
                source.cancel()

            return registration

        def call_later(self, delay, callback):
            return service.call_later(delay, callback)

    events = [aiowaithandle.AutoResetEvent() for _ in range(5)]
    operation = wait_any(
        events,
        None,
        source.token,
        service=CancellingService(),
    )

    with pytest.raises(aiowaithandle.OperationCancelledError):
        operation.wait(5)

    assert CancellingService.calls == 2
    assert service.pending == 0


def test_many_handles(service):
    events = [aiowaithandle.AutoResetEvent() for _ in range(500)]
    operation = wait_any(events, service=service)

    events[321].set()

    assert operation.wait(5) == 321
    assert service.pending == 0


def test_single_resolution_under_races(service):
    for _ in range(200):
        events = [aiowaithandle.AutoResetEvent() for _ in range(2)]
        source = aiowaithandle.CancellationSource()
        operation = wait_any(events, 0.001, source.token, service=service)
        resolutions = []

        operation.future.add_done_callback(resolutions.append)

        for target in (events[0].set, events[1].set, source.cancel):
            threading.Thread(target=target).start()

        try:
            result = operation.wait(5)
        except aiowaithandle.OperationCancelledError:
            pass
        else:
            assert result in {0, 1, WAIT_TIMEOUT}

        assert len(resolutions) == 1

    deadline = time.monotonic() + 5

    while service.pending and time.monotonic() < deadline:
        time.sleep(0.01)

    assert service.pending == 0


def test_stress(service):
    for _ in range(20000):
        event = aiowaithandle.AutoResetEvent()
        operation = wait_one(event, service=service)

        event.set()

        assert operation.wait(5) is True

    assert service.pending == 0


def test_wait_timeout_marker():
    assert repr(WAIT_TIMEOUT) == "aiowaithandle.WAIT_TIMEOUT"
    assert type(WAIT_TIMEOUT)() is WAIT_TIMEOUT
    assert pickle.loads(pickle.dumps(WAIT_TIMEOUT)) is WAIT_TIMEOUT

    with pytest.raises(TypeError):

        class WaitTimeoutType(type(WAIT_TIMEOUT)):
            pass
