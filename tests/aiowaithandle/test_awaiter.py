#!/usr/bin/env python3

# SPDX-FileCopyrightText: 2025 Ilya Egorov <0x42005e1f@gmail.com>
# SPDX-License-Identifier: 0BSD

import threading
import time

import pytest

import aiowaithandle

from aiowaithandle import WaitState


async def test_signal(spawn, service):
    event = aiowaithandle.ManualResetEvent()
    awaiter = event.wait_async(service=service)

    assert awaiter.state is WaitState.PENDING
    assert not awaiter.done

    threading.Timer(0.05, event.set).start()

    assert await awaiter is None

    assert awaiter.state is WaitState.SIGNALED
    assert awaiter.signaled
    assert service.pending == 0


async def test_timeout(spawn, service):
    event = aiowaithandle.AutoResetEvent()
    awaiter = event.wait_async(0.2, service=service)

    start = time.monotonic()

    with pytest.raises(TimeoutError):
        await awaiter

    assert time.monotonic() - start >= 0.19
    assert awaiter.state is WaitState.TIMED_OUT
    assert awaiter.timed_out
    assert not awaiter.signaled
    assert not awaiter.cancelled
    assert service.pending == 0


async def test_cancellation(spawn, service):
    event = aiowaithandle.AutoResetEvent()
    source = aiowaithandle.CancellationSource()
    awaiter = event.wait_async(None, source.token, service=service)

    threading.Timer(0.05, source.cancel).start()

    with pytest.raises(aiowaithandle.OperationCancelledError):
        await awaiter

    assert awaiter.state is WaitState.CANCELLED
    assert service.pending == 0

    event.set()

    assert event.poll()  # not consumed by the cancelled wait


async def test_await_handle(spawn):
    semaphore = aiowaithandle.Semaphore(0)

    threading.Timer(0.05, semaphore.release).start()

    await semaphore

    assert semaphore.count == 0


async def test_task_cancellation(spawn, service):
    event = aiowaithandle.ManualResetEvent()
    awaiter = event.wait_async(service=service)

    if spawn.library == "asyncio":
        import asyncio

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(awaiter, 0.05)
    else:
        import trio

        with trio.move_on_after(0.05):
            await awaiter

    assert awaiter.state is WaitState.CANCELLED
    assert service.pending == 0


def test_already_cancelled(counting_service):
    event = aiowaithandle.ManualResetEvent(initially_set=True)
    source = aiowaithandle.CancellationSource()
    source.cancel()

    awaiter = event.wait_async(1, source.token, service=counting_service)

    assert awaiter.state is WaitState.CANCELLED
    assert counting_service.calls == 0

    with pytest.raises(aiowaithandle.OperationCancelledError):
        awaiter.get_result()


@pytest.mark.parametrize(
    "handle",
    [None, aiowaithandle.Mutex(), object()],
)
def test_invalid_usage(counting_service, handle):
    with pytest.raises(aiowaithandle.InvalidUsageError):
        aiowaithandle.WaitHandleAwaiter.start(
            handle,
            service=counting_service,
        )

    assert counting_service.calls == 0


def test_mutex_message():
    with pytest.raises(aiowaithandle.InvalidUsageError, match="Semaphore"):
        aiowaithandle.Mutex().wait_async()


def test_blocking_fallback(service):
    event = aiowaithandle.ManualResetEvent()
    awaiter = event.wait_async(service=service)

    threading.Timer(0.05, event.set).start()

    awaiter.get_result()

    assert awaiter.signaled
    assert service.pending == 0


def test_blocking_fallback_timeout(service):
    event = aiowaithandle.ManualResetEvent()
    awaiter = event.wait_async(0.1, service=service)

    start = time.monotonic()

    with pytest.raises(TimeoutError):
        awaiter.wait()

    assert time.monotonic() - start >= 0.09
    assert awaiter.timed_out
    assert service.pending == 0


def test_blocking_fallback_cancellation(service):
    event = aiowaithandle.ManualResetEvent()
    source = aiowaithandle.CancellationSource()
    awaiter = event.wait_async(None, source.token, service=service)

    threading.Timer(0.05, source.cancel).start()

    with pytest.raises(aiowaithandle.OperationCancelledError):
        awaiter.get_result()

    assert awaiter.cancelled


def test_on_completed(service):
    event = aiowaithandle.ManualResetEvent()
    awaiter = event.wait_async(service=service)
    completed = threading.Event()

    awaiter.on_completed(completed.set)

    with pytest.raises(RuntimeError):
        awaiter.on_completed(completed.set)

    event.set()

    assert completed.wait(5)
    assert awaiter.signaled

    calls = []
    awaiter = event.wait_async(service=service)
    awaiter.get_result()
    awaiter.on_completed(lambda: calls.append(1))

    assert calls == [1]


def test_cancel_as_loser(service):
    event = aiowaithandle.AutoResetEvent()
    awaiter = event.wait_async(service=service)
    calls = []

    awaiter.on_completed(lambda: calls.append(1))

    assert awaiter.cancel_as_loser()
    assert not awaiter.cancel_as_loser()
    assert awaiter.cancelled
    assert service.pending == 0

    event.set()
    time.sleep(0.05)

    assert calls == []
    assert event.poll()


def test_properties(service):
    event = aiowaithandle.ManualResetEvent()
    source = aiowaithandle.CancellationSource()
    awaiter = event.wait_async(1.5, source.token, service=service)

    assert awaiter.handle is event
    assert awaiter.timeout == 1.5
    assert awaiter.cancellation == source.token
    assert awaiter.service is service
    assert "[pending]" in repr(awaiter)

    awaiter.cancel_as_loser()

    assert "[cancelled]" in repr(awaiter)


def test_at_most_once(service):
    for _ in range(200):
        event = aiowaithandle.AutoResetEvent()
        source = aiowaithandle.CancellationSource()
        awaiter = event.wait_async(0.001, source.token, service=service)
        calls = []
        completed = threading.Event()

        def callback():
            calls.append(awaiter.state)
            completed.set()

        awaiter.on_completed(callback)

        threading.Thread(target=event.set).start()
        threading.Thread(target=source.cancel).start()

        assert completed.wait(5)

        time.sleep(0.001)

        assert len(calls) == 1
        assert calls[0] in {
            WaitState.SIGNALED,
            WaitState.TIMED_OUT,
            WaitState.CANCELLED,
        }

    deadline = time.monotonic() + 5

    while service.pending and time.monotonic() < deadline:
        time.sleep(0.01)

    assert service.pending == 0
