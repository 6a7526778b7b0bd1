import asyncio

import pytest

from src.shared.infrastructure.concurrency import Debouncer, RequestFence


async def test_debouncer_runs_once_with_latest_arguments() -> None:
    calls = []

    async def record(value):
        calls.append(value)
        return value

    debouncer = Debouncer(record, delay_seconds=0.01)
    debouncer.trigger(1)
    debouncer.trigger(2)
    task = debouncer.trigger(3)

    assert await task == 3
    assert calls == [3]
    assert not debouncer.is_pending


async def test_debouncer_flush_runs_immediately() -> None:
    calls = []

    async def record(value):
        calls.append(value)

    debouncer = Debouncer(record, delay_seconds=10)
    debouncer.trigger("now")

    await debouncer.flush()

    assert calls == ["now"]
    assert not debouncer.is_pending
    assert await debouncer.flush() is None


async def test_debouncer_cancel_drops_pending_call() -> None:
    calls = []

    async def record():
        calls.append(True)

    debouncer = Debouncer(record, delay_seconds=0.01)
    debouncer.trigger()
    debouncer.cancel()
    await asyncio.sleep(0.03)

    assert calls == []


async def test_debouncer_propagates_callback_errors() -> None:
    async def explode():
        raise RuntimeError("boom")

    debouncer = Debouncer(explode, delay_seconds=0)

    with pytest.raises(RuntimeError):
        await debouncer.trigger()


def test_request_fence_tracks_latest_token() -> None:
    fence = RequestFence()
    first = fence.issue("A")
    second = fence.issue("A")
    other = fence.issue("B")

    assert not fence.is_latest("A", first)
    assert fence.is_latest("A", second)
    assert fence.is_latest("B", other)

    fence.release("A", first)
    assert fence.in_flight("A")

    fence.release("A", second)
    assert not fence.in_flight("A")
