"""Dispatch engine: fan-out, snapshot isolation, failure isolation, cancellation."""
import asyncio
import time

import pytest

from hookcast.dispatch.engine import DispatchEngine
from hookcast.dispatch.stream import ResponseStream
from hookcast.errors import EndpointDispatchFailure, EngineClosed, UnknownTopic


async def post(endpoint: str) -> str:
    await asyncio.sleep(0)
    return f"response from {endpoint}"


class Gate:
    """Request function that holds every endpoint until released."""

    def __init__(self):
        self.events: dict[str, asyncio.Event] = {}
        self.called: list[str] = []
        self.cancelled: list[str] = []

    def release(self, endpoint: str) -> None:
        self.events.setdefault(endpoint, asyncio.Event()).set()

    def release_all(self) -> None:
        for endpoint in list(self.events):
            self.release(endpoint)

    async def __call__(self, endpoint: str) -> str:
        self.called.append(endpoint)
        event = self.events.setdefault(endpoint, asyncio.Event())
        try:
            await event.wait()
        except asyncio.CancelledError:
            self.cancelled.append(endpoint)
            raise
        return endpoint.upper()


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_orders_scenario(registry):
    registry.add_all("orders", ["http://a", "http://b"])
    async with DispatchEngine(registry) as engine:
        sub = engine.subscribe()
        records = await engine.trigger("orders", post).wait()
        assert len(records) == 2
        assert {r.topic for r in records} == {"orders"}
        assert sorted(r.endpoint for r in records) == ["http://a", "http://b"]
        assert all(r.ok for r in records)
        streamed = [await sub.get(), await sub.get()]
        assert sorted(r.endpoint for r in streamed) == ["http://a", "http://b"]

        registry.remove_endpoint("orders", "http://a")
        records = await engine.trigger("orders", post).wait()
        assert [(r.endpoint, r.response) for r in records] == [("http://b", "response from http://b")]


@pytest.mark.asyncio
async def test_trigger_returns_before_responses(registry):
    registry.add("t", "http://a")
    gate = Gate()
    async with DispatchEngine(registry) as engine:
        handle = engine.trigger("t", gate)
        assert not handle.done()
        assert handle.endpoints == ("http://a",)
        await settle()
        assert gate.called == ["http://a"]
        gate.release("http://a")
        records = await handle.wait()
        assert handle.done()
        assert records[0].response == "HTTP://A"


@pytest.mark.asyncio
async def test_records_arrive_in_completion_order(registry):
    registry.add_all("t", ["http://a", "http://b", "http://c"])
    gate = Gate()
    async with DispatchEngine(registry) as engine:
        handle = engine.trigger("t", gate)
        await settle()
        assert gate.called == ["http://a", "http://b", "http://c"]
        for endpoint in ("http://c", "http://a", "http://b"):
            gate.release(endpoint)
            await settle()
        records = await handle.wait()
        assert [r.endpoint for r in records] == ["http://c", "http://a", "http://b"]


@pytest.mark.asyncio
async def test_failure_is_isolated(registry):
    registry.add_all("t", ["http://bad", "http://good"])

    async def flaky(endpoint):
        if endpoint == "http://bad":
            raise ValueError("connection refused")
        return "fine"

    async with DispatchEngine(registry) as engine:
        records = {r.endpoint: r for r in await engine.trigger("t", flaky).wait()}
        assert records["http://good"].ok
        bad = records["http://bad"]
        assert not bad.ok
        assert isinstance(bad.error, EndpointDispatchFailure)
        assert isinstance(bad.error.__cause__, ValueError)
        assert "connection refused" in bad.error.reason


@pytest.mark.asyncio
async def test_dispatch_failure_passes_through(registry):
    registry.add("t", "http://a")
    failure = EndpointDispatchFailure("http://a", "HTTP 503")

    async def refuse(endpoint):
        raise failure

    async with DispatchEngine(registry) as engine:
        [rec] = await engine.trigger("t", refuse).wait()
        assert rec.error is failure


@pytest.mark.asyncio
async def test_sync_request_fn(registry):
    registry.add_all("t", ["http://a", "http://b"])
    async with DispatchEngine(registry) as engine:
        records = await engine.trigger("t", lambda endpoint: len(endpoint)).wait()
        assert [r.response for r in records] == [8, 8]


@pytest.mark.asyncio
async def test_blocking_request_fn_runs_in_parallel(registry):
    registry.add_all("t", ["http://a", "http://b", "http://c"])
    ticks = 0

    def slow(endpoint):
        time.sleep(0.3)
        return endpoint

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    async with DispatchEngine(registry) as engine:
        tick_task = asyncio.create_task(ticker())
        started = time.monotonic()
        records = await engine.trigger("t", slow).wait()
        elapsed = time.monotonic() - started
        tick_task.cancel()

    assert sorted(r.response for r in records) == ["http://a", "http://b", "http://c"]
    assert elapsed < 0.6
    # the loop kept running while the calls blocked
    assert ticks >= 5


@pytest.mark.asyncio
async def test_snapshot_isolation(registry):
    registry.add_all("t", ["http://a", "http://b"])
    gate = Gate()
    async with DispatchEngine(registry) as engine:
        handle = engine.trigger("t", gate)
        registry.add("t", "http://c")
        registry.remove_endpoint("t", "http://a")
        await settle()
        gate.release_all()
        records = await handle.wait()
        assert sorted(r.endpoint for r in records) == ["http://a", "http://b"]
        assert gate.called == ["http://a", "http://b"]
        assert registry.get("t") == ("http://b", "http://c")


@pytest.mark.asyncio
async def test_unknown_topic_raises(registry):
    async with DispatchEngine(registry) as engine:
        with pytest.raises(UnknownTopic):
            engine.trigger("missing", post)
        assert engine.active == 0


@pytest.mark.asyncio
async def test_topic_without_endpoints(registry):
    registry.add_all("t", [])
    async with DispatchEngine(registry) as engine:
        handle = engine.trigger("t", post)
        assert await handle.wait() == []
        assert [r async for r in handle] == []


@pytest.mark.asyncio
async def test_handle_iterates_own_records(registry):
    registry.add_all("t", ["http://a", "http://b"])
    registry.add("other", "http://z")
    async with DispatchEngine(registry) as engine:
        other = engine.trigger("other", post)
        handle = engine.trigger("t", post)
        seen = [r.endpoint async for r in handle]
        assert sorted(seen) == ["http://a", "http://b"]
        await other.wait()


@pytest.mark.asyncio
async def test_close_cancels_in_flight(registry):
    registry.add_all("t", ["http://a", "http://b"])
    gate = Gate()
    engine = DispatchEngine(registry)
    sub = engine.subscribe()
    handle = engine.trigger("t", gate)
    await settle()

    await engine.close()

    assert handle.done()
    assert handle.cancelled()
    assert handle.records == []
    assert sorted(gate.cancelled) == ["http://a", "http://b"]
    assert [r async for r in sub] == []
    assert engine.active == 0


@pytest.mark.asyncio
async def test_close_keeps_already_published(registry):
    registry.add_all("t", ["http://fast", "http://slow"])
    gate = Gate()
    gate.release("http://fast")
    stream = ResponseStream()
    engine = DispatchEngine(registry, stream)
    sub = stream.subscribe()
    handle = engine.trigger("t", gate)

    first = await asyncio.wait_for(sub.get(), 1)
    assert first.endpoint == "http://fast"
    await engine.close()
    gate.release("http://slow")
    await settle()

    assert [r.endpoint for r in handle.records] == ["http://fast"]
    assert sub.pending() == 0
    # a stream passed in by the caller stays open
    assert not stream.closed


@pytest.mark.asyncio
async def test_close_is_idempotent_and_final(registry):
    registry.add("t", "http://a")
    engine = DispatchEngine(registry)
    await engine.close()
    await engine.close()
    assert engine.closed
    with pytest.raises(EngineClosed):
        engine.trigger("t", post)


@pytest.mark.asyncio
async def test_cancel_one_trigger_leaves_others(registry):
    registry.add("a", "http://a")
    registry.add("b", "http://b")
    gate = Gate()
    async with DispatchEngine(registry) as engine:
        first = engine.trigger("a", gate)
        second = engine.trigger("b", gate)
        assert engine.active == 2
        await settle()
        first.cancel()
        gate.release("http://b")
        assert await second.wait() != []
        assert await first.wait() == []
        await settle()
        assert engine.active == 0
        assert gate.cancelled == ["http://a"]


@pytest.mark.asyncio
async def test_concurrent_triggers_same_topic(registry):
    registry.add_all("t", ["http://a", "http://b"])
    gate = Gate()
    async with DispatchEngine(registry) as engine:
        sub = engine.subscribe()
        handles = [engine.trigger("t", gate) for _ in range(3)]
        await settle()
        assert len(gate.called) == 6
        gate.release_all()
        results = [await h.wait() for h in handles]
        assert [len(r) for r in results] == [2, 2, 2]
        assert len({h.trigger_id for h in handles}) == 3
        received = [await sub.get() for _ in range(6)]
        assert {r.trigger_id for r in received} == {h.trigger_id for h in handles}


@pytest.mark.asyncio
async def test_result_after_cancel_is_discarded(registry):
    registry.add("t", "http://a")
    started = asyncio.Event()

    async def stubborn(endpoint):
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            return "too late"
        return "on time"

    engine = DispatchEngine(registry)
    sub = engine.subscribe()
    handle = engine.trigger("t", stubborn)
    await started.wait()

    await engine.close()

    assert handle.cancelled()
    assert handle.records == []
    assert await handle.wait() == []
    assert [r async for r in sub] == []
