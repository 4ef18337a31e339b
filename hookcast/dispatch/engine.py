"""Dispatch engine - fans a request out to every endpoint of a topic.

A trigger snapshots the topic's endpoints, starts one task per endpoint and
returns a TriggerHandle straight away. Each finished request becomes a
WebhookResponse on the shared ResponseStream and on the handle itself, in
arrival order. Failures stay with their endpoint and show up as records
carrying an EndpointDispatchFailure.
"""
import asyncio
import inspect
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable

from hookcast.dispatch.records import WebhookResponse
from hookcast.dispatch.stream import ResponseStream, Subscription
from hookcast.errors import EndpointDispatchFailure, EngineClosed, StreamClosed
from hookcast.registry.topics import TopicRegistry

logger = logging.getLogger(__name__)

RequestFn = Callable[[str], Awaitable[Any] | Any]

_DONE = object()


class TriggerHandle:
    """Cancellable handle for one trigger call."""

    def __init__(self, topic: str, endpoints: tuple[str, ...], trigger_id: str):
        self.topic = topic
        self.endpoints = endpoints
        self.trigger_id = trigger_id
        self._records: list[WebhookResponse] = []
        self._listeners: list[asyncio.Queue] = []
        self._children: list[asyncio.Task] = []
        self._task: asyncio.Task | None = None
        self._cancelling = False

    @property
    def records(self) -> list[WebhookResponse]:
        """Records delivered so far, in arrival order."""
        return list(self._records)

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def cancelled(self) -> bool:
        return self._cancelling

    def cancel(self) -> None:
        """Cancel every endpoint still in flight. Their results are never published."""
        if self.done():
            return
        self._cancelling = True
        for task in self._children:
            task.cancel()
        if self._task is not None:
            self._task.cancel()

    async def wait(self) -> list[WebhookResponse]:
        """Wait until every endpoint finished (or was cancelled) and return the records."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return list(self._records)

    def _record(self, record: WebhookResponse) -> None:
        self._records.append(record)
        for queue in self._listeners:
            queue.put_nowait(record)

    def _finish(self) -> None:
        for queue in self._listeners:
            queue.put_nowait(_DONE)
        self._listeners.clear()

    def __aiter__(self) -> AsyncIterator[WebhookResponse]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[WebhookResponse]:
        queue: asyncio.Queue = asyncio.Queue()
        for record in self._records:
            queue.put_nowait(record)
        if self.done():
            queue.put_nowait(_DONE)
        else:
            self._listeners.append(queue)
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    return
                yield item
        finally:
            if queue in self._listeners:
                self._listeners.remove(queue)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelling else "done" if self.done() else "dispatching"
        return f"TriggerHandle(topic={self.topic!r}, endpoints={len(self.endpoints)}, {state})"


class DispatchEngine:
    """Owns the trigger tasks it starts. close() cancels all of them."""

    def __init__(self, registry: TopicRegistry, stream: ResponseStream | None = None):
        self.registry = registry
        self._owns_stream = stream is None
        self.stream = stream if stream is not None else ResponseStream()
        self._handles: set[TriggerHandle] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> int:
        """Number of trigger calls still dispatching."""
        return len(self._handles)

    def subscribe(self, replay: int = 0) -> Subscription:
        return self.stream.subscribe(replay=replay)

    def trigger(self, topic: str, request_fn: RequestFn) -> TriggerHandle:
        """Start dispatching to the current endpoints of `topic`.

        Must be called from a running event loop. Raises UnknownTopic when the
        topic is not registered and EngineClosed after close().
        """
        if self._closed:
            raise EngineClosed("Dispatch engine is closed")
        loop = asyncio.get_running_loop()
        endpoints = self.registry.snapshot(topic)
        handle = TriggerHandle(topic, endpoints, uuid.uuid4().hex[:12])
        handle._children = [
            loop.create_task(self._deliver(handle, endpoint, request_fn))
            for endpoint in endpoints
        ]
        handle._task = loop.create_task(self._supervise(handle))
        self._handles.add(handle)
        handle._task.add_done_callback(lambda _: self._done(handle))
        logger.info("Trigger %s: topic=%s endpoints=%d", handle.trigger_id, topic, len(endpoints))
        return handle

    def _done(self, handle: TriggerHandle) -> None:
        self._handles.discard(handle)
        handle._finish()

    async def _supervise(self, handle: TriggerHandle) -> None:
        try:
            await asyncio.gather(*handle._children)
        except asyncio.CancelledError:
            for task in handle._children:
                task.cancel()
            await asyncio.gather(*handle._children, return_exceptions=True)
            logger.info("Trigger %s cancelled", handle.trigger_id)
            raise

    async def _deliver(self, handle: TriggerHandle, endpoint: str, request_fn: RequestFn) -> None:
        try:
            if _is_async(request_fn):
                response = await request_fn(endpoint)
            else:
                # plain callables may block, keep them off the event loop
                response = await asyncio.to_thread(request_fn, endpoint)
                if inspect.isawaitable(response):
                    response = await response
            record = WebhookResponse(handle.topic, endpoint, response=response, trigger_id=handle.trigger_id)
        except EndpointDispatchFailure as e:
            record = WebhookResponse(handle.topic, endpoint, error=e, trigger_id=handle.trigger_id)
        except Exception as e:
            failure = EndpointDispatchFailure(endpoint, f"{type(e).__name__}: {e}")
            failure.__cause__ = e
            record = WebhookResponse(handle.topic, endpoint, error=failure, trigger_id=handle.trigger_id)

        if record.ok:
            logger.debug("Trigger %s: %s -> %s", handle.trigger_id, endpoint, record.status_code)
        else:
            logger.warning("Trigger %s: %s failed: %s", handle.trigger_id, endpoint, record.error.reason)

        if handle.cancelled():
            return
        try:
            await self.stream.publish(record)
        except StreamClosed:
            logger.debug("Trigger %s: stream closed, %s not broadcast", handle.trigger_id, endpoint)
        handle._record(record)

    async def close(self) -> None:
        """Refuse new triggers and cancel every outstanding one. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        handles = list(self._handles)
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.wait({h._task for h in handles})
        if self._owns_stream:
            self.stream.close()
        logger.info("Dispatch engine closed, %d triggers cancelled", len(handles))

    async def __aenter__(self) -> "DispatchEngine":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


def _is_async(fn: RequestFn) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))
