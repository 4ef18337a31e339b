"""Response stream - live broadcast of webhook responses to any number of subscribers.

Every subscriber gets its own bounded buffer. When a buffer is full the
publisher waits until that subscriber catches up (backpressure); records are
never dropped for an attached subscriber. Late subscribers see only what is
published after they attach, unless they ask for a replay out of the bounded
history window.
"""
import asyncio
import logging
from collections import deque

from hookcast.dispatch.records import WebhookResponse
from hookcast.errors import StreamClosed

logger = logging.getLogger(__name__)


class Subscription:
    """One subscriber's view of a ResponseStream."""

    def __init__(self, stream: "ResponseStream", buffer_size: int):
        self._stream = stream
        self._buffer_size = buffer_size
        self._items: deque[WebhookResponse] = deque()
        self._readable = asyncio.Event()
        self._writable = asyncio.Event()
        self._ended = False

    @property
    def closed(self) -> bool:
        return self._ended

    def pending(self) -> int:
        """Records buffered but not yet consumed."""
        return len(self._items)

    async def _put(self, record: WebhookResponse) -> bool:
        while len(self._items) >= self._buffer_size and not self._ended:
            self._writable.clear()
            await self._writable.wait()
        if self._ended:
            return False
        self._items.append(record)
        self._readable.set()
        return True

    def _prefill(self, records) -> None:
        self._items.extend(records)
        if self._items:
            self._readable.set()

    def _end(self) -> None:
        self._ended = True
        self._readable.set()
        self._writable.set()

    async def get(self) -> WebhookResponse:
        """Next record. Raises StreamClosed once the stream ended and the buffer is drained."""
        while not self._items:
            if self._ended:
                raise StreamClosed("Subscription closed")
            self._readable.clear()
            await self._readable.wait()
        record = self._items.popleft()
        self._writable.set()
        return record

    def close(self) -> None:
        """Detach from the stream. Publishers blocked on this subscriber are released."""
        self._stream._detach(self)
        self._items.clear()
        self._end()

    def __aiter__(self):
        return self

    async def __anext__(self) -> WebhookResponse:
        try:
            return await self.get()
        except StreamClosed:
            raise StopAsyncIteration

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class ResponseStream:
    """Multi-subscriber, arrival-ordered stream of WebhookResponse records."""

    def __init__(self, buffer_size: int = 100, history_size: int = 0):
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        if history_size < 0:
            raise ValueError("history_size must not be negative")
        self.buffer_size = buffer_size
        self.history_size = history_size
        self._history: deque[WebhookResponse] = deque(maxlen=history_size or None)
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscribers(self) -> int:
        return len(self._subscribers)

    def subscribe(self, replay: int = 0) -> Subscription:
        """Attach a subscriber. `replay` delivers up to that many recent records first."""
        if self._closed:
            raise StreamClosed("Response stream is closed")
        sub = Subscription(self, self.buffer_size)
        if replay > 0 and self.history_size:
            sub._prefill(list(self._history)[-replay:])
        self._subscribers.append(sub)
        return sub

    def _detach(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    async def publish(self, record: WebhookResponse) -> int:
        """Deliver a record to every attached subscriber. Returns how many took it."""
        if self._closed:
            raise StreamClosed("Response stream is closed")
        if self.history_size:
            self._history.append(record)
        delivered = 0
        for sub in list(self._subscribers):
            if await sub._put(record):
                delivered += 1
        return delivered

    def close(self) -> None:
        """End the stream. Subscribers drain what they already have, then stop."""
        if self._closed:
            return
        self._closed = True
        for sub in self._subscribers:
            sub._end()
        self._subscribers.clear()
        logger.debug("Response stream closed")
