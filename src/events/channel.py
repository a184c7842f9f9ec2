"""Session-scoped live progress channel (publish/subscribe)."""

from __future__ import annotations

import asyncio
import logging

from src.models.events import ProgressEvent

logger = logging.getLogger(__name__)


class Subscription:
    """Async iterator over events published after subscribing.

    Iteration ends after a terminal event (session completed or failed)
    or when the subscription is closed.
    """

    _CLOSED = object()

    def __init__(self, channel: "ProgressChannel"):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._done = False

    def _deliver(self, event: ProgressEvent) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        self._channel._unsubscribe(self)
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._CLOSED:
            self._done = True
            raise StopAsyncIteration
        if item.terminal:
            self._done = True
            self._channel._unsubscribe(self)
        return item


class ProgressChannel:
    """Publishes events to subscribers in emission order and keeps a history."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.history: list[ProgressEvent] = []
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, event: ProgressEvent) -> None:
        logger.debug("[%s] %s", event.channel, type(event).__name__)
        self.history.append(event)
        for subscription in list(self._subscribers):
            subscription._deliver(event)

    def events(self, channel: str) -> list[ProgressEvent]:
        """Published events on one channel name, in order."""
        return [e for e in self.history if e.channel == channel]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
