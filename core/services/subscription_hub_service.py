from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Set

from core.domain.entities.stream_message_entity import StreamMessage
from core.services.series_key_service import SeriesKey

_CLOSED = object()


class Subscription:
    """
    One live-feed consumer for one series key.

    Messages go through a bounded queue; when the consumer falls behind, the oldest queued
    message is dropped (delivery is best-effort). close() is idempotent.
    """

    def __init__(self, *, key: SeriesKey, hub: "SubscriptionHub", max_queue: int = 256) -> None:
        self.key = key
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, int(max_queue)))
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, message: StreamMessage) -> None:
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(message)

    async def get(self, timeout: Optional[float] = None) -> Optional[StreamMessage]:
        """
        Next message, or None on timeout / after close.
        """
        if self._closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub.unsubscribe(self)
        # wake a consumer blocked in get()
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)


class SubscriptionHub:
    """
    Fan-out of live messages to subscribers, per series key.

    Lives on the event loop; publishing never blocks.
    """

    def __init__(self, *, max_queue: int = 256, logger: logging.Logger | None = None) -> None:
        self._max_queue = int(max_queue)
        self._subs: Dict[SeriesKey, Set[Subscription]] = {}
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def subscribe(self, key: SeriesKey) -> Subscription:
        sub = Subscription(key=key, hub=self, max_queue=self._max_queue)
        self._subs.setdefault(key, set()).add(sub)
        self._logger.info("Subscribed series=%s subscribers=%s", key, len(self._subs[key]))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.key)
        if not subs or sub not in subs:
            return
        subs.discard(sub)
        if not subs:
            self._subs.pop(sub.key, None)
        self._logger.info("Unsubscribed series=%s", sub.key)
        sub.close()

    def has_subscribers(self, key: SeriesKey) -> bool:
        return bool(self._subs.get(key))

    def subscriber_count(self, pair_id: Optional[str] = None) -> int:
        return sum(len(s) for k, s in self._subs.items() if pair_id is None or k.pair_id == pair_id)

    def publish(self, key: SeriesKey, messages: List[StreamMessage]) -> int:
        """
        Push messages, in order, to every subscriber of `key`. Returns subscribers reached.
        """
        subs = list(self._subs.get(key) or ())
        for sub in subs:
            for msg in messages:
                sub.push(msg)
        return len(subs)
