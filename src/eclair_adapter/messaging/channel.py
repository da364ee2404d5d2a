from __future__ import annotations

import queue
import threading
from collections.abc import Callable

from eclair_adapter.log import getLogger

from .events import LightningEvent

EVENTS_CHANNEL = "events"

Handler = Callable[[LightningEvent], None]


class EventChannel:
    """
    In-process publish/subscribe channel for domain events. Events are handed
    to all handlers subscribed to the named channel, in order of subscription.
    A failing handler raises to the publisher.
    """

    def __init__(self) -> None:
        self._logger = getLogger(self.__module__ + "." + self.__class__.__name__)
        self._handlers: dict[str, list[Handler]] = {}

        # Lock for the handler registry, because workers publish from
        # multiple threads.
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler, channel: str = EVENTS_CHANNEL) -> None:
        with self._lock:
            self._handlers.setdefault(channel, []).append(handler)

    def subscribe_queue(
        self, channel: str = EVENTS_CHANNEL
    ) -> queue.Queue[LightningEvent]:
        """
        Returns a queue receiving all events published on the channel from now
        on.
        """

        q: queue.Queue[LightningEvent] = queue.Queue()
        self.subscribe(q.put, channel)
        return q

    def publish(self, event: LightningEvent, channel: str = EVENTS_CHANNEL) -> None:
        with self._lock:
            handlers = list(self._handlers.get(channel, []))

        if not handlers:
            self._logger.debug(f"No subscriber for {channel=}; {event=}")

        for handler in handlers:
            handler(event)

        self._logger.trace_lazy(lambda: f"Published on {channel=}: {event}")
