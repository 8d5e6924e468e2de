from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Topic(StrEnum):
    TRANSACTIONS = "transactions.changed"
    HOLDINGS = "holdings.changed"
    CATALOG = "catalog.changed"
    CAPITAL = "capital.changed"
    PRICES = "prices.changed"


@dataclass(frozen=True)
class ChangeEvent:
    topic: Topic
    payload: Any = None
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[ChangeEvent], None]


class EventBus:
    """Synchronous publish/subscribe channel for "something changed" notifications.

    Every subscriber of a topic sees each publish at least once, in subscription
    order. Nothing is promised about ordering across topics, so subscribers must
    tolerate e.g. a transactions change arriving before the matching holdings change.
    """

    def __init__(self) -> None:
        self._handlers: dict[Topic, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: Topic, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: Topic, payload: Any = None) -> int:
        """Deliver to every current subscriber; returns how many handled it without error."""
        event = ChangeEvent(topic=topic, payload=payload)
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", handler, topic)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._handlers.get(topic, []))


__all__ = ["ChangeEvent", "EventBus", "Handler", "Topic"]
