from __future__ import annotations

import logging

import pytest

from services.event_bus import ChangeEvent, EventBus, Topic


def test_publish_delivers_in_subscription_order() -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe(Topic.TRANSACTIONS, lambda event: seen.append(f"a:{event.payload}"))
    bus.subscribe(Topic.TRANSACTIONS, lambda event: seen.append(f"b:{event.payload}"))
    bus.subscribe(Topic.HOLDINGS, lambda event: seen.append("holdings"))

    delivered = bus.publish(Topic.TRANSACTIONS, "tx-1")

    assert delivered == 2
    assert seen == ["a:tx-1", "b:tx-1"]


def test_publish_without_subscribers_is_a_no_op() -> None:
    assert EventBus().publish(Topic.PRICES) == 0


def test_unsubscribe_stops_delivery_and_is_idempotent() -> None:
    bus = EventBus()
    events: list[ChangeEvent] = []
    unsubscribe = bus.subscribe(Topic.CATALOG, events.append)

    bus.publish(Topic.CATALOG)
    unsubscribe()
    unsubscribe()
    bus.publish(Topic.CATALOG)

    assert len(events) == 1
    assert events[0].topic == Topic.CATALOG
    assert bus.subscriber_count(Topic.CATALOG) == 0


def test_failing_subscriber_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    bus = EventBus()
    seen: list[Topic] = []

    def broken(_event: ChangeEvent) -> None:
        raise RuntimeError("boom")

    bus.subscribe(Topic.CAPITAL, broken)
    bus.subscribe(Topic.CAPITAL, lambda event: seen.append(event.topic))

    with caplog.at_level(logging.ERROR, logger="services.event_bus"):
        delivered = bus.publish(Topic.CAPITAL)

    assert delivered == 1
    assert seen == [Topic.CAPITAL]
    assert "failed on capital.changed" in caplog.text


def test_subscriber_may_unsubscribe_while_handling() -> None:
    bus = EventBus()
    calls: list[int] = []
    holder: dict[str, object] = {}

    def once(_event: ChangeEvent) -> None:
        calls.append(1)
        holder["unsubscribe"]()  # type: ignore[operator]

    holder["unsubscribe"] = bus.subscribe(Topic.PRICES, once)
    bus.publish(Topic.PRICES)
    bus.publish(Topic.PRICES)

    assert calls == [1]
