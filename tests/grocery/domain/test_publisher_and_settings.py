"""Tests for the event envelope, the in-memory publisher and runtime settings."""

import pytest

from grocery.order.order import Actor, Order
from grocery.order.transitions import ActorRole
from grocery.publisher import get_publisher, reset_publisher
from grocery.publisher.memory_adapter import InMemoryEventPublisher
from grocery.publisher.port import EventEnvelope
from grocery.publisher.relay import EventRelay
from grocery.settings import Settings, get_settings, reset_settings
from grocery.staffing.personnel import Personnel


def _placed_order():
    return Order.create(
        vendor_id="vendor-1",
        customer_id="cust-1",
        items_data=[{"product_id": "A", "name": "Apples", "unit_price": 5.00, "quantity": 2}],
        pricing={"subtotal": 10.00, "total": 10.00},
        address={"full_name": "Ada Lovelace", "street": "12 Market Row", "city": "London", "postal_code": "SW9 8LB"},
    )


class TestEventEnvelope:
    def test_flattens_order_events(self):
        order = _placed_order()
        order.apply_transition("confirmed", Actor("vendor-1", ActorRole.VENDOR))
        envelope = EventEnvelope.from_event(order._events[-1])
        assert envelope.event_type == "StatusChanged"
        assert envelope.order_id == str(order.id)
        assert envelope.status == "confirmed"
        assert envelope.actor_id == "vendor-1"
        assert envelope.payload["previous_status"] == "pending"

    def test_wire_format_uses_camel_case(self):
        envelope = EventEnvelope.from_event(_placed_order()._events[-1])
        wire = envelope.to_wire()
        assert {"eventId", "eventType", "orderId", "status", "actorId", "timestamp"} <= set(wire)
        assert wire["eventType"] == "OrderPlaced"

    def test_personnel_events_carry_availability_as_status(self):
        person = Personnel.register("R1", "rider", 1)
        envelope = EventEnvelope.from_event(person._events[-1])
        assert envelope.status == "available"
        assert envelope.actor_id == "R1"
        assert envelope.order_id == ""

    def test_every_envelope_gets_its_own_id(self):
        event = _placed_order()._events[-1]
        assert EventEnvelope.from_event(event).event_id != EventEnvelope.from_event(event).event_id


class TestInMemoryPublisher:
    def test_delivers_to_subscribers(self):
        publisher = InMemoryEventPublisher()
        received = []
        publisher.subscribe(received.append)
        publisher.publish(_placed_order()._events)
        assert [e.event_type for e in received] == ["OrderPlaced"]
        assert publisher.events_of("OrderPlaced")

    def test_failed_delivery_stays_pending_until_flushed(self):
        publisher = InMemoryEventPublisher()
        calls = []

        def flaky(envelope):
            calls.append(envelope)
            if len(calls) == 1:
                raise ConnectionError("notification service down")

        publisher.subscribe(flaky)
        publisher.publish(_placed_order()._events)
        assert len(publisher.pending()) == 1
        assert publisher.flush() == 0
        assert len(calls) == 2
        assert calls[0].event_id == calls[1].event_id

    def test_failure_in_one_subscriber_does_not_block_others(self):
        publisher = InMemoryEventPublisher()
        received = []

        def broken(envelope):
            raise RuntimeError("boom")

        publisher.subscribe(broken)
        publisher.subscribe(received.append)
        publisher.publish(_placed_order()._events)
        assert len(received) == 1
        assert publisher.flush() == 1

    def test_events_of_filters_by_order(self):
        publisher = InMemoryEventPublisher()
        first, second = _placed_order(), _placed_order()
        publisher.publish(first._events + second._events)
        assert len(publisher.events_of("OrderPlaced", order_id=str(first.id))) == 1

    def test_clear(self):
        publisher = InMemoryEventPublisher()
        publisher.publish(_placed_order()._events)
        publisher.clear()
        assert publisher.published == []


class TestPublisherFactory:
    def test_memory_publisher_by_default(self):
        assert isinstance(get_publisher(), InMemoryEventPublisher)
        assert get_publisher() is get_publisher()

    def test_unknown_publisher_is_rejected(self, monkeypatch):
        monkeypatch.setenv("EVENT_PUBLISHER", "carrier-pigeon")
        reset_settings()
        reset_publisher()
        with pytest.raises(ValueError):
            get_publisher()


class TestEventRelay:
    def test_forwards_any_event_to_the_publisher(self):
        order = _placed_order()
        EventRelay().forward(order._events[-1])
        assert len(get_publisher().events_of("OrderPlaced", order.id)) == 1

    def test_forwards_personnel_events(self):
        person = Personnel.register("R1", "rider", 1)
        EventRelay().forward(person._events[-1])
        assert get_publisher().published[-1].event_type == "PersonnelRegistered"


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.picker_max_concurrency == 3
        assert settings.rider_max_concurrency == 1
        assert settings.assignment_max_attempts == 3
        assert settings.default_fulfillment_style == "staffed"

    def test_environment_overrides(self):
        settings = Settings.from_env({"PICKER_MAX_CONCURRENCY": "5", "LOG_LEVEL": "debug"})
        assert settings.max_concurrency("picker") == 5
        assert settings.log_level == "DEBUG"

    def test_unknown_role_has_no_concurrency(self):
        with pytest.raises(ValueError):
            Settings().max_concurrency("vendor")

    def test_cached_until_reset(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("RIDER_MAX_CONCURRENCY", "2")
        assert get_settings() is first
        reset_settings()
        assert get_settings().rider_max_concurrency == 2
