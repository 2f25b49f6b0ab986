"""In-memory event publisher: outbox-backed delivery for development and tests.

Every published envelope is kept in ``published``. Delivery to each
subscriber is attempted immediately; an envelope whose delivery raised stays
in the outbox (remembering which subscribers still owe it) until ``flush``
succeeds, so a subscriber may see the same envelope more than once.
"""

import structlog

from grocery.publisher.port import EventEnvelope, EventPublisherPort, Subscriber

logger = structlog.get_logger(__name__)


class InMemoryEventPublisher(EventPublisherPort):
    def __init__(self):
        self.published: list[EventEnvelope] = []
        self._subscribers: list[Subscriber] = []
        self._outbox: list[tuple[EventEnvelope, list[Subscriber]]] = []

    def subscribe(self, handler: Subscriber) -> None:
        self._subscribers.append(handler)

    def publish(self, events: list) -> list[EventEnvelope]:
        envelopes = [EventEnvelope.from_event(event) for event in events]
        self.published.extend(envelopes)
        for envelope in envelopes:
            failed = self._deliver(envelope, list(self._subscribers))
            if failed:
                self._outbox.append((envelope, failed))
            logger.debug(
                "Event published",
                event_type=envelope.event_type,
                order_id=envelope.order_id,
                status=envelope.status,
            )
        return envelopes

    def flush(self) -> int:
        outbox, self._outbox = self._outbox, []
        for envelope, subscribers in outbox:
            failed = self._deliver(envelope, subscribers)
            if failed:
                self._outbox.append((envelope, failed))
        return len(self._outbox)

    def pending(self) -> list[EventEnvelope]:
        return [envelope for envelope, _ in self._outbox]

    def events_of(self, event_type: str, order_id: str | None = None) -> list[EventEnvelope]:
        """Published envelopes of one type, optionally for one order."""
        return [
            e for e in self.published if e.event_type == event_type and (order_id is None or e.order_id == str(order_id))
        ]

    def clear(self) -> None:
        self.published.clear()
        self._outbox.clear()

    def _deliver(self, envelope: EventEnvelope, subscribers: list[Subscriber]) -> list[Subscriber]:
        failed = []
        for subscriber in subscribers:
            try:
                subscriber(envelope)
            except Exception:
                logger.exception(
                    "Event delivery failed, kept for redelivery",
                    event_type=envelope.event_type,
                    order_id=envelope.order_id,
                )
                failed.append(subscriber)
        return failed
