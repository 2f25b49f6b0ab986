"""Event publisher port: the outbound event stream.

Notification and analytics collaborators consume flat envelopes
``{eventType, orderId, status, actorId, timestamp}``. Adapters deliver them
fire-and-forget with at-least-once semantics: a failed delivery is retried,
so consumers must tolerate duplicates.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_id: str = Field(alias="eventId")
    event_type: str = Field(alias="eventType")
    order_id: str = Field(default="", alias="orderId")
    status: str = ""
    actor_id: str = Field(default="", alias="actorId")
    timestamp: datetime
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event) -> "EventEnvelope":
        """Flatten a domain event into the outbound envelope."""
        data = event.to_dict()
        payload = {k: v for k, v in data.items() if not k.startswith("_")}
        return cls(
            event_id=str(uuid4()),
            event_type=event.__class__.__name__,
            order_id=str(payload.get("order_id") or ""),
            status=str(payload.get("status") or payload.get("availability") or ""),
            actor_id=str(payload.get("actor_id") or payload.get("personnel_id") or ""),
            timestamp=getattr(event, "occurred_at", None) or datetime.now(UTC),
            payload=payload,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


Subscriber = Callable[[EventEnvelope], None]


class EventPublisherPort(ABC):
    """Abstract interface for event publisher adapters."""

    @abstractmethod
    def publish(self, events: list) -> list[EventEnvelope]:
        """Hand domain events to every subscriber.

        Returns the envelopes built for the events. Subscriber failures are
        never raised to the caller; the envelope stays pending instead.
        """
        ...

    @abstractmethod
    def subscribe(self, handler: Subscriber) -> None:
        ...

    @abstractmethod
    def flush(self) -> int:
        """Redeliver pending envelopes; returns how many are still pending."""
        ...

    @abstractmethod
    def pending(self) -> list[EventEnvelope]:
        ...
