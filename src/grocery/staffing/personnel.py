"""Personnel aggregate: pickers and riders, structurally identical and role-tagged.

A person holds up to ``max_concurrency`` active orders. Availability moves
to ``busy`` when the last slot is taken and back to ``available`` when one
frees; a person who checked out (``offline``) stays offline until they
check in again, even while finishing orders they already hold.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Integer, String, Text, ValueObject

from grocery.domain import grocery
from grocery.errors import PersonnelUnavailable
from grocery.staffing.events import PersonnelAvailabilityChanged, PersonnelRegistered


class FulfillmentRole(Enum):
    PICKER = "picker"
    RIDER = "rider"


class Availability(Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


@grocery.value_object(part_of="Personnel")
class PerformanceStats:
    """Scoring inputs; the rating is maintained by an external ratings service."""

    rating = Float(default=0.0, min_value=0.0, max_value=5.0)
    completed_count = Integer(default=0, min_value=0)


@grocery.aggregate
class Personnel:
    personnel_id = String(identifier=True, required=True, max_length=100)
    role = String(required=True, choices=FulfillmentRole)
    name = String(max_length=200)
    availability = String(choices=Availability, default=Availability.AVAILABLE.value)
    active_order_ids = Text()  # JSON list of order ids
    max_concurrency = Integer(required=True, min_value=1)
    performance = ValueObject(PerformanceStats)
    version = Integer(default=1, min_value=1)
    registered_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        personnel_id: str,
        role: str,
        max_concurrency: int,
        name: str | None = None,
        rating: float = 0.0,
        availability: str = Availability.AVAILABLE.value,
    ):
        now = datetime.now(UTC)
        person = cls(
            personnel_id=personnel_id,
            role=FulfillmentRole(role).value,
            name=name,
            availability=Availability(availability).value,
            active_order_ids=json.dumps([]),
            max_concurrency=max_concurrency,
            performance=PerformanceStats(rating=rating, completed_count=0),
            version=1,
            registered_at=now,
            updated_at=now,
        )
        person.raise_(
            PersonnelRegistered(
                personnel_id=personnel_id,
                role=person.role,
                availability=person.availability,
                max_concurrency=max_concurrency,
                occurred_at=now,
            )
        )
        return person

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def active_orders(self) -> list[str]:
        return json.loads(self.active_order_ids or "[]")

    @property
    def load(self) -> int:
        return len(self.active_orders)

    @property
    def rating(self) -> float:
        return self.performance.rating if self.performance else 0.0

    @property
    def completed_count(self) -> int:
        return self.performance.completed_count if self.performance else 0

    def has_capacity(self) -> bool:
        return self.availability == Availability.AVAILABLE.value and self.load < self.max_concurrency

    def score_key(self) -> tuple:
        """Sort key for candidate selection: lowest load, best rating, earliest id."""
        return (self.load, -self.rating, self.personnel_id)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def reserve(self, order_id: str) -> None:
        """Take one slot for ``order_id``."""
        if order_id in self.active_orders:
            raise PersonnelUnavailable(self.personnel_id, f"already holds order {order_id}")
        if self.availability != Availability.AVAILABLE.value:
            raise PersonnelUnavailable(self.personnel_id, f"is {self.availability}")
        if self.load >= self.max_concurrency:
            raise PersonnelUnavailable(self.personnel_id, f"is at capacity ({self.max_concurrency})")

        self.active_order_ids = json.dumps(self.active_orders + [order_id])
        self.version += 1
        self.updated_at = datetime.now(UTC)
        if self.load >= self.max_concurrency:
            self._change_availability(Availability.BUSY)

    def release(self, order_id: str, completed: bool = False) -> bool:
        """Free the slot held for ``order_id``; returns False if none was held."""
        active = self.active_orders
        if order_id not in active:
            return False
        active.remove(order_id)
        self.active_order_ids = json.dumps(active)
        if completed:
            self.performance = PerformanceStats(rating=self.rating, completed_count=self.completed_count + 1)
        self.version += 1
        self.updated_at = datetime.now(UTC)
        if self.availability == Availability.BUSY.value and self.load < self.max_concurrency:
            self._change_availability(Availability.AVAILABLE)
        return True

    def set_availability(self, availability: str) -> bool:
        """Check in, check out, or pause. Returns False when nothing changes.

        Checking in with every slot already taken lands on ``busy``.
        """
        target = Availability(availability)
        if target == Availability.AVAILABLE and self.load >= self.max_concurrency:
            target = Availability.BUSY
        if target.value == self.availability:
            return False
        self.version += 1
        self.updated_at = datetime.now(UTC)
        self._change_availability(target)
        return True

    def _change_availability(self, target: Availability) -> None:
        previous = self.availability
        self.availability = target.value
        self.raise_(
            PersonnelAvailabilityChanged(
                personnel_id=self.personnel_id,
                role=self.role,
                previous_availability=previous,
                availability=target.value,
                load=self.load,
                occurred_at=datetime.now(UTC),
            )
        )
