"""Staffing events."""

from protean.fields import DateTime, Integer, String

from grocery.domain import grocery


@grocery.event(part_of="Personnel")
class PersonnelRegistered:
    __version__ = 1

    personnel_id = String(required=True, max_length=100)
    role = String(required=True)
    availability = String(required=True)
    max_concurrency = Integer(required=True)
    occurred_at = DateTime(required=True)


@grocery.event(part_of="Personnel")
class PersonnelAvailabilityChanged:
    """A picker or rider checked in, checked out, filled up, or freed a slot."""

    __version__ = 1

    personnel_id = String(required=True, max_length=100)
    role = String(required=True)
    previous_availability = String(required=True)
    availability = String(required=True)
    load = Integer(required=True)
    occurred_at = DateTime(required=True)
