"""Order domain events: immutable facts about an order's fulfillment.

Every event carries the order id and the status it left the order in, so the
publisher can build a uniform envelope for downstream notification channels.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from grocery.domain import grocery


@grocery.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order with a vendor."""

    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = String(required=True, max_length=100)
    customer_id = String(required=True, max_length=100)
    status = String(required=True)
    priority = String(required=True)
    items = Text(required=True)  # JSON list of line item dicts
    total = Float(required=True)
    actor_id = String(max_length=100)
    occurred_at = DateTime(required=True)


@grocery.event(part_of="Order")
class StatusChanged:
    """The order moved along its fulfillment path."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True)
    note = Text()
    order_version = Integer(required=True)
    occurred_at = DateTime(required=True)


@grocery.event(part_of="Order")
class PickerAssigned:
    """A picker took the order off the queue."""

    __version__ = 1

    order_id = Identifier(required=True)
    picker_id = String(required=True, max_length=100)
    status = String(required=True)
    actor_id = String(required=True, max_length=100)
    occurred_at = DateTime(required=True)


@grocery.event(part_of="Order")
class RiderAssigned:
    """A rider was reserved to deliver the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    rider_id = String(required=True, max_length=100)
    status = String(required=True)
    actor_id = String(required=True, max_length=100)
    occurred_at = DateTime(required=True)
