"""Packing events."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from grocery.domain import grocery


@grocery.event(part_of="PackingState")
class PackingStarted:
    """A packing checklist was opened for an order entering the picking phase."""

    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    item_ids = Text(required=True)  # JSON list of line item ids
    actor_id = String(max_length=100)
    occurred_at = DateTime(required=True)


@grocery.event(part_of="PackingState")
class PackingUpdated:
    """A picker recorded progress on one line item."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_item_id = String(required=True, max_length=100)
    picked_quantity = Integer(required=True)
    packed = Boolean(required=True)
    status = String(required=True)  # "in_progress" or "packed"
    actor_id = String(required=True, max_length=100)
    occurred_at = DateTime(required=True)
