"""PackingState aggregate: quantity-level pick and pack progress for one order.

A packing state is opened when the order is handed to a picker and archived
(kept, flagged ``archived``) when the order leaves the picking phase. Its
progress is independent of the order's coarse status; the Coordinator reads
``is_fully_packed`` to decide when the order may auto-advance.
"""

import json
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from grocery.domain import grocery
from grocery.errors import ItemNotFound, PackingNotOpen, QuantityOutOfRange
from grocery.packing.events import PackingStarted, PackingUpdated


@grocery.entity(part_of="PackingState")
class ItemProgress:
    """Progress for one line item, keyed by the item's product id."""

    line_item_id = String(required=True, max_length=100)
    name = String(max_length=255)
    ordered_quantity = Integer(required=True, min_value=1)
    picked_quantity = Integer(default=0, min_value=0)
    packed = Boolean(default=False)
    note = String(max_length=500)
    position = Integer(default=0)


@grocery.aggregate
class PackingState:
    order_id = Identifier(identifier=True, required=True)
    item_progress = HasMany(ItemProgress)
    archived = Boolean(default=False)
    version = Integer(default=1, min_value=1)
    started_at = DateTime()
    updated_at = DateTime()
    archived_at = DateTime()

    @invariant.post
    def picked_quantity_within_ordered(self):
        for progress in self.item_progress or []:
            if progress.picked_quantity is not None and progress.picked_quantity > progress.ordered_quantity:
                raise ValidationError(
                    {"picked_quantity": [f"Item {progress.line_item_id} picked beyond the ordered quantity"]}
                )

    @classmethod
    def begin(cls, order, actor_id: str = "system"):
        """Open a checklist with one entry per line item of ``order``."""
        now = datetime.now(UTC)
        state = cls(order_id=str(order.id), version=1, started_at=now, updated_at=now)
        for item in order.line_items:
            state.add_item_progress(
                ItemProgress(
                    line_item_id=item.product_id,
                    name=item.name,
                    ordered_quantity=item.quantity,
                    picked_quantity=0,
                    packed=False,
                    position=item.position,
                )
            )
        state.raise_(
            PackingStarted(
                order_id=str(order.id),
                status="in_progress",
                item_ids=json.dumps([item.product_id for item in order.line_items]),
                actor_id=actor_id,
                occurred_at=now,
            )
        )
        return state

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def update_item_progress(
        self,
        item_id: str,
        picked_quantity: int,
        packed: bool | None = None,
        note: str | None = None,
        actor_id: str = "system",
    ) -> bool:
        """Record progress for one line item.

        Returns False when the update repeats what is already recorded; the
        state is then left untouched and no event is raised. Out-of-range
        quantities are rejected before anything changes.
        """
        progress = self.progress_for(item_id)
        if picked_quantity is None or picked_quantity < 0 or picked_quantity > progress.ordered_quantity:
            raise QuantityOutOfRange(item_id, picked_quantity, progress.ordered_quantity)

        packed = progress.packed if packed is None else packed
        note = progress.note if note is None else note
        if (
            progress.picked_quantity == picked_quantity
            and progress.packed == packed
            and (progress.note or "") == (note or "")
        ):
            return False
        if self.archived:
            raise PackingNotOpen(str(self.order_id), "archived")

        now = datetime.now(UTC)
        progress.picked_quantity = picked_quantity
        progress.packed = packed
        progress.note = note
        self.version += 1
        self.updated_at = now
        self.raise_(
            PackingUpdated(
                order_id=str(self.order_id),
                line_item_id=item_id,
                picked_quantity=picked_quantity,
                packed=packed,
                status="packed" if self.is_fully_packed() else "in_progress",
                actor_id=actor_id,
                occurred_at=now,
            )
        )
        return True

    def archive(self) -> bool:
        if self.archived:
            return False
        now = datetime.now(UTC)
        self.archived = True
        self.archived_at = now
        self.updated_at = now
        self.version += 1
        return True

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def items(self) -> list:
        return sorted(self.item_progress or [], key=lambda p: p.position)

    def progress_for(self, item_id: str) -> ItemProgress:
        progress = next((p for p in (self.item_progress or []) if p.line_item_id == item_id), None)
        if progress is None:
            raise ItemNotFound(str(self.order_id), item_id)
        return progress

    def is_fully_packed(self) -> bool:
        return bool(self.item_progress) and all(p.packed for p in self.item_progress)

    def unpacked_items(self) -> list[str]:
        return [p.line_item_id for p in self.items if not p.packed]

    def shortfall(self) -> dict[str, int]:
        """Units still missing per line item; items picked in full are omitted."""
        return {
            p.line_item_id: p.ordered_quantity - p.picked_quantity
            for p in self.items
            if p.picked_quantity < p.ordered_quantity
        }

    def accuracy(self) -> float:
        """Picked units as a percentage of ordered units."""
        ordered = sum(p.ordered_quantity for p in self.item_progress or [])
        if not ordered:
            return 0.0
        picked = sum(p.picked_quantity for p in self.item_progress or [])
        return round(picked / ordered * 100, 1)

    def audit_note(self) -> str:
        """Describe what is missing; empty when every item is packed in full."""
        parts = []
        unpacked = self.unpacked_items()
        if unpacked:
            parts.append(f"unpacked items: {', '.join(unpacked)}")
        shortfall = self.shortfall()
        if shortfall:
            parts.append("short: " + ", ".join(f"{item_id} x{missing}" for item_id, missing in shortfall.items()))
        if not parts:
            return ""
        return f"Short-pack ({self.accuracy()}% picked); " + "; ".join(parts)
