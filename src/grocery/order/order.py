"""Order aggregate: the versioned record of a single grocery order.

The aggregate holds line items, pricing, the delivery address, the current
status and an append-only status history. Every accepted mutation bumps
``version`` by exactly one; every status change appends one history entry
recording the version it produced, so the history is ordered consistently
with the version.

The aggregate performs no I/O. All checks run before any field is touched,
so a rejected request leaves the record exactly as it was loaded; the
Coordinator decides whether the mutated copy is persisted.
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Integer,
    String,
    Text,
    ValueObject,
)

from grocery.domain import grocery
from grocery.errors import InvalidOrder, InvalidTransition, PaymentNotSettled, RoleNotPermitted, TerminalState
from grocery.order.events import OrderPlaced, PickerAssigned, RiderAssigned, StatusChanged
from grocery.order.transitions import (
    PICKING_PHASE,
    STYLE_PATHS,
    TERMINAL_STATES,
    ActorRole,
    FulfillmentStyle,
    OrderStatus,
    allowed_targets,
    resolve,
)

PRICING_TOLERANCE = 0.005


class Priority(Enum):
    STANDARD = "standard"
    EXPRESS = "express"


@dataclass(frozen=True)
class Actor:
    """The identity and role performing a request, supplied by the auth layer."""

    actor_id: str
    role: ActorRole

    @classmethod
    def system(cls) -> "Actor":
        return cls(actor_id="system", role=ActorRole.SYSTEM)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@grocery.value_object(part_of="Order")
class Pricing:
    """Order totals as resolved by the catalogue at checkout."""

    subtotal = Float(required=True, min_value=0.0)
    delivery_fee = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="GBP")


@grocery.value_object(part_of="Order")
class DeliveryAddress:
    full_name = String(required=True, max_length=200)
    phone = String(max_length=30)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    instructions = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@grocery.entity(part_of="Order")
class OrderItem:
    """A priced line item; immutable once the order is placed."""

    product_id = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    unit = String(max_length=20, default="each")
    position = Integer(required=True, min_value=0)


@grocery.entity(part_of="Order")
class StatusEntry:
    status = String(required=True, choices=OrderStatus)
    version = Integer(required=True, min_value=1)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)
    note = Text()
    timestamp = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@grocery.aggregate
class Order:
    vendor_id = String(required=True, max_length=100)
    customer_id = String(required=True, max_length=100)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fulfillment_style = String(choices=FulfillmentStyle)
    priority = String(choices=Priority, default=Priority.STANDARD.value)
    payment_settled = Boolean(default=False)
    items = HasMany(OrderItem)
    pricing = ValueObject(Pricing)
    delivery_address = ValueObject(DeliveryAddress)
    assigned_picker_id = String(max_length=100)
    assigned_rider_id = String(max_length=100)
    status_history = HasMany(StatusEntry)
    cancellation_reason = String(max_length=500)
    version = Integer(default=1, min_value=1)
    placed_at = DateTime()
    closed_at = DateTime()

    @invariant.post
    def cancellation_reason_only_when_cancelled(self):
        if self.cancellation_reason and self.status != OrderStatus.CANCELLED.value:
            raise ValidationError({"cancellation_reason": ["Only cancelled orders carry a cancellation reason"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        vendor_id: str,
        customer_id: str,
        items_data: list[dict],
        pricing: dict,
        address: dict,
        priority: str = Priority.STANDARD.value,
        payment_settled: bool = True,
    ):
        """Place a new order in ``pending``.

        Args:
            items_data: List of dicts with product_id, name, unit_price,
                        quantity and optionally unit.
            pricing: Dict with subtotal, delivery_fee, tax, discount, total.
            address: Dict with full_name, phone, street, city, postal_code,
                     instructions.
        """
        if not items_data:
            raise InvalidOrder("items", "An order needs at least one item")
        product_ids = [str(item["product_id"]) for item in items_data]
        if len(set(product_ids)) != len(product_ids):
            raise InvalidOrder("items", "Each product may appear only once per order")

        expected_total = (
            pricing.get("subtotal", 0.0)
            + pricing.get("delivery_fee", 0.0)
            + pricing.get("tax", 0.0)
            - pricing.get("discount", 0.0)
        )
        if abs(expected_total - pricing.get("total", 0.0)) > PRICING_TOLERANCE:
            raise InvalidOrder(
                "pricing",
                f"Total {pricing.get('total')} does not equal subtotal + delivery fee + tax - discount "
                f"({expected_total:.2f})",
            )

        now = datetime.now(UTC)
        order = cls(
            vendor_id=vendor_id,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            priority=Priority(priority).value,
            payment_settled=payment_settled,
            pricing=Pricing(**pricing),
            delivery_address=DeliveryAddress(**address),
            version=1,
            placed_at=now,
        )
        for position, item_data in enumerate(items_data):
            order.add_items(OrderItem(position=position, **item_data))
        order.add_status_history(
            StatusEntry(
                status=OrderStatus.PENDING.value,
                version=1,
                actor_id=customer_id,
                actor_role=ActorRole.CUSTOMER.value,
                note="Order placed",
                timestamp=now,
            )
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                vendor_id=vendor_id,
                customer_id=customer_id,
                status=OrderStatus.PENDING.value,
                priority=order.priority,
                items=json.dumps(items_data),
                total=order.pricing.total,
                actor_id=customer_id,
                occurred_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def apply_transition(self, new_status, actor: Actor, note: str | None = None, style=None):
        """Move the order to ``new_status`` on behalf of ``actor``.

        ``style`` only matters when confirming: it fixes the order's
        fulfillment style for the rest of its life (default staffed).
        Picker assignment goes through ``assign_picker`` because it also
        records who took the order.
        """
        target = self._parse_status(new_status, actor)
        if target == OrderStatus.ASSIGNED_PICKER:
            raise InvalidTransition(
                self.status,
                target.value,
                actor.role.value,
                reason="pickers are assigned through the assignment queue",
            )
        return self._transition(target, actor, note, style=style)

    def assign_picker(self, picker_id: str, actor: Actor | None = None):
        """Hand a confirmed, staffed order to a picker."""
        actor = actor or Actor.system()
        self._transition(
            OrderStatus.ASSIGNED_PICKER,
            actor,
            f"Assigned to picker {picker_id}",
            changes={"assigned_picker_id": picker_id},
        )
        self.raise_(
            PickerAssigned(
                order_id=str(self.id),
                picker_id=picker_id,
                status=self.status,
                actor_id=actor.actor_id,
                occurred_at=datetime.now(UTC),
            )
        )
        return self

    def assign_rider(self, rider_id: str, actor: Actor | None = None):
        """Reserve a rider for an order awaiting collection; no status change."""
        actor = actor or Actor.system()
        self._assert_open()
        current = OrderStatus(self.status)
        if current not in (OrderStatus.READY, OrderStatus.READY_FOR_PICKUP):
            raise ValidationError({"status": [f"Riders can only be assigned to ready orders, not {current.value}"]})
        if self.assigned_rider_id:
            raise ValidationError({"assigned_rider_id": [f"Order already assigned to rider {self.assigned_rider_id}"]})

        self.assigned_rider_id = rider_id
        self.version += 1
        self.raise_(
            RiderAssigned(
                order_id=str(self.id),
                rider_id=rider_id,
                status=self.status,
                actor_id=actor.actor_id,
                occurred_at=datetime.now(UTC),
            )
        )
        return self

    def mark_payment_settled(self) -> bool:
        """Record the payment collaborator's settlement signal.

        Returns False when the order was already settled (nothing changes).
        """
        self._assert_open()
        if self.payment_settled:
            return False
        self.payment_settled = True
        self.version += 1
        return True

    def _transition(self, target: OrderStatus, actor: Actor, note, style=None, changes=None):
        self._assert_open()
        current = OrderStatus(self.status)
        if current == OrderStatus.PENDING:
            style = FulfillmentStyle(style) if style else FulfillmentStyle.STAFFED
        else:
            style = FulfillmentStyle(self.fulfillment_style) if self.fulfillment_style else None

        resolve(current, target, actor.role, style, note)
        self._assert_assigned_actor(current, target, actor)
        if target == OrderStatus.CONFIRMED and not self.payment_settled:
            raise PaymentNotSettled(str(self.id))

        now = datetime.now(UTC)
        note = (note or "").strip()
        with atomic_change(self):
            self.status = target.value
            if target == OrderStatus.CONFIRMED:
                self.fulfillment_style = style.value
            if target == OrderStatus.CANCELLED:
                self.cancellation_reason = note
            if target in TERMINAL_STATES:
                self.closed_at = now
            if actor.role == ActorRole.RIDER and not self.assigned_rider_id:
                self.assigned_rider_id = actor.actor_id
            for field_name, value in (changes or {}).items():
                setattr(self, field_name, value)
            self.version += 1
            self.add_status_history(
                StatusEntry(
                    status=target.value,
                    version=self.version,
                    actor_id=actor.actor_id,
                    actor_role=actor.role.value,
                    note=note,
                    timestamp=now,
                )
            )

        self.raise_(
            StatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                status=target.value,
                actor_id=actor.actor_id,
                actor_role=actor.role.value,
                note=note,
                order_version=self.version,
                occurred_at=now,
            )
        )
        return self

    def _parse_status(self, new_status, actor: Actor) -> OrderStatus:
        if isinstance(new_status, OrderStatus):
            return new_status
        try:
            return OrderStatus(new_status)
        except ValueError:
            self._assert_open()
            raise InvalidTransition(self.status, str(new_status), actor.role.value, reason="unknown status") from None

    def _assert_open(self) -> None:
        if OrderStatus(self.status) in TERMINAL_STATES:
            raise TerminalState(str(self.id), self.status)

    def _assert_assigned_actor(self, current: OrderStatus, target: OrderStatus, actor: Actor) -> None:
        if actor.role == ActorRole.PICKER and actor.actor_id != self.assigned_picker_id:
            raise RoleNotPermitted(
                current.value, target.value, actor.role.value, reason="order is assigned to another picker"
            )
        if actor.role == ActorRole.RIDER and self.assigned_rider_id and actor.actor_id != self.assigned_rider_id:
            raise RoleNotPermitted(
                current.value, target.value, actor.role.value, reason="order is assigned to another rider"
            )

    # -------------------------------------------------------------------
    # Read-only projections
    # -------------------------------------------------------------------
    @property
    def history(self) -> list:
        return sorted(self.status_history or [], key=lambda entry: entry.version)

    @property
    def line_items(self) -> list:
        return sorted(self.items or [], key=lambda item: item.position)

    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATES

    def in_picking_phase(self) -> bool:
        return OrderStatus(self.status) in PICKING_PHASE

    def current_progress(self) -> float:
        """Percentage of the order's fulfillment path covered so far.

        A cancelled order reports the progress it had made before it was
        cancelled; a completed one reports 100.
        """
        style = FulfillmentStyle(self.fulfillment_style) if self.fulfillment_style else FulfillmentStyle.STAFFED
        path = STYLE_PATHS[style]
        status = OrderStatus(self.status)
        if status == OrderStatus.CANCELLED:
            reached = [OrderStatus(e.status) for e in self.history if e.status != OrderStatus.CANCELLED.value]
            status = reached[-1] if reached else OrderStatus.PENDING
        if status not in path:
            return 0.0
        return round(path.index(status) / (len(path) - 1) * 100, 1)

    def elapsed_time(self, now: datetime | None = None) -> timedelta:
        """Time since placement, frozen once the order closes."""
        end = self.closed_at or now or datetime.now(UTC)
        return end - self.placed_at

    def allowed_transitions(self, actor: Actor) -> list[str]:
        """Statuses ``actor`` could request next; empty for closed orders."""
        if self.is_terminal():
            return []
        style = FulfillmentStyle(self.fulfillment_style) if self.fulfillment_style else None
        targets = allowed_targets(OrderStatus(self.status), actor.role, style)
        return [t.value for t in targets if t != OrderStatus.ASSIGNED_PICKER]
