"""Fulfillment Coordinator: the single entry point for every fulfillment intent.

Every aggregate write is a command processed through the domain, so each
one commits on its own and its events reach the publisher as it lands.
A request follows the same sequence:

1. Process the primary command. The order's handler rejects terminal orders
   and a stale ``expected_version``; the store rejects a save that lost a
   race after the handler's read.
2. Issue the queue and packing follow-ups the transition table names.
3. Run dispatch passes for any role that gained queued work or a free slot.

Observers therefore never see an event for a write that did not land, and a
follow-up that fails never hides the status change that preceded it. Each
dispatch pass is itself a sequence of complete requests, so a failure while
assigning one order never undoes the transition that triggered the pass.
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from grocery.errors import (
    AssignmentRetryExhausted,
    InvalidTransition,
    PackingNotOpen,
    PersonnelUnavailable,
    RoleNotPermitted,
    TerminalState,
    VersionConflict,
)
from grocery.order.order import Actor, Order
from grocery.order.placement import PlaceOrder, SettlePayment
from grocery.order.progression import AssignOrder, RequestTransition
from grocery.order.transitions import (
    PACKING_OPEN,
    ActorRole,
    Effect,
    FulfillmentStyle,
    OrderStatus,
    side_effects,
)
from grocery.packing.tracker import PackingTracker
from grocery.settings import Settings, get_settings
from grocery.staffing.personnel import Availability, FulfillmentRole
from grocery.staffing.queue import AssignmentQueue

logger = structlog.get_logger(__name__)

FULL_PACK_NOTE = "All items packed"

# Follow-ups run in this order whatever order the table lists them in
_EFFECT_ORDER = (
    Effect.DEQUEUE,
    Effect.CLOSE_PACKING,
    Effect.RELEASE_PICKER,
    Effect.RELEASE_RIDER,
    Effect.BEGIN_PACKING,
    Effect.ENQUEUE_PICKER,
    Effect.ENQUEUE_RIDER,
)


class FulfillmentCoordinator:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self.packing = PackingTracker()
        self.queue = AssignmentQueue(settings)

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def get_order(self, order_id: str) -> Order:
        return current_domain.repository_for(Order).get(str(order_id))

    # -------------------------------------------------------------------
    # Placement and payment
    # -------------------------------------------------------------------
    def place_order(
        self,
        vendor_id: str,
        customer_id: str,
        items: list[dict],
        pricing: dict,
        address: dict,
        priority: str = "standard",
        payment_settled: bool = True,
    ) -> Order:
        order_id = current_domain.process(
            PlaceOrder(
                vendor_id=vendor_id,
                customer_id=customer_id,
                items=json.dumps(items),
                pricing=json.dumps(pricing),
                address=json.dumps(address),
                priority=priority,
                payment_settled=payment_settled,
            ),
            asynchronous=False,
        )
        return self.get_order(order_id)

    def mark_payment_settled(self, order_id: str) -> Order:
        current_domain.process(SettlePayment(order_id=str(order_id)), asynchronous=False)
        return self.get_order(order_id)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def request_transition(
        self,
        order_id: str,
        expected_version: int | None,
        new_status,
        actor: Actor,
        note: str | None = None,
        style: str | None = None,
    ) -> Order:
        """Apply one status transition on behalf of ``actor``.

        ``expected_version`` is the version the caller last read; a mismatch
        raises ``VersionConflict`` and the caller must reload. Internal
        callers pass ``None`` after reading the order themselves.
        """
        order_id = str(order_id)
        target = str(getattr(new_status, "value", new_status))
        previous = current_domain.process(
            RequestTransition(
                order_id=order_id,
                expected_version=expected_version,
                status=target,
                actor_id=actor.actor_id,
                actor_role=actor.role.value,
                note=self._audit_note(order_id, target, note),
                fulfillment_style=style or self.settings.default_fulfillment_style,
            ),
            asynchronous=False,
        )
        previous = OrderStatus(previous)
        order = self.get_order(order_id)
        current = OrderStatus(order.status)
        logger.info(
            "Order status changed",
            order_id=order_id,
            from_status=previous.value,
            to_status=current.value,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            version=order.version,
        )
        roles = self._apply_effects(order, current, side_effects(previous, current, self._style(order)))
        for role in roles:
            self.dispatch(role)
        return self.get_order(order_id)

    def _audit_note(self, order_id: str, target: str, note: str | None) -> str | None:
        """Append the packing shortfall to a note that hands the order to riders."""
        if target != OrderStatus.READY_FOR_PICKUP.value:
            return note
        state = self.packing.find(order_id)
        audit = state.audit_note() if state is not None else ""
        if not audit:
            return note
        logger.warning("Order handed over short-packed", order_id=order_id, audit=audit)
        return f"{note}. {audit}" if note else audit

    def _style(self, order: Order) -> FulfillmentStyle | None:
        return FulfillmentStyle(order.fulfillment_style) if order.fulfillment_style else None

    def _apply_effects(self, order: Order, current: OrderStatus, effects) -> list:
        """Issue the follow-up commands; returns the roles worth a dispatch pass."""
        roles = []
        order_id = str(order.id)
        for effect in _EFFECT_ORDER:
            if effect not in effects:
                continue
            if effect == Effect.DEQUEUE:
                self.queue.dequeue(order_id)
            elif effect == Effect.CLOSE_PACKING:
                self.packing.archive(order_id)
            elif effect == Effect.RELEASE_PICKER and order.assigned_picker_id:
                self.queue.release(order.assigned_picker_id, order_id, completed=current != OrderStatus.CANCELLED)
                roles.append(FulfillmentRole.PICKER)
            elif effect == Effect.RELEASE_RIDER and order.assigned_rider_id:
                self.queue.release(order.assigned_rider_id, order_id, completed=current == OrderStatus.DELIVERED)
                roles.append(FulfillmentRole.RIDER)
            elif effect == Effect.BEGIN_PACKING:
                self.packing.begin_packing(order)
            elif effect == Effect.ENQUEUE_PICKER:
                self.queue.enqueue(order, FulfillmentRole.PICKER)
                roles.append(FulfillmentRole.PICKER)
            elif effect == Effect.ENQUEUE_RIDER and not order.assigned_rider_id:
                self.queue.enqueue(order, FulfillmentRole.RIDER)
                roles.append(FulfillmentRole.RIDER)
        return list(dict.fromkeys(roles))

    # -------------------------------------------------------------------
    # Packing
    # -------------------------------------------------------------------
    def request_packing_update(
        self,
        order_id: str,
        item_id: str,
        picked_quantity: int,
        packed: bool | None,
        note: str | None,
        actor: Actor,
    ):
        """Record packing progress; a fully packed order advances on its own."""
        order = self.get_order(order_id)
        if actor.role not in (ActorRole.PICKER, ActorRole.SYSTEM):
            raise RoleNotPermitted(order.status, "packing", actor.role.value, reason="requires picker, system")
        if actor.role == ActorRole.PICKER and actor.actor_id != order.assigned_picker_id:
            raise RoleNotPermitted(order.status, "packing", actor.role.value, reason="order is assigned to another picker")

        state = self.packing.find(order.id)
        if state is None:
            raise PackingNotOpen(str(order.id), order.status)
        if not state.archived and OrderStatus(order.status) not in PACKING_OPEN:
            raise PackingNotOpen(str(order.id), order.status)

        update = self.packing.update_item_progress(
            order.id, item_id, picked_quantity, packed, note, actor_id=actor.actor_id
        )
        if update.changed and update.state.is_fully_packed():
            self._auto_advance(str(order.id))
        return self.packing.get(order.id)

    def _auto_advance(self, order_id: str) -> None:
        """Walk a fully packed order forward to ``ready_for_pickup``.

        Another writer may move the order first; the loser reloads and stops
        once the order is past the packing phase.
        """
        system = Actor.system()
        while True:
            order = self.get_order(order_id)
            current = OrderStatus(order.status)
            if current == OrderStatus.PICKED:
                target = OrderStatus.PACKING
            elif current in (OrderStatus.PICKING, OrderStatus.PACKING):
                target = OrderStatus.READY_FOR_PICKUP
            else:
                return
            try:
                self.request_transition(order_id, order.version, target, system, FULL_PACK_NOTE)
            except VersionConflict:
                logger.info("Auto-advance raced another writer, reloading", order_id=order_id)

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def request_assignment(self, order_id: str, role, personnel_id: str | None = None) -> Order:
        """Match the order with a picker or rider.

        Without ``personnel_id`` the best candidate is chosen; a lost race
        re-queues the order at the head and selects again, up to
        ``assignment_max_attempts`` times. With no candidate at all the order
        stays queued and is returned unchanged. A named person who cannot
        take the order fails with ``PersonnelUnavailable`` immediately.
        """
        role = role if isinstance(role, FulfillmentRole) else FulfillmentRole(role)
        order = self.get_order(order_id)
        self._check_assignable(order, role)

        if personnel_id is not None:
            person = self.queue.get_personnel(personnel_id)
            if person.role != role.value:
                raise PersonnelUnavailable(personnel_id, f"is a {person.role}, not a {role.value}")
            result = self.queue.assign(order, person)
            return self._commit_assignment(order, role, result)

        attempts = self.settings.assignment_max_attempts
        for attempt in range(1, attempts + 1):
            candidate = self.queue.next_available_personnel(role)
            if candidate is None:
                self.queue.enqueue(order, role)
                logger.info("No personnel available, order stays queued", order_id=str(order.id), role=role.value)
                return self.get_order(order.id)
            try:
                result = self.queue.assign(order, candidate)
            except PersonnelUnavailable as exc:
                logger.warning(
                    "Assignment attempt lost",
                    order_id=str(order.id),
                    role=role.value,
                    personnel_id=candidate.personnel_id,
                    attempt=attempt,
                    reason=exc.reason,
                )
                self.queue.requeue(order, role)
                continue
            return self._commit_assignment(order, role, result)

        logger.error("Assignment retries exhausted", order_id=str(order.id), role=role.value, attempts=attempts)
        raise AssignmentRetryExhausted(str(order.id), role.value, attempts)

    def _check_assignable(self, order: Order, role: FulfillmentRole) -> None:
        if order.is_terminal():
            raise TerminalState(str(order.id), order.status)
        current = OrderStatus(order.status)
        if role == FulfillmentRole.PICKER:
            if current != OrderStatus.CONFIRMED or order.fulfillment_style != FulfillmentStyle.STAFFED.value:
                raise InvalidTransition(
                    current.value,
                    OrderStatus.ASSIGNED_PICKER.value,
                    ActorRole.SYSTEM.value,
                    reason="only confirmed staffed orders take a picker",
                )
        elif current not in (OrderStatus.READY, OrderStatus.READY_FOR_PICKUP) or order.assigned_rider_id:
            raise ValidationError({"status": [f"Order {order.id} is not awaiting a rider ({current.value})"]})

    def _commit_assignment(self, order: Order, role: FulfillmentRole, result) -> Order:
        order_id = str(order.id)
        try:
            current_domain.process(
                AssignOrder(order_id=order_id, personnel_id=result.personnel_id, role=role.value),
                asynchronous=False,
            )
        except ValidationError:
            self.queue.release(result.personnel_id, order_id)
            raise

        self.queue.dequeue(order_id, role)
        order = self.get_order(order_id)
        logger.info(
            "Order assigned",
            order_id=order_id,
            role=role.value,
            personnel_id=result.personnel_id,
            version=order.version,
        )
        if role == FulfillmentRole.PICKER:
            self.packing.begin_packing(order)
        return order

    def dispatch(self, role) -> list[str]:
        """Assign queued orders for ``role`` while candidates remain.

        Returns the ids of the orders assigned in this pass. Failures are
        logged and leave the order queued.
        """
        role = role if isinstance(role, FulfillmentRole) else FulfillmentRole(role)
        assigned = []
        while True:
            order_id = self.queue.peek(role)
            if order_id is None or self.queue.next_available_personnel(role) is None:
                break
            try:
                self.request_assignment(order_id, role)
            except AssignmentRetryExhausted as exc:
                logger.warning("Dispatch stopped", role=role.value, order_id=order_id, reason=str(exc))
                break
            except (ValidationError, ObjectNotFoundError) as exc:
                logger.warning("Dropping order no longer awaiting assignment", order_id=order_id, reason=str(exc))
                self.queue.dequeue(order_id, role)
                continue
            if self.queue.is_queued(order_id, role):
                break
            assigned.append(order_id)
        return assigned

    # -------------------------------------------------------------------
    # Personnel
    # -------------------------------------------------------------------
    def register_personnel(
        self,
        personnel_id: str,
        role,
        name: str | None = None,
        rating: float = 0.0,
        max_concurrency: int | None = None,
        availability: str = Availability.AVAILABLE.value,
    ):
        person = self.queue.register(
            personnel_id,
            role,
            name=name,
            rating=rating,
            max_concurrency=max_concurrency,
            availability=availability,
        )
        if person.availability == Availability.AVAILABLE.value:
            self.dispatch(person.role)
        return self.queue.get_personnel(personnel_id)

    def update_availability(self, personnel_id: str, availability: str):
        person, changed = self.queue.update_availability(personnel_id, availability)
        if changed and person.availability == Availability.AVAILABLE.value:
            self.dispatch(person.role)
        return self.queue.get_personnel(personnel_id)
