"""Order transition table: the fulfillment state machine.

Two fulfillment styles share the first and last stretch of the workflow:

    Direct:  PENDING → CONFIRMED → PREPARING → READY
             → OUT_FOR_DELIVERY → DELIVERED → COMPLETED
    Staffed: PENDING → CONFIRMED → ASSIGNED_PICKER → PICKING → PICKED → PACKING
             → READY_FOR_PICKUP → OUT_FOR_DELIVERY → DELIVERED → COMPLETED

    PICKING → READY_FOR_PICKUP is the system's auto-advance when every line is
    packed during a single pick-and-pack pass.
    Every non-terminal state → CANCELLED (vendor while pending or
    confirmed, system afterwards); a cancellation always carries a reason.

The table is static data plus pure lookups; it holds no state and performs
no I/O.
"""

from dataclasses import dataclass, field
from enum import Enum

from grocery.errors import CancellationRequiresNote, InvalidTransition, RoleNotPermitted


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ASSIGNED_PICKER = "assigned_picker"
    PICKING = "picking"
    PICKED = "picked"
    PACKING = "packing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActorRole(Enum):
    VENDOR = "vendor"
    PICKER = "picker"
    RIDER = "rider"
    SYSTEM = "system"
    CUSTOMER = "customer"


class FulfillmentStyle(Enum):
    DIRECT = "direct"
    STAFFED = "staffed"


class Effect(Enum):
    """Follow-up work the coordinator performs after a transition is persisted."""

    ENQUEUE_PICKER = "enqueue_picker"
    BEGIN_PACKING = "begin_packing"
    CLOSE_PACKING = "close_packing"
    RELEASE_PICKER = "release_picker"
    ENQUEUE_RIDER = "enqueue_rider"
    RELEASE_RIDER = "release_rider"
    DEQUEUE = "dequeue"


@dataclass(frozen=True)
class Edge:
    roles: frozenset
    style: FulfillmentStyle | None = None
    requires_note: bool = False
    effects: frozenset = field(default_factory=frozenset)


TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Statuses during which the order holds a picker slot and a packing record
PICKING_PHASE = frozenset(
    {
        OrderStatus.ASSIGNED_PICKER,
        OrderStatus.PICKING,
        OrderStatus.PICKED,
        OrderStatus.PACKING,
    }
)

# Statuses during which packing progress may be recorded
PACKING_OPEN = frozenset({OrderStatus.PICKING, OrderStatus.PICKED, OrderStatus.PACKING})

STYLE_PATHS = {
    FulfillmentStyle.DIRECT: (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
    ),
    FulfillmentStyle.STAFFED: (
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.ASSIGNED_PICKER,
        OrderStatus.PICKING,
        OrderStatus.PICKED,
        OrderStatus.PACKING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.COMPLETED,
    ),
}

_VENDOR = frozenset({ActorRole.VENDOR})
_PICKER = frozenset({ActorRole.PICKER})
_RIDER = frozenset({ActorRole.RIDER})
_SYSTEM = frozenset({ActorRole.SYSTEM})
_PICKER_OR_SYSTEM = frozenset({ActorRole.PICKER, ActorRole.SYSTEM})
_VENDOR_OR_SYSTEM = frozenset({ActorRole.VENDOR, ActorRole.SYSTEM})

_LEAVE_PICKING = frozenset({Effect.CLOSE_PACKING, Effect.RELEASE_PICKER, Effect.ENQUEUE_RIDER})
_HAND_OFF = frozenset({Effect.DEQUEUE})
_CANCEL_EFFECTS = frozenset({Effect.CLOSE_PACKING, Effect.RELEASE_PICKER, Effect.RELEASE_RIDER, Effect.DEQUEUE})

TRANSITIONS = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): Edge(_VENDOR),
    # Direct style
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING): Edge(_VENDOR, style=FulfillmentStyle.DIRECT),
    (OrderStatus.PREPARING, OrderStatus.READY): Edge(_VENDOR, effects=frozenset({Effect.ENQUEUE_RIDER})),
    (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY): Edge(_RIDER, effects=_HAND_OFF),
    # Staffed style
    (OrderStatus.CONFIRMED, OrderStatus.ASSIGNED_PICKER): Edge(
        _SYSTEM, style=FulfillmentStyle.STAFFED, effects=frozenset({Effect.BEGIN_PACKING})
    ),
    (OrderStatus.ASSIGNED_PICKER, OrderStatus.PICKING): Edge(_PICKER),
    (OrderStatus.PICKING, OrderStatus.PICKED): Edge(_PICKER),
    (OrderStatus.PICKED, OrderStatus.PACKING): Edge(_PICKER_OR_SYSTEM),
    (OrderStatus.PACKING, OrderStatus.READY_FOR_PICKUP): Edge(_PICKER_OR_SYSTEM, effects=_LEAVE_PICKING),
    (OrderStatus.PICKING, OrderStatus.READY_FOR_PICKUP): Edge(_SYSTEM, effects=_LEAVE_PICKING),
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.OUT_FOR_DELIVERY): Edge(_RIDER, effects=_HAND_OFF),
    # Shared tail
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED): Edge(
        _RIDER, effects=frozenset({Effect.RELEASE_RIDER})
    ),
    (OrderStatus.DELIVERED, OrderStatus.COMPLETED): Edge(_VENDOR_OR_SYSTEM),
}

for _status in OrderStatus:
    if _status in TERMINAL_STATES:
        continue
    _roles = _VENDOR if _status in (OrderStatus.PENDING, OrderStatus.CONFIRMED) else _SYSTEM
    TRANSITIONS[(_status, OrderStatus.CANCELLED)] = Edge(_roles, requires_note=True, effects=_CANCEL_EFFECTS)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def edge_for(current: OrderStatus, requested: OrderStatus) -> Edge | None:
    return TRANSITIONS.get((current, requested))


def resolve(
    current: OrderStatus,
    requested: OrderStatus,
    role: ActorRole,
    style: FulfillmentStyle | None = None,
    note: str | None = None,
) -> Edge:
    """Return the edge for a request, or raise the error that rejects it.

    Terminal states are the caller's concern: the aggregate reports them with
    the order's identity before consulting the table.
    """
    edge = edge_for(current, requested)
    if edge is None:
        raise InvalidTransition(current.value, requested.value, role.value)
    if edge.style is not None and style is not None and edge.style != style:
        raise InvalidTransition(
            current.value,
            requested.value,
            role.value,
            reason=f"order uses {style.value} fulfillment",
        )
    if role not in edge.roles:
        allowed = ", ".join(sorted(r.value for r in edge.roles))
        raise RoleNotPermitted(current.value, requested.value, role.value, reason=f"requires {allowed}")
    if edge.requires_note and not (note or "").strip():
        raise CancellationRequiresNote()
    return edge


def side_effects(
    current: OrderStatus, requested: OrderStatus, style: FulfillmentStyle | None = None
) -> frozenset:
    edge = edge_for(current, requested)
    if edge is None:
        return frozenset()
    effects = set(edge.effects)
    if requested == OrderStatus.CONFIRMED and style == FulfillmentStyle.STAFFED:
        effects.add(Effect.ENQUEUE_PICKER)
    return frozenset(effects)


def allowed_targets(
    current: OrderStatus, role: ActorRole, style: FulfillmentStyle | None = None
) -> list[OrderStatus]:
    """Statuses this role may request next; the UI disables everything else."""
    targets = []
    for (source, target), edge in TRANSITIONS.items():
        if source != current or role not in edge.roles:
            continue
        if edge.style is not None and style is not None and edge.style != style:
            continue
        targets.append(target)
    return targets
