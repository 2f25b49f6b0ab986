"""FastAPI routes for the Grocery fulfillment service.

The auth gateway in front of this service resolves the caller and forwards
their identity as ``X-Actor-Id`` / ``X-Actor-Role``.
"""

import json

from fastapi import APIRouter, Depends, Header, HTTPException
from protean.utils.globals import current_domain

from grocery.api.schemas import (
    AssignRequest,
    AvailabilityRequest,
    ErrorResponse,
    OrderResponse,
    PackingStateResponse,
    PackingUpdateRequest,
    PersonnelResponse,
    PlaceOrderRequest,
    QueueResponse,
    RegisterPersonnelRequest,
    TransitionRequest,
)
from grocery.fulfillment import get_coordinator
from grocery.order.order import Actor
from grocery.order.placement import PlaceOrder, SettlePayment
from grocery.order.transitions import ActorRole
from grocery.staffing.personnel import FulfillmentRole

ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Actor role may not request this change"},
    404: {"model": ErrorResponse, "description": "Record not found"},
    409: {"model": ErrorResponse, "description": "Stale version or contended record"},
    422: {"model": ErrorResponse, "description": "Rejected by the workflow rules"},
}


def _actor_from_headers(actor_id: str | None, actor_role: str | None) -> Actor | None:
    if not actor_id and not actor_role:
        return None
    if not actor_id or not actor_role:
        raise HTTPException(status_code=401, detail="Both X-Actor-Id and X-Actor-Role are required")
    try:
        role = ActorRole(actor_role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown actor role: {actor_role}") from None
    return Actor(actor_id=actor_id, role=role)


def optional_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor | None:
    return _actor_from_headers(x_actor_id, x_actor_role)


def current_actor(actor: Actor | None = Depends(optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(status_code=401, detail="Missing actor headers")
    return actor


def _fulfillment_role(role: str) -> FulfillmentRole:
    try:
        return FulfillmentRole(role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown fulfillment role: {role}") from None


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"], responses=ERROR_RESPONSES)


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest) -> OrderResponse:
    """Place an order handed over by checkout."""
    command = PlaceOrder(
        vendor_id=body.vendor_id,
        customer_id=body.customer_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        pricing=json.dumps(body.pricing.model_dump()),
        address=json.dumps(body.delivery_address.model_dump()),
        priority=body.priority,
        payment_settled=body.payment_settled,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderResponse.from_order(get_coordinator().get_order(order_id))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor | None = Depends(optional_actor)) -> OrderResponse:
    """Fetch an order; with actor headers, include the transitions that actor may request."""
    order = get_coordinator().get_order(order_id)
    allowed = order.allowed_transitions(actor) if actor else []
    return OrderResponse.from_order(order, allowed)


@order_router.post("/{order_id}/transitions", response_model=OrderResponse)
async def request_transition(
    order_id: str, body: TransitionRequest, actor: Actor = Depends(current_actor)
) -> OrderResponse:
    order = get_coordinator().request_transition(
        order_id,
        body.expected_version,
        body.new_status,
        actor,
        note=body.note,
        style=body.fulfillment_style,
    )
    return OrderResponse.from_order(order, order.allowed_transitions(actor))


@order_router.post("/{order_id}/payment-settled", response_model=OrderResponse)
async def mark_payment_settled(order_id: str) -> OrderResponse:
    """Record the payment collaborator's settlement signal."""
    current_domain.process(SettlePayment(order_id=order_id), asynchronous=False)
    return OrderResponse.from_order(get_coordinator().get_order(order_id))


@order_router.get("/{order_id}/packing", response_model=PackingStateResponse)
async def get_packing(order_id: str) -> PackingStateResponse:
    state = get_coordinator().packing.get(order_id)
    return PackingStateResponse.from_state(state)


@order_router.patch("/{order_id}/packing/{item_id}", response_model=PackingStateResponse)
async def update_packing(
    order_id: str, item_id: str, body: PackingUpdateRequest, actor: Actor = Depends(current_actor)
) -> PackingStateResponse:
    state = get_coordinator().request_packing_update(
        order_id,
        item_id,
        body.picked_quantity,
        body.packed,
        body.note,
        actor,
    )
    return PackingStateResponse.from_state(state)


@order_router.post("/{order_id}/assign", response_model=OrderResponse)
async def request_assignment(order_id: str, body: AssignRequest) -> OrderResponse:
    order = get_coordinator().request_assignment(order_id, body.role, personnel_id=body.personnel_id)
    return OrderResponse.from_order(order)


# ---------------------------------------------------------------------------
# Personnel Router
# ---------------------------------------------------------------------------
personnel_router = APIRouter(prefix="/personnel", tags=["personnel"], responses=ERROR_RESPONSES)


@personnel_router.post("", status_code=201, response_model=PersonnelResponse)
async def register_personnel(body: RegisterPersonnelRequest) -> PersonnelResponse:
    person = get_coordinator().register_personnel(
        body.personnel_id,
        body.role,
        name=body.name,
        rating=body.rating,
        max_concurrency=body.max_concurrency,
        availability=body.availability,
    )
    return PersonnelResponse.from_personnel(person)


@personnel_router.get("/{personnel_id}", response_model=PersonnelResponse)
async def get_personnel(personnel_id: str) -> PersonnelResponse:
    return PersonnelResponse.from_personnel(get_coordinator().queue.get_personnel(personnel_id))


@personnel_router.put("/{personnel_id}/availability", response_model=PersonnelResponse)
async def update_availability(personnel_id: str, body: AvailabilityRequest) -> PersonnelResponse:
    """Check a picker or rider in or out; checking in drains the role's queue."""
    person = get_coordinator().update_availability(personnel_id, body.availability)
    return PersonnelResponse.from_personnel(person)


# ---------------------------------------------------------------------------
# Queue Router
# ---------------------------------------------------------------------------
queue_router = APIRouter(prefix="/queues", tags=["queues"], responses=ERROR_RESPONSES)


@queue_router.get("/{role}", response_model=QueueResponse)
async def get_queue(role: str) -> QueueResponse:
    tiers = get_coordinator().queue.tiers(_fulfillment_role(role))
    return QueueResponse(role=role, express=tiers["express"], standard=tiers["standard"])


@queue_router.post("/{role}/dispatch", response_model=list[str])
async def dispatch(role: str) -> list[str]:
    """Assign queued orders while personnel are free; returns the assigned order ids."""
    return get_coordinator().dispatch(_fulfillment_role(role))
