"""Pydantic API schemas for the Grocery fulfillment service.

These are the external API contracts, separate from the domain model. Field
names are camelCase on the wire, matching the frontend and the outbound event
stream.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class LineItemRequest(ApiModel):
    product_id: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    unit: str = "each"


class PricingRequest(ApiModel):
    subtotal: float = Field(ge=0)
    delivery_fee: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)
    discount: float = Field(default=0.0, ge=0)
    total: float = Field(ge=0)
    currency: str = "GBP"


class AddressRequest(ApiModel):
    full_name: str
    phone: str | None = None
    street: str
    city: str
    postal_code: str
    instructions: str | None = None


class PlaceOrderRequest(ApiModel):
    vendor_id: str
    customer_id: str
    items: list[LineItemRequest]
    pricing: PricingRequest
    delivery_address: AddressRequest
    priority: Literal["standard", "express"] = "standard"
    payment_settled: bool = True


class TransitionRequest(ApiModel):
    expected_version: int
    new_status: str
    note: str | None = None
    fulfillment_style: Literal["direct", "staffed"] | None = None


class PackingUpdateRequest(ApiModel):
    picked_quantity: int
    packed: bool | None = None
    note: str | None = None


class AssignRequest(ApiModel):
    role: Literal["picker", "rider"]
    personnel_id: str | None = None


class RegisterPersonnelRequest(ApiModel):
    personnel_id: str
    role: Literal["picker", "rider"]
    name: str | None = None
    rating: float = Field(default=0.0, ge=0, le=5)
    max_concurrency: int | None = Field(default=None, ge=1)
    availability: Literal["available", "busy", "offline"] = "available"


class AvailabilityRequest(ApiModel):
    availability: Literal["available", "busy", "offline"]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class LineItemResponse(ApiModel):
    product_id: str
    name: str
    unit_price: float
    quantity: int
    unit: str | None = None


class PricingResponse(ApiModel):
    subtotal: float
    delivery_fee: float
    tax: float
    discount: float
    total: float
    currency: str


class StatusEntryResponse(ApiModel):
    status: str
    version: int
    actor_id: str
    actor_role: str
    note: str | None = None
    timestamp: datetime


class OrderResponse(ApiModel):
    id: str
    version: int
    status: str
    vendor_id: str
    customer_id: str
    fulfillment_style: str | None = None
    priority: str
    payment_settled: bool
    items: list[LineItemResponse]
    pricing: PricingResponse
    delivery_address: AddressRequest
    assigned_picker_id: str | None = None
    assigned_rider_id: str | None = None
    status_history: list[StatusEntryResponse]
    cancellation_reason: str | None = None
    progress: float
    allowed_transitions: list[str] = []

    @classmethod
    def from_order(cls, order, allowed: list[str] | None = None) -> "OrderResponse":
        return cls(
            id=str(order.id),
            version=order.version,
            status=order.status,
            vendor_id=order.vendor_id,
            customer_id=order.customer_id,
            fulfillment_style=order.fulfillment_style,
            priority=order.priority,
            payment_settled=bool(order.payment_settled),
            items=[
                LineItemResponse(
                    product_id=i.product_id,
                    name=i.name,
                    unit_price=i.unit_price,
                    quantity=i.quantity,
                    unit=i.unit,
                )
                for i in order.line_items
            ],
            pricing=PricingResponse(
                subtotal=order.pricing.subtotal,
                delivery_fee=order.pricing.delivery_fee,
                tax=order.pricing.tax,
                discount=order.pricing.discount,
                total=order.pricing.total,
                currency=order.pricing.currency,
            ),
            delivery_address=AddressRequest(
                full_name=order.delivery_address.full_name,
                phone=order.delivery_address.phone,
                street=order.delivery_address.street,
                city=order.delivery_address.city,
                postal_code=order.delivery_address.postal_code,
                instructions=order.delivery_address.instructions,
            ),
            assigned_picker_id=order.assigned_picker_id,
            assigned_rider_id=order.assigned_rider_id,
            status_history=[
                StatusEntryResponse(
                    status=e.status,
                    version=e.version,
                    actor_id=e.actor_id,
                    actor_role=e.actor_role,
                    note=e.note,
                    timestamp=e.timestamp,
                )
                for e in order.history
            ],
            cancellation_reason=order.cancellation_reason,
            progress=order.current_progress(),
            allowed_transitions=allowed or [],
        )


class ItemProgressResponse(ApiModel):
    item_id: str
    name: str | None = None
    ordered_quantity: int
    picked_quantity: int
    packed: bool
    note: str | None = None


class PackingStateResponse(ApiModel):
    order_id: str
    version: int
    archived: bool
    fully_packed: bool
    accuracy: float
    item_progress: list[ItemProgressResponse]

    @classmethod
    def from_state(cls, state) -> "PackingStateResponse":
        return cls(
            order_id=str(state.order_id),
            version=state.version,
            archived=bool(state.archived),
            fully_packed=state.is_fully_packed(),
            accuracy=state.accuracy(),
            item_progress=[
                ItemProgressResponse(
                    item_id=p.line_item_id,
                    name=p.name,
                    ordered_quantity=p.ordered_quantity,
                    picked_quantity=p.picked_quantity,
                    packed=bool(p.packed),
                    note=p.note,
                )
                for p in state.items
            ],
        )


class PersonnelResponse(ApiModel):
    personnel_id: str
    role: str
    name: str | None = None
    availability: str
    active_order_ids: list[str]
    max_concurrency: int
    rating: float
    completed_count: int

    @classmethod
    def from_personnel(cls, person) -> "PersonnelResponse":
        return cls(
            personnel_id=person.personnel_id,
            role=person.role,
            name=person.name,
            availability=person.availability,
            active_order_ids=person.active_orders,
            max_concurrency=person.max_concurrency,
            rating=person.rating,
            completed_count=person.completed_count,
        )


class QueueResponse(ApiModel):
    role: str
    express: list[str]
    standard: list[str]


class ErrorResponse(BaseModel):
    error: str
    messages: dict | list | str
