"""Shared fixtures for the grocery fulfillment tests."""

import pytest

from grocery.fulfillment import get_coordinator
from grocery.order.order import Actor
from grocery.order.transitions import ActorRole
from grocery.publisher import get_publisher

DEFAULT_ITEMS = [
    {"product_id": "A", "name": "Apples", "unit_price": 5.00, "quantity": 2, "unit": "kg"},
    {"product_id": "B", "name": "Bread", "unit_price": 9.00, "quantity": 1, "unit": "loaf"},
]

DEFAULT_PRICING = {
    "subtotal": 19.00,
    "delivery_fee": 4.00,
    "tax": 3.00,
    "discount": 1.00,
    "total": 25.00,
}

DEFAULT_ADDRESS = {
    "full_name": "Ada Lovelace",
    "phone": "+44 20 7946 0000",
    "street": "12 Market Row",
    "city": "London",
    "postal_code": "SW9 8LB",
    "instructions": "Leave with concierge",
}

VENDOR = Actor("vendor-1", ActorRole.VENDOR)
SYSTEM = Actor.system()


def picker(picker_id="P1"):
    return Actor(picker_id, ActorRole.PICKER)


def rider(rider_id="R1"):
    return Actor(rider_id, ActorRole.RIDER)


@pytest.fixture()
def coordinator():
    return get_coordinator()


@pytest.fixture()
def publisher():
    return get_publisher()


@pytest.fixture()
def order_data():
    """Fresh placement data: two line items totalling 25.00."""
    return {
        "vendor_id": "vendor-1",
        "customer_id": "cust-1",
        "items": [dict(item) for item in DEFAULT_ITEMS],
        "pricing": dict(DEFAULT_PRICING),
        "address": dict(DEFAULT_ADDRESS),
    }


@pytest.fixture()
def place_order(coordinator, order_data):
    """Factory placing an order through the coordinator."""

    def _place(**overrides):
        data = dict(order_data)
        data.update(overrides)
        return coordinator.place_order(**data)

    return _place


@pytest.fixture()
def picking_order(coordinator, place_order):
    """A staffed order assigned to picker P1 and in ``picking``."""
    coordinator.register_personnel("P1", "picker", name="Pat")
    order = place_order()
    order = coordinator.request_transition(order.id, 1, "confirmed", VENDOR)
    assert order.status == "assigned_picker"
    return coordinator.request_transition(order.id, order.version, "picking", picker("P1"))
