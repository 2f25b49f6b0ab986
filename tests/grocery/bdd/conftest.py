"""Shared BDD fixtures and step definitions for the grocery fulfillment workflow."""

import pytest
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then, when

from grocery.order.order import Actor
from grocery.order.transitions import ActorRole

VENDOR = Actor("vendor-1", ActorRole.VENDOR)


@pytest.fixture()
def error():
    """Container for the domain error a When step ran into."""
    return {"exc": None}


@pytest.fixture()
def attempt(coordinator, error):
    """Run a request and return the reloaded order, capturing any rejection."""

    def _attempt(order, request):
        try:
            request()
        except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
            error["exc"] = exc
        return coordinator.get_order(order.id)

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('picker "{picker_id}" is registered as {availability}'))
def _(coordinator, picker_id, availability):
    coordinator.register_personnel(picker_id, "picker", availability=availability)


@given("an order is placed", target_fixture="order")
def _(place_order):
    return place_order()


@given(
    parsers.cfparse('the vendor cancelled the order with reason "{reason}"'),
    target_fixture="order",
)
def _(coordinator, order, reason):
    return coordinator.request_transition(order.id, order.version, "cancelled", VENDOR, note=reason)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the vendor confirms the order", target_fixture="order")
def _(coordinator, order, attempt):
    return attempt(
        order,
        lambda: coordinator.request_transition(order.id, order.version, "confirmed", VENDOR),
    )


@when(parsers.cfparse('picker "{picker_id}" starts picking'), target_fixture="order")
def _(coordinator, order, attempt, picker_id):
    picker = Actor(picker_id, ActorRole.PICKER)
    return attempt(
        order,
        lambda: coordinator.request_transition(order.id, order.version, "picking", picker),
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(coordinator, order, status):
    assert coordinator.get_order(order.id).status == status


@then(parsers.cfparse('the request is rejected with "{error_name}"'))
def _(error, error_name):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_name


@then("the packing checklist is archived")
def _(coordinator, order):
    assert coordinator.packing.get(order.id).archived is True
