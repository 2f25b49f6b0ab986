"""BDD tests for staffed fulfillment from placement to completion."""

from pytest_bdd import given, parsers, scenarios, then, when

from grocery.order.order import Actor
from grocery.order.transitions import TRANSITIONS, ActorRole, OrderStatus

scenarios("features/staffed_fulfillment.feature")

VENDOR = Actor("vendor-1", ActorRole.VENDOR)


def _picker(picker_id):
    return Actor(picker_id, ActorRole.PICKER)


def _rider(rider_id):
    return Actor(rider_id, ActorRole.RIDER)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an express order is placed", target_fixture="express_order")
def _(place_order):
    return place_order(priority="express")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the vendor confirms every order")
def _(coordinator, order, express_order):
    for each in (order, express_order):
        coordinator.request_transition(each.id, each.version, "confirmed", VENDOR)


@when(parsers.cfparse('picker "{picker_id}" is registered with room for {slots:d} order'))
def _(coordinator, picker_id, slots):
    coordinator.register_personnel(picker_id, "picker", max_concurrency=slots)


@when(parsers.cfparse('picker "{picker_id}" checks in'), target_fixture="order")
def _(coordinator, order, picker_id):
    coordinator.update_availability(picker_id, "available")
    return coordinator.get_order(order.id)


@when(parsers.cfparse('picker "{picker_id}" finishes picking'), target_fixture="order")
def _(coordinator, order, picker_id):
    return coordinator.request_transition(order.id, order.version, "picked", _picker(picker_id))


@when(parsers.cfparse('picker "{picker_id}" starts packing'), target_fixture="order")
def _(coordinator, order, picker_id):
    return coordinator.request_transition(order.id, order.version, "packing", _picker(picker_id))


@when(
    parsers.cfparse('picker "{picker_id}" packs {quantity:d} of item "{item_id}"'),
    target_fixture="order",
)
def _(coordinator, order, picker_id, quantity, item_id):
    coordinator.request_packing_update(order.id, item_id, quantity, True, None, _picker(picker_id))
    return coordinator.get_order(order.id)


@when(parsers.cfparse('picker "{picker_id}" hands the order over'), target_fixture="order")
def _(coordinator, order, picker_id):
    return coordinator.request_transition(order.id, order.version, "ready_for_pickup", _picker(picker_id))


@when(parsers.cfparse('rider "{rider_id}" collects the order'), target_fixture="order")
def _(coordinator, order, attempt, rider_id):
    return attempt(
        order,
        lambda: coordinator.request_transition(order.id, order.version, "out_for_delivery", _rider(rider_id)),
    )


@when(parsers.cfparse('rider "{rider_id}" delivers the order'), target_fixture="order")
def _(coordinator, order, rider_id):
    return coordinator.request_transition(order.id, order.version, "delivered", _rider(rider_id))


@when("the vendor completes the order", target_fixture="order")
def _(coordinator, order):
    return coordinator.request_transition(order.id, order.version, "completed", VENDOR)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the order is waiting in the picker queue")
def _(coordinator, order):
    assert coordinator.queue.is_queued(order.id, "picker")


@then("the standard order is still waiting in the picker queue")
def _(coordinator, order):
    assert coordinator.get_order(order.id).status == "confirmed"
    assert coordinator.queue.is_queued(order.id, "picker")


@then(parsers.cfparse('the order is assigned to picker "{picker_id}"'))
def _(coordinator, order, picker_id):
    assert coordinator.get_order(order.id).assigned_picker_id == picker_id


@then(parsers.cfparse('the express order is assigned to picker "{picker_id}"'))
def _(coordinator, express_order, picker_id):
    express = coordinator.get_order(express_order.id)
    assert express.status == "assigned_picker"
    assert express.assigned_picker_id == picker_id


@then(parsers.cfparse('the latest history note mentions "{text}"'))
def _(coordinator, order, text):
    assert text in coordinator.get_order(order.id).history[-1].note


@then(parsers.cfparse("the order history has {count:d} entries in version order"))
def _(coordinator, order, count):
    history = coordinator.get_order(order.id).history
    assert len(history) == count
    versions = [entry.version for entry in history]
    assert all(earlier < later for earlier, later in zip(versions, versions[1:]))
    statuses = [OrderStatus(entry.status) for entry in history]
    assert all(step in TRANSITIONS for step in zip(statuses, statuses[1:]))
    assert [entry.status for entry in history] == [
        "pending",
        "confirmed",
        "assigned_picker",
        "picking",
        "ready_for_pickup",
        "out_for_delivery",
        "delivered",
        "completed",
    ]
