"""Integration tests for the fulfillment API via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from grocery.api import order_router, personnel_router, queue_router, register_exception_handlers

VENDOR_HEADERS = {"X-Actor-Id": "vendor-1", "X-Actor-Role": "vendor"}
P1_HEADERS = {"X-Actor-Id": "P1", "X-Actor-Role": "picker"}
R1_HEADERS = {"X-Actor-Id": "R1", "X-Actor-Role": "rider"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(personnel_router)
    app.include_router(queue_router)
    register_exception_handlers(app)
    return TestClient(app)


def _place(client, **overrides):
    payload = {
        "vendorId": "vendor-1",
        "customerId": "cust-1",
        "items": [
            {"productId": "A", "name": "Apples", "unitPrice": 5.00, "quantity": 2, "unit": "kg"},
            {"productId": "B", "name": "Bread", "unitPrice": 9.00, "quantity": 1},
        ],
        "pricing": {"subtotal": 19.00, "deliveryFee": 4.00, "tax": 3.00, "discount": 1.00, "total": 25.00},
        "deliveryAddress": {
            "fullName": "Ada Lovelace",
            "street": "12 Market Row",
            "city": "London",
            "postalCode": "SW9 8LB",
        },
    }
    payload.update(overrides)
    response = client.post("/orders", json=payload)
    assert response.status_code == 201
    return response.json()


def _transition(client, order, new_status, headers, **extra):
    body = {"expectedVersion": order["version"], "newStatus": new_status, **extra}
    return client.post(f"/orders/{order['id']}/transitions", json=body, headers=headers)


def _register(client, personnel_id, role, **extra):
    response = client.post("/personnel", json={"personnelId": personnel_id, "role": role, **extra})
    assert response.status_code == 201
    return response.json()


class TestPlaceOrderAPI:
    def test_place_returns_pending_order(self, client):
        order = _place(client)
        assert order["status"] == "pending"
        assert order["version"] == 1
        assert order["pricing"]["total"] == 25.00
        assert [item["productId"] for item in order["items"]] == ["A", "B"]
        assert order["statusHistory"][0]["actorRole"] == "customer"

    def test_mismatched_total_is_422(self, client):
        response = client.post(
            "/orders",
            json={
                "vendorId": "vendor-1",
                "customerId": "cust-1",
                "items": [{"productId": "A", "name": "Apples", "unitPrice": 5.00, "quantity": 1}],
                "pricing": {"subtotal": 5.00, "total": 9.00},
                "deliveryAddress": {"fullName": "A", "street": "S", "city": "C", "postalCode": "P"},
            },
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidOrder"

    def test_malformed_body_is_422(self, client):
        response = client.post("/orders", json={"vendorId": "vendor-1"})
        assert response.status_code == 422


class TestGetOrderAPI:
    def test_get_order(self, client):
        order = _place(client)
        response = client.get(f"/orders/{order['id']}")
        assert response.status_code == 200
        assert response.json()["allowedTransitions"] == []

    def test_allowed_transitions_for_actor(self, client):
        order = _place(client)
        response = client.get(f"/orders/{order['id']}", headers=VENDOR_HEADERS)
        assert set(response.json()["allowedTransitions"]) == {"confirmed", "cancelled"}

    def test_unknown_order_is_404(self, client):
        response = client.get("/orders/missing")
        assert response.status_code == 404


class TestTransitionAPI:
    def test_confirm(self, client):
        order = _place(client)
        response = _transition(client, order, "confirmed", VENDOR_HEADERS, fulfillmentStyle="direct")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["fulfillmentStyle"] == "direct"
        assert "preparing" in body["allowedTransitions"]

    def test_missing_actor_headers_is_401(self, client):
        order = _place(client)
        response = _transition(client, order, "confirmed", {})
        assert response.status_code == 401

    def test_half_actor_headers_is_401(self, client):
        order = _place(client)
        response = _transition(client, order, "confirmed", {"X-Actor-Id": "vendor-1"})
        assert response.status_code == 401

    def test_unknown_role_is_400(self, client):
        order = _place(client)
        response = _transition(client, order, "confirmed", {"X-Actor-Id": "x", "X-Actor-Role": "admin"})
        assert response.status_code == 400

    def test_wrong_role_is_403(self, client):
        order = _place(client)
        response = _transition(client, order, "confirmed", R1_HEADERS)
        assert response.status_code == 403
        assert response.json()["error"] == "RoleNotPermitted"

    def test_invalid_transition_is_422(self, client):
        order = _place(client)
        response = _transition(client, order, "completed", VENDOR_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidTransition"

    def test_stale_version_is_409(self, client):
        order = _place(client)
        _transition(client, order, "confirmed", VENDOR_HEADERS)
        response = _transition(client, order, "cancelled", VENDOR_HEADERS, note="Duplicate")
        assert response.status_code == 409
        assert response.json()["error"] == "VersionConflict"

    def test_cancellation_without_note_is_422(self, client):
        order = _place(client)
        response = _transition(client, order, "cancelled", VENDOR_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "CancellationRequiresNote"

    def test_terminal_order_is_422(self, client):
        order = _place(client)
        order = _transition(client, order, "cancelled", VENDOR_HEADERS, note="Duplicate").json()
        response = _transition(client, order, "confirmed", VENDOR_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "TerminalState"

    def test_unsettled_payment_then_settlement(self, client):
        order = _place(client, paymentSettled=False)
        response = _transition(client, order, "confirmed", VENDOR_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "PaymentNotSettled"

        settled = client.post(f"/orders/{order['id']}/payment-settled").json()
        assert settled["paymentSettled"] is True
        response = _transition(client, settled, "confirmed", VENDOR_HEADERS)
        assert response.status_code == 200


class TestPackingAPI:
    def _picking_order(self, client):
        _register(client, "P1", "picker")
        order = _place(client)
        order = _transition(client, order, "confirmed", VENDOR_HEADERS).json()
        assert order["status"] == "assigned_picker"
        return _transition(client, order, "picking", P1_HEADERS).json()

    def test_get_packing_state(self, client):
        order = self._picking_order(client)
        response = client.get(f"/orders/{order['id']}/packing")
        assert response.status_code == 200
        body = response.json()
        assert [p["itemId"] for p in body["itemProgress"]] == ["A", "B"]
        assert body["fullyPacked"] is False

    def test_update_progress(self, client):
        order = self._picking_order(client)
        response = client.patch(
            f"/orders/{order['id']}/packing/A",
            json={"pickedQuantity": 2, "packed": True},
            headers=P1_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["itemProgress"][0]["pickedQuantity"] == 2

    def test_full_pack_advances_order(self, client):
        order = self._picking_order(client)
        client.patch(f"/orders/{order['id']}/packing/A", json={"pickedQuantity": 2, "packed": True}, headers=P1_HEADERS)
        client.patch(f"/orders/{order['id']}/packing/B", json={"pickedQuantity": 1, "packed": True}, headers=P1_HEADERS)
        assert client.get(f"/orders/{order['id']}").json()["status"] == "ready_for_pickup"

    def test_quantity_out_of_range_is_400(self, client):
        order = self._picking_order(client)
        response = client.patch(
            f"/orders/{order['id']}/packing/A", json={"pickedQuantity": 9}, headers=P1_HEADERS
        )
        assert response.status_code == 400
        assert response.json()["error"] == "QuantityOutOfRange"

    def test_unknown_item_is_404(self, client):
        order = self._picking_order(client)
        response = client.patch(
            f"/orders/{order['id']}/packing/Z", json={"pickedQuantity": 1}, headers=P1_HEADERS
        )
        assert response.status_code == 404

    def test_packing_not_open_is_409(self, client):
        order = _place(client)
        response = client.patch(
            f"/orders/{order['id']}/packing/A",
            json={"pickedQuantity": 1},
            headers={"X-Actor-Id": "system", "X-Actor-Role": "system"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "PackingNotOpen"


class TestPersonnelAndQueueAPI:
    def test_register_and_get(self, client):
        _register(client, "P1", "picker", name="Pat", rating=4.5)
        body = client.get("/personnel/P1").json()
        assert body["availability"] == "available"
        assert body["maxConcurrency"] == 3
        assert body["rating"] == 4.5

    def test_duplicate_registration_is_409(self, client):
        _register(client, "P1", "picker")
        response = client.post("/personnel", json={"personnelId": "P1", "role": "picker"})
        assert response.status_code == 409

    def test_unknown_personnel_is_404(self, client):
        assert client.get("/personnel/nobody").status_code == 404

    def test_queue_and_check_in(self, client):
        _register(client, "P1", "picker", availability="offline")
        order = _place(client, priority="express")
        _transition(client, order, "confirmed", VENDOR_HEADERS)
        queue = client.get("/queues/picker").json()
        assert queue["express"] == [order["id"]]

        response = client.put("/personnel/P1/availability", json={"availability": "available"})
        assert response.json()["activeOrderIds"] == [order["id"]]
        assert client.get("/queues/picker").json()["express"] == []

    def test_unknown_queue_role_is_400(self, client):
        assert client.get("/queues/vendor").status_code == 400

    def test_dispatch_endpoint(self, client):
        order = _place(client)
        _transition(client, order, "confirmed", VENDOR_HEADERS)
        assert client.post("/queues/picker/dispatch").json() == []

    def test_explicit_assignment_to_busy_personnel_is_409(self, client):
        order = _place(client)
        _transition(client, order, "confirmed", VENDOR_HEADERS)
        client.post("/personnel", json={"personnelId": "P2", "role": "picker", "availability": "offline"})
        client.put("/personnel/P2/availability", json={"availability": "busy"})
        response = client.post(f"/orders/{order['id']}/assign", json={"role": "picker", "personnelId": "P2"})
        assert response.status_code == 409
        assert response.json()["error"] == "PersonnelUnavailable"


class TestErrorContract:
    def test_error_responses_are_documented(self, client):
        schema = client.get("/openapi.json").json()
        assert "ErrorResponse" in schema["components"]["schemas"]
        documented = schema["paths"]["/orders/{order_id}/transitions"]["post"]["responses"]
        assert documented["409"]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponse"
        }

    def test_error_body_matches_the_documented_shape(self, client):
        response = client.get("/orders/no-such-order")
        assert response.status_code == 404
        assert set(response.json()) == {"error", "messages"}
