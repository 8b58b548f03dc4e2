"""Tests for the /wholesale API endpoints and the sync triggers behind them."""

from datetime import timedelta

from app.db.base import utcnow
from app.models.wholesale import WholesaleBuyer, WholesaleOrder

BUYER_MOBILE = "9876543210"


def _payload(**overrides):
    payload = {
        "buyerName": "Ram Kumar",
        "buyerContact": BUYER_MOBILE,
        "businessName": "Ram Garments",
        "items": [
            {"design": "D100", "color": "Red", "size": "M", "quantity": 5, "pricePerUnit": 250},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateOrder:
    def test_totals_challan_and_new_buyer(self, client, db_session, supplier_headers, supplier_org):
        response = client.post(
            "/api/v1/wholesale/orders",
            json=_payload(
                buyerContact="9000000001",
                businessName="Ram Traders & Co",
                discountType="percentage",
                discountValue=10,
                items=[
                    {"design": "D100", "color": "Red", "size": "M", "quantity": 3, "pricePerUnit": 100},
                    {"design": "D100", "color": "Red", "size": "L", "quantity": 1, "pricePerUnit": 33.33},
                ],
            ),
            headers=supplier_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        order = data["order"]
        assert order["challanNumber"] == "RAM_TRADERS_CO_01"
        assert order["subtotalAmount"] == 333.33
        assert order["discountAmount"] == 33.33
        assert order["totalAmount"] == 300.0
        assert data["sync"] == {"synced": False, "reason": "Buyer is not a customer"}
        buyer = db_session.query(WholesaleBuyer).filter(WholesaleBuyer.mobile == "9000000001").one()
        assert buyer.organization_id == supplier_org.id
        assert buyer.customer_tenant_id is None

    def test_fixed_discount_is_capped_at_subtotal(self, client, supplier_headers, supplier_org):
        response = client.post(
            "/api/v1/wholesale/orders",
            json=_payload(buyerContact="9000000002", discountType="fixed", discountValue=5000),
            headers=supplier_headers,
        )

        order = response.json()["data"]["order"]
        assert order["discountAmount"] == 1250.0
        assert order["totalAmount"] == 0.0

    def test_direct_sync_for_linked_customer(
        self, client, supplier_headers, supplier_catalog, linked_buyer, customer_org, stock_of
    ):
        response = client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)

        data = response.json()["data"]
        assert data["sync"]["synced"] is True
        assert data["sync"]["itemsCount"] == 1
        assert data["order"]["syncStatus"] == "synced"
        assert data["order"]["syncedToCustomer"] is True
        assert data["order"]["customerTenantId"] == customer_org.id
        assert data["order"]["currentSyncEntryId"] == data["sync"]["supplierSyncId"]
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

    def test_duplicate_challan_number_is_refused(self, client, db_session, supplier_headers, supplier_org):
        first = client.post(
            "/api/v1/wholesale/orders", json=_payload(challanNumber="CH-001"), headers=supplier_headers
        )
        second = client.post(
            "/api/v1/wholesale/orders",
            json=_payload(buyerContact="9000000005", challanNumber="CH-001"),
            headers=supplier_headers,
        )

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json() == {"success": False, "message": "Challan number already exists"}
        assert db_session.query(WholesaleOrder).filter(WholesaleOrder.challan_number == "CH-001").count() == 1
        assert db_session.query(WholesaleBuyer).filter(WholesaleBuyer.mobile == "9000000005").count() == 0

    def test_generated_challan_skips_taken_numbers(self, client, supplier_headers, supplier_org):
        client.post(
            "/api/v1/wholesale/orders", json=_payload(challanNumber="RAM_GARMENTS_01"), headers=supplier_headers
        )

        response = client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)

        assert response.status_code == 201
        assert response.json()["data"]["order"]["challanNumber"] == "RAM_GARMENTS_02"

    def test_invalid_payload(self, client, supplier_headers):
        response = client.post(
            "/api/v1/wholesale/orders", json=_payload(buyerContact="12345", items=[]), headers=supplier_headers
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        fields = {e["field"] for e in body["errors"]}
        assert "body.buyerContact" in fields
        assert "body.items" in fields

    def test_list_and_get(self, client, supplier_headers, customer_headers, supplier_org):
        order_id = client.post(
            "/api/v1/wholesale/orders", json=_payload(buyerContact="9000000003"), headers=supplier_headers
        ).json()["data"]["order"]["id"]

        listed = client.get("/api/v1/wholesale/orders", headers=supplier_headers).json()["data"]
        fetched = client.get(f"/api/v1/wholesale/orders/{order_id}", headers=supplier_headers)
        foreign = client.get(f"/api/v1/wholesale/orders/{order_id}", headers=customer_headers)

        assert [o["id"] for o in listed] == [order_id]
        assert fetched.json()["data"]["items"][0]["quantity"] == 5
        assert foreign.status_code == 403


class TestUpdateItems:
    def _create(self, client, headers):
        return client.post("/api/v1/wholesale/orders", json=_payload(), headers=headers).json()["data"]

    def test_edit_propagates_to_customer(
        self, client, supplier_headers, supplier_catalog, linked_buyer, customer_org, stock_of
    ):
        order_id = self._create(client, supplier_headers)["order"]["id"]

        response = client.put(
            f"/api/v1/wholesale/orders/{order_id}/items",
            json={
                "items": [{"design": "D100", "color": "Red", "size": "M", "quantity": 8, "pricePerUnit": 250}],
                "changesMade": {"M": {"from": 5, "to": 8}},
            },
            headers=supplier_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["sync"]["synced"] is True
        assert data["order"]["totalAmount"] == 2000.0
        assert stock_of(customer_org.id, "D100", "Red", "M") == 8

    def test_edit_outside_window_is_refused(
        self, client, db_session, supplier_headers, supplier_catalog, linked_buyer, customer_org, stock_of
    ):
        order_id = self._create(client, supplier_headers)["order"]["id"]
        order = db_session.get(WholesaleOrder, order_id)
        order.created_at = utcnow() - timedelta(hours=25)
        db_session.commit()

        response = client.put(
            f"/api/v1/wholesale/orders/{order_id}/items",
            json={"items": [{"design": "D100", "color": "Red", "size": "M", "quantity": 8, "pricePerUnit": 250}]},
            headers=supplier_headers,
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Edit window expired (>24hrs)"}
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5
        db_session.refresh(order)
        assert order.items[0].quantity == 5

    def test_edit_of_unsynced_order_only_updates_items(self, client, supplier_headers, supplier_org):
        order_id = client.post(
            "/api/v1/wholesale/orders", json=_payload(buyerContact="9000000004"), headers=supplier_headers
        ).json()["data"]["order"]["id"]

        response = client.put(
            f"/api/v1/wholesale/orders/{order_id}/items",
            json={"items": [{"design": "D100", "color": "Red", "size": "S", "quantity": 2, "pricePerUnit": 250}]},
            headers=supplier_headers,
        )

        data = response.json()["data"]
        assert data["sync"] is None
        assert [(i["size"], i["quantity"]) for i in data["order"]["items"]] == [("S", 2)]


class TestDeleteOrder:
    def test_delete_reverses_customer_stock(
        self, client, supplier_headers, supplier_catalog, linked_buyer, customer_org, stock_of
    ):
        order_id = client.post(
            "/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers
        ).json()["data"]["order"]["id"]

        response = client.delete(f"/api/v1/wholesale/orders/{order_id}", headers=supplier_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Order deleted"
        assert body["data"]["sync"]["synced"] is True
        assert stock_of(customer_org.id, "D100", "Red", "M") == 0
        assert client.get(f"/api/v1/wholesale/orders/{order_id}", headers=supplier_headers).status_code == 404

    def test_delete_unknown_order(self, client, supplier_headers):
        response = client.delete("/api/v1/wholesale/orders/9999", headers=supplier_headers)

        assert response.status_code == 404


class TestBuyers:
    def test_link_and_preference(
        self, client, supplier_headers, supplier_catalog, customer_org, stock_of
    ):
        client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)
        buyer = client.get("/api/v1/wholesale/buyers", headers=supplier_headers).json()["data"][0]
        assert buyer["customerTenantId"] is None
        assert buyer["syncPreference"] == "direct"

        linked = client.put(
            f"/api/v1/wholesale/buyers/{buyer['id']}/link",
            json={"customerTenantId": customer_org.id},
            headers=supplier_headers,
        )
        manual = client.put(
            f"/api/v1/wholesale/buyers/{buyer['id']}/sync-preference",
            json={"syncPreference": "manual"},
            headers=supplier_headers,
        )

        assert linked.json()["data"]["customerTenantId"] == customer_org.id
        assert manual.json()["data"]["syncPreference"] == "manual"
        second = client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)
        assert second.json()["data"]["sync"]["pending"] is True
        assert stock_of(customer_org.id, "D100", "Red", "M") is None

    def test_cannot_link_to_own_organization(self, client, supplier_headers, supplier_org):
        client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)
        buyer = client.get("/api/v1/wholesale/buyers", headers=supplier_headers).json()["data"][0]

        response = client.put(
            f"/api/v1/wholesale/buyers/{buyer['id']}/link",
            json={"customerTenantId": supplier_org.id},
            headers=supplier_headers,
        )

        assert response.status_code == 400

    def test_unknown_preference_is_rejected(self, client, supplier_headers):
        response = client.put(
            "/api/v1/wholesale/buyers/1/sync-preference", json={"syncPreference": "auto"}, headers=supplier_headers
        )

        assert response.status_code == 422


class TestNotificationsAndHealth:
    def test_customer_is_notified_of_direct_sync(
        self, client, supplier_headers, customer_headers, supplier_catalog, linked_buyer
    ):
        client.post("/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers)

        response = client.get("/api/v1/notifications/", headers=customer_headers)

        assert response.status_code == 200
        notifications = response.json()["data"]
        assert [n["type"] for n in notifications] == ["stock_received"]
        assert notifications[0]["severity"] == "success"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "healthy"

    def test_rate_limited_requests_use_the_error_envelope(self, client, supplier_headers):
        from app.core.rate_limit import limiter

        limiter.reset()
        limiter.enabled = True
        try:
            statuses = [
                client.get("/api/v1/wholesale/orders", headers=supplier_headers).status_code for _ in range(60)
            ]
            response = client.get("/api/v1/wholesale/orders", headers=supplier_headers)
        finally:
            limiter.enabled = False
            limiter.reset()

        assert statuses == [200] * 60
        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith("Rate limit exceeded")


class TestSyncHistory:
    def test_history_lists_every_entry_of_the_order(
        self, client, supplier_headers, supplier_catalog, linked_buyer
    ):
        order_id = client.post(
            "/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers
        ).json()["data"]["order"]["id"]
        client.put(
            f"/api/v1/wholesale/orders/{order_id}/items",
            json={"items": [{"design": "D100", "color": "Red", "size": "M", "quantity": 8, "pricePerUnit": 250}]},
            headers=supplier_headers,
        )

        response = client.get(f"/api/v1/wholesale/orders/{order_id}/sync-history", headers=supplier_headers)

        assert response.status_code == 200
        history = response.json()["data"]
        assert [(e["syncType"], e["status"]) for e in history] == [("create", "synced"), ("edit", "synced")]
        assert all(e["wholesaleOrderId"] == order_id for e in history)

    def test_history_of_another_organizations_order_is_forbidden(
        self, client, supplier_headers, customer_headers, supplier_catalog, linked_buyer
    ):
        order_id = client.post(
            "/api/v1/wholesale/orders", json=_payload(), headers=supplier_headers
        ).json()["data"]["order"]["id"]

        response = client.get(f"/api/v1/wholesale/orders/{order_id}/sync-history", headers=customer_headers)

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_history_of_unknown_order(self, client, supplier_headers):
        response = client.get("/api/v1/wholesale/orders/9999/sync-history", headers=supplier_headers)

        assert response.status_code == 404
