"""
商品与订单 API 测试
"""
import pytest

from app.models.ontology import GroceryItem, Notification


def _order(client, headers, *lines, payment_method="cash"):
    return client.post("/grocery/orders", headers=headers, json={
        "items": [{"item_id": item_id, "quantity": quantity} for item_id, quantity in lines],
        "payment_method": payment_method,
    })


class TestItems:

    def test_list_available_only(self, client, resident_headers, rice, milk, soap):
        response = client.get("/grocery/items", headers=resident_headers, params={"available_only": True})

        assert response.status_code == 200
        assert {i["name"] for i in response.json()} == {"Rice", "Milk"}

    def test_admin_creates_item(self, client, admin_headers):
        response = client.post("/grocery/items", headers=admin_headers, json={
            "name": "Bread", "name_ar": "خبز", "category": "food", "price": "3.00", "unit": "piece", "stock": 12,
        })
        assert response.status_code == 201
        assert response.json()["stock"] == 12

    def test_resident_cannot_create_item(self, client, resident_headers):
        response = client.post("/grocery/items", headers=resident_headers, json={
            "name": "Bread", "name_ar": "خبز", "category": "food", "price": "3.00", "unit": "piece",
        })
        assert response.status_code == 403

    def test_set_stock_and_toggle(self, client, admin_headers, rice):
        response = client.put(f"/grocery/items/{rice.id}/stock", headers=admin_headers, json={"stock": 40})
        assert response.json()["stock"] == 40

        response = client.patch(f"/grocery/items/{rice.id}/toggle-availability", headers=admin_headers)
        assert response.json()["is_available"] is False

    def test_negative_stock_rejected(self, client, admin_headers, rice):
        response = client.put(f"/grocery/items/{rice.id}/stock", headers=admin_headers, json={"stock": -1})
        assert response.status_code == 422

    def test_missing_item(self, client, resident_headers):
        response = client.get("/grocery/items/999", headers=resident_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "ItemNotFound"


class TestOrders:

    def test_order_lifecycle(self, client, resident_headers, admin_headers, rice, db_session):
        response = _order(client, resident_headers, (rice.id, 4))
        assert response.status_code == 201
        order = response.json()
        assert order["total_amount"] == "10.00"
        assert order["status"] == "pending"
        assert order["room_number"] == "101"
        assert order["items"][0]["item_name"] == "Rice"

        for status in ("processing", "ready", "delivered"):
            response = client.put(f"/grocery/orders/{order['id']}/status",
                                  headers=admin_headers, json={"status": status})
            assert response.status_code == 200
        assert response.json()["delivery_time"] is not None

        db_session.expire_all()
        assert db_session.get(GroceryItem, rice.id).stock == 6

    def test_cancel_restores_stock(self, client, resident_headers, admin_headers, rice, db_session):
        order = _order(client, resident_headers, (rice.id, 3)).json()
        client.put(f"/grocery/orders/{order['id']}/status", headers=admin_headers, json={"status": "processing"})

        response = client.put(f"/grocery/orders/{order['id']}/status",
                              headers=admin_headers, json={"status": "cancelled"})

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(GroceryItem, rice.id).stock == 10

    def test_skipping_states_conflicts(self, client, resident_headers, admin_headers, rice):
        order = _order(client, resident_headers, (rice.id, 1)).json()
        response = client.put(f"/grocery/orders/{order['id']}/status",
                              headers=admin_headers, json={"status": "delivered"})

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"

    def test_insufficient_stock(self, client, resident_headers, milk):
        response = _order(client, resident_headers, (milk.id, 6))
        assert response.status_code == 409
        assert response.json()["detail"] == "Insufficient stock for item: Milk"

    def test_unavailable_item(self, client, resident_headers, soap):
        response = _order(client, resident_headers, (soap.id, 1))
        assert response.status_code == 409
        assert response.json()["error"] == "ItemUnavailable"

    def test_empty_order_rejected(self, client, resident_headers):
        response = client.post("/grocery/orders", headers=resident_headers,
                               json={"items": [], "payment_method": "cash"})
        assert response.status_code == 422

    def test_resident_cannot_change_status(self, client, resident_headers, rice):
        order = _order(client, resident_headers, (rice.id, 1)).json()
        response = client.put(f"/grocery/orders/{order['id']}/status",
                              headers=resident_headers, json={"status": "processing"})
        assert response.status_code == 403

    def test_orders_scoped_to_owner(self, client, resident_headers, other_resident_headers, admin_headers, rice):
        order = _order(client, resident_headers, (rice.id, 1)).json()

        assert client.get("/grocery/orders", headers=other_resident_headers).json() == []
        assert client.get(f"/grocery/orders/{order['id']}", headers=other_resident_headers).status_code == 403
        assert len(client.get("/grocery/orders", headers=admin_headers).json()) == 1

    def test_mark_paid(self, client, resident_headers, admin_headers, rice):
        order = _order(client, resident_headers, (rice.id, 1)).json()
        response = client.put(f"/grocery/orders/{order['id']}/payment-status",
                              headers=admin_headers, json={"payment_status": "paid"})

        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

    def test_owner_notified(self, client, resident_headers, rice, db_session, resident_user):
        order = _order(client, resident_headers, (rice.id, 1)).json()

        db_session.expire_all()
        notification = db_session.query(Notification).filter(Notification.user_id == resident_user.id).one()
        assert notification.body == f"Your order #{order['order_number']} has been received"
