"""
Admin API tests: blacklist registry, rooms, products, customers
"""
from decimal import Decimal

from fastapi.testclient import TestClient


class TestBlacklistApi:

    def test_add_list_remove(self, client: TestClient, admin_headers):
        created = client.post("/blacklist", headers=admin_headers,
                              json={"document_number": "777", "full_name": "Bad Guest", "reason": "Fraud"})
        assert created.status_code == 201

        duplicate = client.post("/blacklist", headers=admin_headers,
                                json={"document_number": "777", "reason": "Again"})
        assert duplicate.status_code == 409

        assert [e["document_number"] for e in client.get("/blacklist", headers=admin_headers).json()] == ["777"]
        assert client.delete(f"/blacklist/{created.json()['id']}", headers=admin_headers).status_code == 200
        assert client.get("/blacklist", headers=admin_headers).json() == []


class TestRoomsApi:

    def test_create_and_price(self, client: TestClient, admin_headers, cashier_headers):
        created = client.post("/rooms", headers=admin_headers, json={
            "room_number": "301", "daily_price": "400", "short_stay_3h_price": "120",
            "short_stay_6h_price": "60"
        })
        assert created.status_code == 201
        room_id = created.json()["id"]

        response = client.patch(f"/rooms/{room_id}/prices", headers=cashier_headers,
                                json={"daily_price": "1"})
        assert response.status_code == 403

        response = client.patch(f"/rooms/{room_id}/prices", headers=admin_headers,
                                json={"daily_price": "450"})
        assert Decimal(response.json()["daily_price"]) == Decimal("450")

        available = client.get("/rooms/available", headers=cashier_headers).json()
        assert [r["room_number"] for r in available] == ["301"]

    def test_mark_clean_on_available_room(self, client: TestClient, cashier_headers, room):
        response = client.patch(f"/rooms/{room.id}/mark-clean", headers=cashier_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_ROOM_TRANSITION"


class TestCatalogAndCustomersApi:

    def test_products(self, client: TestClient, cashier_headers, water, laundry):
        products = client.get("/products", headers=cashier_headers, params={"category": "minibar"}).json()
        assert [p["name"] for p in products] == ["Water 500ml"]

    def test_customers(self, client: TestClient, cashier_headers):
        created = client.post("/customers", headers=cashier_headers, json={
            "full_name": "Luis Paz", "document_number": "9988776", "phone": "+59170000002"
        })
        assert created.status_code == 201
        assert created.json()["whatsapp"] == "+59170000002"

        bad_phone = client.post("/customers", headers=cashier_headers, json={
            "full_name": "Someone", "phone": "12345"
        })
        assert bad_phone.status_code == 422

        found = client.get("/customers/search", headers=cashier_headers, params={"q": "paz"}).json()
        assert [c["full_name"] for c in found] == ["Luis Paz"]
