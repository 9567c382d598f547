"""
Auth API tests
"""
from fastapi.testclient import TestClient


class TestLogin:

    def test_login_success(self, client: TestClient, cashier):
        response = client.post("/auth/login", json={"username": "cashier1", "password": "cashier123"})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "cashier"
        assert data["employee_id"] == cashier.id

    def test_wrong_password(self, client: TestClient, cashier):
        response = client.post("/auth/login", json={"username": "cashier1", "password": "nope"})
        assert response.status_code == 401

    def test_inactive_employee(self, client: TestClient, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        response = client.post("/auth/login", json={"username": "cashier1", "password": "cashier123"})
        assert response.status_code == 401

    def test_token_works(self, client: TestClient, cashier):
        token = client.post(
            "/auth/login", json={"username": "cashier1", "password": "cashier123"}
        ).json()["access_token"]
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["username"] == "cashier1"


class TestProtectedRoutes:

    def test_no_token(self, client: TestClient):
        assert client.get("/rooms").status_code in (401, 403)

    def test_bad_token(self, client: TestClient):
        response = client.get("/rooms", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_cashier_cannot_manage_blacklist(self, client: TestClient, cashier_headers):
        response = client.post("/blacklist", headers=cashier_headers,
                               json={"document_number": "1", "reason": "x"})
        assert response.status_code == 403

    def test_health(self, client: TestClient):
        assert client.get("/health").json() == {"status": "healthy"}
