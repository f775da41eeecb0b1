import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from mailer import Mailer
from main import app, get_db, get_mailer, get_token_issuer, settings
from security import TokenIssuer


class RecordingMailer(Mailer):
    def __init__(self) -> None:
        self.sent: dict[str, str] = {}

    def send_otp(self, email: str, otp: str) -> None:
        self.sent[email] = otp


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(mailer):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    issuer = TokenIssuer("api-test-secret")

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: issuer
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def signup(client, email="miner@example.com", password="secret1", **extra) -> dict:
    resp = client.post(
        "/api/v1/auth/signup",
        json={"email": email, "name": "Miner", "password": password, **extra},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


INCOME = {
    "date": "2025-01-10",
    "mineral_type": "gold",
    "quantity": 10,
    "unit": "g",
    "price_per_unit": 50,
    "customer_name": "Buyer",
    "payment_status": "partial",
    "amount_paid": 300,
}


def test_health(client) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.text == "OK"


def test_signup_and_login(client) -> None:
    data = signup(client)
    assert data["user"]["email"] == "miner@example.com"
    assert data["user"]["role"] == "standard"
    assert "password_hash" not in data["user"]

    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "miner@example.com", "password": "secret1"},
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["data"]["token"]


def test_login_with_wrong_password_is_unauthorized(client) -> None:
    signup(client)

    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "miner@example.com", "password": "wrong-pass"},
    )

    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Invalid email or password"}


def test_duplicate_signup_is_bad_request(client) -> None:
    signup(client)

    resp = client.post(
        "/api/v1/auth/signup",
        json={"email": "miner@example.com", "name": "Again", "password": "secret1"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Email already registered"


def test_validation_errors_use_envelope(client) -> None:
    resp = client.post(
        "/api/v1/auth/signup",
        json={"email": "broken", "name": "Miner", "password": "secret1"},
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "email" in resp.json()["error"]


def test_routes_require_token(client) -> None:
    assert client.get("/api/v1/income").status_code == 401
    resp = client.get("/api/v1/income", headers=auth("forged"))
    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_income_flow_and_summary(client) -> None:
    token = signup(client)["token"]

    resp = client.post("/api/v1/income", json=INCOME, headers=auth(token))
    assert resp.status_code == 200
    income = resp.json()["data"]
    assert income["total_amount"] == 500
    assert income["amount_due"] == 200

    update = {**INCOME, "amount_paid": 500, "payment_status": "paid", "total_amount": 1}
    resp = client.put(f"/api/v1/income/{income['id']}", json=update, headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["data"]["total_amount"] == 500
    assert resp.json()["data"]["amount_due"] == 0

    summary = client.get("/api/v1/analytics/summary", headers=auth(token)).json()["data"]
    assert summary["total_income"] == 500
    assert summary["total_receivables"] == 0

    monthly = client.get(
        "/api/v1/analytics/monthly", params={"year": "2025"}, headers=auth(token)
    ).json()["data"]
    assert monthly == [
        {"month": "2025-01", "income": 500.0, "expenses": 0.0, "profit": 500.0}
    ]


def test_income_range_validation(client) -> None:
    token = signup(client)["token"]
    client.post("/api/v1/income", json=INCOME, headers=auth(token))

    resp = client.get(
        "/api/v1/income/range",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1

    resp = client.get(
        "/api/v1/income/range", params={"start_date": "2025-01-01"}, headers=auth(token)
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Start date and end date are required"


def test_other_users_records_are_not_found(client) -> None:
    owner = signup(client, "owner@example.com")["token"]
    intruder = signup(client, "intruder@example.com")["token"]
    income_id = client.post("/api/v1/income", json=INCOME, headers=auth(owner)).json()[
        "data"
    ]["id"]

    assert client.get(f"/api/v1/income/{income_id}", headers=auth(intruder)).status_code == 404
    assert (
        client.delete(f"/api/v1/income/{income_id}", headers=auth(intruder)).status_code
        == 404
    )
    assert client.get(f"/api/v1/income/{income_id}", headers=auth(owner)).status_code == 200


def test_expense_breakdown_and_delete(client) -> None:
    token = signup(client)["token"]
    base = {
        "date": "2025-02-01",
        "description": "Supplies",
        "supplier_name": "Depot",
        "payment_status": "unpaid",
    }
    first = client.post(
        "/api/v1/expense", json={**base, "category": "fuel", "amount": 75}, headers=auth(token)
    ).json()["data"]
    client.post(
        "/api/v1/expense", json={**base, "category": "labor", "amount": 25}, headers=auth(token)
    )

    breakdown = client.get("/api/v1/expense/breakdown", headers=auth(token)).json()["data"]
    assert [(row["category"], row["percentage"]) for row in breakdown] == [
        ("fuel", 75.0),
        ("labor", 25.0),
    ]

    resp = client.delete(f"/api/v1/expense/{first['id']}", headers=auth(token))
    assert resp.status_code == 200
    breakdown = client.get(
        "/api/v1/analytics/expense-breakdown", headers=auth(token)
    ).json()["data"]
    assert [row["category"] for row in breakdown] == ["labor"]

    resp = client.post(
        "/api/v1/expense",
        json={**base, "category": "explosives", "amount": 5},
        headers=auth(token),
    )
    assert resp.status_code == 400


def test_inventory_low_stock_and_quantity_patch(client) -> None:
    token = signup(client)["token"]
    item = client.post(
        "/api/v1/inventory",
        json={
            "name": "Cyanide",
            "type": "supply",
            "quantity": 10,
            "unit": "kg",
            "min_stock_level": 5,
        },
        headers=auth(token),
    ).json()["data"]
    assert item["is_low_stock"] is False

    assert client.get("/api/v1/inventory/low-stock", headers=auth(token)).json()["data"] == []

    resp = client.patch(
        f"/api/v1/inventory/{item['id']}/quantity",
        json={"quantity": 5},
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["is_low_stock"] is True

    low = client.get("/api/v1/inventory/low-stock", headers=auth(token)).json()["data"]
    assert [row["id"] for row in low] == [item["id"]]


def test_password_reset_with_otp(client, mailer) -> None:
    signup(client)

    resp = client.post(
        "/api/v1/auth/forgot-password", json={"email": "miner@example.com"}
    )
    assert resp.status_code == 200
    otp = mailer.sent["miner@example.com"]

    resp = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "miner@example.com", "otp": "000000", "new_password": "newpass1"},
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/v1/auth/reset-password",
        json={"email": "miner@example.com", "otp": otp, "new_password": "newpass1"},
    )
    assert resp.status_code == 200

    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "miner@example.com", "password": "newpass1"},
    )
    assert resp.status_code == 200


def test_forgot_password_does_not_reveal_unknown_email(client, mailer) -> None:
    resp = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

    assert resp.status_code == 200
    assert mailer.sent == {}


def test_profile_update_and_password_change(client) -> None:
    token = signup(client)["token"]

    resp = client.put(
        "/api/v1/profile",
        json={"name": "Site Lead", "phone": "+243812345678", "location": "Kolwezi"},
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["location"] == "Kolwezi"

    resp = client.put(
        "/api/v1/profile/password",
        json={"current_password": "wrong", "new_password": "another1"},
        headers=auth(token),
    )
    assert resp.status_code == 400

    resp = client.put(
        "/api/v1/profile/password",
        json={"current_password": "secret1", "new_password": "another1"},
        headers=auth(token),
    )
    assert resp.status_code == 200


def test_mine_site_upsert(client) -> None:
    token = signup(client)["token"]

    assert client.get("/api/v1/mine-site", headers=auth(token)).status_code == 404

    body = {"owner": "Kasapa Co", "location": "Lualaba", "number_of_pits": 3}
    first = client.put("/api/v1/mine-site", json=body, headers=auth(token)).json()["data"]
    second = client.put(
        "/api/v1/mine-site", json={**body, "number_of_pits": 4}, headers=auth(token)
    ).json()["data"]

    assert first["id"] == second["id"]
    assert second["number_of_pits"] == 4


def test_admin_routes_require_admin_role(client) -> None:
    standard = signup(client, "worker@example.com")["token"]
    admin = signup(client, "boss@example.com", admin_code=settings.admin_code)["token"]

    assert client.get("/api/v1/admin/users", headers=auth(standard)).status_code == 403

    users = client.get("/api/v1/admin/users", headers=auth(admin)).json()["data"]
    assert {user["email"] for user in users} == {"worker@example.com", "boss@example.com"}

    worker_id = next(u["id"] for u in users if u["email"] == "worker@example.com")
    resp = client.delete(f"/api/v1/admin/users/{worker_id}", headers=auth(admin))
    assert resp.status_code == 200
    users = client.get("/api/v1/admin/users", headers=auth(admin)).json()["data"]
    assert [user["email"] for user in users] == ["boss@example.com"]


def test_signup_with_wrong_admin_code_is_rejected(client) -> None:
    resp = client.post(
        "/api/v1/auth/signup",
        json={
            "email": "sneaky@example.com",
            "name": "Sneaky",
            "password": "secret1",
            "admin_code": "guess",
        },
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid admin code"


def test_bad_year_is_bad_request(client) -> None:
    token = signup(client)["token"]

    resp = client.get(
        "/api/v1/analytics/monthly", params={"year": "abc"}, headers=auth(token)
    )

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Invalid year"}


def test_unexpected_value_error_is_internal(client) -> None:
    class BrokenMailer(Mailer):
        def send_otp(self, email: str, otp: str) -> None:
            raise ValueError("smtp host not configured")

    signup(client)
    app.dependency_overrides[get_mailer] = lambda: BrokenMailer()
    lenient = TestClient(app, raise_server_exceptions=False)

    resp = lenient.post(
        "/api/v1/auth/forgot-password", json={"email": "miner@example.com"}
    )

    assert resp.status_code == 500
    assert "smtp" not in resp.text
