from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base, get_db
from app.main import app


@pytest.fixture()
def client():
    engine = create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db, None)
    Base.metadata.drop_all(engine)


def seed(client, stock="1000", total="500"):
    item = client.post("/api/items", json={"item_code": "X-100", "name": "Bracket", "min_stock": "100"})
    assert item.status_code == 201
    item_id = item.json()["id"]
    adjustment = client.post(
        "/api/inventory/adjustments",
        json={"item_id": item_id, "direction": "IN", "quantity": stock, "reason": "Opening balance"},
    )
    assert adjustment.status_code == 201
    order = client.post(
        "/api/blanket-orders",
        json={
            "order_number": "BO-1",
            "customer_name": "Acme Manufacturing",
            "start_date": "2026-01-01",
            "end_date": "2026-12-31",
            "lines": [{"item_id": item_id, "total_quantity": total, "unit_price": "4.25"}],
        },
    )
    assert order.status_code == 201
    return item_id, order.json()


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_release_lifecycle_over_http(client):
    item_id, order = seed(client)
    line = order["lines"][0]
    assert Decimal(line["remaining_quantity"]) == Decimal("500")

    created = client.post(
        "/api/releases",
        json={"order_line_id": line["id"], "quantity": "200", "scheduled_delivery_date": "2026-04-01"},
    )
    assert created.status_code == 201
    release = created.json()
    assert release["status"] == "PENDING"
    assert release["allowed_transitions"] == ["SHIPPED"]
    assert release["item_id"] == item_id

    available = client.get("/api/blanket-orders/lines/available").json()
    assert Decimal(available[0]["remaining_quantity"]) == Decimal("300")
    assert available[0]["order_number"] == "BO-1"

    shipped = client.patch(f"/api/releases/{release['id']}/status", json={"status": "SHIPPED"})
    assert shipped.status_code == 200
    delivered = client.patch(f"/api/releases/{release['id']}/status", json={"status": "DELIVERED"})
    assert delivered.status_code == 200
    assert delivered.json()["actual_delivery_date"] is not None

    again = client.patch(f"/api/releases/{release['id']}/status", json={"status": "DELIVERED"})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "ALREADY_DELIVERED"

    balance = client.get(f"/api/inventory/{item_id}").json()
    assert Decimal(balance["available_stock"]) == Decimal("800")
    assert Decimal(balance["reserved_stock"]) == Decimal("0")
    assert balance["stock_status"] == "HEALTHY"

    movements = client.get("/api/inventory/movements", params={"item_id": item_id}).json()
    assert [movement["movement_type"] for movement in movements] == ["IN", "OUT"]
    assert Decimal(movements[-1]["balance_after"]) == Decimal("800")
    assert movements[-1]["reference_id"] == release["id"]

    stats = client.get(f"/api/blanket-orders/{order['id']}/statistics").json()
    assert Decimal(stats["delivered_quantity"]) == Decimal("200")
    assert Decimal(stats["completion_percentage"]) == Decimal("40")

    assert client.get("/api/reconciliation/lines").json() == {"ok": True, "violations": []}
    assert client.get("/api/reconciliation/ledger").json() == {"ok": True, "violations": []}

    demand = client.get(f"/api/demand/{item_id}", params={"months": 3}).json()
    assert len(demand["buckets"]) == 3
    assert Decimal(demand["buckets"][-1]["quantity"]) == Decimal("200")


def test_business_errors_render_stable_codes(client):
    item_id, order = seed(client, stock="50", total="100")
    line_id = order["lines"][0]["id"]

    duplicate = client.post(
        "/api/blanket-orders",
        json={
            "order_number": "BO-1",
            "customer_name": "Someone Else",
            "start_date": "2026-01-01",
            "end_date": "2026-06-30",
            "lines": [{"item_id": item_id, "total_quantity": "10"}],
        },
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "DUPLICATE_ORDER_NUMBER"

    too_much = client.post(
        "/api/releases",
        json={"order_line_id": line_id, "quantity": "150", "scheduled_delivery_date": "2026-04-01"},
    )
    assert too_much.status_code == 409
    assert too_much.json()["detail"]["code"] == "INSUFFICIENT_REMAINING_QUANTITY"
    assert too_much.json()["detail"]["remaining"] == "100.00"

    deduction = client.post(
        "/api/inventory/deductions",
        json={"item_id": item_id, "quantity": "80", "reference_type": "Manual"},
    )
    assert deduction.status_code == 409
    assert deduction.json()["detail"]["code"] == "INSUFFICIENT_STOCK"
    assert Decimal(client.get(f"/api/inventory/{item_id}").json()["available_stock"]) == Decimal("50")

    missing = client.get("/api/releases/999")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "NOT_FOUND"


def test_failed_delivery_keeps_release_shipped(client):
    item_id, order = seed(client, stock="50", total="100")
    release = client.post(
        "/api/releases",
        json={"order_line_id": order["lines"][0]["id"], "quantity": "80", "scheduled_delivery_date": "2026-04-01"},
    ).json()
    client.patch(f"/api/releases/{release['id']}/status", json={"status": "SHIPPED"})

    response = client.patch(f"/api/releases/{release['id']}/status", json={"status": "DELIVERED"})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "INSUFFICIENT_STOCK"
    assert client.get(f"/api/releases/{release['id']}").json()["status"] == "SHIPPED"
    movements = client.get("/api/inventory/movements", params={"item_id": item_id}).json()
    assert len(movements) == 1


def test_order_validation_rejects_inverted_window(client):
    response = client.post(
        "/api/blanket-orders",
        json={
            "order_number": "BO-9",
            "customer_name": "Acme",
            "start_date": "2026-06-01",
            "end_date": "2026-01-01",
            "lines": [{"item_id": 1, "total_quantity": "10"}],
        },
    )
    assert response.status_code == 422


def test_pending_and_overdue_release_endpoints(client):
    _, order = seed(client)
    line_id = order["lines"][0]["id"]
    for scheduled in ("2026-02-01", "2026-09-01"):
        client.post(
            "/api/releases",
            json={"order_line_id": line_id, "quantity": "10", "scheduled_delivery_date": scheduled},
        )

    pending = client.get("/api/releases/pending").json()
    overdue = client.get("/api/releases/overdue", params={"as_of": "2026-03-01"}).json()

    assert len(pending) == 2
    assert [release["scheduled_delivery_date"] for release in overdue] == ["2026-02-01"]
