from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from giftbot.main import app
from giftbot.settings import settings
from giftbot.store import models as m
from giftbot.wiring import get_container

client = TestClient(app)
KEY = {"x-admin-key": "admin-key"}


@pytest.fixture(autouse=True)
def admin_setup(container):
    app.dependency_overrides[get_container] = lambda: container
    with patch.object(settings, "ADMIN_RBAC_ENABLED", True), \
            patch.object(settings, "ADMIN_API_KEY", "admin-key"):
        yield
    app.dependency_overrides = {}


def _order(container, quantity=1):
    return container.controller.create_order(m.Selection("Amazon", "US", 50, quantity), m.Buyer(id="100"))


def test_admin_key_required():
    assert client.get("/admin/orders").status_code == 403
    assert client.get("/admin/orders", headers={"x-admin-key": "wrong"}).status_code == 403


def test_admin_disabled_without_configured_key():
    with patch.object(settings, "ADMIN_API_KEY", ""):
        assert client.get("/admin/orders", headers=KEY).status_code == 403


def test_restock_and_inventory_snapshot():
    resp = client.post("/admin/inventory", headers=KEY,
                       json={"card": "Amazon", "region": "us", "denom": 50, "codes": ["A1", "A2", "A1"]})
    assert resp.status_code == 200
    assert resp.json() == {"card": "Amazon", "region": "US", "denom": 50, "added": 2, "available": 2}

    assert client.get("/admin/inventory", headers=KEY).json() == {"Amazon": {"US": {"50": 2}}}


def test_restock_validates_body():
    resp = client.post("/admin/inventory", headers=KEY,
                       json={"card": "Amazon", "region": "US", "denom": 0, "codes": []})
    assert resp.status_code == 422


def test_list_and_get_orders(container):
    order = _order(container)

    listed = client.get("/admin/orders", params={"status": "pending"}, headers=KEY).json()
    assert [o["id"] for o in listed] == [order.id]
    assert client.get("/admin/orders", params={"status": "paid"}, headers=KEY).json() == []
    assert client.get("/admin/orders", params={"status": "bogus"}, headers=KEY).status_code == 422

    got = client.get(f"/admin/orders/{order.id}", headers=KEY).json()
    assert got["status"] == "pending"
    assert got["transaction"]["txn_id"] == "CPTEST123"
    assert client.get("/admin/orders/missing", headers=KEY).status_code == 404


def test_mark_paid_and_deliver(container, inventory, chat):
    inventory.add_codes("Amazon", "US", 50, ["A1"])
    order = _order(container)

    assert client.post(f"/admin/orders/{order.id}/deliver", headers=KEY).status_code == 409

    paid = client.post(f"/admin/orders/{order.id}/mark-paid", headers=KEY).json()
    assert paid["status"] == "paid"

    resp = client.post(f"/admin/orders/{order.id}/deliver", headers=KEY).json()
    assert resp["order"]["status"] == "delivered"
    assert resp["order"]["codes"] == ["A1"]
    assert resp["buyerNotified"] is True
    assert "A1" in chat.texts_for("100")[-1]

    assert client.post(f"/admin/orders/{order.id}/mark-paid", headers=KEY).status_code == 409


def test_deliver_without_stock_conflicts(container):
    order = _order(container)
    container.controller.mark_paid_manually(order.id)
    assert client.post(f"/admin/orders/{order.id}/deliver", headers=KEY).status_code == 409


def test_stats(container):
    _order(container)
    out = client.get("/admin/stats", headers=KEY).json()
    assert out["counters"]["orders_created"] == 1
    assert out["orders"] == {"pending": 1, "paid": 0, "delivered": 0}
