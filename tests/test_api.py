# tests/test_api.py
from fastapi.testclient import TestClient

from sheetstore import core
from sheetstore.core import get_store
from sheetstore.database import InMemoryRowStore
from sheetstore.errors import RowStoreUnavailable
from sheetstore.main import app
from sheetstore.seed import seed_demo


def test_list_products(client):
    r = client.get("/products")
    assert r.status_code == 200
    body = r.json()
    assert [p["id"] for p in body] == [1, 2, 3, 4]
    assert body[0]["variants"][0]["variant_id"] == "1-null-Ambonia"
    assert "row_index" not in body[0]
    assert all(p["in_stock"] for p in body)


def test_available_only_hides_sold_out(client):
    client.post("/stock/commit", json={"lines": [{"product_id": 2, "quantity": 7}]})
    ids = [p["id"] for p in client.get("/products", params={"available_only": "true"}).json()]
    assert ids == [1, 3, 4]


def test_get_product(client):
    assert client.get("/products/3").json()["stock"] == 9
    assert client.get("/products/99").status_code == 404


def test_list_variants_filters(client):
    all_ids = [v["variant_id"] for v in client.get("/products/3/variants").json()]
    assert len(all_ids) == 6
    available = client.get("/products/3/variants", params={"available_only": "true"}).json()
    assert "3-L-Navy" not in [v["variant_id"] for v in available]
    low = client.get("/products/3/variants", params={"low_stock": "true"}).json()
    assert [v["variant_id"] for v in low] == ["3-S-Navy", "3-S-Blue%2DGreen", "3-M-Blue%2DGreen", "3-L-Blue%2DGreen"]


def test_get_variant_by_id(client):
    r = client.get("/variants/1-null-Kembang%2520Legi")
    assert r.status_code == 200
    assert r.json()["stock"] == 4
    assert client.get("/variants/1-null-Purple").status_code == 404
    assert client.get("/variants/garbage").status_code == 400


def test_resolve(client):
    r = client.post("/variants/resolve", json={"product_id": 3, "size": "S", "color": "Blue-Green"})
    assert r.status_code == 200
    assert r.json()["variant_id"] == "3-S-Blue%2DGreen"
    assert client.post("/variants/resolve", json={"product_id": 3, "color": "Navy"}).status_code == 404
    assert client.post("/variants/resolve", json={"product_id": 99}).status_code == 404


def test_setup_variants(client):
    r = client.post("/variants/setup")
    assert r.status_code == 201
    assert [v["variant_id"] for v in r.json()["created"]] == ["4-null-Red%20%26%20White", "4-null-Blue%20Sky"]
    assert client.post("/variants/setup").json()["created"] == []


def test_validate_cart(client):
    r = client.post("/cart/validate", json={"lines": [
        {"product_id": 2, "quantity": 1},
        {"product_id": 1, "selected_color": "Ambonia", "quantity": 2},
    ]})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is False
    assert body["failures"] == [{
        "line_index": 1,
        "product_id": 1,
        "selection": {"size": None, "color": "Ambonia"},
        "reason": "InsufficientStock",
        "requested": 2,
        "available": 1,
    }]


def test_empty_cart_and_bad_quantity(client):
    assert client.post("/cart/validate", json={"lines": []}).status_code == 400
    assert client.post("/cart/validate", json={"lines": [{"product_id": 1, "quantity": 0}]}).status_code == 422


def test_quote(client):
    r = client.post("/cart/quote", json={"lines": [{"product_id": 2, "quantity": 4}], "delivery_method": "delivery"})
    body = r.json()
    assert body["subtotal"] == "45.00"
    assert body["shipping"] == "7.69"
    assert body["total"] == "52.69"


def test_stock_commit_and_conflict(client):
    line = {"product_id": 1, "selected_color": "Ambonia", "quantity": 1}
    r = client.post("/stock/commit", json={"lines": [line]})
    assert r.status_code == 200
    assert r.json()["changes"][0]["after"] == 0

    r = client.post("/stock/commit", json={"lines": [line]})
    assert r.status_code == 409
    assert r.json()["failures"][0]["reason"] == "OutOfStock"


def test_stock_commit_idempotency_key(client):
    line = {"product_id": 2, "quantity": 1}
    client.post("/stock/commit", json={"lines": [line]}, headers={"Idempotency-Key": "abc"})
    r = client.post("/stock/commit", json={"lines": [line]}, headers={"Idempotency-Key": "abc"})
    assert r.json()["replayed"] is True
    assert client.get("/products/2").json()["stock"] == 6


def test_checkout(client, store, settings):
    payload = {
        "lines": [{"product_id": 3, "selected_size": "M", "selected_color": "Navy", "quantity": 1}],
        "customer": {"name": "Budi", "phone": "0812"},
        "delivery_method": "pickup",
    }
    r = client.post("/cart/checkout", json=payload, headers={"Idempotency-Key": "c1"})
    assert r.status_code == 200
    body = r.json()
    assert body["order_id"].startswith("ORD-")
    assert body["quote"]["total"] == "45.00"

    again = client.post("/cart/checkout", json=payload, headers={"Idempotency-Key": "c1"})
    assert again.json()["order_id"] == body["order_id"]
    assert client.get("/products/3").json()["stock"] == 8
    assert len(store.records(settings.orders_table)) == 1


def test_checkout_conflict(client):
    r = client.post("/cart/checkout", json={
        "lines": [{"product_id": 3, "selected_size": "L", "selected_color": "Navy", "quantity": 1}],
        "customer": {"name": "Budi"},
    })
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["failures"][0]["reason"] == "OutOfStock"


def test_diagnostics(client):
    body = client.get("/diagnostics").json()
    assert body["healthy"] is True
    assert body["product_count"] == 4


def test_reset(client):
    client.post("/stock/commit", json={"lines": [{"product_id": 2, "quantity": 7}]})
    assert client.post("/reset").json() == {"status": "reset"}
    assert client.get("/products/2").json()["stock"] == 7


class DownStore(InMemoryRowStore):
    async def read_table(self, name):
        raise RowStoreUnavailable("Sheets API unreachable")


class FailingBatchStore(InMemoryRowStore):
    async def batch_update_cells(self, updates):
        raise RowStoreUnavailable("Sheets API error 500")


def test_store_down_is_503(client, settings):
    app.dependency_overrides[get_store] = lambda: DownStore()
    r = client.get("/products")
    assert r.status_code == 503
    assert r.json()["detail"] == "store unavailable, please retry"


def test_failed_stock_write_is_503(client, settings):
    store = seed_demo(FailingBatchStore(), settings)
    app.dependency_overrides[get_store] = lambda: store
    r = client.post("/stock/commit", json={"lines": [{"product_id": 2, "quantity": 1}]})
    assert r.status_code == 503
    assert r.json()["detail"] == "order not completed, please retry"
    assert store.records(settings.products_table)[1]["stock"] == "7"


def test_reused_idempotency_key_with_another_cart_is_409(client):
    client.post("/stock/commit", json={"lines": [{"product_id": 2, "quantity": 1}]}, headers={"Idempotency-Key": "k"})
    other = {"lines": [{"product_id": 3, "selected_size": "M", "selected_color": "Navy", "quantity": 3}]}
    r = client.post("/stock/commit", json=other, headers={"Idempotency-Key": "k"})
    assert r.status_code == 409
    assert "different cart" in r.json()["detail"]

    r = client.post("/cart/checkout", json={**other, "customer": {"name": "Budi"}}, headers={"Idempotency-Key": "k"})
    assert r.status_code == 409
    assert client.get("/variants/3-M-Navy").json()["stock"] == 3


def test_variant_ids_of_products_without_variant_rows(client):
    resolved = client.post("/variants/resolve", json={"product_id": 4, "color": "Blue Sky"}).json()
    assert resolved["variant_id"] == "4-null-null"

    by_combination = client.get("/variants/4-null-Blue%2520Sky")
    assert by_combination.status_code == 200
    assert by_combination.json() == resolved
    assert client.get("/variants/4-null-null").json() == resolved
    assert client.get("/variants/4-null-Green").status_code == 404
    assert client.get("/variants/4-S-Blue%2520Sky").status_code == 404


class ClosingStore(InMemoryRowStore):
    closed = False

    async def aclose(self):
        self.closed = True


def test_store_is_closed_on_shutdown(monkeypatch):
    store = ClosingStore()
    monkeypatch.setattr(core, "_STORE", store)
    with TestClient(app):
        pass
    assert store.closed
    assert core._STORE is None
