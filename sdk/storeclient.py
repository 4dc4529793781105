# sdk/storeclient.py
import uuid
from urllib.parse import quote
from typing import Any, Dict, List, Optional

import httpx
import requests


def cart_line(product_id: int, quantity: int = 1, size: Optional[str] = None, color: Optional[str] = None) -> Dict[str, Any]:
    return {"product_id": product_id, "quantity": quantity, "selected_size": size, "selected_color": color}


class StoreClient:
    def __init__(self, base_url: str = "http://localhost:8085", api_key: Optional[str] = None, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def reset(self):
        r = self.session.post(f"{self.base_url}/reset", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _make_idempotency_key(self, provided: Optional[str]) -> str:
        return provided if provided else uuid.uuid4().hex

    # Catalog
    def list_products(self, available_only: bool = False):
        params = {}
        if available_only:
            params["available_only"] = "true"
        r = self.session.get(f"{self.base_url}/products", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def get_product(self, product_id: int):
        r = self.session.get(f"{self.base_url}/products/{product_id}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def list_variants(self, product_id: int, available_only: bool = False, low_stock: bool = False):
        params = {}
        if available_only:
            params["available_only"] = "true"
        if low_stock:
            params["low_stock"] = "true"
        r = self.session.get(f"{self.base_url}/products/{product_id}/variants", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def get_variant(self, variant_id: str):
        # ids already carry %-escapes; escape again so the path keeps them
        r = self.session.get(f"{self.base_url}/variants/{quote(variant_id, safe='')}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def resolve_variant(self, product_id: int, size: Optional[str] = None, color: Optional[str] = None):
        r = self.session.post(f"{self.base_url}/variants/resolve", json={
            "product_id": product_id, "size": size, "color": color
        }, timeout=self.timeout)
        # no match is an answer, not an error
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()

    def setup_variants(self):
        r = self.session.post(f"{self.base_url}/variants/setup", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Cart
    def validate_cart(self, lines: List[Dict[str, Any]]):
        r = self.session.post(f"{self.base_url}/cart/validate", json={"lines": lines}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def quote(self, lines: List[Dict[str, Any]], delivery_method: str = "pickup"):
        r = self.session.post(f"{self.base_url}/cart/quote", json={
            "lines": lines, "delivery_method": delivery_method
        }, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def commit_stock(self, lines: List[Dict[str, Any]], idempotency_key: Optional[str] = None):
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        r = self.session.post(f"{self.base_url}/stock/commit", json={"lines": lines}, headers=headers, timeout=self.timeout)
        # 409 carries the failure list
        if r.status_code == 409:
            return r.json()
        r.raise_for_status()
        return r.json()

    def checkout(
        self,
        lines: List[Dict[str, Any]],
        customer: Dict[str, Any],
        delivery_method: str = "pickup",
        channel: str = "web",
        idempotency_key: Optional[str] = None,
    ):
        key = self._make_idempotency_key(idempotency_key)
        headers = {"Idempotency-Key": key}
        payload = {"lines": lines, "customer": customer, "delivery_method": delivery_method, "channel": channel}
        r = self.session.post(f"{self.base_url}/cart/checkout", json=payload, headers=headers, timeout=self.timeout)
        # no raise_for_status here, callers inspect 409/503
        return r

    async def checkout_async(
        self,
        lines: List[Dict[str, Any]],
        customer: Dict[str, Any],
        delivery_method: str = "pickup",
        idempotency_key: Optional[str] = None,
    ):
        key = self._make_idempotency_key(idempotency_key)
        headers = {"Idempotency-Key": key}
        payload = {"lines": lines, "customer": customer, "delivery_method": delivery_method}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(f"{self.base_url}/cart/checkout", json=payload, headers=headers)

    def diagnostics(self):
        r = self.session.get(f"{self.base_url}/diagnostics", timeout=self.timeout)
        r.raise_for_status()
        return r.json()
