#!/usr/bin/env python
import uuid
from sdk.storeclient import StoreClient, cart_line

def main():
    c = StoreClient(base_url="http://127.0.0.1:8085")

    # -----------------------------
    # Reset everything for demo
    # -----------------------------
    print("Resetting store...")
    print(c.reset())

    # -----------------------------
    # List products and variants
    # -----------------------------
    print("\nListing products...")
    for p in c.list_products():
        print(p["id"], p["name"], p["stock"], [v["variant_id"] for v in p["variants"]])

    print("\nVariants of product 1...")
    print(c.list_variants(1))

    # -----------------------------
    # Resolve a selection
    # -----------------------------
    print("\nResolving Hoodie M / Blue-Green...")
    print(c.resolve_variant(3, size="M", color="Blue-Green"))

    print("\nResolving Hoodie without a size (should be None)...")
    print(c.resolve_variant(3, color="Navy"))

    # -----------------------------
    # Validate a cart
    # -----------------------------
    cart = [
        cart_line(1, 1, color="Ambonia"),
        cart_line(2, 2),
        cart_line(3, 1, size="S", color="Navy"),
    ]
    print("\nValidating cart...")
    print(c.validate_cart(cart))

    print("\nValidating 2 x Ambonia (only 1 left)...")
    print(c.validate_cart([cart_line(1, 2, color="Ambonia")]))

    # -----------------------------
    # Quote and checkout
    # -----------------------------
    print("\nQuote for home delivery...")
    print(c.quote(cart, "delivery"))

    customer = {"name": "Alice", "email": "alice@example.com", "address": "Jl. Malioboro 1"}
    idempotency_key = str(uuid.uuid4())
    print("\nPlacing order...")
    resp = c.checkout(cart, customer, "delivery", idempotency_key=idempotency_key)
    print(resp.status_code, resp.json())

    print("\nRetrying with the same key (no second decrement)...")
    resp = c.checkout(cart, customer, "delivery", idempotency_key=idempotency_key)
    print(resp.status_code, resp.json())

    # -----------------------------
    # Ambonia is sold out now
    # -----------------------------
    print("\nPlacing the same order again with a new key...")
    resp = c.checkout(cart, customer, "delivery")
    print(resp.status_code, resp.json())

    print("\nVariants of product 1 after orders...")
    print(c.list_variants(1))

    # -----------------------------
    # Diagnostics
    # -----------------------------
    print("\nDiagnostics...")
    print(c.diagnostics())

if __name__ == "__main__":
    main()
