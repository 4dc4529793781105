import asyncio
from sdk.storeclient import StoreClient, cart_line

async def simulate_purchase(client, name, lines):
    try:
        resp = await client.checkout_async(lines, {"name": name, "email": f"{name.lower()}@example.com"})
        body = resp.json()

        if resp.status_code == 200:
            print(f"✅ {name} order placed "
                  f"(Order ID: {body['order_id']}, Total: {body['quote']['total']})")
        elif resp.status_code == 409:
            reasons = [f["reason"] for f in body["detail"]["failures"]]
            print(f"❌ {name} order failed: {', '.join(reasons)}")
        elif resp.status_code == 503:
            print(f"❌ {name} order failed: {body['detail']}")
        else:
            print(f"⚠️  {name} unexpected order response: {resp.status_code} {body}")

    except Exception as e:
        print(f"❌ {name} unexpected failure: {e}")

async def main():
    c = StoreClient(base_url="http://127.0.0.1:8085")

    # Reset store if available
    try:
        c.reset()
    except Exception as e:
        print(f"reset not available: {e}")

    variant = c.resolve_variant(1, color="Ambonia")
    print(f"\n👕 Last unit: {variant}")

    # Both buyers want the same last unit
    lines = [cart_line(1, 1, color="Ambonia")]
    print("\n⚡ Simulating concurrent checkouts...")
    await asyncio.gather(
        simulate_purchase(c, "Alice", lines),
        simulate_purchase(c, "Bob", lines),
    )

    # Show final state
    print("\n📦 Final variant state:", c.get_variant(variant["variant_id"]))
    print("📦 Final product state:", {k: v for k, v in c.get_product(1).items() if k in ("id", "name", "stock")})

if __name__ == "__main__":
    asyncio.run(main())
