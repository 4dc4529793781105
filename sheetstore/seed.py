# sheetstore/seed.py
from typing import Optional

from .config import Settings, get_settings
from .database import InMemoryRowStore

PRODUCT_HEADER = ["id", "name", "price", "discount", "description", "image", "sizes", "colors", "stock"]
VARIANT_HEADER = ["productId", "size", "color", "stock", "variantId"]
ORDER_HEADER = [
    "orderId", "orderDate", "customerName", "customerEmail", "customerPhone", "deliveryMethod",
    "deliveryAddress", "itemCount", "subtotal", "shippingCost", "totalAmount", "notes", "status",
    "idempotencyKey",
]
ORDER_ITEM_HEADER = [
    "orderId", "productId", "productName", "variantId", "selectedSize", "selectedColor",
    "price", "originalPrice", "discount", "quantity", "subtotal",
]
COMMIT_HEADER = ["commitId", "committedAt", "lines"]

DEMO_PRODUCTS = [
    [1, "Batik Shirt", "35.00", "0", "Hand-stamped batik", "", "", "Ambonia, Kembang Legi", 5],
    [2, "Tote Bag", "12.50", "10", "Canvas tote", "", "", "", 7],
    [3, "Hoodie", "45.00", "0", "Heavy cotton hoodie", "", "S, M, L", "Navy, Blue-Green", 9],
    [4, "Scarf", "18.00", "0", "Woven scarf", "", "", "Red & White, Blue Sky", 5],
]

DEMO_VARIANTS = [
    [1, "null", "Ambonia", 1, "1-null-Ambonia"],
    [1, "null", "Kembang Legi", 4, "1-null-Kembang%20Legi"],
    [3, "S", "Navy", 2, "3-S-Navy"],
    [3, "M", "Navy", 3, "3-M-Navy"],
    [3, "L", "Navy", 0, "3-L-Navy"],
    [3, "S", "Blue-Green", 1, "3-S-Blue%2DGreen"],
    [3, "M", "Blue-Green", 2, "3-M-Blue%2DGreen"],
    [3, "L", "Blue-Green", 1, "3-L-Blue%2DGreen"],
]


def seed_demo(store: InMemoryRowStore, settings: Optional[Settings] = None) -> InMemoryRowStore:
    settings = settings or get_settings()
    store.reset()
    store.seed(settings.products_table, PRODUCT_HEADER, DEMO_PRODUCTS)
    store.seed(settings.variants_table, VARIANT_HEADER, DEMO_VARIANTS)
    store.seed(settings.orders_table, ORDER_HEADER)
    store.seed(settings.order_items_table, ORDER_ITEM_HEADER)
    store.seed(settings.commits_table, COMMIT_HEADER)
    return store
