# sheetstore/checkout.py
"""
Checkout on top of the stock engine: price the cart, commit the stock, then
record the order. Orders are written only after stock was committed.
"""
import time
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel

from .catalog import _parse_decimal, _parse_int, load_catalog
from .commit import StockCommitEngine
from .config import Settings, get_settings
from .database import RowStore, cell_value
from .errors import RowStoreError, TableNotFound
from .logger import get_logger
from .models import Catalog, CartLine, LineFailure
from .resolver import resolve_variant

logger = get_logger("checkout")

CENT = Decimal("0.01")
# (max items, cost) for home delivery; anything above the last tier pays SHIPPING_MAX
SHIPPING_TIERS = ((3, Decimal("6.19")), (7, Decimal("7.69")))
SHIPPING_MAX = Decimal("10.49")


class QuoteLine(BaseModel):
    line_index: int
    product_id: int
    name: str
    variant_id: Optional[str] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    quantity: int
    original_price: Decimal
    discount: Decimal
    unit_price: Decimal
    subtotal: Decimal


class Quote(BaseModel):
    delivery_method: str
    lines: List[QuoteLine] = []
    item_count: int = 0
    subtotal: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")


class Customer(BaseModel):
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


class OrderResult(BaseModel):
    success: bool
    order_id: Optional[str] = None
    quote: Optional[Quote] = None
    failures: List[LineFailure] = []
    replayed: bool = False
    recorded: bool = False


def discounted_price(price: Decimal, discount: Decimal) -> Decimal:
    if discount <= 0:
        return price.quantize(CENT, rounding=ROUND_HALF_UP)
    return (price * (1 - discount / 100)).quantize(CENT, rounding=ROUND_HALF_UP)


def shipping_cost(item_count: int, delivery_method: str) -> Decimal:
    if delivery_method != "delivery" or item_count <= 0:
        return Decimal("0.00")
    for max_items, cost in SHIPPING_TIERS:
        if item_count <= max_items:
            return cost
    return SHIPPING_MAX


def quote_cart(catalog: Catalog, lines: Sequence[CartLine], delivery_method: str = "pickup") -> Quote:
    quote = Quote(delivery_method=delivery_method)
    for index, line in enumerate(lines):
        product = catalog.get(line.product_id)
        if product is None:
            continue
        variant = resolve_variant(product, selection=line.selection)
        unit = discounted_price(product.price, product.discount)
        quote.lines.append(QuoteLine(
            line_index=index,
            product_id=product.id,
            name=product.name,
            variant_id=variant.variant_id if variant else None,
            selected_size=line.selected_size,
            selected_color=line.selected_color,
            quantity=line.quantity,
            original_price=product.price,
            discount=product.discount,
            unit_price=unit,
            subtotal=unit * line.quantity,
        ))

    quote.item_count = sum(l.quantity for l in quote.lines)
    quote.subtotal = sum((l.subtotal for l in quote.lines), Decimal("0.00"))
    quote.shipping = shipping_cost(quote.item_count, delivery_method)
    quote.total = quote.subtotal + quote.shipping
    return quote


def new_order_id(channel: str = "web") -> str:
    prefix = "POS" if channel == "pos" else "ORD"
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


def _money(raw: str) -> Decimal:
    return _parse_decimal(raw).quantize(CENT, rounding=ROUND_HALF_UP)


def _optional(raw: str) -> Optional[str]:
    return raw or None


async def _recorded_order(store: RowStore, settings: Settings, idempotency_key: str) -> Optional[Tuple[str, Quote]]:
    """Order id and quote as recorded for idempotency_key, or None."""
    try:
        orders = await store.read_table(settings.orders_table)
    except TableNotFound:
        return None
    order = next(
        (row for row in orders.rows if cell_value(orders.header, row, "idempotencyKey") == idempotency_key),
        None,
    )
    if order is None:
        return None

    def field(column: str) -> str:
        return cell_value(orders.header, order, column)

    order_id = field("orderId")
    try:
        items = await store.read_table(settings.order_items_table)
    except TableNotFound:
        items = None

    lines: List[QuoteLine] = []
    for row in (items.rows if items else []):
        def item(column: str) -> str:
            return cell_value(items.header, row, column)

        if item("orderId") != order_id:
            continue
        lines.append(QuoteLine(
            line_index=len(lines),
            product_id=_parse_int(item("productId")) or 0,
            name=item("productName"),
            variant_id=_optional(item("variantId")),
            selected_size=_optional(item("selectedSize")),
            selected_color=_optional(item("selectedColor")),
            quantity=_parse_int(item("quantity")) or 0,
            original_price=_money(item("originalPrice")),
            discount=_parse_decimal(item("discount")),
            unit_price=_money(item("price")),
            subtotal=_money(item("subtotal")),
        ))

    quote = Quote(
        delivery_method=field("deliveryMethod"),
        lines=lines,
        item_count=_parse_int(field("itemCount")) or 0,
        subtotal=_money(field("subtotal")),
        shipping=_money(field("shippingCost")),
        total=_money(field("totalAmount")),
    )
    return order_id, quote


async def _record_order(
    store: RowStore,
    settings: Settings,
    order_id: str,
    quote: Quote,
    customer: Customer,
    idempotency_key: Optional[str],
) -> bool:
    order = {
        "orderId": order_id,
        "orderDate": datetime.now(timezone.utc).isoformat(),
        "customerName": customer.name,
        "customerEmail": customer.email,
        "customerPhone": customer.phone,
        "deliveryMethod": quote.delivery_method,
        "deliveryAddress": customer.address if quote.delivery_method == "delivery" else "Pickup",
        "itemCount": quote.item_count,
        "subtotal": quote.subtotal,
        "shippingCost": quote.shipping,
        "totalAmount": quote.total,
        "notes": customer.notes,
        "status": "Pending Review",
        "idempotencyKey": idempotency_key or "",
    }
    items = [
        {
            "orderId": order_id,
            "productId": l.product_id,
            "productName": l.name,
            "variantId": l.variant_id or "",
            "selectedSize": l.selected_size or "",
            "selectedColor": l.selected_color or "",
            "price": l.unit_price,
            "originalPrice": l.original_price,
            "discount": l.discount,
            "quantity": l.quantity,
            "subtotal": l.subtotal,
        }
        for l in quote.lines
    ]
    try:
        await store.append_rows(settings.orders_table, [order])
        await store.append_rows(settings.order_items_table, items)
    except TableNotFound as exc:
        logger.warning("order %s not recorded: %s", order_id, exc)
        return False
    except RowStoreError:
        logger.exception("stock committed but order %s could not be recorded", order_id)
        return False
    return True


async def place_order(
    store: RowStore,
    lines: Sequence[CartLine],
    customer: Customer,
    delivery_method: str = "pickup",
    channel: str = "web",
    settings: Optional[Settings] = None,
    idempotency_key: Optional[str] = None,
) -> OrderResult:
    settings = settings or get_settings()
    catalog = await load_catalog(store, settings)
    quote = quote_cart(catalog, lines, delivery_method)

    result = await StockCommitEngine(store, settings).commit(lines, commit_id=idempotency_key)
    if not result.success:
        return OrderResult(success=False, quote=quote, failures=result.failures)
    if result.replayed:
        recorded = await _recorded_order(store, settings, idempotency_key)
        if recorded is None:
            logger.warning("commit %s was applied but its order row is missing", idempotency_key)
            return OrderResult(success=True, replayed=True)
        order_id, recorded_quote = recorded
        return OrderResult(success=True, order_id=order_id, quote=recorded_quote, replayed=True, recorded=True)

    order_id = new_order_id(channel)
    recorded = await _record_order(store, settings, order_id, quote, customer, idempotency_key)
    logger.info("order %s placed: %d item(s), total %s", order_id, quote.item_count, quote.total)
    return OrderResult(success=True, order_id=order_id, quote=quote, recorded=recorded)
