# sheetstore/core.py
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from .catalog import is_in_stock
from .checkout import Customer
from .config import get_settings
from .database import InMemoryRowStore, RowStore
from .models import CartLine, Product, Variant
from .seed import seed_demo
from .sheets import SheetsRowStore

DeliveryMethod = Literal["delivery", "pickup", "pos"]


class ResolveIn(BaseModel):
    product_id: int
    size: Optional[str] = None
    color: Optional[str] = None


class CartIn(BaseModel):
    lines: List[CartLine]


class QuoteIn(CartIn):
    delivery_method: DeliveryMethod = "pickup"


class CheckoutIn(CartIn):
    customer: Customer
    delivery_method: DeliveryMethod = "pickup"
    channel: Literal["web", "pos"] = "web"


def _make_product_dict(product: Product) -> Dict[str, Any]:
    out = product.model_dump(mode="json", exclude={"row_index"})
    out["variants"] = [_make_variant_dict(v) for v in product.variants]
    out["in_stock"] = is_in_stock(product)
    return out


def _make_variant_dict(variant: Variant) -> Dict[str, Any]:
    return variant.model_dump(mode="json", exclude={"row_index"})


_STORE: Optional[RowStore] = None


def get_store() -> RowStore:
    global _STORE
    if _STORE is None:
        settings = get_settings()
        if settings.backend == "sheets":
            _STORE = SheetsRowStore.from_settings(settings)
        else:
            _STORE = seed_demo(InMemoryRowStore(), settings)
    return _STORE


async def close_store() -> None:
    global _STORE
    if _STORE is not None:
        await _STORE.aclose()
        _STORE = None
